"""Integration tests for the trigger endpoints."""

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from healthbot.api.routes import create_app
from healthbot.config import ApiEndpointConfig
from healthbot.db.ledger import RunLedger
from healthbot.exceptions import LedgerError
from healthbot.models.tickets import Ticket
from healthbot.orchestrator import HealthCheckOrchestrator


class BrokenLedger(RunLedger):
    """Ledger that cannot write runs at all."""

    async def record_run(self, run, issues):
        raise LedgerError("ledger offline")


@pytest_asyncio.fixture
async def make_client():
    clients = []

    async def factory(app):
        client = TestClient(TestServer(app))
        await client.start_server()
        clients.append(client)
        return client

    yield factory
    for client in clients:
        await client.close()


@pytest.fixture
def platform_settings(settings, platform_url):
    settings.base_url = platform_url
    settings.pages = ["/", "/health", "/broken"]
    settings.api_endpoints = [
        ApiEndpointConfig(path="/api/chat", method="POST", expected=[200, 400, 401]),
    ]
    settings.required_tables = ["tickets"]
    settings.security_headers = ["strict-transport-security", "x-frame-options"]
    return settings


@pytest.mark.asyncio
async def test_secret_required_when_configured(settings, ledger, make_client):
    settings.trigger_secret = "s3cret"
    client = await make_client(create_app(settings, ledger=ledger))

    response = await client.get("/runs")
    assert response.status == 401
    assert await response.json() == {'error': 'Unauthorized'}

    response = await client.get("/runs", headers={"Authorization": "Bearer wrong"})
    assert response.status == 401

    response = await client.get("/runs", headers={"Authorization": "Bearer s3cret"})
    assert response.status == 200

    response = await client.get("/runs", headers={"x-scheduled-invocation": "1"})
    assert response.status == 200


@pytest.mark.asyncio
async def test_unauthorized_trigger_does_not_run(settings, ledger, make_client):
    settings.trigger_secret = "s3cret"
    client = await make_client(create_app(settings, ledger=ledger))

    response = await client.post("/healthcheck")

    assert response.status == 401
    assert await ledger.recent_runs() == []


@pytest.mark.asyncio
async def test_healthcheck_against_platform(platform_settings, ledger, make_client):
    client = await make_client(create_app(platform_settings, ledger=ledger))

    response = await client.post("/healthcheck")

    assert response.status == 200
    body = await response.json()
    assert body['success'] is True
    assert body['status'] == 'ISSUES_FOUND'
    assert body['summary']['pages'] == "2/3"
    assert body['summary']['apis'] == "1/1"
    assert body['summary']['storage'] == "1/1"
    assert body['summary']['security'] == "2/2"
    assert body['summary']['critical'] == 1
    assert [issue['title'] for issue in body['issues']] == ["Page Unavailable: /broken"]
    assert body['results']['pages']['errors'][0]['status'] == 503

    runs = await ledger.recent_runs()
    assert runs[0].id == body['run_id']


@pytest.mark.asyncio
async def test_healthcheck_response_issue_list_is_bounded(settings, ledger, make_client, stub_probe_factory):
    settings.pages = [f"/page-{n}" for n in range(5)]
    settings.max_response_issues = 2
    probe = stub_probe_factory(outcomes={f"page:/page-{n}": ('server_error', 500) for n in range(5)})
    client = await make_client(create_app(settings, ledger=ledger, http_probe=probe, storage_probe=probe))

    body = await (await client.get("/healthcheck")).json()

    assert body['summary']['total_issues'] == 5
    assert len(body['issues']) == 2
    assert len(await ledger.issues_for_run(body['run_id'])) == 5


@pytest.mark.asyncio
async def test_healthcheck_ledger_failure_is_500(settings, make_client, stub_probe_factory):
    settings.pages = ["/"]
    ledger = await BrokenLedger.open(settings.db_path)
    probe = stub_probe_factory()
    client = await make_client(create_app(settings, ledger=ledger, http_probe=probe, storage_probe=probe))

    try:
        response = await client.post("/healthcheck")

        assert response.status == 500
        body = await response.json()
        assert body['success'] is False
        assert body['status'] == 'ERROR'
        assert body['error'] == "ledger offline"
        assert body['run_id'].startswith("run_")
    finally:
        await ledger.close()


@pytest.mark.asyncio
async def test_autofix_twice(settings, ledger, make_client):
    await ledger.create_ticket(Ticket.new("Dashboard shows stale data", category="bug", ticket_number="T-7"))
    await ledger.create_ticket(Ticket.new("Please change my avatar", category="account"))
    client = await make_client(create_app(settings, ledger=ledger, random_source=lambda: 0.0))

    first = await (await client.post("/autofix")).json()
    second = await (await client.post("/autofix")).json()

    assert first['processed'] == 2
    assert first['fixed'] == 1
    assert first['skipped'] == 1
    assert first['message'] == "Processed 2 tickets: 1 fixed, 0 escalated, 1 skipped"
    assert first['details'][0]['pattern'] == 'cache-clear'
    assert first['details'][0]['confidence'] == 0.95
    assert second['processed'] == 0
    assert second['message'] == "No tickets to process"


@pytest.mark.asyncio
async def test_recent_runs(settings, ledger, make_client, stub_probe_factory):
    settings.pages = ["/"]
    probe = stub_probe_factory()
    client = await make_client(create_app(settings, ledger=ledger, http_probe=probe, storage_probe=probe))

    for _ in range(3):
        await client.post("/healthcheck")

    body = await (await client.get("/runs", params={"limit": "2"})).json()

    assert len(body['runs']) == 2
    assert body['runs'][0]['status'] == 'healthy'
    assert body['runs'][0]['result']['pages']['checked'] == 1


@pytest.mark.asyncio
async def test_recent_runs_rejects_bad_limit(settings, ledger, make_client):
    client = await make_client(create_app(settings, ledger=ledger))

    assert (await client.get("/runs", params={"limit": "abc"})).status == 400
    assert (await client.get("/runs", params={"limit": "0"})).status == 400


@pytest.mark.asyncio
async def test_autofix_broken_pattern_catalog_is_json_500(settings, ledger, make_client, tmp_path):
    patterns_path = tmp_path / "patterns.json"
    patterns_path.write_text("{not json")
    settings.patterns_path = patterns_path
    client = await make_client(create_app(settings, ledger=ledger))

    response = await client.get("/autofix")

    assert response.status == 500
    assert response.content_type == "application/json"
    body = await response.json()
    assert body['success'] is False
    assert body['status'] == 'ERROR'
    assert body['error']


@pytest.mark.asyncio
async def test_healthcheck_unexpected_error_is_json_500(settings, ledger, make_client, monkeypatch):
    async def corrupted(self):
        raise RuntimeError("surface catalog corrupted")

    monkeypatch.setattr(HealthCheckOrchestrator, "run", corrupted)
    client = await make_client(create_app(settings, ledger=ledger))

    response = await client.get("/healthcheck")

    assert response.status == 500
    assert response.content_type == "application/json"
    body = await response.json()
    assert body['status'] == 'ERROR'
    assert body['error'] == "surface catalog corrupted"
