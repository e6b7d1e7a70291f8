"""Shared fixtures for HealthBot tests."""

import asyncio
from typing import Dict, Optional, Tuple

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from healthbot.config import Settings, reset_settings
from healthbot.db.ledger import RunLedger
from healthbot.models.surfaces import ProbeResult, Surface

SECURE_HEADERS = {
    "Strict-Transport-Security": "max-age=63072000",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
}


@pytest.fixture
def settings(tmp_path):
    """Settings with an empty catalog, a temporary ledger and no step delay."""
    reset_settings()
    return Settings(
        db_path=tmp_path / "ledger.sqlite",
        base_url="http://platform.test",
        pages=[],
        api_endpoints=[],
        required_tables=[],
        security_headers=[],
        probe_timeout=1.0,
        run_timeout=5.0,
        remediation_step_delay=0.0,
    )


@pytest_asyncio.fixture
async def ledger(settings):
    ledger = await RunLedger.open(settings.db_path)
    yield ledger
    await ledger.close()


class StubProbe:
    """Probe double answering from a table keyed by surface name.

    ``outcomes`` maps a surface name to ``(outcome, status_code)``; surfaces
    not listed pass. ``delays`` makes a probe sleep first, ``errors`` makes it
    raise.
    """

    def __init__(
        self,
        outcomes: Optional[Dict[str, Tuple[str, Optional[int]]]] = None,
        delays: Optional[Dict[str, float]] = None,
        errors: Optional[Dict[str, Exception]] = None,
        missing_headers: Optional[Dict[str, list]] = None,
    ):
        self.outcomes = outcomes or {}
        self.delays = delays or {}
        self.errors = errors or {}
        self.missing_headers = missing_headers or {}
        self.probed = []

    async def probe(self, surface: Surface) -> ProbeResult:
        self.probed.append(surface.name)
        if surface.name in self.delays:
            await asyncio.sleep(self.delays[surface.name])
        if surface.name in self.errors:
            raise self.errors[surface.name]
        if surface.name in self.missing_headers:
            return ProbeResult(
                surface=surface,
                outcome='missing_header',
                status_code=200,
                missing_headers=list(self.missing_headers[surface.name]),
            )

        outcome, status_code = self.outcomes.get(surface.name, ('passed', 200))
        detail = f"HTTP {status_code} response" if status_code else outcome
        return ProbeResult(surface=surface, outcome=outcome, status_code=status_code, detail=detail)


@pytest.fixture
def stub_probe_factory():
    return StubProbe


def build_platform_app() -> web.Application:
    """A small stand-in for the monitored platform."""

    async def home(request):
        return web.Response(text="home", headers=SECURE_HEADERS)

    async def ok(request):
        return web.json_response({"ok": True})

    async def broken(request):
        return web.Response(status=503, text="maintenance")

    async def gone(request):
        return web.Response(status=404, text="not found")

    async def chat(request):
        body = await request.json()
        return web.json_response({"echo": body}, status=401)

    async def moved(request):
        raise web.HTTPFound("/")

    async def slow(request):
        await asyncio.sleep(2)
        return web.Response(text="late")

    app = web.Application()
    app.router.add_get("/", home)
    app.router.add_get("/health", ok)
    app.router.add_get("/broken", broken)
    app.router.add_get("/gone", gone)
    app.router.add_post("/api/chat", chat)
    app.router.add_get("/slow", slow)
    app.router.add_get("/moved", moved)
    return app


@pytest_asyncio.fixture
async def platform_server():
    server = TestServer(build_platform_app())
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def platform_url(platform_server):
    return str(platform_server.make_url("/")).rstrip("/")
