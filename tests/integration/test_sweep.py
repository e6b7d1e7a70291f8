"""Integration tests for remediation sweeps."""

import pytest

from healthbot.db.ledger import RunLedger
from healthbot.exceptions import LedgerError
from healthbot.models.tickets import Ticket
from healthbot.orchestrator.executor import RemediationExecutor
from healthbot.orchestrator.patterns import DEFAULT_PATTERNS, PatternCatalog
from healthbot.orchestrator.sweep import RemediationSweep


class FlakyLedger(RunLedger):
    """Ledger whose attempt write fails for one ticket."""

    fail_for = None

    async def record_attempt(self, ticket, attempt, activity=None):
        if ticket.id == self.fail_for:
            raise LedgerError("write conflict")
        await super().record_attempt(ticket, attempt, activity)


def certain_catalog() -> PatternCatalog:
    return PatternCatalog(pattern.with_success_rate(1.0) for pattern in DEFAULT_PATTERNS)


def sweep_for(ledger, settings, catalog=None, draw=0.5) -> RemediationSweep:
    executor = RemediationExecutor(ledger, random_source=lambda: draw, settings=settings)
    return RemediationSweep(ledger, catalog or certain_catalog(), executor, settings=settings)


@pytest.mark.asyncio
async def test_empty_sweep(ledger, settings):
    report = await sweep_for(ledger, settings).run()

    assert report.processed == 0
    assert report.message == "No tickets to process"


@pytest.mark.asyncio
async def test_rate_limit_ticket_is_fixed(ledger, settings):
    ticket = await ledger.create_ticket(Ticket.new(
        "Getting 429 too many requests",
        category="billing",
        ticket_number="T-429",
    ))

    report = await sweep_for(ledger, settings).run()

    assert report.processed == 1
    assert report.fixed == 1
    detail = report.details[0]
    assert detail['ticket_number'] == "T-429"
    assert detail['status'] == 'fixed'
    assert detail['pattern'] == 'rate-limit'
    assert detail['confidence'] == 0.80
    assert detail['resolution'] == "Applied rate limit increase and retry logic"

    stored = await ledger.get_ticket(ticket.id)
    assert stored.status == 'resolved'


@pytest.mark.asyncio
async def test_second_sweep_processes_nothing(ledger, settings):
    await ledger.create_ticket(Ticket.new("Session expired", category="error"))
    await ledger.create_ticket(Ticket.new("Please change my avatar", category="account"))

    first = await sweep_for(ledger, settings).run()
    second = await sweep_for(ledger, settings).run()

    assert first.processed == 2
    assert first.fixed == 1
    assert first.skipped == 1
    assert second.processed == 0
    assert second.details == []


@pytest.mark.asyncio
async def test_escalated_tickets_are_counted_as_failed(ledger, settings):
    catalog = PatternCatalog(pattern.with_success_rate(0.0) for pattern in DEFAULT_PATTERNS)
    ticket = await ledger.create_ticket(Ticket.new("Out of memory on export", category="performance"))

    report = await sweep_for(ledger, settings, catalog).run()

    assert report.failed == 1
    assert report.details[0]['status'] == 'escalated'
    assert report.details[0]['pattern'] == 'memory-issue'
    assert (await ledger.get_ticket(ticket.id)).status == 'escalated'


@pytest.mark.asyncio
async def test_ticket_failure_does_not_abort_sweep(settings):
    ledger = await FlakyLedger.open(settings.db_path)
    try:
        first = await ledger.create_ticket(Ticket.new("Deadlock in billing job", ticket_number="T-1"))
        second = await ledger.create_ticket(Ticket.new("Cache shows old data", ticket_number="T-2"))
        ledger.fail_for = first.id

        report = await sweep_for(ledger, settings).run()

        assert report.processed == 2
        assert report.fixed == 1
        assert report.errors == ["Ticket T-1: write conflict"]
        assert report.details[0]['status'] == 'error'

        assert (await ledger.get_ticket(first.id)).auto_fix_attempted is False
        assert (await ledger.get_ticket(second.id)).status == 'resolved'
    finally:
        await ledger.close()


@pytest.mark.asyncio
async def test_closed_tickets_are_ignored(ledger, settings):
    await ledger.create_ticket(Ticket.new("Cache is stale", status='in_progress'))

    report = await sweep_for(ledger, settings).run()

    assert report.processed == 0


@pytest.mark.asyncio
async def test_sweep_limit(ledger, settings):
    settings.sweep_limit = 1
    for number in range(3):
        await ledger.create_ticket(Ticket.new("Cache is stale", ticket_number=f"T-{number}"))

    report = await sweep_for(ledger, settings).run()

    assert report.processed == 1
    assert len(await ledger.pending_tickets()) == 2
