"""Remediation sweep: classify and remediate every eligible ticket."""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..config import Settings, get_settings
from ..db.ledger import RunLedger
from ..exceptions import TicketAlreadyAttemptedError
from ..logging import get_logger
from .executor import RemediationExecutor
from .matcher import match_ticket
from .patterns import PatternCatalog

logger = get_logger(__name__)


@dataclass
class SweepReport:
    """Counters and per-ticket details of one sweep."""

    processed: int = 0
    fixed: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
    details: List[Dict[str, Any]] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def message(self) -> str:
        if not self.processed:
            return "No tickets to process"
        return (
            f"Processed {self.processed} tickets: {self.fixed} fixed, "
            f"{self.failed} escalated, {self.skipped} skipped"
        )

    def to_response(self) -> Dict[str, Any]:
        return {
            'success': True,
            'message': self.message,
            'processed': self.processed,
            'fixed': self.fixed,
            'failed': self.failed,
            'skipped': self.skipped,
            'errors': list(self.errors),
            'details': list(self.details),
            'duration_ms': self.duration_ms,
        }


class RemediationSweep:
    """Processes eligible tickets one at a time.

    A failure on one ticket is recorded in the report and the sweep moves on.
    Only a failure to list tickets aborts the sweep.
    """

    def __init__(
        self,
        ledger: RunLedger,
        catalog: Optional[PatternCatalog] = None,
        executor: Optional[RemediationExecutor] = None,
        *,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.ledger = ledger
        self.catalog = catalog or PatternCatalog.load(self.settings.patterns_path)
        self.executor = executor or RemediationExecutor(ledger, settings=self.settings)

    async def run(self) -> SweepReport:
        start_time = time.monotonic()
        report = SweepReport()

        tickets = await self.ledger.pending_tickets(limit=self.settings.sweep_limit)
        logger.info("Sweep started", tickets=len(tickets))

        for ticket in tickets:
            report.processed += 1
            detail: Dict[str, Any] = {'ticket_id': ticket.id, 'ticket_number': ticket.ticket_number}

            try:
                match = match_ticket(ticket, self.catalog)
                result = await self.executor.execute(ticket, match)

            except TicketAlreadyAttemptedError:
                report.skipped += 1
                detail.update(status='skipped', reason='Already attempted')
                logger.warning("Ticket already attempted by another writer", ticket_id=ticket.id)

            except Exception as e:
                report.errors.append(f"Ticket {ticket.label}: {e}")
                detail.update(status='error', error=str(e))
                logger.error(
                    "Ticket remediation failed",
                    ticket_id=ticket.id,
                    error=str(e),
                    error_type=type(e).__name__
                )

            else:
                outcome = result.outcome
                if outcome == 'skipped_no_match':
                    report.skipped += 1
                    detail.update(status='skipped', reason='No matching pattern')
                elif outcome == 'fixed':
                    report.fixed += 1
                    detail.update(
                        status='fixed',
                        pattern=match.pattern_id,
                        confidence=match.confidence,
                        resolution=result.ticket.resolution,
                    )
                else:
                    report.failed += 1
                    detail.update(
                        status='escalated',
                        pattern=match.pattern_id,
                        confidence=match.confidence,
                        resolution='Escalated to human',
                    )

            report.details.append(detail)

        report.duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            "Sweep completed",
            processed=report.processed,
            fixed=report.fixed,
            escalated=report.failed,
            skipped=report.skipped,
            errors=len(report.errors),
            duration_ms=report.duration_ms
        )
        return report
