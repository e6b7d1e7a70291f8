"""Remediation executor: runs a matched pattern against one ticket."""

import asyncio
import random
import uuid
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional

from ..config import Settings, get_settings
from ..db.ledger import RunLedger
from ..exceptions import TicketAlreadyAttemptedError
from ..logging import get_logger, log_audit_event
from ..models.patterns import MatchResult
from ..models.runs import utcnow
from ..models.tickets import RemediationAttempt, Ticket, TicketActivity

logger = get_logger(__name__)

BOT_NAME = "HealthBot Auto-Fix"
NO_MATCH_LOG = "No matching auto-fix pattern found. Requires manual review."

# Returns a float in [0, 1); compared against a pattern's success rate
RandomSource = Callable[[], float]


@dataclass
class ExecutionResult:
    """The updated ticket and the records written for it."""

    ticket: Ticket
    attempt: RemediationAttempt
    activity: Optional[TicketActivity] = None

    @property
    def outcome(self) -> str:
        return self.attempt.outcome


class _StepLog:
    """Timestamped execution log lines."""

    def __init__(self) -> None:
        self.lines: List[str] = []

    def add(self, message: str) -> None:
        self.lines.append(f"[{utcnow().isoformat()}] {message}")


class RemediationExecutor:
    """Executes remediation patterns and writes each ticket's single attempt.

    Steps are declarative: executing one only records it in the log. The
    outcome is drawn once per ticket from the pattern's success rate.
    """

    def __init__(
        self,
        ledger: RunLedger,
        *,
        random_source: Optional[RandomSource] = None,
        step_delay: Optional[float] = None,
        actor: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the executor."""
        self.settings = settings or get_settings()
        self.ledger = ledger
        self._random = random_source or random.random
        self._step_delay = self.settings.remediation_step_delay if step_delay is None else step_delay
        self._actor = actor or self.settings.autofix_actor

    async def execute(self, ticket: Ticket, match: MatchResult) -> ExecutionResult:
        """Run the matched pattern (if any) against the ticket and record it."""
        if ticket.auto_fix_attempted:
            raise TicketAlreadyAttemptedError(ticket.id)

        if not match.matched:
            return await self._skip(ticket)
        return await self._remediate(ticket, match)

    async def _skip(self, ticket: Ticket) -> ExecutionResult:
        log = _StepLog()
        log.add(NO_MATCH_LOG)

        updated = replace(ticket)
        updated.mark_attempted(successful=False, logs=NO_MATCH_LOG)

        attempt = RemediationAttempt(
            id=f"attempt_{uuid.uuid4().hex}",
            ticket_id=ticket.id,
            pattern_id=None,
            confidence=0.0,
            outcome='skipped_no_match',
            log=log.lines,
        )
        await self.ledger.record_attempt(updated, attempt)

        logger.info("No matching pattern, left open for triage", ticket_id=ticket.id)
        return ExecutionResult(ticket=updated, attempt=attempt)

    async def _remediate(self, ticket: Ticket, match: MatchResult) -> ExecutionResult:
        pattern = match.pattern
        log = _StepLog()
        log.add(f"{BOT_NAME} initialized")
        log.add(f"Processing ticket: {ticket.label}")
        log.add(f"Matched pattern: {pattern.id}")
        log.add(f"Confidence: {match.confidence * 100:.0f}%")
        log.add(f"Action: {pattern.action}")

        actions: List[Dict[str, Any]] = []
        total = len(pattern.steps)
        for number, step in enumerate(pattern.steps, start=1):
            log.add(f"Step {number}/{total}: {step}")
            if self._step_delay > 0:
                await asyncio.sleep(self._step_delay)
            log.add(f"Step {number} completed")
            actions.append({
                'step': number,
                'action': step,
                'status': 'completed',
                'timestamp': utcnow().isoformat(),
            })

        success = self._random() < pattern.success_rate

        if success:
            log.add("AUTO-FIX SUCCESSFUL")
            log.add(f"Resolution: {pattern.description}")
        else:
            log.add("AUTO-FIX FAILED")
            log.add("Escalating to human support")

        updated = replace(ticket)
        updated.mark_attempted(
            successful=success,
            logs="\n".join(log.lines),
            status='resolved' if success else 'escalated',
            resolution=pattern.description if success else None,
            resolution_type='auto_fixed' if success else 'escalated',
            resolved_by=BOT_NAME if success else None,
        )

        attempt = RemediationAttempt(
            id=f"attempt_{uuid.uuid4().hex}",
            ticket_id=ticket.id,
            pattern_id=pattern.id,
            confidence=match.confidence,
            outcome='fixed' if success else 'escalated',
            log=log.lines,
            actions=actions,
        )

        if success:
            description = f"{BOT_NAME} resolved this ticket: {pattern.description}"
        else:
            description = f'Auto-fix failed for pattern "{pattern.id}". Escalated to human support.'

        activity = TicketActivity(
            id=f"activity_{uuid.uuid4().hex}",
            ticket_id=ticket.id,
            action='auto_fixed' if success else 'auto_fix_failed',
            description=description,
            performed_by=self._actor,
            metadata={
                'pattern_id': pattern.id,
                'success_rate': pattern.success_rate,
                'confidence': match.confidence,
            },
        )

        await self.ledger.record_attempt(updated, attempt, activity)

        log_audit_event(
            logger,
            "remediation.attempt",
            actor=self._actor,
            action=pattern.action,
            resource=ticket.id,
            status=attempt.outcome,
            pattern_id=pattern.id,
            confidence=match.confidence
        )
        return ExecutionResult(ticket=updated, attempt=attempt, activity=activity)
