"""Run ledger: durable record of health-check runs and remediation attempts."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from ..config import get_settings
from ..exceptions import LedgerError, TicketAlreadyAttemptedError
from ..logging import get_logger
from ..models.runs import Issue, Run
from ..models.tickets import RemediationAttempt, Ticket, TicketActivity
from .connection import create_engine_for, create_tables, sqlite_url

logger = get_logger(__name__)

RUN_COLUMNS = (
    "id, started_at, completed_at, duration_ms, status, result_json, "
    "issues_found, issues_fixed, error_message"
)
ISSUE_COLUMNS = (
    "id, run_id, category, severity, title, description, target, auto_fixable, created_at"
)
TICKET_COLUMNS = (
    "id, ticket_number, title, description, category, status, auto_fix_attempted, "
    "auto_fix_successful, auto_fix_logs, auto_fix_timestamp, resolution, resolution_type, "
    "resolved_by, resolved_at, created_at, updated_at"
)
ATTEMPT_COLUMNS = "id, ticket_id, pattern_id, confidence, outcome, log, actions_json, created_at"
ACTIVITY_COLUMNS = "id, ticket_id, action, description, performed_by, metadata, created_at"


def _placeholders(columns: str) -> str:
    return ", ".join(f":{name.strip()}" for name in columns.split(","))


INSERT_RUN = text(f"INSERT INTO runs ({RUN_COLUMNS}) VALUES ({_placeholders(RUN_COLUMNS)})")
INSERT_ISSUE = text(f"INSERT INTO issues ({ISSUE_COLUMNS}) VALUES ({_placeholders(ISSUE_COLUMNS)})")
INSERT_TICKET = text(f"INSERT INTO tickets ({TICKET_COLUMNS}) VALUES ({_placeholders(TICKET_COLUMNS)})")
INSERT_ATTEMPT = text(
    f"INSERT INTO remediation_attempts ({ATTEMPT_COLUMNS}) VALUES ({_placeholders(ATTEMPT_COLUMNS)})"
)
INSERT_ACTIVITY = text(
    f"INSERT INTO ticket_activity ({ACTIVITY_COLUMNS}) VALUES ({_placeholders(ACTIVITY_COLUMNS)})"
)

# The attempted flag is part of the predicate: only one writer can flip it.
CLAIM_TICKET = text(
    """
    UPDATE tickets SET
        status = :status,
        auto_fix_attempted = 1,
        auto_fix_successful = :auto_fix_successful,
        auto_fix_logs = :auto_fix_logs,
        auto_fix_timestamp = :auto_fix_timestamp,
        resolution = :resolution,
        resolution_type = :resolution_type,
        resolved_by = :resolved_by,
        resolved_at = :resolved_at,
        updated_at = :updated_at
    WHERE id = :id AND auto_fix_attempted = 0
    """
)


def _run_params(run: Run) -> Dict[str, Any]:
    data = run.to_dict()
    return {
        'id': data['id'],
        'started_at': data['started_at'],
        'completed_at': data['completed_at'],
        'duration_ms': data['duration_ms'],
        'status': data['status'],
        'result_json': json.dumps(data['result']),
        'issues_found': data['issues_found'],
        'issues_fixed': data['issues_fixed'],
        'error_message': data['error_message'],
    }


def _run_from_row(row: Dict[str, Any]) -> Run:
    row = dict(row)
    row['result'] = json.loads(row.pop('result_json') or '{}')
    return Run.from_dict(row)


class RunLedger:
    """Append-only store of runs, issues and remediation attempts.

    Also the intake surface for tickets: it reads eligible tickets and applies
    the executor's single auto-fix update to each of them.
    """

    def __init__(self, engine: AsyncEngine):
        """Initialize the ledger over an existing engine."""
        self._engine = engine

    @classmethod
    async def open(cls, db_path: Optional[Path] = None) -> RunLedger:
        """Create tables if needed and open the ledger."""
        path = db_path or get_settings().db_path
        try:
            await create_tables(path)
        except Exception as e:
            logger.error("Ledger unavailable", db_path=str(path), error=str(e))
            raise LedgerError(f"Ledger unavailable: {e}") from e

        return cls(create_engine_for(sqlite_url(path)))

    async def close(self) -> None:
        """Close database connections."""
        await self._engine.dispose()

    async def __aenter__(self) -> RunLedger:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # Runs and issues

    async def record_run(self, run: Run, issues: List[Issue]) -> None:
        """Write a finalized run and its issues in one transaction."""
        if not run.is_completed:
            raise ValueError(f"Run {run.id} must be finalized before it is recorded")

        try:
            async with self._engine.begin() as conn:
                await conn.execute(INSERT_RUN, _run_params(run))
                if issues:
                    await conn.execute(INSERT_ISSUE, [issue.to_dict() for issue in issues])
        except SQLAlchemyError as e:
            logger.error("Failed to record run", run_id=run.id, error=str(e))
            raise LedgerError(f"Failed to record run {run.id}: {e}") from e

        logger.info(
            "Run recorded",
            run_id=run.id,
            status=run.status,
            issues_found=len(issues)
        )

    async def recent_runs(self, limit: int = 10) -> List[Run]:
        """Fetch the most recent runs, newest first."""
        rows = await self._fetch(
            f"SELECT {RUN_COLUMNS} FROM runs ORDER BY started_at DESC, rowid DESC LIMIT :limit",
            {'limit': limit}
        )
        return [_run_from_row(row) for row in rows]

    async def issues_for_run(self, run_id: str) -> List[Issue]:
        rows = await self._fetch(
            f"SELECT {ISSUE_COLUMNS} FROM issues WHERE run_id = :run_id ORDER BY rowid",
            {'run_id': run_id}
        )
        return [Issue.from_dict(row) for row in rows]

    # Tickets

    async def create_ticket(self, ticket: Ticket) -> Ticket:
        """File a ticket for intake."""
        try:
            async with self._engine.begin() as conn:
                await conn.execute(INSERT_TICKET, ticket.to_dict())
        except SQLAlchemyError as e:
            raise LedgerError(f"Failed to create ticket {ticket.id}: {e}") from e
        return ticket

    async def get_ticket(self, ticket_id: str) -> Optional[Ticket]:
        rows = await self._fetch(
            f"SELECT {TICKET_COLUMNS} FROM tickets WHERE id = :id",
            {'id': ticket_id}
        )
        return Ticket.from_dict(rows[0]) if rows else None

    async def pending_tickets(self, limit: Optional[int] = None) -> List[Ticket]:
        """List open tickets that never had an auto-fix attempt, oldest first."""
        rows = await self._fetch(
            f"SELECT {TICKET_COLUMNS} FROM tickets "
            "WHERE status = 'open' AND auto_fix_attempted = 0 "
            "ORDER BY created_at, rowid LIMIT :limit",
            {'limit': limit if limit is not None else -1}
        )
        return [Ticket.from_dict(row) for row in rows]

    async def record_attempt(
        self,
        ticket: Ticket,
        attempt: RemediationAttempt,
        activity: Optional[TicketActivity] = None,
    ) -> None:
        """Apply a ticket's auto-fix update and record the attempt, exactly once.

        Raises TicketAlreadyAttemptedError when the stored ticket was already
        consumed; nothing is written in that case.
        """
        ticket_params = ticket.to_dict()
        params = {
            key: ticket_params[key]
            for key in (
                'id', 'status', 'auto_fix_successful', 'auto_fix_logs', 'auto_fix_timestamp',
                'resolution', 'resolution_type', 'resolved_by', 'resolved_at', 'updated_at',
            )
        }

        try:
            async with self._engine.begin() as conn:
                result = await conn.execute(CLAIM_TICKET, params)
                if result.rowcount != 1:
                    raise TicketAlreadyAttemptedError(ticket.id)
                await conn.execute(INSERT_ATTEMPT, attempt.to_dict())
                if activity is not None:
                    await conn.execute(INSERT_ACTIVITY, activity.to_dict())
        except SQLAlchemyError as e:
            logger.error("Failed to record remediation attempt", ticket_id=ticket.id, error=str(e))
            raise LedgerError(f"Failed to record attempt for ticket {ticket.id}: {e}") from e

    async def attempt_for_ticket(self, ticket_id: str) -> Optional[RemediationAttempt]:
        rows = await self._fetch(
            f"SELECT {ATTEMPT_COLUMNS} FROM remediation_attempts WHERE ticket_id = :ticket_id",
            {'ticket_id': ticket_id}
        )
        return RemediationAttempt.from_dict(rows[0]) if rows else None

    async def activity_for_ticket(self, ticket_id: str) -> List[TicketActivity]:
        rows = await self._fetch(
            f"SELECT {ACTIVITY_COLUMNS} FROM ticket_activity WHERE ticket_id = :ticket_id ORDER BY rowid",
            {'ticket_id': ticket_id}
        )
        return [TicketActivity.from_dict(row) for row in rows]

    async def _fetch(self, sql: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(text(sql), params)
                return [dict(row._mapping) for row in result]
        except SQLAlchemyError as e:
            logger.error("Ledger read failed", error=str(e))
            raise LedgerError(f"Ledger read failed: {e}") from e
