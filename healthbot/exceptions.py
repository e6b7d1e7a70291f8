"""Exceptions raised by HealthBot components."""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models.runs import Run


class HealthBotError(Exception):
    """Base class for HealthBot errors."""


class LedgerError(HealthBotError):
    """The run ledger could not be reached or a write failed."""


class HealthCheckError(HealthBotError):
    """A health-check run could not complete.

    The run that was being executed is attached, already marked as ``error``.
    """

    def __init__(self, message: str, run: Optional["Run"] = None):
        super().__init__(message)
        self.run = run


class TicketAlreadyAttemptedError(HealthBotError):
    """Another writer already consumed the ticket's auto-fix attempt."""

    def __init__(self, ticket_id: str):
        super().__init__(f"Ticket {ticket_id} already has an auto-fix attempt")
        self.ticket_id = ticket_id
