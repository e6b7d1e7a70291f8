"""Data models for HealthBot."""

from .patterns import MatchResult, RemediationPattern
from .runs import CategoryCounts, Issue, Run, RunStatus, Severity
from .surfaces import ProbeOutcome, ProbeResult, Surface, SurfaceKind
from .tickets import AttemptOutcome, RemediationAttempt, Ticket, TicketActivity, TicketStatus

__all__ = [
    "AttemptOutcome",
    "CategoryCounts",
    "Issue",
    "MatchResult",
    "ProbeOutcome",
    "ProbeResult",
    "RemediationAttempt",
    "RemediationPattern",
    "Run",
    "RunStatus",
    "Severity",
    "Surface",
    "SurfaceKind",
    "Ticket",
    "TicketActivity",
    "TicketStatus",
]
