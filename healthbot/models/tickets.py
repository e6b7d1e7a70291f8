"""Support ticket and remediation attempt models for HealthBot."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from dataclasses_json import DataClassJsonMixin, config

from ..exceptions import TicketAlreadyAttemptedError
from .runs import _parse_datetime, utcnow

# Type aliases
TicketStatus = Literal['open', 'in_progress', 'resolved', 'escalated']
AttemptOutcome = Literal['fixed', 'escalated', 'skipped_no_match']

TICKET_STATUSES: tuple = ('open', 'in_progress', 'resolved', 'escalated')

_datetime_field = config(encoder=datetime.isoformat, decoder=datetime.fromisoformat)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(slots=True)
class Ticket(DataClassJsonMixin):
    """An externally owned support ticket.

    The auto-fix fields are written only by the remediation executor, and
    ``auto_fix_attempted`` moves from False to True exactly once.
    """

    id: str
    title: str
    description: str = field(default='')
    category: str = field(default='')
    status: TicketStatus = field(default='open')
    ticket_number: Optional[str] = field(default=None)
    auto_fix_attempted: bool = field(default=False)
    auto_fix_successful: bool = field(default=False)
    auto_fix_logs: Optional[str] = field(default=None)
    auto_fix_timestamp: Optional[datetime] = field(default=None)
    resolution: Optional[str] = field(default=None)
    resolution_type: Optional[str] = field(default=None)
    resolved_by: Optional[str] = field(default=None)
    resolved_at: Optional[datetime] = field(default=None)
    created_at: datetime = field(default_factory=utcnow, metadata=_datetime_field)
    updated_at: datetime = field(default_factory=utcnow, metadata=_datetime_field)

    def __post_init__(self) -> None:
        """Validate ticket data after initialization."""
        if not self.id:
            raise ValueError("Ticket ID cannot be empty")
        if self.status not in TICKET_STATUSES:
            raise ValueError(f"Unknown ticket status: {self.status}")

    @classmethod
    def new(cls, title: str, description: str = '', category: str = '', **kwargs: Any) -> Ticket:
        """Create an open ticket with a fresh ID."""
        return cls(
            id=f"ticket_{uuid.uuid4().hex}",
            title=title,
            description=description,
            category=category,
            **kwargs,
        )

    @property
    def is_eligible(self) -> bool:
        """Check if the ticket may receive its one auto-fix attempt."""
        return self.status == 'open' and not self.auto_fix_attempted

    @property
    def label(self) -> str:
        return self.ticket_number or self.id

    @property
    def search_text(self) -> str:
        """Text matched against pattern keywords."""
        return f"{self.title or ''} {self.description or ''}"

    def mark_attempted(
        self,
        *,
        successful: bool,
        logs: str,
        status: Optional[TicketStatus] = None,
        resolution: Optional[str] = None,
        resolution_type: Optional[str] = None,
        resolved_by: Optional[str] = None,
    ) -> None:
        """Consume the one-shot auto-fix attempt."""
        if self.auto_fix_attempted:
            raise TicketAlreadyAttemptedError(self.id)

        now = utcnow()
        self.auto_fix_attempted = True
        self.auto_fix_successful = successful
        self.auto_fix_logs = logs
        self.auto_fix_timestamp = now
        if status is not None:
            self.status = status
        self.resolution = resolution
        self.resolution_type = resolution_type
        self.resolved_by = resolved_by
        self.resolved_at = now if successful else None
        self.updated_at = now

    def to_dict(self) -> Dict[str, Any]:
        """Convert ticket to dictionary for database storage."""
        return {
            'id': self.id,
            'ticket_number': self.ticket_number,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'status': self.status,
            'auto_fix_attempted': self.auto_fix_attempted,
            'auto_fix_successful': self.auto_fix_successful,
            'auto_fix_logs': self.auto_fix_logs,
            'auto_fix_timestamp': _isoformat(self.auto_fix_timestamp),
            'resolution': self.resolution,
            'resolution_type': self.resolution_type,
            'resolved_by': self.resolved_by,
            'resolved_at': _isoformat(self.resolved_at),
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Ticket:
        """Create ticket from dictionary."""
        data = dict(data)
        for key in ('auto_fix_timestamp', 'resolved_at', 'created_at', 'updated_at'):
            data[key] = _parse_datetime(data.get(key))
        for key in ('auto_fix_attempted', 'auto_fix_successful'):
            data[key] = bool(data.get(key))
        return cls(**data)


@dataclass(slots=True)
class RemediationAttempt(DataClassJsonMixin):
    """One execution of the remediation executor against one ticket."""

    id: str
    ticket_id: str
    pattern_id: Optional[str]
    confidence: float
    outcome: AttemptOutcome
    log: List[str] = field(default_factory=list)
    actions: List[Dict[str, Any]] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow, metadata=_datetime_field)

    def __post_init__(self) -> None:
        """Validate attempt data after initialization."""
        if not self.id:
            raise ValueError("Attempt ID cannot be empty")
        if not self.ticket_id:
            raise ValueError("Ticket ID cannot be empty")
        if self.outcome == 'skipped_no_match' and self.pattern_id is not None:
            raise ValueError("A skipped attempt cannot reference a pattern")

    @property
    def log_text(self) -> str:
        return "\n".join(self.log)

    def to_dict(self) -> Dict[str, Any]:
        """Convert attempt to dictionary for database storage."""
        return {
            'id': self.id,
            'ticket_id': self.ticket_id,
            'pattern_id': self.pattern_id,
            'confidence': self.confidence,
            'outcome': self.outcome,
            'log': self.log_text,
            'actions_json': json.dumps(self.actions),
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RemediationAttempt:
        """Create attempt from a stored dictionary."""
        return cls(
            id=data['id'],
            ticket_id=data['ticket_id'],
            pattern_id=data.get('pattern_id'),
            confidence=float(data.get('confidence') or 0.0),
            outcome=data['outcome'],
            log=(data.get('log') or '').split("\n") if data.get('log') else [],
            actions=json.loads(data.get('actions_json') or '[]'),
            created_at=_parse_datetime(data.get('created_at')) or utcnow(),
        )


@dataclass(slots=True)
class TicketActivity(DataClassJsonMixin):
    """An entry in a ticket's activity log."""

    id: str
    ticket_id: str
    action: str
    description: str
    performed_by: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow, metadata=_datetime_field)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'ticket_id': self.ticket_id,
            'action': self.action,
            'description': self.description,
            'performed_by': self.performed_by,
            'metadata': json.dumps(self.metadata),
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TicketActivity:
        data = dict(data)
        if isinstance(data.get('metadata'), str):
            data['metadata'] = json.loads(data['metadata'])
        data['created_at'] = _parse_datetime(data.get('created_at')) or utcnow()
        return cls(**data)
