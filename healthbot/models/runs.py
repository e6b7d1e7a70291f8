"""Run and issue data models for HealthBot health checks."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from dataclasses_json import DataClassJsonMixin, config

from .surfaces import COUNTER_KEYS, IssueCategory

# Type aliases
RunStatus = Literal['running', 'healthy', 'issues_found', 'error']
Severity = Literal['critical', 'high', 'medium', 'low']

SEVERITIES: tuple = ('critical', 'high', 'medium', 'low')
CATEGORY_KEYS: tuple = tuple(COUNTER_KEYS.values())


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> Any:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


@dataclass(slots=True)
class CategoryCounts(DataClassJsonMixin):
    """Checked/passed/failed counters for one surface category."""

    checked: int = 0
    passed: int = 0
    failed: int = 0

    def record(self, passed: int, failed: int) -> None:
        self.checked += passed + failed
        self.passed += passed
        self.failed += failed

    @property
    def ratio(self) -> str:
        return f"{self.passed}/{self.checked}"


@dataclass(slots=True)
class Issue(DataClassJsonMixin):
    """A defect detected during a run. Never mutated once written."""

    id: str
    run_id: str
    category: IssueCategory
    severity: Severity
    title: str
    description: str
    target: str
    auto_fixable: bool = field(default=False)
    created_at: datetime = field(
        default_factory=utcnow,
        metadata=config(encoder=datetime.isoformat, decoder=datetime.fromisoformat)
    )

    def __post_init__(self) -> None:
        """Validate issue data after initialization."""
        if not self.id:
            raise ValueError("Issue ID cannot be empty")
        if not self.run_id:
            raise ValueError("Run ID cannot be empty")
        if self.severity not in SEVERITIES:
            raise ValueError(f"Unknown severity: {self.severity}")
        if not self.title:
            raise ValueError("Title cannot be empty")

    @classmethod
    def new(cls, run_id: str, **kwargs: Any) -> Issue:
        """Create an issue with a fresh ID."""
        return cls(id=f"issue_{uuid.uuid4().hex}", run_id=run_id, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Convert issue to dictionary for database storage and responses."""
        return {
            'id': self.id,
            'run_id': self.run_id,
            'category': self.category,
            'severity': self.severity,
            'title': self.title,
            'description': self.description,
            'target': self.target,
            'auto_fixable': self.auto_fixable,
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Issue:
        """Create issue from dictionary."""
        data = dict(data)
        data['created_at'] = _parse_datetime(data.get('created_at'))
        data['auto_fixable'] = bool(data.get('auto_fixable'))
        return cls(**data)


@dataclass(slots=True)
class Run(DataClassJsonMixin):
    """One execution of the health-check orchestrator.

    Created when a run starts and finalized exactly once, either through
    :meth:`complete` or :meth:`fail`.
    """

    id: str
    started_at: datetime
    ended_at: Optional[datetime] = field(default=None)
    duration_ms: Optional[int] = field(default=None)
    status: RunStatus = field(default='running')
    counts: Dict[str, CategoryCounts] = field(
        default_factory=lambda: {key: CategoryCounts() for key in CATEGORY_KEYS}
    )
    details: Dict[str, List[Dict[str, Any]]] = field(
        default_factory=lambda: {key: [] for key in CATEGORY_KEYS}
    )
    issues_found: int = field(default=0)
    issues_fixed: int = field(default=0)
    error_message: Optional[str] = field(default=None)

    def __post_init__(self) -> None:
        """Validate run data after initialization."""
        if not self.id:
            raise ValueError("Run ID cannot be empty")
        if not self.started_at:
            raise ValueError("Started at cannot be empty")

    @classmethod
    def start(cls) -> Run:
        """Create a run that starts now."""
        return cls(id=f"run_{uuid.uuid4().hex[:12]}", started_at=utcnow())

    def complete(self, issues: List[Issue], duration_ms: int) -> None:
        """Finalize the run from the issues it produced."""
        self._finalize(duration_ms)
        self.issues_found = len(issues)
        self.status = 'healthy' if not issues else 'issues_found'

    def fail(self, error_message: str, duration_ms: int) -> None:
        """Mark the run as failed."""
        self._finalize(duration_ms)
        self.status = 'error'
        self.error_message = error_message

    def _finalize(self, duration_ms: int) -> None:
        if self.is_completed:
            raise ValueError(f"Run {self.id} is already finalized")
        self.ended_at = utcnow()
        self.duration_ms = duration_ms

    @property
    def is_completed(self) -> bool:
        """Check if the run is completed."""
        return self.status != 'running'

    @property
    def is_healthy(self) -> bool:
        return self.status == 'healthy'

    @property
    def public_status(self) -> str:
        """Status as reported to triggering callers."""
        return {
            'healthy': 'HEALTHY',
            'issues_found': 'ISSUES_FOUND',
            'error': 'ERROR',
            'running': 'RUNNING',
        }[self.status]

    def result_dict(self) -> Dict[str, Any]:
        """Per-category counters and failure details for the result column."""
        return {
            key: {**self.counts[key].to_dict(), 'errors': self.details.get(key, [])}
            for key in CATEGORY_KEYS
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert run to dictionary for responses."""
        return {
            'id': self.id,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.ended_at.isoformat() if self.ended_at else None,
            'duration_ms': self.duration_ms,
            'status': self.status,
            'result': self.result_dict(),
            'issues_found': self.issues_found,
            'issues_fixed': self.issues_fixed,
            'error_message': self.error_message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Run:
        """Create run from a stored dictionary."""
        result = data.get('result') or {}
        counts = {}
        details = {}
        for key in CATEGORY_KEYS:
            bucket = dict(result.get(key) or {})
            details[key] = list(bucket.pop('errors', []))
            counts[key] = CategoryCounts(
                checked=bucket.get('checked', 0),
                passed=bucket.get('passed', 0),
                failed=bucket.get('failed', 0),
            )

        return cls(
            id=data['id'],
            started_at=_parse_datetime(data['started_at']),
            ended_at=_parse_datetime(data.get('completed_at')),
            duration_ms=data.get('duration_ms'),
            status=data.get('status', 'running'),
            counts=counts,
            details=details,
            issues_found=data.get('issues_found', 0),
            issues_fixed=data.get('issues_fixed', 0),
            error_message=data.get('error_message'),
        )
