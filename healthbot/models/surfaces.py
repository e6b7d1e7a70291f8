"""Surface and probe result models for HealthBot."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple

from dataclasses_json import DataClassJsonMixin

# Type aliases for better type safety
SurfaceKind = Literal['page', 'api', 'storage_table', 'security_headers']
ProbeOutcome = Literal[
    'passed',
    'server_error',
    'client_error',
    'unexpected_status',
    'unreachable',
    'timeout',
    'missing',
    'error',
    'missing_header',
]
IssueCategory = Literal['availability', 'api', 'storage', 'security']

# Counter bucket and issue category per surface kind
COUNTER_KEYS: Dict[str, str] = {
    'page': 'pages',
    'api': 'apis',
    'storage_table': 'storage',
    'security_headers': 'security',
}
ISSUE_CATEGORIES: Dict[str, IssueCategory] = {
    'page': 'availability',
    'api': 'api',
    'storage_table': 'storage',
    'security_headers': 'security',
}


@dataclass(frozen=True, slots=True)
class Surface(DataClassJsonMixin):
    """A named target the orchestrator probes.

    ``target`` is a path relative to the base address for pages and APIs,
    a table name for storage tables, and the base address itself ('/') for
    a security-header set.
    """

    name: str
    kind: SurfaceKind
    target: str
    method: str = field(default='GET')
    expected_statuses: Tuple[int, ...] = field(default=())
    required_headers: Tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        """Validate surface data after initialization."""
        if not self.name:
            raise ValueError("Surface name cannot be empty")
        if self.kind not in COUNTER_KEYS:
            raise ValueError(f"Unknown surface kind: {self.kind}")
        if self.kind == 'security_headers' and not self.required_headers:
            raise ValueError("Security header set must name at least one header")

    def accepts(self, status_code: int) -> bool:
        """Check whether an HTTP status satisfies this surface's expectation."""
        if self.expected_statuses:
            return status_code in self.expected_statuses
        return status_code < 400

    @property
    def counter_key(self) -> str:
        """Name of the per-category counter this surface contributes to."""
        return COUNTER_KEYS[self.kind]

    @property
    def issue_category(self) -> IssueCategory:
        """Category of issues raised for this surface."""
        return ISSUE_CATEGORIES[self.kind]

    @property
    def check_count(self) -> int:
        """Number of checks this surface contributes to its counter."""
        if self.kind == 'security_headers':
            return len(self.required_headers)
        return 1


@dataclass(slots=True)
class ProbeResult:
    """Verdict of a single probe against one surface."""

    surface: Surface
    outcome: ProbeOutcome
    status_code: Optional[int] = field(default=None)
    detail: str = field(default='')
    missing_headers: List[str] = field(default_factory=list)
    duration_ms: int = field(default=0)

    @property
    def passed(self) -> bool:
        """Check if the probe passed."""
        return self.outcome == 'passed'

    @property
    def reached(self) -> bool:
        """Check if the target answered at all."""
        return self.outcome not in ('unreachable', 'timeout')
