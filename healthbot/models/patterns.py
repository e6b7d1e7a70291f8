"""Remediation pattern models for HealthBot."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from dataclasses_json import DataClassJsonMixin


@dataclass(frozen=True, slots=True)
class RemediationPattern(DataClassJsonMixin):
    """A named diagnostic rule used to classify and remediate tickets."""

    id: str
    keywords: Tuple[str, ...]
    category: str
    action: str
    description: str
    steps: Tuple[str, ...]
    success_rate: float
    version: int = field(default=1)

    def __post_init__(self) -> None:
        """Validate pattern data after initialization."""
        if not self.id:
            raise ValueError("Pattern ID cannot be empty")
        if not self.keywords:
            raise ValueError(f"Pattern {self.id} has no keywords")
        if any(not keyword.strip() for keyword in self.keywords):
            raise ValueError(f"Pattern {self.id} has a blank keyword")
        if not self.steps:
            raise ValueError(f"Pattern {self.id} has no remediation steps")
        if not 0.0 <= self.success_rate <= 1.0:
            raise ValueError(f"Pattern {self.id} success rate must be within [0, 1]")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RemediationPattern:
        """Create a pattern from a catalog entry."""
        return cls(
            id=data['id'],
            keywords=tuple(data['keywords']),
            category=data.get('category', ''),
            action=data['action'],
            description=data['description'],
            steps=tuple(data['steps']),
            success_rate=float(data['success_rate']),
            version=int(data.get('version', 1)),
        )

    def with_success_rate(self, success_rate: float) -> RemediationPattern:
        """Copy of this pattern with a different success rate."""
        return replace(self, success_rate=success_rate)

    def matches(self, text: str) -> bool:
        """Check if any keyword occurs in the text, ignoring case."""
        haystack = text.lower()
        return any(keyword.lower() in haystack for keyword in self.keywords)


@dataclass(frozen=True, slots=True)
class MatchResult:
    """Outcome of matching one ticket against the pattern catalog."""

    pattern: Optional[RemediationPattern]
    confidence: float

    @property
    def matched(self) -> bool:
        return self.pattern is not None

    @property
    def pattern_id(self) -> Optional[str]:
        return self.pattern.id if self.pattern else None
