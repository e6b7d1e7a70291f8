"""Orchestration components for HealthBot."""

from .executor import RemediationExecutor
from .health_check import HealthCheckOrchestrator, HealthCheckReport
from .matcher import match, match_ticket
from .patterns import DEFAULT_PATTERNS, PatternCatalog
from .sweep import RemediationSweep, SweepReport

__all__ = [
    "DEFAULT_PATTERNS",
    "HealthCheckOrchestrator",
    "HealthCheckReport",
    "PatternCatalog",
    "RemediationExecutor",
    "RemediationSweep",
    "SweepReport",
    "match",
    "match_ticket",
]
