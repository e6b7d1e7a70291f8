"""Table-driven issue classification: surface kind x probe outcome."""

from typing import Dict, FrozenSet, Tuple

from ..models.runs import Severity

SEVERITY_RULES: Dict[Tuple[str, str], Severity] = {
    ('page', 'server_error'): 'critical',
    ('page', 'client_error'): 'high',
    ('page', 'unexpected_status'): 'high',
    ('page', 'unreachable'): 'critical',
    ('page', 'timeout'): 'critical',
    ('page', 'error'): 'critical',
    ('api', 'server_error'): 'critical',
    ('api', 'client_error'): 'medium',
    ('api', 'unexpected_status'): 'medium',
    ('api', 'unreachable'): 'critical',
    ('api', 'timeout'): 'critical',
    ('api', 'error'): 'critical',
    ('storage_table', 'missing'): 'high',
    ('storage_table', 'error'): 'critical',
    ('storage_table', 'unreachable'): 'critical',
    ('storage_table', 'timeout'): 'critical',
    ('security_headers', 'missing_header'): 'medium',
    ('security_headers', 'unreachable'): 'critical',
    ('security_headers', 'timeout'): 'critical',
    ('security_headers', 'error'): 'critical',
}

# A missing table can be created by a migration
AUTO_FIXABLE: FrozenSet[Tuple[str, str]] = frozenset({
    ('storage_table', 'missing'),
})


def classify_severity(kind: str, outcome: str) -> Severity:
    """Severity of a failed probe."""
    try:
        return SEVERITY_RULES[(kind, outcome)]
    except KeyError:
        raise ValueError(f"No severity rule for {kind} surface with outcome {outcome!r}") from None


def is_auto_fixable(kind: str, outcome: str) -> bool:
    return (kind, outcome) in AUTO_FIXABLE
