"""Pattern catalog: the ordered set of known ticket failure signatures.

Order matters. The matcher selects the first pattern whose keywords occur in
a ticket, so an entry shadows every later entry that shares a keyword.
"""

import json
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple

from ..logging import get_logger
from ..models.patterns import RemediationPattern

logger = get_logger(__name__)

DEFAULT_PATTERNS: Tuple[RemediationPattern, ...] = (
    RemediationPattern(
        id='rate-limit',
        keywords=('rate limit', '429', 'too many requests', 'throttle'),
        category='error',
        action='config_update',
        description='Applied rate limit increase and retry logic',
        steps=(
            'Identified rate limiting issue',
            'Increased API rate limit threshold',
            'Added exponential backoff retry logic',
            'Verified fix with test request',
        ),
        success_rate=0.85,
    ),
    RemediationPattern(
        id='auth-token',
        keywords=('token expired', 'authentication', 'unauthorized', '401', 'invalid token', 'session expired'),
        category='error',
        action='token_refresh',
        description='Refreshed authentication tokens and session',
        steps=(
            'Detected expired/invalid token',
            'Cleared cached credentials',
            'Regenerated fresh authentication token',
            'Updated session with new credentials',
        ),
        success_rate=0.90,
    ),
    RemediationPattern(
        id='cache-clear',
        keywords=('cache', 'stale data', 'outdated', 'not updating', 'old data'),
        category='bug',
        action='cache_invalidation',
        description='Cleared cache and refreshed data',
        steps=(
            'Identified stale cache issue',
            'Invalidated affected cache keys',
            'Triggered data refresh',
            'Verified fresh data loading',
        ),
        success_rate=0.95,
    ),
    RemediationPattern(
        id='connection-reset',
        keywords=('connection', 'timeout', 'network', 'ECONNRESET', 'socket hang up'),
        category='error',
        action='connection_retry',
        description='Reset connection pool and retried',
        steps=(
            'Detected connection failure',
            'Closed stale connections',
            'Reset connection pool',
            'Established fresh connections',
        ),
        success_rate=0.80,
    ),
    RemediationPattern(
        id='database-lock',
        keywords=('database lock', 'deadlock', 'transaction timeout', 'lock wait'),
        category='error',
        action='lock_release',
        description='Released database locks and optimized query',
        steps=(
            'Identified lock contention',
            'Terminated blocking transactions',
            'Released held locks',
            'Optimized query execution plan',
        ),
        success_rate=0.75,
    ),
    RemediationPattern(
        id='memory-issue',
        keywords=('memory', 'heap', 'out of memory', 'OOM', 'memory leak'),
        category='performance',
        action='memory_cleanup',
        description='Cleaned up memory and restarted affected service',
        steps=(
            'Detected memory pressure',
            'Triggered garbage collection',
            'Cleared temporary buffers',
            'Restarted affected service instance',
        ),
        success_rate=0.70,
    ),
    RemediationPattern(
        id='permission-fix',
        keywords=('permission denied', 'access denied', 'forbidden', '403', 'not authorized'),
        category='error',
        action='permission_update',
        description='Updated permissions and access controls',
        steps=(
            'Identified permission issue',
            'Reviewed required access levels',
            'Updated user/service permissions',
            'Verified access restored',
        ),
        success_rate=0.85,
    ),
    RemediationPattern(
        id='ssl-cert',
        keywords=('ssl', 'certificate', 'https', 'cert expired', 'certificate error'),
        category='security',
        action='cert_renewal',
        description='Renewed SSL certificate',
        steps=(
            'Detected certificate issue',
            'Generated new certificate request',
            'Obtained renewed certificate',
            'Deployed and verified HTTPS',
        ),
        success_rate=0.90,
    ),
)


class PatternCatalog:
    """Ordered, immutable collection of remediation patterns."""

    def __init__(self, patterns: Iterable[RemediationPattern] = DEFAULT_PATTERNS):
        self._patterns: Tuple[RemediationPattern, ...] = tuple(patterns)

        seen = set()
        for pattern in self._patterns:
            if pattern.id in seen:
                raise ValueError(f"Duplicate pattern ID: {pattern.id}")
            seen.add(pattern.id)

    @classmethod
    def from_file(cls, path: Path) -> "PatternCatalog":
        """Load a catalog from a JSON list, keeping declaration order."""
        with open(path, "r") as f:
            data = json.load(f)

        if not isinstance(data, list):
            raise ValueError(f"Pattern catalog {path} must be a JSON list")

        catalog = cls(RemediationPattern.from_dict(entry) for entry in data)
        logger.info("Loaded pattern catalog", path=str(path), patterns=len(catalog))
        return catalog

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "PatternCatalog":
        """Catalog from a file when one is configured, else the built-in one."""
        return cls.from_file(path) if path else cls()

    def get(self, pattern_id: str) -> Optional[RemediationPattern]:
        for pattern in self._patterns:
            if pattern.id == pattern_id:
                return pattern
        return None

    def __iter__(self) -> Iterator[RemediationPattern]:
        return iter(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(pattern.id for pattern in self._patterns)
