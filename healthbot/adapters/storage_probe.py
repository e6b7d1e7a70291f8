"""Storage table reachability probe."""

import re
import time
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from ..config import Settings
from ..db.connection import create_engine_for
from ..logging import get_logger
from ..models.surfaces import ProbeResult, Surface

logger = get_logger(__name__)

TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Driver messages meaning "the table is not there"
NOT_FOUND_MARKERS = (
    "no such table",
    "does not exist",
    "doesn't exist",
    "undefined table",
    "not found",
)


class StorageProbe:
    """Checks that required tables in the platform store can be read."""

    def __init__(self, engine: AsyncEngine, *, owns_engine: bool = False):
        """Initialize the probe over an engine."""
        self._engine = engine
        self._owns_engine = owns_engine

    @classmethod
    def from_settings(cls, settings: Settings) -> "StorageProbe":
        url = settings.platform_database_url or settings.ledger_url
        return cls(create_engine_for(url), owns_engine=True)

    async def __aenter__(self) -> "StorageProbe":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._owns_engine:
            await self._engine.dispose()

    async def probe(self, surface: Surface) -> ProbeResult:
        """Read one row from the surface's table."""
        if surface.kind != 'storage_table':
            raise ValueError(f"StorageProbe cannot probe {surface.kind} surface {surface.name}")

        table = surface.target
        if not TABLE_NAME.match(table):
            return ProbeResult(
                surface=surface,
                outcome='error',
                detail=f"Invalid table name: {table!r}",
            )

        start = time.monotonic()
        error: Optional[str] = None
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text(f'SELECT 1 FROM "{table}" LIMIT 1'))
        except SQLAlchemyError as e:
            error = str(getattr(e, 'orig', None) or e)
        except OSError as e:
            error = str(e) or type(e).__name__

        duration_ms = int((time.monotonic() - start) * 1000)
        if error is None:
            return ProbeResult(surface=surface, outcome='passed', duration_ms=duration_ms)

        outcome = 'missing' if any(m in error.lower() for m in NOT_FOUND_MARKERS) else 'error'
        logger.warning("Storage probe failed", table=table, outcome=outcome, error=error)
        return ProbeResult(
            surface=surface,
            outcome=outcome,
            detail=error,
            duration_ms=duration_ms,
        )
