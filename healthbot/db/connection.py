"""Database connection and initialization for HealthBot."""

from pathlib import Path

import aiosqlite
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from tenacity import retry, stop_after_attempt, wait_exponential

from ..logging import get_logger

logger = get_logger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


def create_engine_for(url: str) -> AsyncEngine:
    """Create an async engine for a database URL."""
    return create_async_engine(
        url,
        echo=False,  # Set to True for SQL debugging
    )


def sqlite_url(db_path: Path) -> str:
    return f"sqlite+aiosqlite:///{db_path}"


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    reraise=True
)
async def create_tables(db_path: Path) -> None:
    """Create ledger tables from schema."""
    with open(SCHEMA_PATH, "r") as f:
        schema_sql = f.read()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(db_path) as db:
        await db.executescript(schema_sql)
        await db.commit()

    logger.info("Database tables created", db_path=str(db_path))
