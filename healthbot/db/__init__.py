"""Database utilities for HealthBot."""

from .connection import create_engine_for, create_tables, sqlite_url
from .ledger import RunLedger

__all__ = ["RunLedger", "create_engine_for", "create_tables", "sqlite_url"]
