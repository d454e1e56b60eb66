"""
Entity store module for the Monkeep backup engine.

This module defines the store protocols the engine consumes and ships the
SQLite implementation used by the CLI, the native codec and the tests.

Invariants:
    - The engine reads and writes financial data only through these protocols
    - A store transaction is all-or-nothing
"""

from .base import (
    ACCOUNTS,
    APP_METADATA,
    BALANCE_HISTORY,
    BUDGETS,
    CATEGORIES,
    OPERATIONS,
    SCHEMA_VERSION_KEY,
    TABLES,
    WIPE_ORDER,
    EntityStore,
    PreferenceStore,
    StoreTransaction,
)
from .migrations import SCHEMA_VERSION, get_schema_version, run_migrations
from .sqlite_store import SqliteEntityStore, SqliteTransaction

__all__ = [
    "ACCOUNTS",
    "APP_METADATA",
    "BALANCE_HISTORY",
    "BUDGETS",
    "CATEGORIES",
    "OPERATIONS",
    "SCHEMA_VERSION",
    "SCHEMA_VERSION_KEY",
    "TABLES",
    "WIPE_ORDER",
    "EntityStore",
    "PreferenceStore",
    "SqliteEntityStore",
    "SqliteTransaction",
    "StoreTransaction",
    "get_schema_version",
    "run_migrations",
]
