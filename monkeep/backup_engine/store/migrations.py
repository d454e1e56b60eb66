"""
Schema migration sequence for the Monkeep SQLite store.

The store layout evolved over several releases. Every step below is
idempotent (CREATE ... IF NOT EXISTS, add-column-if-missing) so that a file
written by any earlier release, including files that predate version
tracking, can be upgraded in place. The same sequence runs when the live
store opens and when a foreign database file is imported.

Table schema (after the last step):
    accounts:
        - id INTEGER PRIMARY KEY AUTOINCREMENT
        - name, balance, currency, display_order, hidden, monthly_target
        - created_at, updated_at TEXT (ISO-8601)
    categories:
        - id TEXT PRIMARY KEY
        - name, type (folder|entry), category_type (expense|income), parent_id
        - icon, color, is_shadow, exclude_from_forecast, created_at, updated_at
    operations:
        - id INTEGER PRIMARY KEY AUTOINCREMENT
        - type, amount, account_id, category_id, to_account_id, date, description
        - exchange_rate, destination_amount, source_currency, destination_currency
    budgets:
        - id TEXT PRIMARY KEY, category_id, amount, currency, period_type, ...
    accounts_balance_history:
        - id INTEGER PRIMARY KEY AUTOINCREMENT
        - account_id, date, balance, created_at
        - UNIQUE (account_id, date)
    app_metadata:
        - key TEXT PRIMARY KEY, value TEXT, updated_at TEXT

Invariants:
    - The applied version lives in app_metadata under SCHEMA_VERSION_KEY
    - Each step runs in its own transaction and records its version on commit
    - Steps never drop data

How to change safely:
    - Append new steps; never edit or reorder an existing step
    - Guard every ALTER TABLE with a column-existence check
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from datetime import datetime, timezone

from .base import SCHEMA_VERSION_KEY

logger = logging.getLogger(__name__)

MigrationStep = Callable[[sqlite3.Connection], None]


def _initial_tables(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS app_metadata (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS accounts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            balance TEXT NOT NULL DEFAULT '0',
            currency TEXT NOT NULL DEFAULT 'USD',
            display_order INTEGER,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS categories (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            type TEXT NOT NULL,
            category_type TEXT NOT NULL,
            parent_id TEXT REFERENCES categories(id) ON DELETE CASCADE,
            icon TEXT,
            color TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS operations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            type TEXT NOT NULL,
            amount TEXT NOT NULL,
            account_id INTEGER NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
            category_id TEXT REFERENCES categories(id) ON DELETE SET NULL,
            to_account_id INTEGER REFERENCES accounts(id) ON DELETE CASCADE,
            date TEXT NOT NULL,
            created_at TEXT NOT NULL,
            description TEXT
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_accounts_order ON accounts(display_order)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_categories_parent ON categories(parent_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_categories_type ON categories(type)")
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_categories_category_type ON categories(category_type)"
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_operations_date ON operations(date)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_operations_account ON operations(account_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_operations_category ON operations(category_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_operations_type ON operations(type)")


def _budgets(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS budgets (
            id TEXT PRIMARY KEY,
            category_id TEXT NOT NULL REFERENCES categories(id) ON DELETE CASCADE,
            amount TEXT NOT NULL,
            currency TEXT NOT NULL,
            period_type TEXT NOT NULL,
            start_date TEXT NOT NULL,
            end_date TEXT,
            is_recurring INTEGER DEFAULT 1,
            rollover_enabled INTEGER DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_budgets_category ON budgets(category_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_budgets_period ON budgets(period_type)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_budgets_dates ON budgets(start_date, end_date)")


def _balance_history(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS accounts_balance_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            account_id INTEGER NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
            date TEXT NOT NULL,
            balance TEXT NOT NULL,
            created_at TEXT NOT NULL,
            UNIQUE (account_id, date)
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_balance_history_account_date "
        "ON accounts_balance_history(account_id, date)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_balance_history_date ON accounts_balance_history(date)"
    )


def _extended_columns(conn: sqlite3.Connection) -> None:
    _add_column_if_missing(conn, "accounts", "hidden", "INTEGER DEFAULT 0")
    _add_column_if_missing(conn, "accounts", "monthly_target", "TEXT")
    _add_column_if_missing(conn, "categories", "is_shadow", "INTEGER DEFAULT 0")
    _add_column_if_missing(conn, "categories", "exclude_from_forecast", "INTEGER DEFAULT 0")
    _add_column_if_missing(conn, "operations", "exchange_rate", "TEXT")
    _add_column_if_missing(conn, "operations", "destination_amount", "TEXT")
    _add_column_if_missing(conn, "operations", "source_currency", "TEXT")
    _add_column_if_missing(conn, "operations", "destination_currency", "TEXT")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_accounts_hidden ON accounts(hidden)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_categories_is_shadow ON categories(is_shadow)")


MIGRATIONS: tuple[tuple[int, str, MigrationStep], ...] = (
    (1, "initial_tables", _initial_tables),
    (2, "budgets", _budgets),
    (3, "balance_history", _balance_history),
    (4, "extended_columns", _extended_columns),
)

SCHEMA_VERSION = MIGRATIONS[-1][0]


def table_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    """Column names of a table, in declaration order (empty if it does not exist)."""
    return [row[1] for row in conn.execute(f"PRAGMA table_info({table})")]


def _add_column_if_missing(
    conn: sqlite3.Connection,
    table: str,
    column: str,
    definition: str,
) -> None:
    if column not in table_columns(conn, table):
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Read the applied schema version (0 when none was ever recorded)."""
    if not table_columns(conn, "app_metadata"):
        return 0

    row = conn.execute(
        "SELECT value FROM app_metadata WHERE key = ?",
        (SCHEMA_VERSION_KEY,),
    ).fetchone()
    if row is None:
        return 0

    try:
        return int(row[0])
    except (TypeError, ValueError):
        logger.warning(f"Unreadable schema version {row[0]!r}, replaying all migrations")
        return 0


def run_migrations(conn: sqlite3.Connection) -> int:
    """Bring a database up to SCHEMA_VERSION.

    The connection must be in autocommit mode (isolation_level=None); each
    step opens its own transaction.

    Args:
        conn: Open SQLite connection

    Returns:
        Schema version after migrating

    Raises:
        sqlite3.Error: If a step fails (that step is rolled back)
    """
    current = get_schema_version(conn)

    for version, name, step in MIGRATIONS:
        if version <= current:
            continue

        conn.execute("BEGIN IMMEDIATE")
        try:
            step(conn)
            conn.execute(
                "INSERT OR REPLACE INTO app_metadata (key, value, updated_at) VALUES (?, ?, ?)",
                (SCHEMA_VERSION_KEY, str(version), datetime.now(timezone.utc).isoformat()),
            )
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise

        logger.info(f"Applied migration {version} ({name})")
        current = version

    return current
