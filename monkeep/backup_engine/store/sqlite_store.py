"""
SQLite entity store for the Monkeep backup engine.

This module implements the EntityStore and PreferenceStore protocols on top
of a single SQLite file holding the six financial tables. It is the store the
engine runs against in the CLI and in tests, and the store the native codec
opens on imported database files.

Invariants:
    - One SQLite file per store
    - All writes inside transaction() are atomic (BEGIN IMMEDIATE ... COMMIT)
    - Foreign keys are enforced; inside a transaction they are checked at COMMIT
    - sqlite3 errors and unbindable values never escape: they are raised as StorageError

How to change safely:
    - Schema changes go through migrations.py, never through ad-hoc DDL here
    - Keep read ordering stable: snapshots rely on creation-ascending rows
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime, timezone
from pathlib import Path

from ..errors import StorageError
from .base import APP_METADATA, TABLES, OnConflict, Row
from .migrations import run_migrations, table_columns

logger = logging.getLogger(__name__)

Migrator = Callable[[sqlite3.Connection], int]


def _check_table(table: str) -> None:
    if table not in TABLES:
        raise StorageError(f"Unknown table: {table}", table=table)


class SqliteTransaction:
    """Write operations bound to one open SQLite transaction.

    Created by SqliteEntityStore.transaction(); never instantiated directly.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._columns: dict[str, list[str]] = {}

    def _table_columns(self, table: str) -> list[str]:
        if table not in self._columns:
            self._columns[table] = table_columns(self._conn, table)
        return self._columns[table]

    async def delete_all(self, table: str) -> int:
        _check_table(table)
        try:
            cursor = self._conn.execute(f"DELETE FROM {table}")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to clear {table}: {e}", table=table) from e
        return cursor.rowcount

    async def delete_metadata_except(self, *keys: str) -> int:
        placeholders = ", ".join("?" for _ in keys)
        sql = f"DELETE FROM {APP_METADATA}"
        if keys:
            sql += f" WHERE key NOT IN ({placeholders})"
        try:
            cursor = self._conn.execute(sql, keys)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to clear app metadata: {e}", table=APP_METADATA) from e
        return cursor.rowcount

    async def reset_sequence(self, *tables: str) -> None:
        for table in tables:
            _check_table(table)
        try:
            has_sequence = self._conn.execute(
                "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'sqlite_sequence'"
            ).fetchone()
            if has_sequence and tables:
                placeholders = ", ".join("?" for _ in tables)
                self._conn.execute(
                    f"DELETE FROM sqlite_sequence WHERE name IN ({placeholders})",
                    tables,
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to reset sequences: {e}") from e

    async def insert(
        self,
        table: str,
        row: Row,
        on_conflict: OnConflict | None = None,
    ) -> int | None:
        _check_table(table)
        columns = self._table_columns(table)
        values = {k: v for k, v in row.items() if k in columns}

        dropped = set(row) - set(values)
        if dropped:
            logger.debug(f"Dropping unknown columns for {table}: {sorted(dropped)}")

        verb = "INSERT"
        if on_conflict == "ignore":
            verb = "INSERT OR IGNORE"
        elif on_conflict == "replace":
            verb = "INSERT OR REPLACE"

        names = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        try:
            cursor = self._conn.execute(
                f"{verb} INTO {table} ({names}) VALUES ({placeholders})",
                tuple(values.values()),
            )
        except (sqlite3.Error, OverflowError) as e:
            raise StorageError(f"Failed to insert into {table}: {e}", table=table) from e

        if cursor.rowcount == 0:
            return None
        return cursor.lastrowid


class SqliteEntityStore:
    """SQLite-backed entity store.

    Thread safety:
        Each operation opens its own connection.
        SQLite handles concurrent readers via WAL mode.

    Example:
        >>> store = SqliteEntityStore("/data/penny.db")
        >>> await store.initialize()
        >>> accounts = await store.read_table("accounts")
    """

    def __init__(
        self,
        db_path: str | Path,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        migrator: Migrator = run_migrations,
    ) -> None:
        """Initialize the store.

        Args:
            db_path: Path of the SQLite database file
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            migrator: Brings an open connection up to the current schema
        """
        self._db_path = Path(db_path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self._migrator = migrator

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection to the database.

        Yields:
            SQLite connection in autocommit mode

        Raises:
            StorageError: If the database cannot be opened
        """
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(
                str(self._db_path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit by default, explicit transactions
            )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open database {self._db_path}: {e}") from e

        conn.row_factory = sqlite3.Row

        try:
            try:
                conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
                if self.wal_mode:
                    conn.execute("PRAGMA journal_mode = WAL")
                conn.execute("PRAGMA foreign_keys = ON")
            except sqlite3.Error as e:
                raise StorageError(f"Failed to configure database {self._db_path}: {e}") from e

            yield conn
        finally:
            conn.close()

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            conn.execute("ROLLBACK")

    async def initialize(self) -> int:
        """Create the database file if needed and apply pending migrations.

        Returns:
            Schema version after migrating

        Raises:
            StorageError: If a migration fails
        """
        with self._get_connection() as conn:
            try:
                version = self._migrator(conn)
            except sqlite3.Error as e:
                raise StorageError(f"Schema migration failed for {self._db_path}: {e}") from e

        logger.info(f"Initialized store {self._db_path} at schema version {version}")
        return version

    async def read_table(self, table: str) -> list[Row]:
        _check_table(table)
        order = "key ASC" if table == APP_METADATA else "created_at ASC, rowid ASC"

        with self._get_connection() as conn:
            try:
                cursor = conn.execute(f"SELECT * FROM {table} ORDER BY {order}")
                return [dict(row) for row in cursor.fetchall()]
            except sqlite3.Error as e:
                raise StorageError(f"Failed to read {table}: {e}", table=table) from e

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqliteTransaction]:
        """Open an atomic write transaction.

        Commits when the block exits normally; rolls back when it raises or
        when the commit itself fails (e.g. a deferred foreign key violation).

        Yields:
            SqliteTransaction bound to the open transaction

        Raises:
            StorageError: If the transaction cannot begin or commit
        """
        with self._get_connection() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
                conn.execute("PRAGMA defer_foreign_keys = ON")
            except sqlite3.Error as e:
                self._rollback(conn)
                raise StorageError(f"Failed to begin transaction: {e}") from e

            try:
                yield SqliteTransaction(conn)
            except Exception:
                self._rollback(conn)
                raise

            try:
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                self._rollback(conn)
                raise StorageError(f"Transaction commit failed: {e}") from e

    async def checkpoint(self) -> None:
        with self._get_connection() as conn:
            try:
                conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            except sqlite3.Error as e:
                raise StorageError(f"WAL checkpoint failed for {self._db_path}: {e}") from e

        logger.debug(f"Checkpointed {self._db_path}")

    async def get_preference(self, key: str, default: str | None = None) -> str | None:
        with self._get_connection() as conn:
            try:
                row = conn.execute(
                    f"SELECT value FROM {APP_METADATA} WHERE key = ?",
                    (key,),
                ).fetchone()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to read preference {key}: {e}") from e

        if row is None or row["value"] is None:
            return default
        return row["value"]

    async def set_preference(self, key: str, value: str) -> None:
        with self._get_connection() as conn:
            try:
                conn.execute(
                    f"INSERT OR REPLACE INTO {APP_METADATA} (key, value, updated_at) VALUES (?, ?, ?)",
                    (key, value, datetime.now(timezone.utc).isoformat()),
                )
            except sqlite3.Error as e:
                raise StorageError(f"Failed to write preference {key}: {e}") from e

    async def get_stats(self) -> dict[str, int]:
        """Get row counts for every table.

        Returns:
            Dictionary mapping table name to row count
        """
        stats = {}
        with self._get_connection() as conn:
            for table in TABLES:
                try:
                    stats[table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                except sqlite3.Error as e:
                    raise StorageError(f"Failed to count {table}: {e}", table=table) from e
        return stats
