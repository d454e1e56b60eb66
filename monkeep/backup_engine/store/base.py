"""
Base protocols and table names for the entity store abstraction.

The backup engine never owns the financial data; it consumes an entity store
through the protocols defined here. One implementation ships with the engine
(SqliteEntityStore); the application may provide its own.

Invariants:
    - read_table() returns rows creation-ascending (app_metadata unordered)
    - transaction() is all-or-nothing: commit on exit, rollback on exception
    - Every storage failure surfaces as StorageError, never a driver exception

How to change safely:
    - Protocol changes require updating all implementations
    - New tables must be added to TABLES and to the restore wipe order
"""

from __future__ import annotations

from abc import abstractmethod
from contextlib import AbstractAsyncContextManager
from pathlib import Path
from typing import Any, Literal, Protocol, runtime_checkable

ACCOUNTS = "accounts"
CATEGORIES = "categories"
OPERATIONS = "operations"
BUDGETS = "budgets"
APP_METADATA = "app_metadata"
BALANCE_HISTORY = "accounts_balance_history"

# Snapshot read order
TABLES = (ACCOUNTS, CATEGORIES, OPERATIONS, BUDGETS, APP_METADATA, BALANCE_HISTORY)

# Children first, so deletes never orphan a foreign key
WIPE_ORDER = (BUDGETS, BALANCE_HISTORY, OPERATIONS, CATEGORIES, ACCOUNTS)

# Metadata key holding the schema version; never wiped or overwritten by a restore
SCHEMA_VERSION_KEY = "db_version"

OnConflict = Literal["ignore", "replace"]

Row = dict[str, Any]


@runtime_checkable
class StoreTransaction(Protocol):
    """Row-level write operations available inside a store transaction.

    All writes become visible together when the owning transaction commits
    and disappear together when it rolls back.
    """

    @abstractmethod
    async def delete_all(self, table: str) -> int:
        """Delete every row of a table.

        Returns:
            Number of rows deleted
        """
        ...

    @abstractmethod
    async def delete_metadata_except(self, *keys: str) -> int:
        """Delete all app metadata rows except the given keys.

        Returns:
            Number of rows deleted
        """
        ...

    @abstractmethod
    async def reset_sequence(self, *tables: str) -> None:
        """Reset auto-increment counters so explicit ids can be reused."""
        ...

    @abstractmethod
    async def insert(
        self,
        table: str,
        row: Row,
        on_conflict: OnConflict | None = None,
    ) -> int | None:
        """Insert one row.

        Args:
            table: Table name
            row: Column values; columns absent from the row take their defaults
            on_conflict: None to fail on conflicts, "ignore" or "replace"

        Returns:
            Row id of the inserted row (None when an ignored conflict skipped it)

        Raises:
            StorageError: If the insert fails
        """
        ...


@runtime_checkable
class EntityStore(Protocol):
    """Protocol for the financial entity store consumed by the backup engine.

    Example:
        >>> rows = await store.read_table(ACCOUNTS)
        >>> async with store.transaction() as tx:
        ...     await tx.delete_all(BUDGETS)
    """

    @property
    @abstractmethod
    def db_path(self) -> Path:
        """Primary storage file of the store."""
        ...

    @abstractmethod
    async def read_table(self, table: str) -> list[Row]:
        """Read every row of a table in creation order.

        Raises:
            StorageError: If the read fails
        """
        ...

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[StoreTransaction]:
        """Open an atomic write transaction."""
        ...

    @abstractmethod
    async def checkpoint(self) -> None:
        """Merge any write-ahead log into the primary storage file.

        Raises:
            StorageError: If the checkpoint fails
        """
        ...


@runtime_checkable
class PreferenceStore(Protocol):
    """Scalar preferences persisted alongside the entity data."""

    @abstractmethod
    async def get_preference(self, key: str, default: str | None = None) -> str | None:
        """Read a preference, returning default when it is not set."""
        ...

    @abstractmethod
    async def set_preference(self, key: str, value: str) -> None:
        """Persist a preference.

        Raises:
            StorageError: If the write fails
        """
        ...
