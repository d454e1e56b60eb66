"""
Restore orchestrator.

Replaces the whole financial dataset with the content of a snapshot, in one
store transaction, repairing references on the way in.

Restore process:
    1. Validate the snapshot (before anything is touched)
    2. Wipe budgets, balance history, operations, categories, accounts and
       all app metadata except the schema version
    3. Insert accounts: numeric ids are kept, legacy string ids get fresh
       numeric ids and are recorded in the identifier map
    4. Insert categories, clearing parents that name no restored category
    5. Insert operations with account references rewritten through the map
    6. Insert balance history, rewritten the same way
    7. Insert budgets whose category was restored
    8. Insert app metadata
    9. Run post-restore upgrades (shadow categories)

Invariants:
    - Validation failures leave the store untouched
    - Any storage failure rolls the whole restore back
    - After commit every operation, balance-history entry and budget
      references an account or category that exists
    - Restoring the same snapshot twice yields the same store content

How to change safely:
    - Keep the progress step order; the UI renders steps positionally
    - New tables need a wipe position in WIPE_ORDER and an insert step here
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..snapshot.models import BACKUP_VERSION, Snapshot
from ..store.base import (
    ACCOUNTS,
    APP_METADATA,
    BALANCE_HISTORY,
    BUDGETS,
    CATEGORIES,
    OPERATIONS,
    SCHEMA_VERSION_KEY,
    WIPE_ORDER,
    EntityStore,
    StoreTransaction,
)
from .progress import ProgressCallback, ProgressReporter, RestoreStep, as_reporter
from .upgrades import DEFAULT_UPGRADES, SHADOW_CATEGORY_IDS, Upgrade
from .validation import validate_snapshot

logger = logging.getLogger(__name__)

# Tables whose AUTOINCREMENT counters restart with every restore
SEQUENCED_TABLES = (ACCOUNTS, OPERATIONS, BALANCE_HISTORY)


def numeric_id(value: Any) -> int | None:
    """Interpret an identifier as a numeric id, or None for legacy ids.

    Ints, integral floats and all-digit strings (as decoded from CSV) are
    numeric; anything else is a legacy opaque id.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)
    return None


def _id_key(value: Any) -> int | str:
    number = numeric_id(value)
    return number if number is not None else str(value)


def _blank(value: Any) -> bool:
    return value is None or value == ""


@dataclass
class RestoreResult:
    """Result of a restore.

    Attributes:
        version: Snapshot version restored
        timestamp: Snapshot timestamp
        platform: Snapshot platform tag
        restored: Rows written per table
        skipped: Incoming records dropped per table
        id_map: Incoming account id -> account id in the restored store
        duration_ms: Total restore duration
    """

    version: int
    timestamp: str
    platform: str
    restored: dict[str, int] = field(default_factory=dict)
    skipped: dict[str, int] = field(default_factory=dict)
    id_map: dict[int | str, int] = field(default_factory=dict)
    duration_ms: int = 0


class _RestoreRun:
    """State of one restore inside its transaction."""

    def __init__(self, tx: StoreTransaction, snapshot: Snapshot, result: RestoreResult) -> None:
        self.tx = tx
        self.snapshot = snapshot
        self.timestamp = snapshot.timestamp
        self.result = result
        self.account_ids: dict[int | str, int] = result.id_map
        self.category_ids: set[str] = set(SHADOW_CATEGORY_IDS)

    def _skip(self, table: str, reason: str, record: Mapping[str, Any]) -> None:
        self.result.skipped[table] = self.result.skipped.get(table, 0) + 1
        logger.warning(f"Skipping {table} record: {reason}", extra={"record": dict(record)})

    def _restored(self, table: str) -> None:
        self.result.restored[table] = self.result.restored.get(table, 0) + 1

    def _resolve_account(self, value: Any) -> int | None:
        if _blank(value):
            return None
        return self.account_ids.get(_id_key(value))

    async def wipe(self) -> int:
        deleted = 0
        for table in WIPE_ORDER:
            deleted += await self.tx.delete_all(table)
        deleted += await self.tx.delete_metadata_except(SCHEMA_VERSION_KEY)
        await self.tx.reset_sequence(*SEQUENCED_TABLES)
        logger.debug(f"Cleared {deleted} existing rows")
        return deleted

    async def accounts(self) -> int:
        rows = [account.to_row() for account in self.snapshot.data.accounts]
        # Numeric ids go in first so fresh ids handed to legacy accounts never collide
        ordered = sorted(rows, key=lambda row: numeric_id(row.get("id")) is None)

        for row in ordered:
            if _blank(row.get("name")):
                self._skip(ACCOUNTS, "missing name", row)
                continue

            old_id = row.pop("id", None)
            if _blank(row.get("balance")):
                row["balance"] = "0"
            if _blank(row.get("currency")):
                row["currency"] = "USD"
            row["created_at"] = row.get("created_at") or self.timestamp
            row["updated_at"] = row.get("updated_at") or row["created_at"]

            kept_id = numeric_id(old_id)
            if kept_id is not None:
                row["id"] = kept_id

            new_id = await self.tx.insert(ACCOUNTS, row)
            if not _blank(old_id) and new_id is not None:
                self.account_ids[_id_key(old_id)] = new_id
                if kept_id is None:
                    logger.debug(f"Remapped legacy account id {old_id!r} to {new_id}")
            self._restored(ACCOUNTS)

        return self.result.restored.get(ACCOUNTS, 0)

    async def categories(self) -> int:
        rows = []
        for category in self.snapshot.data.categories:
            row = category.to_row()
            if _blank(row.get("id")) or _blank(row.get("name")):
                self._skip(CATEGORIES, "missing id or name", row)
                continue
            row["id"] = str(row["id"])
            rows.append(row)

        incoming = {row["id"] for row in rows}
        for row in rows:
            parent_id = row.get("parent_id")
            if _blank(parent_id):
                row["parent_id"] = None
            elif str(parent_id) not in incoming:
                logger.warning(f"Clearing unknown parent {parent_id!r} of category {row['id']!r}")
                row["parent_id"] = None
            else:
                row["parent_id"] = str(parent_id)

            row["type"] = row.get("type") or "folder"
            row["category_type"] = row.get("category_type") or "expense"
            if row.get("is_shadow") is None:
                row["is_shadow"] = 0
            row["created_at"] = row.get("created_at") or self.timestamp
            row["updated_at"] = row.get("updated_at") or row["created_at"]

            await self.tx.insert(CATEGORIES, row)
            self.category_ids.add(row["id"])
            self._restored(CATEGORIES)

        return self.result.restored.get(CATEGORIES, 0)

    async def operations(self) -> int:
        for operation in self.snapshot.data.operations:
            row = operation.to_row()
            row.pop("id", None)

            if _blank(row.get("type")) or _blank(row.get("amount")) or _blank(row.get("date")):
                self._skip(OPERATIONS, "missing type, amount or date", row)
                continue

            account_id = self._resolve_account(row.get("account_id"))
            if account_id is None:
                self._skip(OPERATIONS, f"unknown account {row.get('account_id')!r}", row)
                continue
            row["account_id"] = account_id

            if _blank(row.get("to_account_id")):
                row["to_account_id"] = None
            else:
                to_account_id = self._resolve_account(row["to_account_id"])
                if to_account_id is None:
                    self._skip(OPERATIONS, f"unknown destination {row['to_account_id']!r}", row)
                    continue
                row["to_account_id"] = to_account_id

            category_id = row.get("category_id")
            if _blank(category_id) or str(category_id) not in self.category_ids:
                row["category_id"] = None
            else:
                row["category_id"] = str(category_id)

            row["created_at"] = row.get("created_at") or self.timestamp
            await self.tx.insert(OPERATIONS, row)
            self._restored(OPERATIONS)

        return self.result.restored.get(OPERATIONS, 0)

    async def balance_history(self) -> int:
        for entry in self.snapshot.data.balance_history:
            row = entry.to_row()
            row.pop("id", None)

            if _blank(row.get("date")) or _blank(row.get("balance")):
                self._skip(BALANCE_HISTORY, "missing date or balance", row)
                continue

            account_id = self._resolve_account(row.get("account_id"))
            if account_id is None:
                self._skip(BALANCE_HISTORY, f"unknown account {row.get('account_id')!r}", row)
                continue
            row["account_id"] = account_id
            row["created_at"] = row.get("created_at") or self.timestamp

            if await self.tx.insert(BALANCE_HISTORY, row, on_conflict="ignore") is None:
                self._skip(BALANCE_HISTORY, "duplicate account/date", row)
                continue
            self._restored(BALANCE_HISTORY)

        return self.result.restored.get(BALANCE_HISTORY, 0)

    async def budgets(self) -> int:
        for budget in self.snapshot.data.budgets:
            row = budget.to_row()
            required = ("id", "category_id", "amount", "currency")
            if any(_blank(row.get(key)) for key in required):
                self._skip(BUDGETS, "missing id, category, amount or currency", row)
                continue

            row["id"] = str(row["id"])
            row["category_id"] = str(row["category_id"])
            if row["category_id"] not in self.category_ids:
                self._skip(BUDGETS, f"unknown category {row['category_id']!r}", row)
                continue

            row["created_at"] = row.get("created_at") or self.timestamp
            row["updated_at"] = row.get("updated_at") or row["created_at"]
            row["period_type"] = row.get("period_type") or "monthly"
            row["start_date"] = row.get("start_date") or row["created_at"]

            await self.tx.insert(BUDGETS, row)
            self._restored(BUDGETS)

        return self.result.restored.get(BUDGETS, 0)

    async def metadata(self) -> int:
        for entry in self.snapshot.data.app_metadata:
            row = entry.to_row()
            if _blank(row.get("key")) or row.get("value") is None:
                self._skip(APP_METADATA, "missing key or value", row)
                continue
            if row["key"] == SCHEMA_VERSION_KEY:
                continue

            row["updated_at"] = row.get("updated_at") or self.timestamp
            await self.tx.insert(APP_METADATA, row, on_conflict="replace")
            self._restored(APP_METADATA)

        return self.result.restored.get(APP_METADATA, 0)


class RestoreOrchestrator:
    """Restores snapshots into an entity store.

    Example:
        >>> orchestrator = RestoreOrchestrator(store)
        >>> result = await orchestrator.restore(snapshot, progress=print)
        >>> result.restored["accounts"]
        3
    """

    def __init__(
        self,
        store: EntityStore,
        upgrades: Sequence[Upgrade] = DEFAULT_UPGRADES,
        supported_version: int = BACKUP_VERSION,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Entity store to restore into
            upgrades: Post-restore upgrades, run in order inside the transaction
            supported_version: Highest snapshot version accepted
        """
        self.store = store
        self.upgrades = tuple(upgrades)
        self.supported_version = supported_version

    async def restore(
        self,
        payload: Snapshot | Mapping[str, Any],
        progress: ProgressReporter | ProgressCallback | None = None,
    ) -> RestoreResult:
        """Replace the store's content with a snapshot.

        Args:
            payload: Snapshot or decoded payload mapping
            progress: Progress reporter or callback

        Returns:
            RestoreResult with per-table counts and the identifier map

        Raises:
            ValidationError: If the snapshot is rejected (store untouched)
            StorageError: If a write fails (restore rolled back)
        """
        start_time = time.time()
        reporter = as_reporter(progress)

        reporter.start(RestoreStep.RESTORE)
        snapshot = validate_snapshot(payload, self.supported_version)
        data = snapshot.data
        reporter.complete(RestoreStep.RESTORE, version=snapshot.version)

        logger.info(
            f"Restoring snapshot from {snapshot.timestamp}",
            extra={"version": snapshot.version, "platform": snapshot.platform},
        )

        result = RestoreResult(
            version=snapshot.version,
            timestamp=snapshot.timestamp,
            platform=snapshot.platform,
        )

        try:
            async with self.store.transaction() as tx:
                run = _RestoreRun(tx, snapshot, result)

                reporter.start(RestoreStep.CLEAR)
                deleted = await run.wipe()
                reporter.complete(RestoreStep.CLEAR, count=deleted)

                reporter.start(RestoreStep.ACCOUNTS, count=len(data.accounts))
                reporter.complete(RestoreStep.ACCOUNTS, count=await run.accounts())

                reporter.start(RestoreStep.CATEGORIES, count=len(data.categories))
                reporter.complete(RestoreStep.CATEGORIES, count=await run.categories())

                reporter.start(RestoreStep.OPERATIONS, count=len(data.operations))
                reporter.complete(RestoreStep.OPERATIONS, count=await run.operations())

                reporter.start(RestoreStep.BALANCE_HISTORY, count=len(data.balance_history))
                reporter.complete(RestoreStep.BALANCE_HISTORY, count=await run.balance_history())

                reporter.start(RestoreStep.BUDGETS, count=len(data.budgets))
                reporter.complete(RestoreStep.BUDGETS, count=await run.budgets())

                reporter.start(RestoreStep.METADATA, count=len(data.app_metadata))
                reporter.complete(RestoreStep.METADATA, count=await run.metadata())

                reporter.start(RestoreStep.UPGRADES)
                upgraded = 0
                for upgrade in self.upgrades:
                    upgraded += await upgrade(tx, snapshot.timestamp)
                reporter.complete(RestoreStep.UPGRADES, count=upgraded)
        except Exception as e:
            logger.error(f"Restore failed, rolled back: {e}")
            raise

        result.duration_ms = int((time.time() - start_time) * 1000)
        reporter.start(RestoreStep.COMPLETE)
        reporter.complete(RestoreStep.COMPLETE, **result.restored)

        logger.info(
            f"Restore completed in {result.duration_ms}ms",
            extra={"restored": result.restored, "skipped": result.skipped},
        )
        return result
