"""
Snapshot builder.

Reads the six tables through the entity store and assembles a Snapshot.

Invariants:
    - Tables are read in TABLES order
    - A read failure propagates unmodified; no partial snapshot is returned
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from ..store.base import (
    ACCOUNTS,
    APP_METADATA,
    BALANCE_HISTORY,
    BUDGETS,
    CATEGORIES,
    OPERATIONS,
    EntityStore,
)
from .models import (
    BACKUP_VERSION,
    PLATFORM_NATIVE,
    Account,
    AppMetadataEntry,
    BalanceHistoryEntry,
    Budget,
    Category,
    Operation,
    Snapshot,
    SnapshotData,
)

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotBuilder:
    """Builds full-dataset snapshots from an entity store.

    Example:
        >>> builder = SnapshotBuilder(store)
        >>> snapshot = await builder.build()
        >>> snapshot.data.counts()
        {'accounts': 3, 'categories': 12, ...}
    """

    def __init__(
        self,
        store: EntityStore,
        platform: str = PLATFORM_NATIVE,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.platform = platform
        self._clock = clock

    async def build(self) -> Snapshot:
        """Capture every table into a new Snapshot.

        Returns:
            Snapshot at BACKUP_VERSION, timestamped now

        Raises:
            StorageError: If any table read fails
        """
        accounts = await self.store.read_table(ACCOUNTS)
        categories = await self.store.read_table(CATEGORIES)
        operations = await self.store.read_table(OPERATIONS)
        budgets = await self.store.read_table(BUDGETS)
        app_metadata = await self.store.read_table(APP_METADATA)
        balance_history = await self.store.read_table(BALANCE_HISTORY)

        data = SnapshotData(
            accounts=[Account.model_validate(row) for row in accounts],
            categories=[Category.model_validate(row) for row in categories],
            operations=[Operation.model_validate(row) for row in operations],
            budgets=[Budget.model_validate(row) for row in budgets],
            app_metadata=[AppMetadataEntry.model_validate(row) for row in app_metadata],
            balance_history=[BalanceHistoryEntry.model_validate(row) for row in balance_history],
        )
        snapshot = Snapshot(
            version=BACKUP_VERSION,
            timestamp=self._clock().isoformat(),
            platform=self.platform,
            data=data,
        )

        logger.info(
            f"Built snapshot with {len(accounts)} accounts, "
            f"{len(operations)} operations",
            extra={"platform": self.platform, "counts": data.counts()},
        )
        return snapshot
