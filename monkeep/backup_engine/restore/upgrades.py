"""
Post-restore data upgrades.

Restored data may come from a release that predates records the current app
relies on. Upgrades run inside the restore transaction, after all snapshot
records were written, and must be idempotent.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from ..store.base import CATEGORIES, StoreTransaction

logger = logging.getLogger(__name__)

SHADOW_EXPENSE_ID = "shadow-adjustment-expense"
SHADOW_INCOME_ID = "shadow-adjustment-income"

# System categories that record manual balance adjustments
SHADOW_CATEGORIES = (
    {
        "id": SHADOW_EXPENSE_ID,
        "name": "Balance Adjustment (Expense)",
        "type": "entry",
        "category_type": "expense",
        "parent_id": None,
        "icon": "cash-minus",
        "color": None,
        "is_shadow": 1,
    },
    {
        "id": SHADOW_INCOME_ID,
        "name": "Balance Adjustment (Income)",
        "type": "entry",
        "category_type": "income",
        "parent_id": None,
        "icon": "cash-plus",
        "color": None,
        "is_shadow": 1,
    },
)

SHADOW_CATEGORY_IDS = frozenset(category["id"] for category in SHADOW_CATEGORIES)

# (transaction, snapshot timestamp) -> number of rows the upgrade wrote
Upgrade = Callable[[StoreTransaction, str], Awaitable[int]]


async def ensure_shadow_categories(tx: StoreTransaction, timestamp: str) -> int:
    """Insert the shadow categories that are missing.

    Timestamps are taken from the snapshot so that restoring the same
    snapshot twice produces identical rows.

    Returns:
        Number of shadow categories created
    """
    created = 0
    for category in SHADOW_CATEGORIES:
        row = {**category, "created_at": timestamp, "updated_at": timestamp}
        if await tx.insert(CATEGORIES, row, on_conflict="ignore") is not None:
            created += 1

    if created:
        logger.info(f"Created {created} missing shadow categories")
    return created


DEFAULT_UPGRADES: tuple[Upgrade, ...] = (ensure_shadow_categories,)
