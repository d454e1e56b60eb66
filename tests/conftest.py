"""
Shared fixtures for the backup engine test suite.
"""

import copy
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from monkeep.backup_engine.store.sqlite_store import SqliteEntityStore

SNAPSHOT_TIMESTAMP = "2024-03-18T09:30:00+00:00"

SAMPLE_PAYLOAD = {
    "version": 1,
    "timestamp": SNAPSHOT_TIMESTAMP,
    "platform": "native",
    "data": {
        "accounts": [
            {
                "id": 1,
                "name": "Checking",
                "balance": "1500.50",
                "currency": "USD",
                "display_order": 0,
                "hidden": 0,
                "monthly_target": None,
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-01T00:00:00Z",
            },
            {
                "id": 2,
                "name": "Savings",
                "balance": "10000",
                "currency": "EUR",
                "display_order": 1,
                "hidden": 0,
                "monthly_target": "500",
                "created_at": "2024-01-02T00:00:00Z",
                "updated_at": "2024-01-02T00:00:00Z",
            },
        ],
        "categories": [
            {
                "id": "food",
                "name": "Food",
                "type": "folder",
                "category_type": "expense",
                "parent_id": None,
                "icon": "food",
                "color": "#FF7043",
                "is_shadow": 0,
                "exclude_from_forecast": 0,
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-01T00:00:00Z",
            },
            {
                "id": "groceries",
                "name": "Groceries",
                "type": "entry",
                "category_type": "expense",
                "parent_id": "food",
                "icon": "cart",
                "color": None,
                "is_shadow": 0,
                "exclude_from_forecast": 0,
                "created_at": "2024-01-01T00:00:01Z",
                "updated_at": "2024-01-01T00:00:01Z",
            },
            {
                "id": "salary",
                "name": "Salary",
                "type": "entry",
                "category_type": "income",
                "parent_id": None,
                "icon": "cash",
                "color": None,
                "is_shadow": 0,
                "exclude_from_forecast": 1,
                "created_at": "2024-01-01T00:00:02Z",
                "updated_at": "2024-01-01T00:00:02Z",
            },
        ],
        "operations": [
            {
                "id": 1,
                "type": "expense",
                "amount": "42.10",
                "account_id": 1,
                "category_id": "groceries",
                "to_account_id": None,
                "date": "2024-03-01",
                "created_at": "2024-03-01T10:00:00Z",
                "description": "Weekly shop",
            },
            {
                "id": 2,
                "type": "income",
                "amount": "3000",
                "account_id": 1,
                "category_id": "salary",
                "to_account_id": None,
                "date": "2024-03-05",
                "created_at": "2024-03-05T10:00:00Z",
                "description": None,
            },
            {
                "id": 3,
                "type": "transfer",
                "amount": "500",
                "account_id": 1,
                "category_id": None,
                "to_account_id": 2,
                "date": "2024-03-06",
                "created_at": "2024-03-06T10:00:00Z",
                "description": "To savings",
                "exchange_rate": "0.92",
                "destination_amount": "460",
                "source_currency": "USD",
                "destination_currency": "EUR",
            },
        ],
        "budgets": [
            {
                "id": "budget-food",
                "category_id": "food",
                "amount": "400",
                "currency": "USD",
                "period_type": "monthly",
                "start_date": "2024-03-01",
                "end_date": None,
                "is_recurring": 1,
                "rollover_enabled": 0,
                "created_at": "2024-03-01T00:00:00Z",
                "updated_at": "2024-03-01T00:00:00Z",
            },
        ],
        "app_metadata": [
            {"key": "db_version", "value": "99", "updated_at": "2024-01-01T00:00:00Z"},
            {"key": "language", "value": "en", "updated_at": "2024-01-01T00:00:00Z"},
        ],
        "balance_history": [
            {
                "id": 1,
                "account_id": 1,
                "date": "2024-03-01",
                "balance": "1457.90",
                "created_at": "2024-03-01T23:59:00Z",
            },
            {
                "id": 2,
                "account_id": 2,
                "date": "2024-03-06",
                "balance": "10460",
                "created_at": "2024-03-06T23:59:00Z",
            },
        ],
    },
}


class FixedClock:
    """Callable clock returning a settable instant."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def sample_payload():
    """Fresh copy of a representative snapshot payload."""
    return copy.deepcopy(SAMPLE_PAYLOAD)


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(data_dir):
    """Create store on a fresh database file."""
    return SqliteEntityStore(data_dir / "penny.db", wal_mode=False)


@pytest.fixture
def clock():
    """Clock fixed at Monday 2024-03-18 09:30 UTC (ISO week 2024-W12)."""
    return FixedClock(datetime(2024, 3, 18, 9, 30, tzinfo=timezone.utc))
