"""
Integration tests for the retention scheduler.

Tests cover:
- Up-to-date runs touching nothing
- One snapshot shared by daily and weekly writes
- Same-day reruns
- Retention pruning
- Failures leaving the schedule state untouched
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from monkeep.backup_engine.errors import StorageError
from monkeep.backup_engine.scheduler import (
    LAST_DAILY_BACKUP_DATE_KEY,
    LAST_WEEKLY_BACKUP_WEEK_KEY,
    RetentionScheduler,
)
from monkeep.backup_engine.snapshot import SnapshotBuilder


class CountingBuilder(SnapshotBuilder):
    """Snapshot builder that counts builds and can be made to fail."""

    def __init__(self, store, clock):
        super().__init__(store, clock=clock)
        self.builds = 0
        self.fail = False

    async def build(self):
        self.builds += 1
        if self.fail:
            raise StorageError("database is locked")
        return await super().build()


class TestRetentionScheduler:
    """Integration tests for RetentionScheduler."""

    @pytest.fixture
    def backup_dir(self, data_dir):
        return data_dir / "daily_backups"

    @pytest.fixture
    def builder(self, store, clock):
        return CountingBuilder(store, clock)

    @pytest.fixture
    def scheduler(self, builder, store, backup_dir, clock):
        return RetentionScheduler(
            builder,
            store,
            backup_dir,
            max_daily_backups=7,
            max_weekly_backups=15,
            clock=clock,
        )

    @pytest.mark.asyncio
    async def test_up_to_date_does_nothing(self, store, scheduler, builder, backup_dir):
        """No build and no files when both cadences are current."""
        await store.initialize()
        await store.set_preference(LAST_DAILY_BACKUP_DATE_KEY, "2024-03-18")
        await store.set_preference(LAST_WEEKLY_BACKUP_WEEK_KEY, "2024-W12")

        assert await scheduler.run_if_needed() is False
        assert builder.builds == 0
        assert not backup_dir.exists()

    @pytest.mark.asyncio
    async def test_both_stale_builds_once_writes_two(self, store, scheduler, builder, backup_dir):
        """One snapshot serves both the daily and the weekly file."""
        await store.initialize()

        assert await scheduler.run_if_needed() is True

        assert builder.builds == 1
        assert sorted(p.name for p in backup_dir.iterdir()) == [
            "daily_2024-03-18.json",
            "weekly_2024-W12.json",
        ]
        daily = (backup_dir / "daily_2024-03-18.json").read_text()
        assert daily == (backup_dir / "weekly_2024-W12.json").read_text()
        assert json.loads(daily)["version"] == 1
        assert await store.get_preference(LAST_DAILY_BACKUP_DATE_KEY) == "2024-03-18"
        assert await store.get_preference(LAST_WEEKLY_BACKUP_WEEK_KEY) == "2024-W12"

    @pytest.mark.asyncio
    async def test_same_day_twice(self, store, scheduler):
        """True on the first call of the day, False on the second."""
        await store.initialize()

        assert await scheduler.run_if_needed() is True
        assert await scheduler.run_if_needed() is False

    @pytest.mark.asyncio
    async def test_next_day_same_week_writes_daily_only(
        self, store, scheduler, builder, backup_dir, clock
    ):
        await store.initialize()
        await scheduler.run_if_needed()

        clock.now += timedelta(days=1)
        assert await scheduler.run_if_needed() is True

        assert builder.builds == 2
        assert [p.name for p in scheduler.get_weekly_backups()] == ["weekly_2024-W12.json"]
        assert [p.name for p in scheduler.get_daily_backups()] == [
            "daily_2024-03-18.json",
            "daily_2024-03-19.json",
        ]

    @pytest.mark.asyncio
    async def test_daily_retention_removes_oldest(self, store, scheduler, backup_dir):
        """With N files already kept, a new one evicts exactly the oldest."""
        await store.initialize()
        await store.set_preference(LAST_WEEKLY_BACKUP_WEEK_KEY, "2024-W12")
        backup_dir.mkdir(parents=True)
        for day in range(11, 18):
            (backup_dir / f"daily_2024-03-{day:02d}.json").write_text("{}")

        assert await scheduler.run_if_needed() is True

        names = [p.name for p in scheduler.get_daily_backups()]
        assert len(names) == 7
        assert "daily_2024-03-11.json" not in names
        assert names[-1] == "daily_2024-03-18.json"

    @pytest.mark.asyncio
    async def test_weekly_retention_removes_oldest(self, store, scheduler, backup_dir):
        await store.initialize()
        await store.set_preference(LAST_DAILY_BACKUP_DATE_KEY, "2024-03-18")
        backup_dir.mkdir(parents=True)
        for week in range(1, 12):
            (backup_dir / f"weekly_2024-W{week:02d}.json").write_text("{}")
        for week in range(48, 53):
            (backup_dir / f"weekly_2023-W{week:02d}.json").write_text("{}")

        assert await scheduler.run_if_needed() is True

        names = [p.name for p in scheduler.get_weekly_backups()]
        assert len(names) == 15
        assert names[0] == "weekly_2023-W50.json"
        assert names[-1] == "weekly_2024-W12.json"

    def test_cleanup_is_per_cadence(self, scheduler, backup_dir):
        """Pruning one cadence never touches the other."""
        backup_dir.mkdir(parents=True)
        for day in range(1, 9):
            (backup_dir / f"daily_2024-03-{day:02d}.json").write_text("{}")
        (backup_dir / "weekly_2024-W01.json").write_text("{}")
        (backup_dir / "notes.txt").write_text("keep me")

        deleted = scheduler.cleanup("daily")

        assert [p.name for p in deleted] == ["daily_2024-03-01.json"]
        assert len(scheduler.get_daily_backups()) == 7
        assert (backup_dir / "weekly_2024-W01.json").exists()
        assert (backup_dir / "notes.txt").exists()

    @pytest.mark.asyncio
    async def test_build_failure_returns_false_and_retries(self, store, scheduler, builder):
        """A failed pass changes no state; the next call does the work."""
        await store.initialize()
        builder.fail = True

        assert await scheduler.run_if_needed() is False
        assert await store.get_preference(LAST_DAILY_BACKUP_DATE_KEY) is None
        assert scheduler.get_stored_backups() == []

        builder.fail = False
        assert await scheduler.run_if_needed() is True

    @pytest.mark.asyncio
    async def test_write_failure_keeps_schedule_due(self, store, data_dir, builder, clock):
        """If the file cannot be written the preference is not advanced."""
        await store.initialize()
        blocked = data_dir / "blocked"
        blocked.write_text("a file where the directory should be")
        scheduler = RetentionScheduler(builder, store, blocked / "daily_backups", clock=clock)

        assert await scheduler.run_if_needed() is False
        assert await store.get_preference(LAST_DAILY_BACKUP_DATE_KEY) is None
        assert await store.get_preference(LAST_WEEKLY_BACKUP_WEEK_KEY) is None

    @pytest.mark.asyncio
    async def test_latest_backup_info(self, store, scheduler):
        await store.initialize()
        assert scheduler.get_latest_backup_info() is None

        await scheduler.run_if_needed()
        info = scheduler.get_latest_backup_info()

        assert info.filename == "daily_2024-03-18.json"
        assert info.date == "2024-03-18"

    @pytest.mark.asyncio
    async def test_week_rollover_across_year(self, store, data_dir):
        """The first days of January can belong to the previous ISO year."""
        await store.initialize()
        clock = lambda: datetime(2021, 1, 1, 8, 0, tzinfo=timezone.utc)  # noqa: E731
        scheduler = RetentionScheduler(
            SnapshotBuilder(store, clock=clock), store, data_dir / "b", clock=clock
        )

        await scheduler.run_if_needed()

        assert [p.name for p in scheduler.get_stored_backups()] == [
            "daily_2021-01-01.json",
            "weekly_2020-W53.json",
        ]
