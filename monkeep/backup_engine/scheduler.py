"""
Retention scheduler for daily and weekly backups.

Called once per application launch. Writes a daily backup on the first run
of each UTC day and a weekly backup on the first run of each ISO week, then
prunes each cadence down to its retention limit.

File layout (backup directory):
    daily_2024-03-18.json
    weekly_2024-W12.json

Invariants:
    - run_if_needed() never raises; any failure returns False
    - At most one snapshot is built per run, shared by both cadences
    - A cadence's schedule preference is written only after its file was written
    - Pruning deletes oldest-first by file name (names sort chronologically)

How to change safely:
    - Keep file names fixed-width so lexicographic order stays chronological
    - Do not rename the preference keys; existing installs would re-run
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from .codecs.base import write_text
from .codecs.structured import StructuredCodec
from .snapshot.builder import SnapshotBuilder, utc_now
from .store.base import PreferenceStore

logger = logging.getLogger(__name__)

LAST_DAILY_BACKUP_DATE_KEY = "last_daily_backup_date"
LAST_WEEKLY_BACKUP_WEEK_KEY = "last_weekly_backup_week"

DAILY = "daily"
WEEKLY = "weekly"

Cadence = Literal["daily", "weekly"]

_DAILY_NAME_RE = re.compile(r"^daily_(\d{4}-\d{2}-\d{2})\.json$")


def today_string(now: datetime) -> str:
    """UTC calendar date as YYYY-MM-DD."""
    return now.astimezone(timezone.utc).date().isoformat()


def iso_week_string(now: datetime) -> str:
    """ISO-8601 week of the UTC date as YYYY-Www (week 1 holds the first Thursday)."""
    year, week, _ = now.astimezone(timezone.utc).date().isocalendar()
    return f"{year}-W{week:02d}"


@dataclass
class BackupRunResult:
    """Outcome of one scheduler pass.

    Attributes:
        written: Backup files written in this pass
        deleted: Old backup files pruned in this pass
        error: Error message if the pass failed
    """

    written: list[Path] = field(default_factory=list)
    deleted: list[Path] = field(default_factory=list)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None and bool(self.written)


@dataclass
class StoredBackupInfo:
    """A scheduler-written backup file."""

    path: Path
    date: str | None
    filename: str


class RetentionScheduler:
    """Decides once per launch whether daily/weekly backups are due.

    Attributes:
        builder: Snapshot builder for the live store
        preferences: Store holding the schedule state
        backup_dir: Directory for scheduled backup files

    Example:
        >>> scheduler = RetentionScheduler(builder, store, Path("daily_backups"))
        >>> await scheduler.run_if_needed()
        True
    """

    def __init__(
        self,
        builder: SnapshotBuilder,
        preferences: PreferenceStore,
        backup_dir: Path,
        max_daily_backups: int = 7,
        max_weekly_backups: int = 15,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.builder = builder
        self.preferences = preferences
        self.backup_dir = Path(backup_dir)
        self.max_daily_backups = max_daily_backups
        self.max_weekly_backups = max_weekly_backups
        self._clock = clock
        self._codec = StructuredCodec(indent=None)

    async def run_if_needed(self) -> bool:
        """Write any due backups.

        Returns:
            True if at least one backup was written and nothing failed
        """
        result = await self._run_once()
        return result.success

    async def _run_once(self) -> BackupRunResult:
        result = BackupRunResult()
        try:
            now = self._clock()
            today = today_string(now)
            current_week = iso_week_string(now)

            last_daily = await self.preferences.get_preference(LAST_DAILY_BACKUP_DATE_KEY)
            last_weekly = await self.preferences.get_preference(LAST_WEEKLY_BACKUP_WEEK_KEY)

            needs_daily = last_daily != today
            needs_weekly = last_weekly != current_week

            if not needs_daily and not needs_weekly:
                logger.info("All scheduled backups up to date, skipping")
                return result

            snapshot = await self.builder.build()
            text = self._codec.encode(snapshot)

            if needs_daily:
                path = self.backup_dir / f"{DAILY}_{today}.json"
                await write_text(path, text)
                await self.preferences.set_preference(LAST_DAILY_BACKUP_DATE_KEY, today)
                result.written.append(path)
                logger.info(f"Daily backup saved: {path.name}")
                result.deleted.extend(self.cleanup(DAILY))

            if needs_weekly:
                path = self.backup_dir / f"{WEEKLY}_{current_week}.json"
                await write_text(path, text)
                await self.preferences.set_preference(LAST_WEEKLY_BACKUP_WEEK_KEY, current_week)
                result.written.append(path)
                logger.info(f"Weekly backup saved: {path.name}")
                result.deleted.extend(self.cleanup(WEEKLY))
        except Exception as e:
            logger.error(f"Scheduled backup failed: {e}", exc_info=True)
            result.error = str(e)

        return result

    def _list(self, *prefixes: str) -> list[Path]:
        if not self.backup_dir.is_dir():
            return []
        names = sorted(
            entry.name
            for entry in self.backup_dir.iterdir()
            if entry.is_file()
            and entry.suffix == ".json"
            and entry.name.startswith(tuple(f"{prefix}_" for prefix in prefixes))
        )
        return [self.backup_dir / name for name in names]

    def get_daily_backups(self) -> list[Path]:
        """Daily backup files, oldest first."""
        return self._list(DAILY)

    def get_weekly_backups(self) -> list[Path]:
        """Weekly backup files, oldest first."""
        return self._list(WEEKLY)

    def get_stored_backups(self) -> list[Path]:
        """All scheduled backup files sorted by name (daily before weekly)."""
        return self._list(DAILY, WEEKLY)

    def cleanup(self, cadence: Cadence) -> list[Path]:
        """Delete the oldest files of a cadence beyond its retention limit.

        A file that cannot be deleted is logged and skipped.

        Returns:
            Files deleted
        """
        if cadence == DAILY:
            backups, keep = self.get_daily_backups(), self.max_daily_backups
        else:
            backups, keep = self.get_weekly_backups(), self.max_weekly_backups

        deleted = []
        for path in backups[: max(0, len(backups) - keep)]:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to delete old backup {path}: {e}")
                continue
            deleted.append(path)
            logger.info(f"Deleted old backup: {path.name}")
        return deleted

    def get_latest_backup_info(self) -> StoredBackupInfo | None:
        """The most recent daily backup, or None if there is none."""
        backups = self.get_daily_backups()
        if not backups:
            return None

        path = backups[-1]
        match = _DAILY_NAME_RE.match(path.name)
        return StoredBackupInfo(
            path=path,
            date=match.group(1) if match else None,
            filename=path.name,
        )
