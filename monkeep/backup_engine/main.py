"""
Startup entry point for the Monkeep backup engine.

Run once when the application launches:
1. Load configuration from the environment
2. Configure logging
3. Open (and migrate) the entity store
4. Let the retention scheduler write any due daily/weekly backups

Usage:
    python -m monkeep.backup_engine.main

Invariants:
    - A failed scheduled backup never fails startup
    - Configuration errors exit with status 1 before anything is opened
"""

from __future__ import annotations

import asyncio
import logging
import sys

import json_log_formatter

from .config import EngineConfig
from .scheduler import RetentionScheduler
from .snapshot.builder import SnapshotBuilder
from .store.sqlite_store import SqliteEntityStore

logger = logging.getLogger(__name__)


def setup_logging(config: EngineConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Engine configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


def open_store(config: EngineConfig) -> SqliteEntityStore:
    return SqliteEntityStore(
        config.storage.db_path,
        wal_mode=config.storage.wal_mode,
        busy_timeout_ms=config.storage.busy_timeout_ms,
    )


def create_scheduler(config: EngineConfig, store: SqliteEntityStore) -> RetentionScheduler:
    return RetentionScheduler(
        SnapshotBuilder(store),
        store,
        config.backup_dir,
        max_daily_backups=config.backup.max_daily_backups,
        max_weekly_backups=config.backup.max_weekly_backups,
    )


async def run_startup(config: EngineConfig) -> bool:
    """Open the store and run the scheduler once.

    Returns:
        True if a scheduled backup was written
    """
    store = open_store(config)
    await store.initialize()

    if not config.backup.scheduled_enabled:
        logger.info("Scheduled backups disabled")
        return False

    return await create_scheduler(config, store).run_if_needed()


def main() -> None:
    """Main entry point."""
    try:
        config = EngineConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    config.log_config()

    wrote = asyncio.run(run_startup(config))
    logger.info(f"Startup complete (scheduled backup written: {wrote})")


if __name__ == "__main__":
    main()
