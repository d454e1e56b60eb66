"""
Integration tests for the launch-time entry point.
"""

import logging

import json_log_formatter
import pytest

from monkeep.backup_engine.config import BackupConfig, EngineConfig, ObservabilityConfig, StorageConfig
from monkeep.backup_engine.main import run_startup, setup_logging


class TestStartup:
    """Tests for run_startup and setup_logging."""

    @pytest.mark.asyncio
    async def test_startup_writes_scheduled_backups(self, data_dir):
        config = EngineConfig(storage=StorageConfig(data_dir=str(data_dir), wal_mode=False))

        assert await run_startup(config) is True
        assert (data_dir / "penny.db").exists()
        names = sorted(p.name.split("_")[0] for p in (data_dir / "daily_backups").iterdir())
        assert names == ["daily", "weekly"]

        assert await run_startup(config) is False

    @pytest.mark.asyncio
    async def test_startup_with_scheduler_disabled(self, data_dir):
        config = EngineConfig(
            storage=StorageConfig(data_dir=str(data_dir), wal_mode=False),
            backup=BackupConfig(scheduled_enabled=False),
        )

        assert await run_startup(config) is False
        assert not (data_dir / "daily_backups").exists()

    def test_setup_logging_json(self):
        root = logging.getLogger()
        saved = (root.level, root.handlers)
        try:
            setup_logging(EngineConfig(observability=ObservabilityConfig("DEBUG", "json")))

            assert root.level == logging.DEBUG
            assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)
        finally:
            root.setLevel(saved[0])
            root.handlers = saved[1]
