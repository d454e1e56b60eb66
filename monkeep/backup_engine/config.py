"""
Configuration management for the Monkeep backup engine.

All configuration is done via environment variables. This module provides
typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Retention limits are positive integers
    - The backup directory is created on demand, never required up front

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep file naming settings stable: scheduled backups are pruned by name
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

LOG_FORMATS = ("json", "text")


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Directory holding the SQLite database
        db_name: Database file name inside data_dir
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    data_dir: str = "./monkeep_data"
    db_name: str = "penny.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000

    @property
    def db_path(self) -> Path:
        """Full path of the database file."""
        return Path(self.data_dir) / self.db_name

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("DATA_DIR", "./monkeep_data"),
            db_name=os.getenv("DB_NAME", "penny.db"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )


@dataclass(frozen=True)
class BackupConfig:
    """Backup, export and retention configuration.

    Attributes:
        backup_dir: Directory for scheduled daily/weekly files (None = <data_dir>/daily_backups)
        export_dir: Directory for user exports (None = data_dir)
        app_name: Prefix of exported file names
        max_daily_backups: Daily files kept after pruning
        max_weekly_backups: Weekly files kept after pruning
        scheduled_enabled: Whether the launch-time scheduler runs
    """

    backup_dir: str | None = None
    export_dir: str | None = None
    app_name: str = "money_tracker"
    max_daily_backups: int = 7
    max_weekly_backups: int = 15
    scheduled_enabled: bool = True

    @classmethod
    def from_env(cls) -> BackupConfig:
        """Load configuration from environment variables."""
        return cls(
            backup_dir=os.getenv("BACKUP_DIR"),
            export_dir=os.getenv("EXPORT_DIR"),
            app_name=os.getenv("BACKUP_APP_NAME", "money_tracker"),
            max_daily_backups=int(os.getenv("MAX_DAILY_BACKUPS", "7")),
            max_weekly_backups=int(os.getenv("MAX_WEEKLY_BACKUPS", "15")),
            scheduled_enabled=os.getenv("SCHEDULED_BACKUPS_ENABLED", "true").lower() == "true",
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class EngineConfig:
    """Complete engine configuration.

    Attributes:
        storage: Local storage configuration
        backup: Backup and retention configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @property
    def backup_dir(self) -> Path:
        """Directory for scheduled backups."""
        if self.backup.backup_dir:
            return Path(self.backup.backup_dir)
        return Path(self.storage.data_dir) / "daily_backups"

    @property
    def export_dir(self) -> Path:
        """Directory for user-triggered exports."""
        if self.backup.export_dir:
            return Path(self.backup.export_dir)
        return Path(self.storage.data_dir)

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Load complete configuration from environment variables.

        Returns:
            EngineConfig with all sections populated from environment.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            backup=BackupConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.backup.max_daily_backups <= 0:
            raise ValueError(
                f"MAX_DAILY_BACKUPS must be positive, got {self.backup.max_daily_backups}"
            )
        if self.backup.max_weekly_backups <= 0:
            raise ValueError(
                f"MAX_WEEKLY_BACKUPS must be positive, got {self.backup.max_weekly_backups}"
            )
        if self.storage.busy_timeout_ms < 0:
            raise ValueError(
                f"SQLITE_BUSY_TIMEOUT_MS must not be negative, got {self.storage.busy_timeout_ms}"
            )
        if self.observability.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

        if not os.path.exists(self.storage.data_dir):
            logger.warning(
                f"Data directory does not exist: {self.storage.data_dir}. "
                "It will be created on first write."
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Engine configuration loaded",
            extra={
                "db_path": str(self.storage.db_path),
                "wal_mode": self.storage.wal_mode,
                "backup_dir": str(self.backup_dir),
                "export_dir": str(self.export_dir),
                "max_daily_backups": self.backup.max_daily_backups,
                "max_weekly_backups": self.backup.max_weekly_backups,
                "scheduled_enabled": self.backup.scheduled_enabled,
                "log_level": self.observability.log_level,
            },
        )
