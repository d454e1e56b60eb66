"""
User-facing backup service.

Wires the snapshot builder, the codecs and the restore orchestrator into the
export and import actions the application exposes.

Export file naming:
    {app_name}_backup_{YYYY-MM-DDTHH-MM-SS}.{json|csv|db}

Invariants:
    - An import decodes the whole file before the restore touches the store
    - Sharing failures raise TransportError, never CodecError
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from .codecs import codec_for_format, format_for_path
from .errors import BackupError, TransportError, ValidationError
from .restore.orchestrator import RestoreOrchestrator, RestoreResult
from .restore.progress import ProgressCallback, ProgressReporter, RestoreStep, as_reporter
from .restore.validation import validate_snapshot
from .snapshot.builder import SnapshotBuilder, utc_now
from .snapshot.models import Snapshot
from .store.base import EntityStore

logger = logging.getLogger(__name__)

ShareTarget = Callable[[Path], Awaitable[None]]


@dataclass
class BackupInfo:
    """Summary of a backup payload.

    Attributes:
        version: Snapshot version
        timestamp: When the snapshot was taken
        platform: Platform tag
        accounts_count: Number of account records
        categories_count: Number of category records
        operations_count: Number of operation records
    """

    version: int
    timestamp: str
    platform: str
    accounts_count: int
    categories_count: int
    operations_count: int


def get_backup_info(payload: Snapshot | Mapping[str, Any]) -> BackupInfo | None:
    """Summarize a backup, or return None if it would not pass validation."""
    try:
        snapshot = validate_snapshot(payload)
    except ValidationError:
        return None

    return BackupInfo(
        version=snapshot.version,
        timestamp=snapshot.timestamp,
        platform=snapshot.platform or "unknown",
        accounts_count=len(snapshot.data.accounts),
        categories_count=len(snapshot.data.categories),
        operations_count=len(snapshot.data.operations),
    )


class BackupService:
    """Export and import of user backups.

    Example:
        >>> service = BackupService(store, export_dir=Path("exports"))
        >>> path = await service.export_backup("csv")
        >>> result = await service.import_backup(path, progress=print)
    """

    def __init__(
        self,
        store: EntityStore,
        export_dir: Path,
        app_name: str = "money_tracker",
        orchestrator: RestoreOrchestrator | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the service.

        Args:
            store: Live entity store
            export_dir: Directory receiving exported files
            app_name: Prefix of exported file names
            orchestrator: Restore orchestrator (defaults to one on store)
            clock: Source of the current time
        """
        self.store = store
        self.export_dir = Path(export_dir)
        self.app_name = app_name
        self.builder = SnapshotBuilder(store, clock=clock)
        self.orchestrator = orchestrator or RestoreOrchestrator(store)
        self._clock = clock

    async def create_backup(self) -> Snapshot:
        """Build a snapshot of the live store."""
        return await self.builder.build()

    def export_filename(self, extension: str) -> str:
        stamp = self._clock().strftime("%Y-%m-%dT%H-%M-%S")
        return f"{self.app_name}_backup_{stamp}.{extension}"

    async def export_backup(self, fmt: str = "json", share: ShareTarget | None = None) -> Path:
        """Export the live store to a file, optionally handing it to a share target.

        Args:
            fmt: json, csv or sqlite
            share: Coroutine function receiving the exported path

        Returns:
            Path of the exported file

        Raises:
            ValueError: If the format is unknown
            StorageError: If the store cannot be read or the file written
            TransportError: If the share target fails
        """
        codec = codec_for_format(fmt)
        path = self.export_dir / self.export_filename(codec.extension)
        await codec.export(self.builder, path)

        if share is not None:
            try:
                await share(path)
            except Exception as e:
                raise TransportError(f"Sharing {path.name} failed: {e}", path=str(path)) from e
            logger.info(f"Shared backup {path.name}")

        return path

    async def read_backup(self, path: Path) -> Snapshot:
        """Decode a backup file without restoring it.

        Raises:
            CodecError: If the file cannot be decoded
            ValidationError: If the content is not a snapshot
        """
        return await codec_for_format(format_for_path(path)).load(Path(path))

    async def inspect_backup(self, path: Path) -> BackupInfo | None:
        """Summarize a backup file, or return None if it is not a usable backup."""
        try:
            snapshot = await self.read_backup(path)
        except BackupError as e:
            logger.warning(f"Not a usable backup file {path}: {e.message}")
            return None
        return get_backup_info(snapshot)

    async def import_backup(
        self,
        path: Path,
        progress: ProgressReporter | ProgressCallback | None = None,
    ) -> RestoreResult:
        """Decode a backup file and restore it into the live store.

        Args:
            path: Backup file; the format is chosen by extension
            progress: Progress reporter or callback

        Returns:
            RestoreResult of the restore

        Raises:
            CodecError: If the file cannot be decoded (store untouched)
            ValidationError: If the snapshot is rejected (store untouched)
            StorageError: If the restore fails (rolled back)
        """
        path = Path(path)
        reporter = as_reporter(progress)

        reporter.start(RestoreStep.FORMAT)
        fmt = format_for_path(path)
        codec = codec_for_format(fmt)
        reporter.complete(RestoreStep.FORMAT, format=fmt)

        reporter.start(RestoreStep.IMPORT)
        snapshot = await codec.load(path)
        reporter.complete(RestoreStep.IMPORT, **snapshot.data.counts())

        logger.info(f"Importing {fmt} backup {path.name}")
        return await self.orchestrator.restore(snapshot, reporter)
