"""
Native-storage (SQLite file) backup codec.

Export copies the store's database file byte for byte, after a checkpoint
flush so the copy holds every committed write. Import never opens the chosen
file in place: it is copied into a private temporary directory, opened there
as a store (which replays the migration sequence on it) and read with the
snapshot builder.

Invariants:
    - The WAL is checkpointed before the primary file is copied
    - The temporary copy and its -wal/-shm side files are removed on success
      and on failure
    - A file without the SQLite header is rejected before anything is copied

How to change safely:
    - Keep migrations able to upgrade any file an older release exported
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path

from ..errors import CodecError, StorageError
from ..snapshot.builder import SnapshotBuilder
from ..snapshot.models import PLATFORM_SQLITE, Snapshot
from ..store.migrations import run_migrations
from ..store.sqlite_store import Migrator, SqliteEntityStore

logger = logging.getLogger(__name__)

SQLITE_HEADER = b"SQLite format 3\x00"


def _read_header(path: Path) -> bytes:
    with open(path, "rb") as f:
        return f.read(len(SQLITE_HEADER))


class NativeCodec:
    """SQLite database file codec.

    Args:
        migrator: Migration runner applied to imported files
        store_factory: Opens a store on the temporary copy (tests override it)
    """

    format_name = "sqlite"
    extension = "db"

    def __init__(
        self,
        migrator: Migrator = run_migrations,
        store_factory: Callable[[Path, Migrator], SqliteEntityStore] | None = None,
    ) -> None:
        self.migrator = migrator
        self._store_factory = store_factory or self._open_store

    @staticmethod
    def _open_store(path: Path, migrator: Migrator) -> SqliteEntityStore:
        return SqliteEntityStore(path, migrator=migrator)

    async def export(self, builder: SnapshotBuilder, path: Path) -> Path:
        store = builder.store
        await store.checkpoint()

        loop = asyncio.get_running_loop()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await loop.run_in_executor(None, shutil.copyfile, store.db_path, path)
        except OSError as e:
            raise StorageError(f"Failed to copy {store.db_path} to {path}: {e}") from e

        logger.info(f"Exported sqlite backup to {path}")
        return path

    async def load(self, path: Path) -> Snapshot:
        loop = asyncio.get_running_loop()
        try:
            header = await loop.run_in_executor(None, _read_header, path)
        except OSError as e:
            raise CodecError(f"Cannot read backup file {path}: {e}", fmt=self.format_name) from e

        if header != SQLITE_HEADER:
            raise CodecError(
                f"Backup file {path} is not a SQLite database",
                fmt=self.format_name,
            )

        with tempfile.TemporaryDirectory(prefix="monkeep_import_") as tmp_dir:
            tmp_path = Path(tmp_dir) / "import.db"
            try:
                await loop.run_in_executor(None, shutil.copyfile, path, tmp_path)
            except OSError as e:
                raise CodecError(f"Cannot copy backup file {path}: {e}", fmt=self.format_name) from e

            store = self._store_factory(tmp_path, self.migrator)
            try:
                await store.initialize()
                snapshot = await SnapshotBuilder(store, platform=PLATFORM_SQLITE).build()
            except StorageError as e:
                raise CodecError(
                    f"Backup file {path} is not a readable Monkeep database: {e.message}",
                    fmt=self.format_name,
                ) from e

            logger.debug(f"Removing temporary import copy {tmp_path}")

        return snapshot
