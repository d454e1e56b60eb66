"""
Base protocol for backup file codecs.

A codec turns the live dataset into one physical backup file and turns such
a file back into a Snapshot. Text codecs (structured, delimited) serialize a
built Snapshot; the native codec copies the store's own file instead, so
export() receives the SnapshotBuilder (and through it, the store) rather than
a ready Snapshot.

Invariants:
    - load() never touches the live store
    - load() raises CodecError for input it cannot parse, ValidationError for
      parseable input that is not a snapshot

How to change safely:
    - New codecs must be registered in codecs/__init__.py with their extensions
"""

from __future__ import annotations

import asyncio
import logging
from abc import abstractmethod
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..errors import CodecError, StorageError
from ..snapshot.builder import SnapshotBuilder
from ..snapshot.models import Snapshot

logger = logging.getLogger(__name__)


@runtime_checkable
class BackupCodec(Protocol):
    """Protocol for backup codecs.

    Attributes:
        format_name: Name used on the CLI and in export requests
        extension: File extension written by export(), without the dot
    """

    format_name: str
    extension: str

    @abstractmethod
    async def export(self, builder: SnapshotBuilder, path: Path) -> Path:
        """Write a backup of the builder's store to path.

        Raises:
            StorageError: If the store cannot be read or the file written
        """
        ...

    @abstractmethod
    async def load(self, path: Path) -> Snapshot:
        """Read a backup file into a Snapshot.

        Raises:
            CodecError: If the file cannot be read or parsed
            ValidationError: If the content is not a snapshot
        """
        ...


class TextCodec:
    """Shared file handling for codecs with an in-memory text form.

    Subclasses implement encode() and decode().
    """

    format_name: str
    extension: str

    def encode(self, snapshot: Snapshot) -> str:
        raise NotImplementedError

    def decode(self, text: str) -> Snapshot:
        raise NotImplementedError

    async def export(self, builder: SnapshotBuilder, path: Path) -> Path:
        snapshot = await builder.build()
        text = self.encode(snapshot)
        await write_text(path, text)
        logger.info(f"Exported {self.format_name} backup to {path}")
        return path

    async def load(self, path: Path) -> Snapshot:
        text = await read_text(path, self.format_name)
        return self.decode(text)


async def write_text(path: Path, text: str) -> None:
    """Write text to path in the default executor.

    Raises:
        StorageError: If the file cannot be written
    """
    loop = asyncio.get_running_loop()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        await loop.run_in_executor(None, _write, path, text)
    except OSError as e:
        raise StorageError(f"Failed to write {path}: {e}") from e


async def read_text(path: Path, fmt: str) -> str:
    """Read a UTF-8 text file in the default executor.

    Raises:
        CodecError: If the file is missing, unreadable or not UTF-8
    """
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, _read, path)
    except OSError as e:
        raise CodecError(f"Cannot read backup file {path}: {e}", fmt=fmt) from e
    except UnicodeDecodeError as e:
        raise CodecError(f"Backup file {path} is not UTF-8 text", fmt=fmt) from e


def _write(path: Path, text: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)


# newline="": line breaks inside quoted CSV values are data
def _read(path: Path) -> str:
    with open(path, encoding="utf-8-sig", newline="") as f:
        return f.read()
