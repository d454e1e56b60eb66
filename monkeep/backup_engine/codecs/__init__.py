"""
Backup file codecs.

Three physical formats share one BackupCodec protocol:
- json: structured snapshot payload (StructuredCodec)
- csv: one bracketed CSV section per table (DelimitedCodec)
- sqlite: copy of the store's database file (NativeCodec)

Files are matched to a codec by extension; anything unrecognized is treated
as structured JSON.
"""

from __future__ import annotations

from pathlib import Path

from .base import BackupCodec
from .delimited import DelimitedCodec
from .native import NativeCodec
from .structured import StructuredCodec

FORMATS = ("json", "csv", "sqlite")

EXTENSIONS = {
    ".json": "json",
    ".csv": "csv",
    ".db": "sqlite",
    ".sqlite": "sqlite",
    ".sqlite3": "sqlite",
}


def codec_for_format(fmt: str) -> BackupCodec:
    """Get the codec for a format name.

    Raises:
        ValueError: If the format is unknown
    """
    if fmt == "json":
        return StructuredCodec()
    if fmt == "csv":
        return DelimitedCodec()
    if fmt == "sqlite":
        return NativeCodec()
    raise ValueError(f"Unknown backup format '{fmt}'. Must be one of: {', '.join(FORMATS)}")


def format_for_path(path: str | Path) -> str:
    """Detect a backup file's format from its extension (json by default)."""
    return EXTENSIONS.get(Path(path).suffix.lower(), "json")


def codec_for_path(path: str | Path) -> BackupCodec:
    return codec_for_format(format_for_path(path))


__all__ = [
    "EXTENSIONS",
    "FORMATS",
    "BackupCodec",
    "DelimitedCodec",
    "NativeCodec",
    "StructuredCodec",
    "codec_for_format",
    "codec_for_path",
    "format_for_path",
]
