"""
Delimited-text (CSV) backup codec.

File layout:
    # Version: 1
    # Timestamp: 2024-01-02T03:04:05.678000+00:00

    [ACCOUNTS]
    id,name,balance,currency,...
    1,Checking,100,USD,...

    [CATEGORIES]
    ...

Each section holds a header row followed by data rows, written with the csv
module (RFC 4180 quoting: delimiters and newlines are quoted, embedded quotes
doubled). Every value decodes as a string; an empty cell decodes as null.
A section missing from the file decodes as an empty table. The timestamp is read
from the "# Timestamp:" line, or from a "# Money Tracker Backup - <timestamp>"
title line when there is none.

The version comes from an editable comment line, so decode() does not compare
it with BACKUP_VERSION; restore validation still does.

Invariants:
    - Sections are written in snapshot section order
    - Booleans are written as 1/0, nulls as empty cells
    - A data row must have exactly as many cells as its section header
"""

from __future__ import annotations

import csv
import io
import logging
import re
from datetime import datetime, timezone
from typing import Any

from ..errors import CodecError
from ..snapshot.models import (
    BACKUP_VERSION,
    PLATFORM_CSV,
    RECORD_TYPES,
    SECTIONS,
    Record,
    Snapshot,
)
from .base import TextCodec

logger = logging.getLogger(__name__)

SECTION_HEADERS = {name: name.upper() for name in SECTIONS}
_SECTION_NAMES = {header: name for name, header in SECTION_HEADERS.items()}

_SECTION_RE = re.compile(r"^\[([A-Z_]+)\]$")
_COMMENT_RE = re.compile(r"^#\s*(\w+)\s*:\s*(.*)$")
_TITLE_RE = re.compile(r"^#\s*Money Tracker Backup\s*-\s*(\S.*)$")


def _header(rows: list[dict[str, Any]], record_type: type[Record]) -> list[str]:
    if not rows:
        return list(record_type.model_fields)

    header: list[str] = []
    seen: set[str] = set()
    for row in rows:
        for key in row:
            if key not in seen:
                seen.add(key)
                header.append(key)
    return header


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return int(value)
    return value


class DelimitedCodec(TextCodec):
    """CSV codec with one bracketed section per table."""

    format_name = "csv"
    extension = "csv"

    def encode(self, snapshot: Snapshot) -> str:
        buffer = io.StringIO()
        buffer.write(f"# Version: {snapshot.version}\n")
        buffer.write(f"# Timestamp: {snapshot.timestamp}\n")

        writer = csv.writer(buffer, lineterminator="\n")
        for name in SECTIONS:
            rows = [record.to_row() for record in getattr(snapshot.data, name)]
            header = _header(rows, RECORD_TYPES[name])

            writer.writerow([])
            writer.writerow([f"[{SECTION_HEADERS[name]}]"])
            writer.writerow(header)
            for row in rows:
                writer.writerow([_cell(row.get(key)) for key in header])

        return buffer.getvalue()

    def decode(self, text: str) -> Snapshot:
        version = BACKUP_VERSION
        timestamp: str | None = None
        data: dict[str, list[dict[str, Any]]] = {name: [] for name in SECTIONS}

        section: str | None = None
        skipping = False
        header: list[str] | None = None

        reader = csv.reader(io.StringIO(text))
        try:
            for row in reader:
                if not row or all(cell == "" for cell in row):
                    continue

                first = row[0].strip()
                match = _SECTION_RE.match(first) if len(row) == 1 else None
                if match:
                    section = _SECTION_NAMES.get(match.group(1))
                    skipping = section is None
                    header = None
                    if skipping:
                        logger.warning(
                            f"Skipping unknown CSV section [{match.group(1)}] "
                            f"at line {reader.line_num}"
                        )
                    continue

                if section is None and not skipping:
                    if first.startswith("#"):
                        line = ",".join(row)
                        comment = _COMMENT_RE.match(line)
                        title = _TITLE_RE.match(line)
                        if comment and comment.group(1).lower() == "version":
                            version = self._parse_version(comment.group(2), reader.line_num)
                        elif comment and comment.group(1).lower() == "timestamp":
                            timestamp = comment.group(2).strip()
                        elif title and timestamp is None:
                            timestamp = title.group(1).strip()
                        continue
                    raise CodecError(
                        "CSV row found before any section",
                        fmt=self.format_name,
                        line=reader.line_num,
                    )

                if skipping:
                    continue

                if header is None:
                    header = row
                    continue

                if len(row) != len(header):
                    raise CodecError(
                        f"CSV section [{SECTION_HEADERS[section]}] row has {len(row)} "
                        f"fields, header has {len(header)}",
                        fmt=self.format_name,
                        line=reader.line_num,
                    )
                data[section].append(
                    {key: (None if value == "" else value) for key, value in zip(header, row)}
                )
        except csv.Error as e:
            raise CodecError(
                f"Malformed CSV: {e}",
                fmt=self.format_name,
                line=reader.line_num,
            ) from e

        payload = {
            "version": version,
            "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
            "platform": PLATFORM_CSV,
            "data": data,
        }
        return Snapshot.from_payload(payload)

    def _parse_version(self, raw: str, line: int) -> int:
        try:
            return int(raw.strip())
        except ValueError as e:
            raise CodecError(
                f"CSV version header is not an integer: {raw.strip()!r}",
                fmt=self.format_name,
                line=line,
            ) from e
