"""
Error types for the Monkeep backup engine.

This module defines all exception types raised by the engine:
- BackupError: Base exception
- ValidationError: Malformed or unsupported-version snapshot
- StorageError: Read/write/transaction failure against the entity store
- CodecError: Malformed input handed to a decoder
- TransportError: Exported file could not be handed to the sharing target

Invariants:
    - All errors inherit from BackupError
    - ValidationError and CodecError are raised before any store mutation
    - StorageError during a restore means the transaction was rolled back
"""

from __future__ import annotations

from typing import Any


class BackupError(Exception):
    """Base exception for all backup engine errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "BACKUP_ERROR"
        self.details = details or {}


class ValidationError(BackupError):
    """Snapshot failed validation.

    Raised when:
    - The payload is not an object
    - The version is missing or newer than supported
    - A required table is missing or not a list
    """

    def __init__(
        self,
        message: str,
        field_name: str | None = None,
        errors: list[str] | None = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name, "errors": errors or []},
        )
        self.field_name = field_name
        self.errors = errors or []


class StorageError(BackupError):
    """Entity store operation failed.

    Raised when:
    - A read or write statement fails
    - A transaction cannot commit (e.g. foreign key violation)
    - The storage file cannot be opened or copied
    """

    def __init__(self, message: str, table: str | None = None) -> None:
        super().__init__(message, code="STORAGE_ERROR", details={"table": table})
        self.table = table


class CodecError(BackupError):
    """Decoder input is malformed.

    Raised when:
    - A structured backup is not valid JSON
    - A delimited-text section cannot be parsed
    - A native backup is not a SQLite database
    """

    def __init__(self, message: str, fmt: str | None = None, line: int | None = None) -> None:
        super().__init__(message, code="CODEC_ERROR", details={"format": fmt, "line": line})
        self.fmt = fmt
        self.line = line


class TransportError(BackupError):
    """Exported file could not be delivered (e.g. sharing unavailable)."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, code="TRANSPORT_ERROR", details={"path": path})
        self.path = path
