"""
CLI tools for Monkeep backup administration.

This module provides the monkeep-backup command:
- export / import: User backups in json, csv or sqlite form
- info: Inspect a backup without restoring it
- list / run: Scheduled daily and weekly backups

Invariants:
    - Tools work on the local database file; no running app is required
    - A failed import leaves the database unchanged
"""

from .backup_cli import BackupCLI, main

__all__ = ["BackupCLI", "main"]
