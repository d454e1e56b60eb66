"""
Snapshot module for the Monkeep backup engine.

A snapshot is the unit every backup format stores and every restore consumes:
- Versioned, so older engines can refuse newer files
- Timestamped, so restores can fill missing record timestamps
- Complete, covering all six financial tables

Invariants:
    - Snapshots are built from one read of each table, never patched afterwards
    - Record models keep absent fields absent
"""

from .builder import SnapshotBuilder
from .models import (
    BACKUP_VERSION,
    PLATFORM_CSV,
    PLATFORM_NATIVE,
    PLATFORM_SQLITE,
    RECORD_TYPES,
    SECTIONS,
    Account,
    AppMetadataEntry,
    BalanceHistoryEntry,
    Budget,
    Category,
    Operation,
    Record,
    Snapshot,
    SnapshotData,
)

__all__ = [
    "BACKUP_VERSION",
    "PLATFORM_CSV",
    "PLATFORM_NATIVE",
    "PLATFORM_SQLITE",
    "RECORD_TYPES",
    "SECTIONS",
    "Account",
    "AppMetadataEntry",
    "BalanceHistoryEntry",
    "Budget",
    "Category",
    "Operation",
    "Record",
    "Snapshot",
    "SnapshotBuilder",
    "SnapshotData",
]
