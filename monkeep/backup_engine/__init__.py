"""
Monkeep Backup Engine - Backup, restore and scheduled retention for Monkeep.

This package captures the personal-finance dataset (accounts, categories,
operations, budgets, balance history, app metadata) as versioned snapshots,
writes them in three formats and restores them atomically.

Architecture:
    ┌──────────────┐     ┌─────────────────┐     ┌──────────────────┐
    │ BackupService│────▶│ SnapshotBuilder │────▶│   EntityStore    │
    │  (export)    │     └────────┬────────┘     │ (SQLite, penny.db)│
    └──────┬───────┘              │              └────────▲─────────┘
           │                      ▼                       │
           │             ┌─────────────────┐              │
           └────────────▶│     Codecs      │              │
                         │ json | csv | db │              │
    ┌──────────────┐     └────────┬────────┘     ┌────────┴─────────┐
    │ BackupService│──────────────┘─────────────▶│RestoreOrchestrator│
    │  (import)    │        progress events      │ (one transaction) │
    └──────────────┘                             └──────────────────┘

    ┌──────────────────┐     daily_YYYY-MM-DD.json / weekly_YYYY-Www.json
    │RetentionScheduler│────▶ (one snapshot per run, pruned per cadence)
    └──────────────────┘

Invariants:
    - A restore either fully applies or leaves the store unchanged
    - Snapshots newer than BACKUP_VERSION are refused
    - Scheduled backups never fail application startup

How to change safely:
    - Snapshot format changes must stay readable by the structured codec
    - Store layout changes go through store/migrations.py
"""

from ._version import __version__

__all__ = ["__version__"]
