"""
Restore module for the Monkeep backup engine.

Validates snapshots and applies them to an entity store atomically, with
per-call progress reporting.
"""

from .orchestrator import RestoreOrchestrator, RestoreResult, numeric_id
from .progress import (
    ProgressCallback,
    ProgressEvent,
    ProgressReporter,
    RestoreStep,
    StepStatus,
)
from .upgrades import SHADOW_CATEGORIES, SHADOW_CATEGORY_IDS, ensure_shadow_categories
from .validation import validate_snapshot

__all__ = [
    "SHADOW_CATEGORIES",
    "SHADOW_CATEGORY_IDS",
    "ProgressCallback",
    "ProgressEvent",
    "ProgressReporter",
    "RestoreOrchestrator",
    "RestoreResult",
    "RestoreStep",
    "StepStatus",
    "ensure_shadow_categories",
    "numeric_id",
    "validate_snapshot",
]
