"""
Progress reporting for imports and restores.

Progress is delivered to one callback passed into the call that does the
work; there is no process-wide event bus. Each step is announced once as
in_progress and once as completed, in RestoreStep order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class RestoreStep(str, Enum):
    FORMAT = "format"
    IMPORT = "import"
    RESTORE = "restore"
    CLEAR = "clear"
    ACCOUNTS = "accounts"
    CATEGORIES = "categories"
    OPERATIONS = "operations"
    BALANCE_HISTORY = "balance_history"
    BUDGETS = "budgets"
    METADATA = "metadata"
    UPGRADES = "upgrades"
    COMPLETE = "complete"


class StepStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass
class ProgressEvent:
    """A single progress notification.

    Attributes:
        step: Step being reported
        status: in_progress or completed
        data: Optional step details (e.g. {"count": 12})
    """

    step: RestoreStep
    status: StepStatus
    data: dict[str, Any] = field(default_factory=dict)


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressReporter:
    """Delivers progress events to an optional callback.

    A callback that raises is logged and otherwise ignored; progress display
    must never abort a restore.
    """

    def __init__(self, callback: ProgressCallback | None = None) -> None:
        self._callback = callback

    def emit(self, step: RestoreStep, status: StepStatus, **data: Any) -> None:
        if self._callback is None:
            return

        event = ProgressEvent(step=step, status=status, data=data)
        try:
            self._callback(event)
        except Exception:
            logger.exception(f"Progress listener failed on {step.value} {status.value}")

    def start(self, step: RestoreStep, **data: Any) -> None:
        self.emit(step, StepStatus.IN_PROGRESS, **data)

    def complete(self, step: RestoreStep, **data: Any) -> None:
        self.emit(step, StepStatus.COMPLETED, **data)


def as_reporter(progress: ProgressReporter | ProgressCallback | None) -> ProgressReporter:
    """Accept either a reporter or a bare callback."""
    if isinstance(progress, ProgressReporter):
        return progress
    return ProgressReporter(progress)
