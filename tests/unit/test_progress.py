"""
Unit tests for progress reporting.
"""

import logging

from monkeep.backup_engine.restore.progress import (
    ProgressEvent,
    ProgressReporter,
    RestoreStep,
    StepStatus,
    as_reporter,
)


class TestProgressReporter:
    """Tests for ProgressReporter."""

    def test_events_delivered_in_order(self):
        """start/complete deliver in_progress then completed."""
        events = []
        reporter = ProgressReporter(events.append)

        reporter.start(RestoreStep.ACCOUNTS, count=3)
        reporter.complete(RestoreStep.ACCOUNTS, count=2)

        assert events == [
            ProgressEvent(RestoreStep.ACCOUNTS, StepStatus.IN_PROGRESS, {"count": 3}),
            ProgressEvent(RestoreStep.ACCOUNTS, StepStatus.COMPLETED, {"count": 2}),
        ]

    def test_no_callback_is_noop(self):
        """A reporter without a callback accepts events silently."""
        reporter = ProgressReporter()

        reporter.start(RestoreStep.CLEAR)
        reporter.complete(RestoreStep.CLEAR)

    def test_failing_listener_is_logged(self, caplog):
        """A raising callback does not propagate."""

        def listener(event):
            raise RuntimeError("display gone")

        reporter = ProgressReporter(listener)

        with caplog.at_level(logging.ERROR):
            reporter.start(RestoreStep.BUDGETS)

        assert "Progress listener failed on budgets in_progress" in caplog.text

    def test_step_values_match_wire_names(self):
        """Step values are the names the UI expects, in order."""
        assert [step.value for step in RestoreStep] == [
            "format",
            "import",
            "restore",
            "clear",
            "accounts",
            "categories",
            "operations",
            "balance_history",
            "budgets",
            "metadata",
            "upgrades",
            "complete",
        ]

    def test_as_reporter(self):
        """Callbacks are wrapped, reporters passed through."""
        reporter = ProgressReporter()

        assert as_reporter(reporter) is reporter
        assert isinstance(as_reporter(print), ProgressReporter)
        assert isinstance(as_reporter(None), ProgressReporter)
