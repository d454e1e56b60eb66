"""
Snapshot validation run before any restore mutates the store.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..errors import ValidationError
from ..snapshot.models import BACKUP_VERSION, PLATFORM_CSV, Snapshot

logger = logging.getLogger(__name__)


def validate_snapshot(
    payload: Snapshot | Mapping[str, Any],
    supported_version: int = BACKUP_VERSION,
) -> Snapshot:
    """Check that a snapshot can be restored by this engine.

    Args:
        payload: Snapshot, or a decoded payload mapping
        supported_version: Highest snapshot version accepted

    Returns:
        The validated Snapshot

    Raises:
        ValidationError: If the payload is malformed or its version is newer
            than supported_version
    """
    if isinstance(payload, Snapshot):
        snapshot = payload
        if snapshot.version < 1:
            raise ValidationError(
                f"Invalid backup format: version must be a positive integer, got {snapshot.version}",
                field_name="version",
            )
    else:
        snapshot = Snapshot.from_payload(dict(payload) if isinstance(payload, Mapping) else payload)

    if snapshot.platform == PLATFORM_CSV:
        # The CSV version is read from a comment line users can edit
        logger.warning(
            f"Snapshot version {snapshot.version} was read from an editable CSV header",
            extra={"version": snapshot.version, "supported_version": supported_version},
        )

    if snapshot.version > supported_version:
        raise ValidationError(
            f"Backup version {snapshot.version} is newer than supported version "
            f"{supported_version}. Please update the app.",
            field_name="version",
        )

    return snapshot
