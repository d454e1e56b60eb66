"""
Structured (JSON) backup codec.

The structured form is the snapshot payload serialized as one JSON object.
User exports are pretty-printed; scheduled backups are written compact.

Invariants:
    - decode(encode(s)) == s for every valid snapshot s
    - Fields absent from a record stay absent in the output
"""

from __future__ import annotations

import json

from ..errors import CodecError
from ..snapshot.models import Snapshot
from .base import TextCodec


class StructuredCodec(TextCodec):
    """JSON codec.

    Args:
        indent: JSON indentation; None writes the compact form
    """

    format_name = "json"
    extension = "json"

    def __init__(self, indent: int | None = 2) -> None:
        self.indent = indent

    def encode(self, snapshot: Snapshot) -> str:
        return json.dumps(snapshot.to_payload(), indent=self.indent, ensure_ascii=False)

    def decode(self, text: str) -> Snapshot:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise CodecError(
                f"Backup file is not valid JSON: {e.msg}",
                fmt=self.format_name,
                line=e.lineno,
            ) from e

        return Snapshot.from_payload(payload)
