"""
Snapshot and entity record models.

A Snapshot is a versioned, timestamped capture of the six financial tables.
Every table row is carried as an explicit record model whose fields are all
optional: a field absent from the source stays absent when the snapshot is
encoded again (model_dump(exclude_unset=True)), which keeps "missing" and
"present but null" apart. Keys the models do not declare are kept as extras
so files written by newer releases survive a round trip.

Payload layout:
    {
        "version": 1,
        "timestamp": "2024-01-02T03:04:05.678000+00:00",
        "platform": "native" | "csv" | "sqlite",
        "data": {
            "accounts": [...], "categories": [...], "operations": [...],
            "budgets": [...], "app_metadata": [...], "balance_history": [...]
        }
    }

Invariants:
    - Records are flat: every value is a string, number, boolean or null
    - accounts, categories and operations are always present in data
    - from_payload() raises ValidationError, never pydantic's own error

How to change safely:
    - Adding a record field is safe; it was already preserved as an extra
    - Bump BACKUP_VERSION only for changes old readers cannot ignore
"""

from __future__ import annotations

from typing import Any, ClassVar, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..store.base import (
    ACCOUNTS,
    APP_METADATA,
    BALANCE_HISTORY,
    BUDGETS,
    CATEGORIES,
    OPERATIONS,
)

# Highest snapshot version this engine can read and the one it writes
BACKUP_VERSION = 1

PLATFORM_NATIVE = "native"
PLATFORM_CSV = "csv"
PLATFORM_SQLITE = "sqlite"

Scalar = Union[bool, int, float, str, None]
Id = Union[int, str, None]
Amount = Union[str, int, float, None]
Flag = Union[bool, int, None]

REQUIRED_SECTIONS = ("accounts", "categories", "operations")
OPTIONAL_SECTIONS = ("budgets", "app_metadata", "balance_history")
SECTIONS = REQUIRED_SECTIONS + OPTIONAL_SECTIONS


def is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (bool, int, float, str))


class Record(BaseModel):
    """Base for flat table records.

    Subclasses set `table` to the store table the record belongs to.
    """

    # Text columns accept numbers: records are flat string/number/null values
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    table: ClassVar[str]

    @model_validator(mode="after")
    def _extras_are_scalars(self) -> Record:
        for key, value in (self.model_extra or {}).items():
            if not is_scalar(value):
                raise ValueError(f"field '{key}' must be a scalar, got {type(value).__name__}")
        return self

    def to_row(self) -> dict[str, Any]:
        """Fields that were actually set, extras included."""
        return self.model_dump(exclude_unset=True)


class Account(Record):
    table: ClassVar[str] = ACCOUNTS

    id: Id = None
    name: str | None = None
    balance: Amount = None
    currency: str | None = None
    display_order: int | None = None
    hidden: Flag = None
    monthly_target: Amount = None
    created_at: str | None = None
    updated_at: str | None = None


class Category(Record):
    table: ClassVar[str] = CATEGORIES

    id: Id = None
    name: str | None = None
    type: str | None = None
    category_type: str | None = None
    parent_id: Id = None
    icon: str | None = None
    color: str | None = None
    is_shadow: Flag = None
    exclude_from_forecast: Flag = None
    created_at: str | None = None
    updated_at: str | None = None


class Operation(Record):
    table: ClassVar[str] = OPERATIONS

    id: Id = None
    type: str | None = None
    amount: Amount = None
    account_id: Id = None
    category_id: Id = None
    to_account_id: Id = None
    date: str | None = None
    created_at: str | None = None
    description: str | None = None
    exchange_rate: Amount = None
    destination_amount: Amount = None
    source_currency: str | None = None
    destination_currency: str | None = None


class Budget(Record):
    table: ClassVar[str] = BUDGETS

    id: Id = None
    category_id: Id = None
    amount: Amount = None
    currency: str | None = None
    period_type: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    is_recurring: Flag = None
    rollover_enabled: Flag = None
    created_at: str | None = None
    updated_at: str | None = None


class AppMetadataEntry(Record):
    table: ClassVar[str] = APP_METADATA

    key: str | None = None
    value: Scalar = None
    updated_at: str | None = None


class BalanceHistoryEntry(Record):
    table: ClassVar[str] = BALANCE_HISTORY

    id: Id = None
    account_id: Id = None
    date: str | None = None
    balance: Amount = None
    created_at: str | None = None


# Snapshot section name -> record model
RECORD_TYPES: dict[str, type[Record]] = {
    "accounts": Account,
    "categories": Category,
    "operations": Operation,
    "budgets": Budget,
    "app_metadata": AppMetadataEntry,
    "balance_history": BalanceHistoryEntry,
}


class SnapshotData(BaseModel):
    """The six table sequences of a snapshot."""

    accounts: list[Account]
    categories: list[Category]
    operations: list[Operation]
    budgets: list[Budget] = Field(default_factory=list)
    app_metadata: list[AppMetadataEntry] = Field(default_factory=list)
    balance_history: list[BalanceHistoryEntry] = Field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {name: len(getattr(self, name)) for name in SECTIONS}


class Snapshot(BaseModel):
    """A versioned, timestamped capture of the whole financial dataset."""

    version: int
    timestamp: str
    platform: str = PLATFORM_NATIVE
    data: SnapshotData

    def to_payload(self) -> dict[str, Any]:
        """Plain-dict form used by the encoders."""
        return self.model_dump(exclude_unset=True)

    @classmethod
    def from_payload(cls, payload: Any) -> Snapshot:
        """Build a Snapshot from a decoded payload.

        Checks structure only; whether the version is supported is decided
        by the restore validation step.

        Args:
            payload: Decoded mapping (e.g. parsed JSON)

        Returns:
            Validated Snapshot

        Raises:
            ValidationError: If the payload is not a well-formed snapshot
        """
        check_structure(payload)
        try:
            return cls.model_validate(payload)
        except PydanticValidationError as e:
            errors = [
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
            ]
            raise ValidationError(
                f"Invalid backup format: {errors[0]}",
                errors=errors,
            ) from e


def check_structure(payload: Any) -> None:
    """Reject payloads that are not shaped like a snapshot.

    Raises:
        ValidationError: Naming the first offending field
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid backup format: expected an object")

    if "version" not in payload:
        raise ValidationError("Invalid backup format: missing version", field_name="version")

    version = payload["version"]
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise ValidationError(
            f"Invalid backup format: version must be a positive integer, got {version!r}",
            field_name="version",
        )

    if not isinstance(payload.get("timestamp"), str):
        raise ValidationError("Invalid backup format: missing timestamp", field_name="timestamp")

    data = payload.get("data")
    if not isinstance(data, dict):
        raise ValidationError("Invalid backup format: missing data", field_name="data")

    for name in REQUIRED_SECTIONS:
        if not isinstance(data.get(name), list):
            raise ValidationError(
                f"Invalid backup format: data.{name} must be a list",
                field_name=f"data.{name}",
            )

    for name in OPTIONAL_SECTIONS:
        if name in data and not isinstance(data[name], list):
            raise ValidationError(
                f"Invalid backup format: data.{name} must be a list",
                field_name=f"data.{name}",
            )

    for name in SECTIONS:
        for index, record in enumerate(data.get(name) or ()):
            if not isinstance(record, dict):
                raise ValidationError(
                    f"Invalid backup format: data.{name}[{index}] must be an object",
                    field_name=f"data.{name}",
                )
            for key, value in record.items():
                if not is_scalar(value):
                    raise ValidationError(
                        f"Invalid backup format: data.{name}[{index}].{key} must be a scalar",
                        field_name=f"data.{name}",
                    )
