"""
Unit tests for snapshot and record models.

Tests cover:
- Absent vs null fields
- Unknown field preservation
- Structural validation of payloads
"""

import pytest

from monkeep.backup_engine.errors import ValidationError
from monkeep.backup_engine.snapshot.models import (
    RECORD_TYPES,
    Account,
    Operation,
    Snapshot,
)
from monkeep.backup_engine.store.base import ACCOUNTS, BALANCE_HISTORY


class TestRecords:
    """Tests for record models."""

    def test_absent_fields_stay_absent(self):
        """Only fields present in the input are dumped."""
        account = Account.model_validate({"id": 1, "name": "Cash", "monthly_target": None})

        assert account.to_row() == {"id": 1, "name": "Cash", "monthly_target": None}

    def test_unknown_fields_preserved(self):
        """Fields from newer releases survive as extras."""
        operation = Operation.model_validate({"id": 5, "type": "expense", "split_group": "g1"})

        assert operation.to_row()["split_group"] == "g1"

    def test_numeric_and_string_ids_keep_their_type(self):
        """Ids are not coerced between int and str."""
        assert Account.model_validate({"id": 7}).id == 7
        assert Account.model_validate({"id": "uuid-1"}).id == "uuid-1"
        assert Account.model_validate({"id": "12"}).id == "12"

    def test_numeric_text_fields_accepted(self):
        """Numbers in text fields are read as their string form."""
        account = Account.model_validate({"id": 1, "name": 123, "currency": 978})
        operation = Operation.model_validate({"type": "expense", "description": 42.5})

        assert account.name == "123"
        assert account.currency == "978"
        assert operation.description == "42.5"

    def test_numeric_account_name_in_payload(self, sample_payload):
        sample_payload["data"]["accounts"][0]["name"] = 123

        snapshot = Snapshot.from_payload(sample_payload)

        assert snapshot.data.accounts[0].name == "123"
        assert snapshot.data.accounts[0].id == 1

    def test_records_are_tagged_with_their_table(self):
        """Each record type names its store table."""
        assert RECORD_TYPES["accounts"].table == ACCOUNTS
        assert RECORD_TYPES["balance_history"].table == BALANCE_HISTORY


class TestSnapshotFromPayload:
    """Tests for Snapshot.from_payload."""

    def test_valid_payload(self, sample_payload):
        """A well-formed payload builds a snapshot."""
        snapshot = Snapshot.from_payload(sample_payload)

        assert snapshot.version == 1
        assert snapshot.data.counts() == {
            "accounts": 2,
            "categories": 3,
            "operations": 3,
            "budgets": 1,
            "app_metadata": 2,
            "balance_history": 2,
        }

    def test_optional_sections_may_be_absent(self, sample_payload):
        """Budgets, metadata and balance history are optional."""
        for name in ("budgets", "app_metadata", "balance_history"):
            del sample_payload["data"][name]

        snapshot = Snapshot.from_payload(sample_payload)

        assert snapshot.data.budgets == []
        assert "budgets" not in snapshot.to_payload()["data"]

    def test_payload_round_trip(self, sample_payload):
        """to_payload returns exactly what was read."""
        assert Snapshot.from_payload(sample_payload).to_payload() == sample_payload

    @pytest.mark.parametrize(
        "mutate, field_name",
        [
            (lambda p: p.pop("version"), "version"),
            (lambda p: p.update(version="1"), "version"),
            (lambda p: p.update(version=True), "version"),
            (lambda p: p.update(version=0), "version"),
            (lambda p: p.pop("data"), "data"),
            (lambda p: p["data"].pop("accounts"), "data.accounts"),
            (lambda p: p["data"].update(operations=None), "data.operations"),
            (lambda p: p["data"].update(budgets={}), "data.budgets"),
            (lambda p: p["data"]["accounts"].append("not a record"), "data.accounts"),
        ],
    )
    def test_malformed_payload_rejected(self, sample_payload, mutate, field_name):
        """Structural problems raise ValidationError naming the field."""
        mutate(sample_payload)

        with pytest.raises(ValidationError) as exc_info:
            Snapshot.from_payload(sample_payload)

        assert exc_info.value.field_name == field_name
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_non_object_rejected(self):
        """A payload must be an object."""
        with pytest.raises(ValidationError):
            Snapshot.from_payload([1, 2, 3])

    def test_nested_values_rejected(self, sample_payload):
        """Records must be flat."""
        sample_payload["data"]["accounts"][0]["tags"] = ["a", "b"]

        with pytest.raises(ValidationError, match="scalar"):
            Snapshot.from_payload(sample_payload)

    def test_wrong_field_type_rejected(self, sample_payload):
        """Type errors from the record models surface as ValidationError."""
        sample_payload["data"]["accounts"][0]["display_order"] = "first"

        with pytest.raises(ValidationError) as exc_info:
            Snapshot.from_payload(sample_payload)

        assert any("display_order" in error for error in exc_info.value.errors)
