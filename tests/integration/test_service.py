"""
Integration tests for the backup service.

Tests cover:
- Export file naming
- Export and import in every format
- Share targets
- Backup summaries
- Import progress and failure handling
"""

import json

import pytest

from monkeep.backup_engine.errors import CodecError, TransportError
from monkeep.backup_engine.restore import RestoreOrchestrator, RestoreStep, StepStatus
from monkeep.backup_engine.restore.upgrades import SHADOW_CATEGORY_IDS
from monkeep.backup_engine.service import BackupService, get_backup_info
from monkeep.backup_engine.store import ACCOUNTS, CATEGORIES, OPERATIONS
from monkeep.backup_engine.store.sqlite_store import SqliteEntityStore


class TestBackupService:
    """Integration tests for BackupService."""

    @pytest.fixture
    def service(self, store, data_dir, clock):
        return BackupService(store, export_dir=data_dir / "exports", clock=clock)

    @pytest.fixture
    def target(self, data_dir, clock):
        """Service over a second, empty database."""
        fresh = SqliteEntityStore(data_dir / "fresh.db", wal_mode=False)
        return BackupService(fresh, export_dir=data_dir / "fresh_exports", clock=clock)

    @staticmethod
    async def load(service, payload):
        await service.store.initialize()
        await RestoreOrchestrator(service.store).restore(payload)

    def test_export_filename(self, service):
        assert service.export_filename("json") == "money_tracker_backup_2024-03-18T09-30-00.json"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fmt, extension", [("json", "json"), ("csv", "csv"), ("sqlite", "db")])
    async def test_export_then_import(self, service, target, sample_payload, fmt, extension):
        """Every format carries the dataset into an empty store."""
        await self.load(service, sample_payload)
        await target.store.initialize()

        path = await service.export_backup(fmt)
        result = await target.import_backup(path)

        assert path.name == f"money_tracker_backup_2024-03-18T09-30-00.{extension}"
        assert result.restored[ACCOUNTS] == 2
        # Three user categories plus the two shadow categories of the source
        assert result.restored[CATEGORIES] == 3 + len(SHADOW_CATEGORY_IDS)
        assert result.restored[OPERATIONS] == 3
        accounts = await target.store.read_table(ACCOUNTS)
        assert [(a["id"], a["name"]) for a in accounts] == [(1, "Checking"), (2, "Savings")]
        operations = await target.store.read_table(OPERATIONS)
        assert operations[2]["to_account_id"] == 2
        assert operations[2]["exchange_rate"] == "0.92"

    @pytest.mark.asyncio
    async def test_json_export_content(self, service, sample_payload):
        await self.load(service, sample_payload)

        path = await service.export_backup("json")

        payload = json.loads(path.read_text())
        assert payload["version"] == 1
        assert payload["timestamp"] == "2024-03-18T09:30:00+00:00"
        assert payload["platform"] == "native"
        assert len(payload["data"]["balance_history"]) == 2

    @pytest.mark.asyncio
    async def test_share_receives_exported_path(self, service, sample_payload):
        await self.load(service, sample_payload)
        shared = []

        async def share(path):
            shared.append(path)

        path = await service.export_backup("csv", share=share)

        assert shared == [path]

    @pytest.mark.asyncio
    async def test_share_failure_raises_transport_error(self, service, sample_payload):
        """The file is still written when the share target fails."""
        await self.load(service, sample_payload)

        async def share(path):
            raise ConnectionError("share sheet dismissed")

        with pytest.raises(TransportError, match="share sheet dismissed") as exc_info:
            await service.export_backup("json", share=share)

        assert exc_info.value.code == "TRANSPORT_ERROR"
        assert len(list(service.export_dir.iterdir())) == 1

    @pytest.mark.asyncio
    async def test_unknown_format_rejected(self, service):
        await service.store.initialize()

        with pytest.raises(ValueError, match="Unknown backup format"):
            await service.export_backup("xml")

    def test_backup_info(self, sample_payload):
        info = get_backup_info(sample_payload)

        assert info.version == 1
        assert info.timestamp == "2024-03-18T09:30:00+00:00"
        assert info.platform == "native"
        assert info.accounts_count == 2
        assert info.categories_count == 3
        assert info.operations_count == 3

    def test_backup_info_invalid(self, sample_payload):
        del sample_payload["data"]["operations"]

        assert get_backup_info(sample_payload) is None
        assert get_backup_info({"version": 2, "timestamp": "x", "data": {}}) is None

    @pytest.mark.asyncio
    async def test_inspect_backup(self, service, data_dir, sample_payload):
        await self.load(service, sample_payload)
        path = await service.export_backup("csv")
        garbage = data_dir / "garbage.json"
        garbage.write_text("not json at all")

        info = await service.inspect_backup(path)

        assert info.platform == "csv"
        assert info.accounts_count == 2
        assert await service.inspect_backup(garbage) is None

    @pytest.mark.asyncio
    async def test_import_progress_order(self, service, target, sample_payload):
        """An import reports every step, in order, as in_progress then completed."""
        await self.load(service, sample_payload)
        await target.store.initialize()
        path = await service.export_backup("json")
        events = []

        await target.import_backup(path, progress=events.append)

        assert [(e.step, e.status) for e in events] == [
            (step, status)
            for step in RestoreStep
            for status in (StepStatus.IN_PROGRESS, StepStatus.COMPLETED)
        ]
        assert events[1].data == {"format": "json"}
        assert events[3].data["accounts"] == 2

    @pytest.mark.asyncio
    async def test_invalid_file_leaves_store_unchanged(self, service, data_dir, sample_payload):
        """A file that cannot be decoded never reaches the store."""
        await self.load(service, sample_payload)
        before = await service.store.read_table(ACCOUNTS)
        path = data_dir / "broken.json"
        path.write_text('{"version": 1, "timestamp": ')
        events = []

        with pytest.raises(CodecError):
            await service.import_backup(path, progress=events.append)

        assert await service.store.read_table(ACCOUNTS) == before
        assert RestoreStep.CLEAR not in [e.step for e in events]

    @pytest.mark.asyncio
    async def test_unknown_extension_read_as_json(self, target, data_dir, sample_payload):
        await target.store.initialize()
        path = data_dir / "backup.bak"
        path.write_text(json.dumps(sample_payload))

        result = await target.import_backup(path)

        assert result.restored[ACCOUNTS] == 2
