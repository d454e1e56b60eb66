"""
Backup CLI tool for Monkeep.

Commands:
- export: Write a backup of the local store (json, csv or sqlite)
- import: Restore the local store from a backup file
- info: Summarize a backup file without restoring it
- list: Show scheduled daily/weekly backups
- run: Run the retention scheduler once

Usage:
    monkeep-backup export --format csv
    monkeep-backup import money_tracker_backup_2024-01-02T03-04-05.json
    monkeep-backup --data-dir ./data list --cadence weekly

Invariants:
    - Exit code 0 on success, 1 on any backup error
    - Import progress is printed one line per completed step
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from pathlib import Path

from ..config import EngineConfig
from ..codecs import FORMATS
from ..errors import BackupError
from ..main import create_scheduler, open_store
from ..restore.progress import ProgressEvent, StepStatus
from ..service import BackupService

logger = logging.getLogger(__name__)


class BackupCLI:
    """CLI commands over the local store.

    Example:
        >>> cli = BackupCLI(config)
        >>> await cli.export("json")
        0
    """

    def __init__(self, config: EngineConfig) -> None:
        self.config = config
        self.store = open_store(config)
        self.service = BackupService(
            self.store,
            export_dir=config.export_dir,
            app_name=config.backup.app_name,
        )

    async def export(self, fmt: str, output_dir: str | None = None) -> int:
        await self.store.initialize()
        if output_dir:
            self.service.export_dir = Path(output_dir)

        path = await self.service.export_backup(fmt)
        print(f"Backup exported to {path}")
        return 0

    async def import_file(self, file: str) -> int:
        await self.store.initialize()
        result = await self.service.import_backup(Path(file), progress=_print_progress)

        print("Restore completed successfully")
        for table, count in result.restored.items():
            skipped = result.skipped.get(table, 0)
            suffix = f" ({skipped} skipped)" if skipped else ""
            print(f"  {table}: {count}{suffix}")
        print(f"  Duration: {result.duration_ms}ms")
        return 0

    async def info(self, file: str) -> int:
        info = await self.service.inspect_backup(Path(file))
        if info is None:
            print(f"{file} is not a valid backup")
            return 1

        print(f"Version: {info.version}")
        print(f"Timestamp: {info.timestamp}")
        print(f"Platform: {info.platform}")
        print(f"Accounts: {info.accounts_count}")
        print(f"Categories: {info.categories_count}")
        print(f"Operations: {info.operations_count}")
        return 0

    def list_backups(self, cadence: str) -> int:
        scheduler = create_scheduler(self.config, self.store)
        if cadence == "daily":
            backups = scheduler.get_daily_backups()
        elif cadence == "weekly":
            backups = scheduler.get_weekly_backups()
        else:
            backups = scheduler.get_stored_backups()

        if not backups:
            print("No scheduled backups found")
        for path in backups:
            print(path.name)
        return 0

    async def run_scheduler(self) -> int:
        await self.store.initialize()
        wrote = await create_scheduler(self.config, self.store).run_if_needed()
        print("Scheduled backup written" if wrote else "No scheduled backup written")
        return 0


def _print_progress(event: ProgressEvent) -> None:
    if event.status == StepStatus.COMPLETED:
        print(f"  [{event.step.value}] done")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Monkeep backup and restore tool")
    parser.add_argument("--data-dir", help="Directory holding the database (default: $DATA_DIR)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # export command
    export_parser = subparsers.add_parser("export", help="Export a backup file")
    export_parser.add_argument("--format", "-f", choices=FORMATS, default="json", help="Format")
    export_parser.add_argument("--output-dir", "-o", help="Directory for the backup file")

    # import command
    import_parser = subparsers.add_parser("import", help="Restore from a backup file")
    import_parser.add_argument("file", help="Backup file (.json, .csv or .db)")

    # info command
    info_parser = subparsers.add_parser("info", help="Summarize a backup file")
    info_parser.add_argument("file", help="Backup file (.json, .csv or .db)")

    # list command
    list_parser = subparsers.add_parser("list", help="List scheduled backups")
    list_parser.add_argument(
        "--cadence", choices=["daily", "weekly", "all"], default="all", help="Cadence"
    )

    # run command
    subparsers.add_parser("run", help="Run the retention scheduler once")

    return parser


def run(argv: list[str] | None = None) -> int:
    """Parse arguments and execute one command.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        config = EngineConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.data_dir:
        config = dataclasses.replace(
            config,
            storage=dataclasses.replace(config.storage, data_dir=args.data_dir),
        )

    cli = BackupCLI(config)
    try:
        if args.command == "export":
            return asyncio.run(cli.export(args.format, args.output_dir))
        elif args.command == "import":
            return asyncio.run(cli.import_file(args.file))
        elif args.command == "info":
            return asyncio.run(cli.info(args.file))
        elif args.command == "list":
            return cli.list_backups(args.cadence)
        else:
            return asyncio.run(cli.run_scheduler())
    except BackupError as e:
        print(f"{args.command.capitalize()} failed: {e.message}", file=sys.stderr)
        return 1


def main() -> None:
    """CLI entry point for the backup tool."""
    sys.exit(run())


if __name__ == "__main__":
    main()
