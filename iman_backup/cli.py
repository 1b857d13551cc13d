"""Command-line entry point: one invocation runs one operation."""

import argparse
import asyncio
from datetime import date
from typing import List, Optional

from pydantic import ValidationError

from ._utils import logger, setup_logging
from .backup.manager import BackupManager
from .exceptions import IManBackupError
from .settings import Settings


COMMANDS = {
    "backup": "Export the users table to latest.json and the dated snapshot",
    "restore": "Upsert every record of a snapshot back into the users table",
    "verify": "Check every live record for a numeric totalPoints",
    "registry": "Rebuild registry.json from the live users table",
    "auto": "Backup, then verify (scheduled mode)",
    "list": "List dated snapshots, newest first",
    "check": "Check the live store, backup location and backup age",
}


def _parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="iman-backup", description="IMAN App user data backup tool")
    parser.add_argument(
        "--env",
        help="Environment file to load instead of .env",
        default=None
    )
    parser.add_argument(
        "--log-level",
        help="Override IMAN_BACKUP_LOG_LEVEL (DEBUG, INFO, WARNING, ...)",
        default=None
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, help_text in COMMANDS.items():
        sub = subparsers.add_parser(name, help=help_text)
        if name == "restore":
            sub.add_argument(
                "--date",
                type=_parse_day,
                default=None,
                help="Restore backup-YYYY-MM-DD.json instead of latest.json"
            )
    return parser


async def run_command(manager: BackupManager, args: argparse.Namespace) -> int:
    """Run the selected operation and log a summary. Returns the exit code."""
    command = args.command

    if command == "backup":
        await manager.create_backup()

    elif command == "restore":
        result = await manager.restore_backup(args.date)
        if result.found:
            logger.info(f"Restored {result.restored_count} users from {result.source}, {result.error_count} errors")

    elif command == "verify":
        await manager.verify()

    elif command == "registry":
        registry = await manager.rebuild_registry()
        logger.info(f"Registry holds {registry.total_users} users ({registry.skipped} skipped)")

    elif command == "auto":
        metadata, report = await manager.auto()
        logger.info(
            f"Auto run complete: {metadata.total_users} users backed up, "
            f"{report.invalid_count} invalid records"
        )

    elif command == "list":
        backups = await manager.list_backups()
        if not backups:
            logger.info("No backups found")
        for backup in backups:
            logger.info(f"{backup.name}: {backup.total_users} users, {backup.size_bytes:,} bytes, {backup.checksum}")

    elif command == "check":
        report = await manager.check_health()
        for key, value in report.details.items():
            logger.info(f"{key}: {value}")
        logger.info(f"Latest backup: {report.latest_backup_at or 'none'}")
        for warning in report.warnings:
            logger.warning(warning)
        for issue in report.issues:
            logger.error(issue)
        return 0 if report.ok else 1

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings(_env_file=args.env) if args.env else Settings()
        setup_logging(args.log_level or settings.iman_backup_log_level)
        config = settings.to_backup_config()
    except (ValidationError, ValueError) as e:
        setup_logging(args.log_level)
        logger.error(f"Invalid configuration: {e}")
        return 1

    logger.debug(f"Configuration: {config.to_dict()}")

    try:
        manager = BackupManager(config)
        return asyncio.run(run_command(manager, args))
    except IManBackupError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    except Exception as e:
        logger.exception(f"{args.command} failed with an unexpected error: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
