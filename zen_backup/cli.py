"""Command-line entry point: ``zen-backup <command>``."""

from __future__ import annotations

import argparse
import os
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from zen_backup.commands import (
    SCHEDULE_ACTIONS,
    CommandResult,
    run_backup,
    run_install,
    run_list,
    run_restore,
    run_schedule,
    run_status,
    run_uninstall,
)
from zen_backup.config import resolve_config_path
from zen_backup.context import RuntimeContext
from zen_backup.logger import close_line_sinks, setup_logger
from zen_backup.models.archive import ArchiveKind


def package_version() -> str:
    try:
        return version("zen-backup")
    except PackageNotFoundError:
        return "0.0.0+local"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zen-backup",
        description="Back up, restore and schedule snapshots of a Zen browser profile.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {package_version()}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output")
    parser.add_argument("--config", help="Settings file to use (overrides ZEN_BACKUP_CONFIG)")

    sub = parser.add_subparsers(dest="command", metavar="<command>", required=True)

    p = sub.add_parser("backup", help="Create a daily or weekly archive now")
    p.add_argument("kind", choices=[str(k) for k in ArchiveKind])

    p = sub.add_parser("restore", help="Replace the profile with an archive's contents")
    p.add_argument("archive", help="Archive path, or a filename under the backup directory")

    sub.add_parser("list", help="List archives by kind with sizes")
    sub.add_parser("status", help="Show settings, latest archives and scheduled jobs")
    sub.add_parser("install", help="Detect paths, write settings and schedule jobs")

    p = sub.add_parser("uninstall", help="Remove scheduled jobs and settings")
    p.add_argument("--purge-backups", action="store_true", help="Also delete the backup directory")

    p = sub.add_parser("schedule", help="Start, stop or inspect scheduled jobs")
    p.add_argument("action", choices=SCHEDULE_ACTIONS)

    return parser


def dispatch(args: argparse.Namespace, ctx: RuntimeContext) -> CommandResult:
    match args.command:
        case "backup":
            return run_backup(args.kind, ctx)
        case "restore":
            return run_restore(args.archive, ctx)
        case "list":
            return run_list(ctx)
        case "status":
            return run_status(ctx)
        case "install":
            return run_install(ctx)
        case "uninstall":
            purge = args.purge_backups or ctx.flag("ZEN_BACKUP_PURGE_BACKUPS")
            return run_uninstall(ctx, purge_backups=purge)
        case "schedule":
            return run_schedule(args.action, ctx)
    raise ValueError(f"unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    env = dict(os.environ)
    if args.config:
        env["ZEN_BACKUP_CONFIG"] = str(Path(args.config).expanduser().resolve())
    ctx = RuntimeContext.from_environment(env)

    log_dir = resolve_config_path(ctx).parent / "logs"
    setup_logger(log_dir if log_dir.parent.is_dir() else None, verbose=args.verbose)

    try:
        result = dispatch(args, ctx)
    finally:
        close_line_sinks()

    for line in result.stdout:
        print(line)
    for line in result.stderr:
        print(line, file=sys.stderr)
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
