"""CLI for dump analysis, restoration and job inspection.

Usage:
    db-restore analyze dump.sql
    db-restore test-connection --profile staging
    db-restore restore dump.sql --profile staging --batching
    db-restore restore dump.sql --host db --database app --username app \\
        --selective --exclude-schema auth --exclude-schema storage
    db-restore jobs
    db-restore logs <job-id>
    db-restore verification <job-id>

Commands:
    analyze          - Summarize a dump file without touching a database
    test-connection  - Check that a target database answers
    restore          - Analyze, restore and verify a dump in the foreground
    jobs             - List jobs in the configured store
    logs             - Show a job's restoration log, newest first
    verification     - Show a job's per-table verification results

The target password is read from ``DB_RESTORE_PASSWORD`` (with the
``--env-prefix`` prefix) or from the selected profile.  ``jobs``, ``logs``
and ``verification`` read the job store at ``[pipeline] store_url``;
without one they see an empty in-memory store.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from db_restore.backup.analyzer import analyze_backup
from db_restore.backup.models import BackupInfo
from db_restore.config.loader import load_config
from db_restore.config.models import RestoreConfig
from db_restore.errors import AnalysisError, PipelineError
from db_restore.factory import build_service, resolve_profile
from db_restore.jobs.models import (
    JobStatus,
    LogLevel,
    OptimizationSettings,
    TargetConfig,
)
from db_restore.service import MigrationService

console = Console()

_STATUS_STYLES = {
    JobStatus.COMPLETED: "green",
    JobStatus.FAILED: "red",
}

_LEVEL_STYLES = {
    LogLevel.INFO: "dim",
    LogLevel.WARN: "yellow",
    LogLevel.ERROR: "red",
}


# ============================================================================
# Helpers
# ============================================================================


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load(args: argparse.Namespace) -> RestoreConfig:
    config_path = Path(args.config) if args.config else None
    return load_config(config_path, env_prefix=args.env_prefix)


def _target_from_args(args: argparse.Namespace, config: RestoreConfig) -> TargetConfig:
    """Build the target connection from ``--profile`` or explicit flags.

    Raises:
        ProfileNotFoundError: If ``--profile`` names an unknown profile.
        ValueError: If neither a profile nor host/database/username is given.
    """
    if args.profile:
        return resolve_profile(config, args.profile, env_prefix=args.env_prefix)

    if not (args.host and args.database and args.username):
        raise ValueError("Give --profile, or --host, --database and --username")

    return TargetConfig(
        host=args.host,
        port=args.port,
        database=args.database,
        username=args.username,
        password=os.environ.get(f"{args.env_prefix}DB_RESTORE_PASSWORD", ""),
    )


def _print_backup_info(info: BackupInfo) -> None:
    console.print(f"Version:           [bold]{info.version}[/bold]")
    console.print(f"File size:         {info.file_size} bytes")
    console.print(f"Estimated time:    {info.estimated_time}")
    console.print(f"Estimated storage: {info.estimated_storage}")
    console.print(f"Estimated memory:  {info.estimated_memory}")

    table = Table(title="Schemas", show_header=True, header_style="bold")
    table.add_column("Schema")
    table.add_column("Tables", justify="right")
    for schema in info.schemas:
        table.add_row(schema.name, str(schema.table_count))
    console.print(table)


def _status_text(status: JobStatus) -> str:
    style = _STATUS_STYLES.get(status, "cyan")
    return f"[{style}]{status.value}[/{style}]"


# ============================================================================
# Command implementations
# ============================================================================


def cmd_analyze(args: argparse.Namespace) -> int:
    """Analyze a dump file (local file read only)."""
    try:
        info = analyze_backup(args.file)
    except AnalysisError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1

    _print_backup_info(info)
    return 0


async def _async_test_connection(args: argparse.Namespace) -> int:
    config = _load(args)
    try:
        target = _target_from_args(args, config)
    except (PipelineError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    service = await build_service(config.pipeline)
    try:
        connected = await service.test_connection(target)
    finally:
        await service.close()

    if connected:
        console.print(
            f"[bold green]v[/bold green] Connected to "
            f"[bold cyan]{target.host}:{target.port}/{target.database}[/bold cyan]"
        )
        return 0
    console.print(
        f"[bold red]x[/bold red] Cannot connect to {target.host}:{target.port}/{target.database}"
    )
    return 1


def cmd_test_connection(args: argparse.Namespace) -> int:
    return asyncio.run(_async_test_connection(args))


async def _async_restore(args: argparse.Namespace) -> int:
    config = _load(args)
    try:
        target = _target_from_args(args, config)
    except (PipelineError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    optimization = OptimizationSettings(
        selective_restore=args.selective or bool(args.exclude_schema),
        compression=args.compression,
        batching=args.batching,
        exclude_schemas=args.exclude_schema or [],
        batch_size=args.batch_size,
    )

    service = await build_service(config.pipeline)
    try:
        job = await service.create_job(args.file)
        console.print(f"Job [bold]{job.id}[/bold]: {_status_text(job.status)}")
        if job.status == JobStatus.FAILED:
            console.print(f"[red]{job.error_message}[/red]")
            return 1
        if job.backup_info:
            _print_backup_info(job.backup_info)

        await service.start_restoration(job.id, target, optimization)
        with console.status("Restoring..."):
            await service.wait_for(job.id)

        job = await service.get_job(job.id)
        console.print(
            f"Job [bold]{job.id}[/bold]: {_status_text(job.status)} ({job.progress}%)"
        )
        if job.status == JobStatus.FAILED:
            console.print(f"[red]{job.error_message}[/red]")
            return 1

        _print_verification(await service.get_verification_results(job.id))
        return 0
    finally:
        await service.close()


def cmd_restore(args: argparse.Namespace) -> int:
    return asyncio.run(_async_restore(args))


async def _inspection_service(
    args: argparse.Namespace, config: RestoreConfig
) -> MigrationService:
    """Service for the read-only commands, warning when it cannot see past runs."""
    if config.pipeline.store_url is None:
        console.print(
            "[yellow]Warning: no store_url configured; the in-memory store holds "
            "no jobs from earlier runs. Set \\[pipeline] store_url or "
            f"{args.env_prefix}DB_RESTORE_STORE_URL.[/yellow]",
            highlight=False,
        )
    return await build_service(config.pipeline)


async def _async_jobs(args: argparse.Namespace) -> int:
    config = _load(args)
    service = await _inspection_service(args, config)
    try:
        jobs = await service.list_jobs()
    finally:
        await service.close()

    if not jobs:
        console.print("[dim]No jobs.[/dim]")
        return 0

    table = Table(title="Migration Jobs", show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("File")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Created")
    for job in jobs:
        table.add_row(
            job.id,
            job.filename,
            _status_text(job.status),
            f"{job.progress}%",
            job.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)
    return 0


def cmd_jobs(args: argparse.Namespace) -> int:
    return asyncio.run(_async_jobs(args))


async def _async_logs(args: argparse.Namespace) -> int:
    config = _load(args)
    service = await _inspection_service(args, config)
    try:
        entries = await service.get_logs(args.job_id)
    finally:
        await service.close()

    for entry in entries:
        style = _LEVEL_STYLES[entry.level]
        console.print(
            f"[dim]{entry.timestamp.isoformat()}[/dim] "
            f"[{style}]{entry.level.value:<5}[/{style}] {entry.message}",
            highlight=False,
        )
    return 0


def cmd_logs(args: argparse.Namespace) -> int:
    return asyncio.run(_async_logs(args))


def _print_verification(results: list) -> None:
    table = Table(title="Verification", show_header=True, header_style="bold")
    table.add_column("Schema", style="dim")
    table.add_column("Table")
    table.add_column("Rows", justify="right")
    table.add_column("Verified")
    for r in results:
        table.add_row(
            r.schema_name,
            r.table_name,
            str(r.actual_count),
            "[green]yes[/green]" if r.verified else "[red]no[/red]",
        )
    console.print(table)


async def _async_verification(args: argparse.Namespace) -> int:
    config = _load(args)
    service = await _inspection_service(args, config)
    try:
        results = await service.get_verification_results(args.job_id)
    finally:
        await service.close()

    _print_verification(results)
    return 0 if all(r.verified for r in results) else 1


def cmd_verification(args: argparse.Namespace) -> int:
    return asyncio.run(_async_verification(args))


# ============================================================================
# Main entry point
# ============================================================================


def _add_target_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--profile", "-p", help="Target profile from db-restore.toml")
    parser.add_argument("--host", help="Target host")
    parser.add_argument("--port", type=int, default=5432, help="Target port")
    parser.add_argument("--database", "-d", help="Target database name")
    parser.add_argument("--username", "-U", help="Target user")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="db-restore",
        description="Analyze, restore and verify PostgreSQL dump files",
    )
    parser.add_argument("--config", "-c", help="Path to db-restore.toml")
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_RESTORE_PASSWORD)"
        ),
    )
    parser.add_argument("--log-level", help="Override the configured log level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_analyze = subparsers.add_parser("analyze", help="Summarize a dump file")
    p_analyze.add_argument("file", help="Path to the dump file")
    p_analyze.set_defaults(func=cmd_analyze)

    p_test = subparsers.add_parser(
        "test-connection", help="Check that a target database answers"
    )
    _add_target_arguments(p_test)
    p_test.set_defaults(func=cmd_test_connection)

    p_restore = subparsers.add_parser(
        "restore", help="Analyze, restore and verify a dump"
    )
    p_restore.add_argument("file", help="Path to the dump file")
    _add_target_arguments(p_restore)
    p_restore.add_argument(
        "--selective", action="store_true", help="Enable selective restore"
    )
    p_restore.add_argument(
        "--exclude-schema",
        action="append",
        help="Schema to leave out (implies --selective; repeatable)",
    )
    p_restore.add_argument(
        "--compression",
        action="store_true",
        help="Dump is already compressed; disable extra compression",
    )
    p_restore.add_argument(
        "--batching", action="store_true", help="Restore with limited parallelism"
    )
    p_restore.add_argument("--batch-size", type=int, help="Requested batch size")
    p_restore.set_defaults(func=cmd_restore)

    p_jobs = subparsers.add_parser(
        "jobs", help="List jobs (reads past runs only with a store_url)"
    )
    p_jobs.set_defaults(func=cmd_jobs)

    p_logs = subparsers.add_parser(
        "logs", help="Show a job's restoration log (needs a store_url)"
    )
    p_logs.add_argument("job_id", help="Job ID")
    p_logs.set_defaults(func=cmd_logs)

    p_verify = subparsers.add_parser(
        "verification",
        help="Show a job's verification results (needs a store_url)",
    )
    p_verify.add_argument("job_id", help="Job ID")
    p_verify.set_defaults(func=cmd_verification)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)

    try:
        config = _load(args)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    _configure_logging(args.log_level or config.pipeline.log_level)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
