"""Restore tool invocation builder.

Produces the argv and environment for one restore run.  The connection
URL on the command line never carries the password; it is handed over
through ``PGPASSWORD`` instead.

Usage:
    from db_restore.restore.command import build_restore_command, build_restore_env

    argv = build_restore_command("dump.backup", config, settings)
    env = build_restore_env(config)
"""

import os
from pathlib import Path

from db_restore.jobs.models import OptimizationSettings, TargetConfig

DEFAULT_RESTORE_BINARY = "pg_restore"

# Degree of parallelism when batching is on; kept low to bound resource use
BATCH_JOBS = 2


def build_restore_command(
    file_path: str | Path,
    config: TargetConfig,
    optimization: OptimizationSettings,
    binary: str = DEFAULT_RESTORE_BINARY,
) -> list[str]:
    """Build the restore tool argv.

    Args:
        file_path: Dump file to restore.
        config: Target database connection parameters.
        optimization: Caller-selected tuning.
        binary: Restore executable name or path.

    Returns:
        Argument vector, executable first.

    Example:
        >>> build_restore_command("d.backup", config, OptimizationSettings(batching=True))
        ['pg_restore', '-d', 'postgresql://app@localhost:5432/app', '--no-owner',
         '--no-privileges', '--single-transaction', '--jobs', '2', '--verbose', 'd.backup']
    """
    args = [binary, "-d", config.url()]

    # Dump is assumed to be compressed upstream
    if optimization.compression:
        args.append("--no-compression")

    if optimization.selective_restore:
        for schema in optimization.exclude_schemas:
            args.extend(["--exclude-schema", schema])

    args.extend(["--no-owner", "--no-privileges", "--single-transaction"])

    if optimization.batching:
        args.extend(["--jobs", str(BATCH_JOBS)])

    args.append("--verbose")
    args.append(str(file_path))
    return args


def build_restore_env(config: TargetConfig) -> dict[str, str]:
    """Process environment for the restore tool, with ``PGPASSWORD`` set."""
    env = dict(os.environ)
    password = config.password.get_secret_value()
    if password:
        env["PGPASSWORD"] = password
    return env
