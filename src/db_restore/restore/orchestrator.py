"""Restore orchestration: drive the external restore tool for one job.

``RestoreOrchestrator.restore()`` moves the job to ``restoring``, runs
the restore tool as a child process, streams its output into the job's
log, nudges progress on marker lines, and on a zero exit code hands the
job to verification.  The exit code alone decides success.

``RestoreOrchestrator.test_connection()`` is a standalone pre-flight
check with no job involvement.

Usage:
    from db_restore.restore.orchestrator import RestoreOrchestrator

    orchestrator = RestoreOrchestrator(store)
    if await orchestrator.test_connection(config):
        result = await orchestrator.restore(job.id, job.file_path, config, settings)
"""

import asyncio
import logging
from collections.abc import Callable
from functools import partial
from pathlib import Path

from db_restore.errors import RestoreProcessError
from db_restore.jobs.models import (
    RESTORE_COMPLETE_PROGRESS,
    RESTORE_START_PROGRESS,
    JobStatus,
    LogLevel,
    OptimizationSettings,
    TargetConfig,
)
from db_restore.jobs.results import Phase, PhaseResult
from db_restore.jobs.store import JobStore
from db_restore.restore.command import (
    DEFAULT_RESTORE_BINARY,
    build_restore_command,
    build_restore_env,
)
from db_restore.restore.output import OutputEvent, RestoreOutputParser
from db_restore.schema.introspector import TargetIntrospector

logger = logging.getLogger(__name__)

# Reader buffer limit; longer output lines are logged truncated to this size
STREAM_LIMIT = 1024 * 1024

CommandBuilder = Callable[[Path, TargetConfig, OptimizationSettings], list[str]]


class RestoreOrchestrator:
    """Runs restores and connection checks against target databases.

    Args:
        store: Job store receiving status, progress and log writes.
        restore_binary: Restore executable used by the default command
            builder.
        command_builder: Optional replacement for ``build_restore_command``
            taking ``(file_path, config, optimization)``.
        connect_timeout: Seconds allowed for ``test_connection``.
        introspector_factory: Callable returning an async context manager
            with ``server_version()``; defaults to ``TargetIntrospector``.
    """

    def __init__(
        self,
        store: JobStore,
        restore_binary: str = DEFAULT_RESTORE_BINARY,
        command_builder: CommandBuilder | None = None,
        connect_timeout: int = 5,
        introspector_factory: Callable[..., TargetIntrospector] = TargetIntrospector,
    ) -> None:
        self._store = store
        self._command_builder: CommandBuilder = command_builder or partial(
            build_restore_command, binary=restore_binary
        )
        self._connect_timeout = connect_timeout
        self._introspector_factory = introspector_factory

    # ------------------------------------------------------------------
    # Connection Test
    # ------------------------------------------------------------------

    async def test_connection(self, config: TargetConfig) -> bool:
        """Run a minimal round-trip query against the target.

        Returns:
            ``True`` if the query succeeded, ``False`` on any failure
            (timeout, authentication, network).  Never raises.
        """
        try:
            async with self._introspector_factory(
                config, connect_timeout=self._connect_timeout
            ) as introspector:
                version = await introspector.server_version()
        except Exception as e:
            logger.warning(
                "Connection test failed for %s:%s/%s: %s",
                config.host,
                config.port,
                config.database,
                e,
            )
            return False

        logger.info("Connection test succeeded: %s", version)
        return True

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    async def restore(
        self,
        job_id: str,
        file_path: str | Path,
        config: TargetConfig,
        optimization: OptimizationSettings,
    ) -> PhaseResult:
        """Restore a dump into the target database for one job.

        The job may still be ``configuring`` or already claimed as
        ``restoring`` by ``MigrationService.start_restoration``; either
        way it is written as ``restoring`` with progress reset.

        Returns:
            ``PhaseResult`` for ``Phase.RESTORE``.  On failure the job is
            already ``failed`` and ``result.error`` is a
            ``RestoreProcessError``.
        """
        await self._store.update_job(
            job_id, status=JobStatus.RESTORING, progress=RESTORE_START_PROGRESS
        )
        await self._store.append_log(
            job_id, LogLevel.INFO, "Starting database restoration..."
        )

        argv = self._command_builder(Path(file_path), config, optimization)
        tool = Path(argv[0]).name
        await self._store.append_log(
            job_id, LogLevel.INFO, f"Executing: {tool} with optimizations"
        )
        logger.info("Job %s: running %s against %s", job_id, tool, config.url())

        try:
            await self._run(job_id, argv, build_restore_env(config))
        except RestoreProcessError as e:
            await self._store.fail_job(job_id, str(e))
            await self._store.append_log(
                job_id, LogLevel.ERROR, f"Restoration failed: {e}"
            )
            return PhaseResult.failure(Phase.RESTORE, e)

        await self._store.update_job(job_id, progress=RESTORE_COMPLETE_PROGRESS)
        await self._store.append_log(
            job_id, LogLevel.INFO, "Database restoration completed successfully"
        )
        # Handoff: the job leaves restoring before verification starts
        await self._store.update_job(job_id, status=JobStatus.VERIFYING)
        logger.info("Job %s: restore finished, handing off to verification", job_id)
        return PhaseResult.success(Phase.RESTORE)

    async def _run(self, job_id: str, argv: list[str], env: dict[str, str]) -> None:
        """Spawn the restore tool and wait for it, streaming its output.

        Raises:
            RestoreProcessError: If the process cannot start or exits
                with a nonzero code.
        """
        tool = Path(argv[0]).name
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            raise RestoreProcessError(f"Failed to start {tool}: {e}") from e

        parser = RestoreOutputParser()
        try:
            await asyncio.gather(
                self._consume(job_id, process.stdout, parser.parse_stdout),
                self._consume(job_id, process.stderr, parser.parse_stderr),
            )
            exit_code = await process.wait()
        finally:
            # Only reached with a live process if streaming raised
            if process.returncode is None:
                process.kill()
                await process.wait()

        if exit_code != 0:
            raise RestoreProcessError(
                f"{tool} process exited with code {exit_code}", exit_code=exit_code
            )

    async def _consume(
        self,
        job_id: str,
        stream: asyncio.StreamReader,
        parse: Callable[[str], OutputEvent | None],
    ) -> None:
        """Record every line of one output stream."""
        while True:
            raw, truncated = await _read_line(stream)
            if not raw:
                break
            line = raw.decode("utf-8", errors="replace")
            if truncated:
                logger.warning(
                    "Job %s: output line over %d bytes truncated", job_id, STREAM_LIMIT
                )
                line = line.rstrip() + " [truncated]"

            event = parse(line)
            if event is None:
                continue
            await self._store.append_log(job_id, event.level, event.message)
            if event.progress is not None:
                await self._store.update_job(job_id, progress=event.progress)


async def _read_line(stream: asyncio.StreamReader) -> tuple[bytes, bool]:
    """Read one line, keeping only the first ``STREAM_LIMIT`` bytes of it.

    Returns:
        ``(line, truncated)``.  ``line`` is empty only at end of stream.
    """
    kept = b""
    truncated = False
    while True:
        try:
            chunk = await stream.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            chunk = e.partial
        except asyncio.LimitOverrunError as e:
            # Line is longer than the reader limit: take what is buffered
            # and keep discarding until its newline.
            chunk = await stream.readexactly(e.consumed)
            if not truncated:
                kept = chunk[:STREAM_LIMIT]
                truncated = True
            continue
        return (kept, True) if truncated else (chunk, False)
