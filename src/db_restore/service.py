"""Public operations of the restoration pipeline.

``MigrationService`` is the only surface the surrounding application
talks to.  Analysis runs inside ``create_job``; restoration and
verification run as a background task started by ``start_restoration``,
whose caller gets an acknowledgement right away and follows progress by
polling ``get_job`` and ``get_logs``.

Usage:
    from db_restore.factory import build_service

    service = await build_service(settings)
    job = await service.create_job("uploads/dump.sql", file_size=1024)
    ack = await service.start_restoration(job.id, config, OptimizationSettings())
    await service.wait_for(job.id)
    results = await service.get_verification_results(job.id)
"""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel

from db_restore.backup.analyzer import analyze_backup
from db_restore.backup.models import BackupInfo
from db_restore.errors import AnalysisError, InvalidTransitionError, PipelineError
from db_restore.jobs.models import (
    RESTORE_START_PROGRESS,
    JobStatus,
    LogLevel,
    MigrationJob,
    OptimizationSettings,
    RestorationLogEntry,
    TargetConfig,
    VerificationResult,
)
from db_restore.jobs.results import Phase, PhaseResult
from db_restore.jobs.store import JobStore
from db_restore.restore.orchestrator import RestoreOrchestrator
from db_restore.verify.verifier import Verifier

logger = logging.getLogger(__name__)


class RestorationAck(BaseModel):
    """Acknowledgement returned when a restoration is scheduled."""

    job_id: str
    message: str = "Restoration started"


class MigrationService:
    """Facade over the job store and the three pipeline phases.

    Args:
        store: Job store shared by all phases.
        orchestrator: Runs restores and connection tests.
        verifier: Verifies restored databases.
        analyzer: Callable turning a dump path into ``BackupInfo``;
            runs in a worker thread.
    """

    def __init__(
        self,
        store: JobStore,
        orchestrator: RestoreOrchestrator,
        verifier: Verifier,
        analyzer: Callable[[Path], BackupInfo] = analyze_backup,
    ) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._verifier = verifier
        self._analyzer = analyzer
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def store(self) -> JobStore:
        return self._store

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def create_job(
        self,
        file_path: str | Path,
        filename: str | None = None,
        file_size: int | None = None,
    ) -> MigrationJob:
        """Register an uploaded dump and analyze it.

        The job is created in ``pending``, moved to ``analyzing``, and
        ends up in ``configuring`` with ``backup_info`` set, or in
        ``failed`` if the file could not be read.  Analysis failure is
        recorded on the job and never raised.

        Args:
            file_path: Where the uploaded dump lives.
            filename: Display name (default: the path's file name).
            file_size: Upload size in bytes (default: read from disk,
                0 if the file is missing).

        Returns:
            The job after analysis.
        """
        path = Path(file_path)
        if file_size is None:
            file_size = path.stat().st_size if path.is_file() else 0
        job = await self._store.create_job(filename or path.name, str(path), file_size)
        await self._store.update_job(job.id, status=JobStatus.ANALYZING)
        await self._analyze(job.id, path)
        return await self._store.require_job(job.id)

    async def _analyze(self, job_id: str, path: Path) -> PhaseResult:
        try:
            info = await asyncio.to_thread(self._analyzer, path)
        except AnalysisError as e:
            await self._store.fail_job(job_id, str(e))
            await self._store.append_log(job_id, LogLevel.ERROR, f"Analysis failed: {e}")
            return PhaseResult.failure(Phase.ANALYZE, e)

        await self._store.update_job(
            job_id, status=JobStatus.CONFIGURING, backup_info=info
        )
        return PhaseResult.success(Phase.ANALYZE, info)

    async def get_job(self, job_id: str) -> MigrationJob | None:
        return await self._store.get_job(job_id)

    async def list_jobs(self) -> list[MigrationJob]:
        return await self._store.list_jobs()

    async def get_logs(self, job_id: str) -> list[RestorationLogEntry]:
        """Restoration log for a job, newest first."""
        return await self._store.get_logs(job_id)

    async def get_verification_results(self, job_id: str) -> list[VerificationResult]:
        return await self._store.get_verification_results(job_id)

    # ------------------------------------------------------------------
    # Restoration
    # ------------------------------------------------------------------

    async def test_connection(self, config: TargetConfig) -> bool:
        """Pre-flight connection check; always a bool, never raises."""
        return await self._orchestrator.test_connection(config)

    async def start_restoration(
        self,
        job_id: str,
        config: TargetConfig,
        optimization: OptimizationSettings,
    ) -> RestorationAck:
        """Schedule restore-then-verify for a job and return immediately.

        The job is claimed by moving it to ``restoring`` with a write
        conditional on the version read here, so of two concurrent
        callers exactly one schedules work.

        Raises:
            JobNotFoundError: If the job does not exist.
            InvalidTransitionError: If the job is not ``configuring`` or a
                restoration is already running for it.
            StaleJobError: If another caller claimed the job first.
        """
        job = await self._store.require_job(job_id)
        if job.status != JobStatus.CONFIGURING or job_id in self._tasks:
            raise InvalidTransitionError(
                f"Job {job_id} cannot start restoration from status {job.status.value}"
            )

        await self._store.update_job(
            job_id,
            expected_version=job.version,
            status=JobStatus.RESTORING,
            progress=RESTORE_START_PROGRESS,
            config=config,
        )

        # No await between the claim and registering the task
        task = asyncio.create_task(
            self._run_pipeline(job_id, Path(job.file_path), config, optimization),
            name=f"restore-{job_id}",
        )
        self._tasks[job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job_id, None))
        logger.info("Job %s: restoration scheduled", job_id)
        return RestorationAck(job_id=job_id)

    async def _run_pipeline(
        self,
        job_id: str,
        file_path: Path,
        config: TargetConfig,
        optimization: OptimizationSettings,
    ) -> PhaseResult:
        """Restore, then verify on success.  Never raises."""
        try:
            result = await self._orchestrator.restore(
                job_id, file_path, config, optimization
            )
            if result.ok:
                result = await self._verifier.verify(job_id, config)
            return result
        except Exception as e:
            logger.exception("Job %s: pipeline aborted", job_id)
            error = PipelineError(f"Pipeline aborted: {e}")
            await self._fail_after_abort(job_id, str(error))
            return PhaseResult.failure(Phase.RESTORE, error)

    async def _fail_after_abort(self, job_id: str, message: str) -> None:
        try:
            await self._store.fail_job(job_id, message)
        except PipelineError as e:
            logger.error("Job %s: could not record failure: %s", job_id, e)

    async def wait_for(self, job_id: str) -> PhaseResult | None:
        """Wait for a job's background work; ``None`` if nothing is running."""
        task = self._tasks.get(job_id)
        if task is None:
            return None
        return await task

    async def drain(self) -> None:
        """Wait for every running background task."""
        if self._tasks:
            await asyncio.gather(*self._tasks.values())

    async def close(self) -> None:
        await self.drain()
        await self._store.close()
