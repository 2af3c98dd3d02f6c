"""Post-restore verification.

Enumerates every non-system table in the target database and confirms
each one answers a ``COUNT(*)``.  One unreadable table becomes a
``verified=False`` row and verification carries on; only a failure to
enumerate the catalog fails the job.

Verification reports rather than gatekeeps: a job reaches ``completed``
even when some tables could not be verified.

Usage:
    from db_restore.verify.verifier import Verifier

    verifier = Verifier(store)
    result = await verifier.verify(job_id, config)
    results = await store.get_verification_results(job_id)
"""

import logging
from collections.abc import Callable

from db_restore.errors import (
    TargetConnectionError,
    VerificationCatalogError,
    VerificationRowCountError,
)
from db_restore.jobs.models import (
    COMPLETE_PROGRESS,
    VERIFY_START_PROGRESS,
    JobStatus,
    LogLevel,
    TargetConfig,
)
from db_restore.jobs.results import Phase, PhaseResult
from db_restore.jobs.store import JobStore
from db_restore.schema.introspector import TargetIntrospector

logger = logging.getLogger(__name__)


def verification_progress(verified: int, total: int) -> int:
    """Progress after ``verified`` of ``total`` tables counted successfully."""
    if total <= 0:
        return COMPLETE_PROGRESS
    span = COMPLETE_PROGRESS - VERIFY_START_PROGRESS
    return VERIFY_START_PROGRESS + (verified * span) // total


class Verifier:
    """Confirms restored tables are queryable and records per-table results.

    Args:
        store: Job store receiving status, progress, log and result writes.
        connect_timeout: Seconds allowed to reach the target.
        introspector_factory: Callable returning an async context manager
            with ``list_tables()`` and ``count_rows()``; defaults to
            ``TargetIntrospector``.
    """

    def __init__(
        self,
        store: JobStore,
        connect_timeout: int = 10,
        introspector_factory: Callable[..., TargetIntrospector] = TargetIntrospector,
    ) -> None:
        self._store = store
        self._connect_timeout = connect_timeout
        self._introspector_factory = introspector_factory

    async def verify(self, job_id: str, config: TargetConfig) -> PhaseResult:
        """Verify every restored table and finalize the job.

        Returns:
            ``PhaseResult`` for ``Phase.VERIFY`` whose value is the list of
            ``VerificationResult`` rows.  On catalog failure the job is
            already ``failed``, no rows exist, and ``result.error`` is a
            ``VerificationCatalogError``.
        """
        await self._store.update_job(
            job_id, status=JobStatus.VERIFYING, progress=VERIFY_START_PROGRESS
        )
        await self._store.append_log(job_id, LogLevel.INFO, "Starting verification...")

        results = []
        try:
            async with self._introspector_factory(
                config, connect_timeout=self._connect_timeout
            ) as introspector:
                tables = await introspector.list_tables()
                total = len(tables)
                verified = 0

                for table in tables:
                    try:
                        count = await introspector.count_rows(table)
                    except VerificationRowCountError as e:
                        logger.warning("Job %s: %s", job_id, e)
                        await self._store.append_log(job_id, LogLevel.WARN, str(e))
                        results.append(
                            await self._store.add_verification_result(
                                job_id,
                                table.schema_name,
                                table.table_name,
                                actual_count=0,
                                verified=False,
                            )
                        )
                        continue

                    results.append(
                        await self._store.add_verification_result(
                            job_id,
                            table.schema_name,
                            table.table_name,
                            actual_count=count,
                            verified=True,
                        )
                    )
                    verified += 1
                    await self._store.update_job(
                        job_id, progress=verification_progress(verified, total)
                    )
        except (TargetConnectionError, VerificationCatalogError) as e:
            error = (
                e if isinstance(e, VerificationCatalogError)
                else VerificationCatalogError(str(e))
            )
            await self._store.fail_job(job_id, str(error))
            await self._store.append_log(
                job_id, LogLevel.ERROR, f"Verification failed: {error}"
            )
            return PhaseResult.failure(Phase.VERIFY, error)

        unverified = sum(1 for r in results if not r.verified)
        await self._store.update_job(
            job_id, status=JobStatus.COMPLETED, progress=COMPLETE_PROGRESS
        )
        await self._store.append_log(
            job_id,
            LogLevel.INFO,
            f"Verification completed: {len(results) - unverified}/{len(results)} "
            f"tables verified",
        )
        logger.info(
            "Job %s completed: %d tables, %d unverified", job_id, len(results), unverified
        )
        return PhaseResult.success(Phase.VERIFY, results)
