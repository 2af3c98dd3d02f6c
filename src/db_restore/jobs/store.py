"""Job store: durable record of jobs, restoration logs and verification rows.

``JobStore`` is a repository over any ``DatabaseClient``.  It is the only
component that reads or writes the three pipeline tables; the analyzer,
orchestrator and verifier go through it and keep no state of their own.

Job updates are optimistic: every write is conditional on the
``version`` that was read, and bumps it.  Status changes are validated
with ``check_transition`` before the write.

Usage:
    from db_restore.adapters.memory import MemoryAdapter
    from db_restore.jobs.store import JobStore

    store = JobStore(MemoryAdapter())
    await store.create_tables()

    job = await store.create_job("dump.sql", "/uploads/dump.sql", 1024)
    job = await store.update_job(job.id, status=JobStatus.ANALYZING)
    await store.append_log(job.id, LogLevel.INFO, "Starting database restoration...")
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel

from db_restore.adapters.base import DatabaseClient
from db_restore.errors import JobNotFoundError, StaleJobError
from db_restore.jobs.models import (
    JobStatus,
    LogLevel,
    MigrationJob,
    RestorationLogEntry,
    VerificationResult,
    check_transition,
)

logger = logging.getLogger(__name__)

JOBS_TABLE = "migration_jobs"
LOGS_TABLE = "restoration_logs"
RESULTS_TABLE = "verification_results"

JSONB_COLUMNS = ["backup_info", "config"]

# Newest first; seq is server-assigned and breaks timestamp ties
LOG_ORDER = "timestamp DESC, seq DESC"

# Columns a caller may change through update_job()
UPDATABLE_FIELDS = frozenset(
    {"status", "backup_info", "config", "progress", "error_message"}
)

SCHEMA_DDL: tuple[str, ...] = (
    f"""
    CREATE TABLE IF NOT EXISTS {JOBS_TABLE} (
        id UUID PRIMARY KEY,
        filename TEXT NOT NULL,
        file_path TEXT NOT NULL DEFAULT '',
        file_size BIGINT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        backup_info JSONB,
        config JSONB,
        progress INTEGER NOT NULL DEFAULT 0,
        error_message TEXT,
        version INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {LOGS_TABLE} (
        id UUID PRIMARY KEY,
        job_id UUID NOT NULL REFERENCES {JOBS_TABLE}(id) ON DELETE CASCADE,
        level TEXT NOT NULL,
        message TEXT NOT NULL,
        timestamp TIMESTAMPTZ NOT NULL DEFAULT now(),
        seq BIGSERIAL
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {RESULTS_TABLE} (
        id UUID PRIMARY KEY,
        job_id UUID NOT NULL REFERENCES {JOBS_TABLE}(id) ON DELETE CASCADE,
        schema_name TEXT NOT NULL,
        table_name TEXT NOT NULL,
        expected_count INTEGER,
        actual_count BIGINT,
        verified BOOLEAN NOT NULL DEFAULT false,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    f"CREATE INDEX IF NOT EXISTS idx_{LOGS_TABLE}_job ON {LOGS_TABLE} (job_id, timestamp, seq)",
    f"CREATE INDEX IF NOT EXISTS idx_{RESULTS_TABLE}_job ON {RESULTS_TABLE} (job_id)",
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_column(value: Any) -> Any:
    """Convert model and enum values into storable column values."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    return value


class JobStore:
    """Repository for migration jobs and their audit rows.

    Args:
        client: Any ``DatabaseClient`` implementation.
    """

    def __init__(self, client: DatabaseClient) -> None:
        self._client = client

    @property
    def client(self) -> DatabaseClient:
        return self._client

    async def create_tables(self) -> None:
        """Create the pipeline tables if they do not exist."""
        for statement in SCHEMA_DDL:
            await self._client.execute(statement)

    async def close(self) -> None:
        await self._client.close()

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def create_job(
        self, filename: str, file_path: str, file_size: int
    ) -> MigrationJob:
        """Insert a new job in ``pending`` with progress 0."""
        now = _now()
        row = await self._client.insert(
            JOBS_TABLE,
            {
                "id": str(uuid4()),
                "filename": filename,
                "file_path": file_path,
                "file_size": file_size,
                "status": JobStatus.PENDING.value,
                "progress": 0,
                "version": 1,
                "created_at": now,
                "updated_at": now,
            },
        )
        job = MigrationJob.model_validate(row)
        logger.debug("Created job %s for %s", job.id, filename)
        return job

    async def get_job(self, job_id: str) -> MigrationJob | None:
        rows = await self._client.select(JOBS_TABLE, "*", filters={"id": job_id})
        return MigrationJob.model_validate(rows[0]) if rows else None

    async def require_job(self, job_id: str) -> MigrationJob:
        """Like ``get_job`` but raises ``JobNotFoundError`` when missing."""
        job = await self.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        return job

    async def list_jobs(self) -> list[MigrationJob]:
        """All jobs, newest first."""
        rows = await self._client.select(JOBS_TABLE, "*", order_by="created_at DESC")
        return [MigrationJob.model_validate(r) for r in rows]

    async def update_job(
        self, job_id: str, expected_version: int | None = None, **changes: Any
    ) -> MigrationJob:
        """Apply a conditional update to one job.

        Args:
            job_id: Job to update.
            expected_version: Version the caller based its decision on.
                When given, the write only happens if the stored job is
                still at that version.
            **changes: Any of ``status``, ``backup_info``, ``config``,
                ``progress``, ``error_message``.

        Returns:
            The job as stored after the update.

        Raises:
            JobNotFoundError: If the job does not exist.
            InvalidTransitionError: If ``status`` would regress or leave a
                terminal state.
            ValueError: On an unknown field, progress outside 0-100, or an
                error message without ``status=failed``.
            StaleJobError: If another writer updated the job first.
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update job fields: {', '.join(sorted(unknown))}")

        current = await self.require_job(job_id)
        if expected_version is not None and current.version != expected_version:
            raise StaleJobError(
                f"Job {job_id} changed concurrently (expected version {expected_version})"
            )

        if "status" in changes:
            changes["status"] = JobStatus(changes["status"])
            check_transition(current.status, changes["status"])
        if changes.get("error_message") and changes.get("status") != JobStatus.FAILED:
            raise ValueError("error_message can only be set together with status=failed")
        if "progress" in changes and not 0 <= changes["progress"] <= 100:
            raise ValueError(f"Progress out of range: {changes['progress']}")

        data = {k: _to_column(v) for k, v in changes.items()}
        data["updated_at"] = _now()
        data["version"] = current.version + 1

        try:
            row = await self._client.update(
                JOBS_TABLE,
                data,
                filters={"id": job_id, "version": current.version},
            )
        except ValueError as e:
            raise StaleJobError(
                f"Job {job_id} changed concurrently (expected version {current.version})"
            ) from e

        return MigrationJob.model_validate(row)

    async def fail_job(self, job_id: str, error_message: str) -> MigrationJob:
        """Move a job to ``failed`` with a human-readable reason."""
        logger.warning("Job %s failed: %s", job_id, error_message)
        return await self.update_job(
            job_id,
            status=JobStatus.FAILED,
            error_message=error_message or "Unknown error",
        )

    # ------------------------------------------------------------------
    # Restoration Logs
    # ------------------------------------------------------------------

    async def append_log(
        self, job_id: str, level: LogLevel, message: str
    ) -> RestorationLogEntry:
        row = await self._client.insert(
            LOGS_TABLE,
            {
                "id": str(uuid4()),
                "job_id": job_id,
                "level": LogLevel(level).value,
                "message": message,
                "timestamp": _now(),
            },
        )
        return RestorationLogEntry.model_validate(row)

    async def get_logs(self, job_id: str) -> list[RestorationLogEntry]:
        """Full log history for a job, newest first."""
        rows = await self._client.select(
            LOGS_TABLE, "*", filters={"job_id": job_id}, order_by=LOG_ORDER
        )
        return [RestorationLogEntry.model_validate(r) for r in rows]

    # ------------------------------------------------------------------
    # Verification Results
    # ------------------------------------------------------------------

    async def add_verification_result(
        self,
        job_id: str,
        schema_name: str,
        table_name: str,
        actual_count: int,
        verified: bool,
        expected_count: int | None = None,
    ) -> VerificationResult:
        row = await self._client.insert(
            RESULTS_TABLE,
            {
                "id": str(uuid4()),
                "job_id": job_id,
                "schema_name": schema_name,
                "table_name": table_name,
                "expected_count": expected_count,
                "actual_count": actual_count,
                "verified": verified,
                "created_at": _now(),
            },
        )
        return VerificationResult.model_validate(row)

    async def get_verification_results(self, job_id: str) -> list[VerificationResult]:
        rows = await self._client.select(
            RESULTS_TABLE, "*", filters={"job_id": job_id}, order_by="created_at"
        )
        return [VerificationResult.model_validate(r) for r in rows]
