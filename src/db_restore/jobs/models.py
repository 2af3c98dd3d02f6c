"""Pydantic models for migration jobs and their audit records.

A ``MigrationJob`` owns any number of ``RestorationLogEntry`` rows and
one ``VerificationResult`` per (schema, table) examined.  Status moves
forward through ``JOB_STATUS_ORDER`` or jumps to ``failed``.

Usage:
    from db_restore.jobs.models import JobStatus, MigrationJob, TargetConfig

    config = TargetConfig(host="localhost", database="app", username="app",
                          password="secret")
    config.url()                       # postgresql://app@localhost:5432/app
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any
from urllib.parse import quote

from pydantic import BaseModel, Field, SecretStr, field_validator

from db_restore.backup.models import BackupInfo
from db_restore.errors import InvalidTransitionError


# ============================================================================
# Enums
# ============================================================================


class JobStatus(str, Enum):
    """Lifecycle states of a migration job."""

    PENDING = "pending"
    ANALYZING = "analyzing"
    CONFIGURING = "configuring"
    RESTORING = "restoring"
    VERIFYING = "verifying"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


JOB_STATUS_ORDER: tuple[JobStatus, ...] = (
    JobStatus.PENDING,
    JobStatus.ANALYZING,
    JobStatus.CONFIGURING,
    JobStatus.RESTORING,
    JobStatus.VERIFYING,
    JobStatus.COMPLETED,
)


# Progress milestones observed by existing consumers
RESTORE_START_PROGRESS = 0
RESTORE_PROGRESS_CAP = 80
RESTORE_COMPLETE_PROGRESS = 85
VERIFY_START_PROGRESS = 90
COMPLETE_PROGRESS = 100


class LogLevel(str, Enum):
    """Severity of a restoration log entry."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"


def check_transition(current: JobStatus, new: JobStatus) -> None:
    """Validate a status change.

    Allowed: staying put on a non-terminal status, moving forward along
    ``JOB_STATUS_ORDER`` (skips included), or jumping to ``failed`` from
    any non-terminal status.

    Raises:
        InvalidTransitionError: On a regression or any change out of a
            terminal status.
    """
    if current.is_terminal:
        raise InvalidTransitionError(
            f"Job is already {current.value}; cannot move to {new.value}"
        )
    if new == JobStatus.FAILED or new == current:
        return
    if JOB_STATUS_ORDER.index(new) < JOB_STATUS_ORDER.index(current):
        raise InvalidTransitionError(
            f"Status cannot regress from {current.value} to {new.value}"
        )


# ============================================================================
# Restoration Request Models
# ============================================================================


class TargetConfig(BaseModel):
    """Connection parameters for the database being restored into."""

    host: str
    port: int = 5432
    database: str
    username: str
    password: SecretStr = SecretStr("")

    def url(self, include_password: bool = False) -> str:
        """Build a ``postgresql://`` URL for the target.

        The password is left out unless asked for; the restore tool
        receives it through ``PGPASSWORD`` instead.
        """
        user = quote(self.username, safe="")
        if include_password and self.password.get_secret_value():
            user += ":" + quote(self.password.get_secret_value(), safe="")
        return f"postgresql://{user}@{self.host}:{self.port}/{quote(self.database, safe='')}"


class OptimizationSettings(BaseModel):
    """Restore tool tuning chosen by the caller."""

    selective_restore: bool = False
    compression: bool = False
    batching: bool = False
    exclude_schemas: list[str] = Field(default_factory=list)
    batch_size: int | None = None                   # accepted, not passed to the tool


# ============================================================================
# Persisted Entities
# ============================================================================


class MigrationJob(BaseModel):
    """One restoration attempt."""

    id: str
    filename: str
    file_path: str = ""
    file_size: int = 0
    status: JobStatus = JobStatus.PENDING
    backup_info: BackupInfo | None = None
    config: TargetConfig | None = None              # password masked when stored
    progress: int = Field(default=0, ge=0, le=100)
    error_message: str | None = None
    version: int = 1
    created_at: datetime
    updated_at: datetime

    @field_validator("backup_info", "config", mode="before")
    @classmethod
    def decode_jsonb(cls, value: Any) -> Any:
        """JSONB columns may come back as text depending on the driver."""
        if isinstance(value, str):
            return json.loads(value)
        return value


class RestorationLogEntry(BaseModel):
    """Append-only log line recorded while a job runs."""

    id: str
    job_id: str
    level: LogLevel
    message: str
    timestamp: datetime


class VerificationResult(BaseModel):
    """Outcome of counting one restored table."""

    id: str
    job_id: str
    schema_name: str
    table_name: str
    expected_count: int | None = None
    actual_count: int | None = None
    verified: bool = False
    created_at: datetime
