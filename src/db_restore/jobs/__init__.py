"""Job models, phase results and the job store.

Usage:
    from db_restore.jobs import JobStore, JobStatus, MigrationJob, PhaseResult
"""

from db_restore.jobs.models import (
    JOB_STATUS_ORDER,
    JobStatus,
    LogLevel,
    MigrationJob,
    OptimizationSettings,
    RestorationLogEntry,
    TargetConfig,
    VerificationResult,
    check_transition,
)
from db_restore.jobs.results import Phase, PhaseResult
from db_restore.jobs.store import JobStore

__all__ = [
    "JOB_STATUS_ORDER",
    "JobStatus",
    "LogLevel",
    "MigrationJob",
    "OptimizationSettings",
    "RestorationLogEntry",
    "TargetConfig",
    "VerificationResult",
    "check_transition",
    "Phase",
    "PhaseResult",
    "JobStore",
]
