"""db-restore: Analyze, restore and verify PostgreSQL dump files.

Tracks each uploaded dump as a migration job, estimates its restore cost,
drives ``pg_restore`` against a target database, and verifies the result
table by table.

Usage:
    from db_restore import build_service, load_config, OptimizationSettings
    from db_restore import JobStatus, MigrationJob, TargetConfig
    from db_restore import analyze_backup, BackupInfo
"""

__version__ = "0.1.0"

# Adapters
from db_restore.adapters.base import DatabaseClient
from db_restore.adapters.memory import MemoryAdapter
from db_restore.adapters.postgres import AsyncPostgresAdapter

# Backup analysis
from db_restore.backup.analyzer import analyze_backup
from db_restore.backup.models import BackupInfo, SchemaSummary

# Config
from db_restore.config.loader import load_config
from db_restore.config.models import PipelineSettings, RestoreConfig, TargetProfile

# Errors
from db_restore.errors import (
    AnalysisError,
    PipelineError,
    ProfileNotFoundError,
    RestoreProcessError,
    TargetConnectionError,
)

# Factory
from db_restore.factory import build_service, resolve_profile

# Jobs
from db_restore.jobs.models import (
    JobStatus,
    MigrationJob,
    OptimizationSettings,
    TargetConfig,
    VerificationResult,
)
from db_restore.jobs.results import PhaseResult
from db_restore.jobs.store import JobStore

# Service
from db_restore.service import MigrationService, RestorationAck

__all__ = [
    # Adapters
    "DatabaseClient",
    "AsyncPostgresAdapter",
    "MemoryAdapter",
    # Backup analysis
    "analyze_backup",
    "BackupInfo",
    "SchemaSummary",
    # Config
    "load_config",
    "PipelineSettings",
    "RestoreConfig",
    "TargetProfile",
    # Errors
    "PipelineError",
    "AnalysisError",
    "TargetConnectionError",
    "RestoreProcessError",
    "ProfileNotFoundError",
    # Factory
    "build_service",
    "resolve_profile",
    # Jobs
    "JobStatus",
    "MigrationJob",
    "OptimizationSettings",
    "TargetConfig",
    "VerificationResult",
    "PhaseResult",
    "JobStore",
    # Service
    "MigrationService",
    "RestorationAck",
]
