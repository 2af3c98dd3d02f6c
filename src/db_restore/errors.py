"""Exception taxonomy for the restoration pipeline.

Phase errors (analysis, restore, verification) are fatal to the owning
job and travel inside a ``PhaseResult``.  ``VerificationRowCountError``
is the one isolated error: it is recorded as a ``verified=False`` row
and never stops a phase.

Usage:
    from db_restore.errors import AnalysisError, RestoreProcessError
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""

    pass


# ============================================================================
# Phase errors
# ============================================================================


class AnalysisError(PipelineError):
    """Raised when the dump file cannot be read from the filesystem."""

    pass


class TargetConnectionError(PipelineError):
    """Raised when the target database is unreachable or rejects credentials.

    ``RestoreOrchestrator.test_connection()`` converts this into ``False``;
    callers of the public surface never see it.
    """

    pass


class RestoreProcessError(PipelineError):
    """Raised when the external restore tool fails to start or exits nonzero."""

    def __init__(self, message: str, exit_code: int | None = None) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class VerificationCatalogError(PipelineError):
    """Raised when the target catalog cannot be enumerated."""

    pass


class VerificationRowCountError(PipelineError):
    """Raised when a single table cannot be counted."""

    def __init__(self, schema_name: str, table_name: str, reason: str) -> None:
        super().__init__(
            f"Failed to count rows in {schema_name}.{table_name}: {reason}"
        )
        self.schema_name = schema_name
        self.table_name = table_name


# ============================================================================
# Store errors
# ============================================================================


class JobNotFoundError(PipelineError):
    """Raised when a job id does not exist in the store."""

    pass


class InvalidTransitionError(PipelineError):
    """Raised when an update would move a job's status backwards."""

    pass


class StaleJobError(PipelineError):
    """Raised when a job row changed between read and conditional write."""

    pass


# ============================================================================
# Configuration errors
# ============================================================================


class ProfileNotFoundError(PipelineError):
    """Raised when a named target profile is not configured."""

    pass
