"""Per-phase outcome carried across asynchronous boundaries.

Each pipeline phase returns a ``PhaseResult`` instead of raising, so the
caller decides what happens next by inspecting ``ok`` rather than by
which exceptions it happens to catch.

Usage:
    from db_restore.jobs.results import Phase, PhaseResult

    result = await orchestrator.restore(job_id, path, config, settings)
    if result.ok:
        await verifier.verify(job_id, config)
    else:
        logger.error("Restore failed: %s", result.message)
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from db_restore.errors import PipelineError


class Phase(str, Enum):
    """Pipeline phases, in execution order."""

    ANALYZE = "analyze"
    RESTORE = "restore"
    VERIFY = "verify"


class PhaseResult(BaseModel):
    """Success value or typed error for one phase."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    phase: Phase
    value: Any = None
    error: PipelineError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        """Human-readable error text, empty on success."""
        return str(self.error) if self.error else ""

    @classmethod
    def success(cls, phase: Phase, value: Any = None) -> "PhaseResult":
        return cls(phase=phase, value=value)

    @classmethod
    def failure(cls, phase: Phase, error: PipelineError) -> "PhaseResult":
        return cls(phase=phase, error=error)
