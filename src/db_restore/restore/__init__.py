"""Restore orchestration against a target database.

Usage:
    from db_restore.restore import RestoreOrchestrator, build_restore_command
"""

from db_restore.restore.command import build_restore_command, build_restore_env
from db_restore.restore.orchestrator import RestoreOrchestrator
from db_restore.restore.output import OutputEvent, RestoreOutputParser

__all__ = [
    "RestoreOrchestrator",
    "RestoreOutputParser",
    "OutputEvent",
    "build_restore_command",
    "build_restore_env",
]
