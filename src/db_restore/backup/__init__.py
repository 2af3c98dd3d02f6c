"""Dump-file analysis.

Usage:
    from db_restore.backup import analyze_backup, BackupInfo, SchemaSummary
"""

from db_restore.backup.analyzer import (
    analyze_backup,
    estimate_restore_time,
    format_bytes,
)
from db_restore.backup.models import BackupInfo, SchemaSummary

__all__ = [
    "BackupInfo",
    "SchemaSummary",
    "analyze_backup",
    "estimate_restore_time",
    "format_bytes",
]
