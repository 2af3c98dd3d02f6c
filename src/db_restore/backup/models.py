"""Backup summary models produced by the analyzer.

Usage:
    from db_restore.backup.models import BackupInfo, SchemaSummary

    info = BackupInfo(
        file_size=10_000_000,
        version="PostgreSQL 15.4",
        schemas=[SchemaSummary(name="public", table_count=12)],
        estimated_time="1-2 minutes",
        estimated_storage="11.4 MB",
        estimated_memory="2.9 MB",
    )
"""

from pydantic import BaseModel, Field


class SchemaSummary(BaseModel):
    """Table count for one schema found in the dump."""

    name: str
    table_count: int = 0


class BackupInfo(BaseModel):
    """Structural and size summary of a dump file."""

    file_size: int                                  # bytes, from the filesystem
    version: str = "Unknown"                        # "PostgreSQL X.Y" or "Unknown"
    schemas: list[SchemaSummary] = Field(default_factory=list)
    estimated_time: str = ""
    estimated_storage: str = ""
    estimated_memory: str = ""

    @property
    def total_tables(self) -> int:
        """Sum of table counts across all schemas."""
        return sum(s.table_count for s in self.schemas)
