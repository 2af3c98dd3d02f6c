"""Tests for the backup analyzer.

Verifies version extraction from the dump banner, schema/table counting,
the fixed fallback list, size-derived estimates and filesystem error
handling.
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from db_restore.backup.analyzer import (
    FALLBACK_SCHEMAS,
    KNOWN_SCHEMAS,
    MAX_SCAN_MATCHES,
    analyze_backup,
    count_schema_tables,
    estimate_restore_time,
    extract_version,
    fallback_schemas,
    format_bytes,
)
from db_restore.errors import AnalysisError

SAMPLE_DUMP = """\
--
-- PostgreSQL database dump
--

-- Dumped from database version 15.4
-- Dumped by pg_dump version 15.4

CREATE SCHEMA billing;
CREATE TABLE invoices (id integer);
CREATE TABLE payments (id integer);
CREATE TABLE public.users (id integer);
CREATE TABLE IF NOT EXISTS auth.sessions (id integer);
"""


def _write(tmp_path: Path, content: str, name: str = "dump.sql") -> Path:
    path = tmp_path / name
    path.write_text(content)
    return path


def _counts(schemas) -> dict[str, int]:
    return {s.name: s.table_count for s in schemas}


# ============================================================================
# Test: analyze_backup()
# ============================================================================


class TestAnalyzeBackup:
    """Verify the end-to-end file summary."""

    def test_reads_version_and_counts(self, tmp_path: Path) -> None:
        path = _write(tmp_path, SAMPLE_DUMP)

        info = analyze_backup(path)

        assert info.file_size == path.stat().st_size
        assert info.version == "PostgreSQL 15.4"
        counts = _counts(info.schemas)
        assert counts["billing"] == 2
        assert counts["public"] == 1
        assert counts["auth"] == 1
        assert info.total_tables == 4

    def test_known_schemas_always_listed(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "CREATE TABLE public.only_one (id int);\n")

        info = analyze_backup(path)

        names = [s.name for s in info.schemas]
        for known in KNOWN_SCHEMAS:
            assert known in names
        assert _counts(info.schemas)["vault"] == 0

    def test_unknown_version_when_no_banner(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "CREATE TABLE t (id int);\n")

        assert analyze_backup(path).version == "Unknown"

    def test_no_definitions_uses_fallback(self, tmp_path: Path) -> None:
        """A dump with no recognizable statements reports the fixed list."""
        path = _write(tmp_path, "-- nothing to see here\nSELECT 1;\n")

        info = analyze_backup(path)

        assert len(info.schemas) == 5
        assert info.total_tables == 32
        assert _counts(info.schemas) == dict(FALLBACK_SCHEMAS)

    def test_binary_content_degrades_to_fallback(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.backup"
        path.write_bytes(b"PGDMP\x01\x0e\x00\x04\x08\x01\x01\x00\xff\xfe")

        info = analyze_backup(path)

        assert info.version == "Unknown"
        assert info.total_tables == 32

    def test_missing_file_raises_analysis_error(self, tmp_path: Path) -> None:
        with pytest.raises(AnalysisError, match="Failed to analyze backup"):
            analyze_backup(tmp_path / "missing.sql")

    def test_directory_raises_analysis_error(self, tmp_path: Path) -> None:
        with pytest.raises(AnalysisError):
            analyze_backup(tmp_path)

    def test_scan_stops_after_max_matches(self, tmp_path: Path) -> None:
        lines = [f"CREATE TABLE public.t{i} (id int);" for i in range(MAX_SCAN_MATCHES + 50)]
        path = _write(tmp_path, "\n".join(lines) + "\n")

        info = analyze_backup(path)

        assert _counts(info.schemas)["public"] == MAX_SCAN_MATCHES

    def test_estimates_for_ten_megabytes(self, tmp_path: Path) -> None:
        path = tmp_path / "big.sql"
        with open(path, "wb") as f:
            f.truncate(10_000_000)

        info = analyze_backup(path)

        assert info.file_size == 10_000_000
        assert info.estimated_storage == format_bytes(12_000_000)
        assert info.estimated_memory == format_bytes(3_000_000)
        assert info.estimated_time == "1-2 minutes"

    def test_memory_estimate_capped(self, tmp_path: Path) -> None:
        path = tmp_path / "huge.sql"
        with open(path, "wb") as f:
            f.truncate(400 * 1024 * 1024)

        with patch("db_restore.backup.analyzer._scan_schemas", return_value=[]):
            info = analyze_backup(path)

        assert info.estimated_memory == "50.0 MB"
        assert info.estimated_time == "> 10 minutes"


# ============================================================================
# Test: helpers
# ============================================================================


class TestExtractVersion:
    def test_found(self) -> None:
        assert extract_version("-- Dumped from database version 14.10\n") == "PostgreSQL 14.10"

    def test_missing(self) -> None:
        assert extract_version("-- Dumped by pg_dump version 15.4") == "Unknown"


class TestCountSchemaTables:
    """Verify schema tracking across CREATE SCHEMA lines."""

    def test_unqualified_tables_count_against_public_first(self) -> None:
        counts = _counts(count_schema_tables(["CREATE TABLE a (id int);"]))
        assert counts["public"] == 1

    def test_create_schema_switches_current(self) -> None:
        counts = _counts(
            count_schema_tables(
                [
                    "CREATE SCHEMA IF NOT EXISTS reporting;",
                    "CREATE TABLE daily (id int);",
                    "CREATE TABLE storage.objects (id int);",
                ]
            )
        )
        assert counts["reporting"] == 1
        assert counts["storage"] == 1
        assert counts["public"] == 0


class TestFallbackSchemas:
    def test_fixed_list(self) -> None:
        schemas = fallback_schemas()
        assert [s.name for s in schemas] == [
            "auth",
            "public",
            "storage",
            "realtime",
            "extensions",
        ]
        assert sum(s.table_count for s in schemas) == 32


class TestEstimateRestoreTime:
    """Verify the size buckets."""

    @pytest.mark.parametrize(
        ("size", "expected"),
        [
            (0, "< 1 minute"),
            (512 * 1024, "< 1 minute"),
            (5 * 1024 * 1024, "1-2 minutes"),
            (20 * 1024 * 1024, "2-5 minutes"),
            (75 * 1024 * 1024, "5-10 minutes"),
            (200 * 1024 * 1024, "> 10 minutes"),
        ],
    )
    def test_buckets(self, size: int, expected: str) -> None:
        assert estimate_restore_time(size) == expected


class TestFormatBytes:
    def test_bytes(self) -> None:
        assert format_bytes(512) == "512 B"

    def test_kilobytes(self) -> None:
        assert format_bytes(2048) == "2.0 KB"

    def test_megabytes(self) -> None:
        assert format_bytes(12_000_000) == "11.4 MB"
