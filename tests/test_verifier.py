"""Tests for the post-restore Verifier.

Uses a fake introspector so catalog enumeration and per-table counts can
succeed or fail on demand without a live database.
"""

import pytest
from pydantic import SecretStr

from db_restore.adapters.memory import MemoryAdapter
from db_restore.errors import (
    TargetConnectionError,
    VerificationCatalogError,
    VerificationRowCountError,
)
from db_restore.jobs.models import JobStatus, LogLevel, TargetConfig
from db_restore.jobs.results import Phase
from db_restore.jobs.store import JobStore
from db_restore.schema.models import TableRef
from db_restore.verify.verifier import Verifier, verification_progress

CONFIG = TargetConfig(
    host="localhost", database="app", username="app", password=SecretStr("pw")
)


class FakeIntrospector:
    """Catalog with fixed tables; selected tables fail to count."""

    tables: list[TableRef] = []
    counts: dict[str, int] = {}
    broken: set[str] = set()
    catalog_error: Exception | None = None
    connect_error: Exception | None = None

    def __init__(self, config, connect_timeout=10):
        pass

    async def __aenter__(self):
        if self.connect_error:
            raise self.connect_error
        return self

    async def __aexit__(self, *exc):
        return None

    async def list_tables(self) -> list[TableRef]:
        if self.catalog_error:
            raise self.catalog_error
        return list(self.tables)

    async def count_rows(self, table: TableRef) -> int:
        if table.qualified_name in self.broken:
            raise VerificationRowCountError(
                table.schema_name, table.table_name, "permission denied"
            )
        return self.counts.get(table.qualified_name, 0)


def _introspector(**attrs) -> type:
    return type("Introspector", (FakeIntrospector,), attrs)


async def _verifying_job(store: JobStore) -> str:
    job = await store.create_job("dump.sql", "dump.sql", 100)
    await store.update_job(job.id, status=JobStatus.VERIFYING, progress=85)
    return job.id


TABLES = [
    TableRef(schema_name="auth", table_name="users"),
    TableRef(schema_name="public", table_name="orders"),
    TableRef(schema_name="public", table_name="products"),
]


@pytest.fixture
def store() -> JobStore:
    return JobStore(MemoryAdapter())


# ============================================================================
# Test: verification_progress()
# ============================================================================


class TestVerificationProgress:
    def test_bounds(self) -> None:
        assert verification_progress(0, 4) == 90
        assert verification_progress(4, 4) == 100

    def test_floors(self) -> None:
        assert verification_progress(1, 3) == 93
        assert verification_progress(2, 3) == 96

    def test_empty_catalog(self) -> None:
        assert verification_progress(0, 0) == 100


# ============================================================================
# Test: verify()
# ============================================================================


class TestVerifyAllTables:
    """Verify the happy path records one row per table and completes."""

    @pytest.mark.asyncio
    async def test_every_table_verified(self, store: JobStore) -> None:
        job_id = await _verifying_job(store)
        factory = _introspector(
            tables=TABLES,
            counts={"auth.users": 3, "public.orders": 120, "public.products": 7},
        )

        result = await Verifier(store, introspector_factory=factory).verify(job_id, CONFIG)

        assert result.ok
        assert result.phase == Phase.VERIFY
        rows = await store.get_verification_results(job_id)
        assert [(r.schema_name, r.table_name, r.actual_count, r.verified) for r in rows] == [
            ("auth", "users", 3, True),
            ("public", "orders", 120, True),
            ("public", "products", 7, True),
        ]
        assert len(result.value) == 3

        job = await store.require_job(job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.progress == 100

    @pytest.mark.asyncio
    async def test_empty_catalog_completes(self, store: JobStore) -> None:
        job_id = await _verifying_job(store)

        result = await Verifier(store, introspector_factory=_introspector(tables=[])).verify(
            job_id, CONFIG
        )

        assert result.ok
        assert (await store.require_job(job_id)).status == JobStatus.COMPLETED
        assert await store.get_verification_results(job_id) == []

    @pytest.mark.asyncio
    async def test_start_and_summary_logged(self, store: JobStore) -> None:
        job_id = await _verifying_job(store)

        await Verifier(store, introspector_factory=_introspector(tables=TABLES)).verify(
            job_id, CONFIG
        )

        logs = await store.get_logs(job_id)
        assert logs[-1].message == "Starting verification..."
        assert logs[0].message == "Verification completed: 3/3 tables verified"


class TestVerifyIsolatedFailure:
    """Verify one uncountable table does not stop verification."""

    @pytest.mark.asyncio
    async def test_failed_table_recorded_and_job_completes(self, store: JobStore) -> None:
        job_id = await _verifying_job(store)
        factory = _introspector(
            tables=TABLES,
            counts={"auth.users": 3, "public.products": 7},
            broken={"public.orders"},
        )

        result = await Verifier(store, introspector_factory=factory).verify(job_id, CONFIG)

        assert result.ok
        rows = {r.table_name: r for r in await store.get_verification_results(job_id)}
        assert len(rows) == 3
        assert rows["orders"].verified is False
        assert rows["orders"].actual_count == 0
        assert rows["users"].verified is True
        assert rows["products"].verified is True

        job = await store.require_job(job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.progress == 100

        warnings = [e for e in await store.get_logs(job_id) if e.level == LogLevel.WARN]
        assert warnings[0].message.startswith("Failed to count rows in public.orders")


class TestVerifyCatalogFailure:
    """Verify a catalog failure fails the job with no rows written."""

    @pytest.mark.asyncio
    async def test_catalog_error_fails_job(self, store: JobStore) -> None:
        job_id = await _verifying_job(store)
        factory = _introspector(
            catalog_error=VerificationCatalogError("Failed to get schemas: boom")
        )

        result = await Verifier(store, introspector_factory=factory).verify(job_id, CONFIG)

        assert not result.ok
        assert isinstance(result.error, VerificationCatalogError)
        job = await store.require_job(job_id)
        assert job.status == JobStatus.FAILED
        assert job.error_message == "Failed to get schemas: boom"
        assert await store.get_verification_results(job_id) == []

        latest = (await store.get_logs(job_id))[0]
        assert latest.level == LogLevel.ERROR
        assert latest.message == "Verification failed: Failed to get schemas: boom"

    @pytest.mark.asyncio
    async def test_unreachable_target_fails_job(self, store: JobStore) -> None:
        job_id = await _verifying_job(store)
        factory = _introspector(connect_error=TargetConnectionError("refused"))

        result = await Verifier(store, introspector_factory=factory).verify(job_id, CONFIG)

        assert not result.ok
        assert isinstance(result.error, VerificationCatalogError)
        assert (await store.require_job(job_id)).status == JobStatus.FAILED
