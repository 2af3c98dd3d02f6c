"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol that backs the job store.
All methods are ``async def`` -- the pipeline is async-first.

Usage:
    from db_restore.adapters.base import DatabaseClient

    async def do_work(client: DatabaseClient) -> None:
        rows = await client.select("migration_jobs", "*", order_by="created_at DESC")
        await client.insert("restoration_logs", {"id": "...", "job_id": "..."})
        await client.close()
"""

from typing import Any, Protocol


class DatabaseClient(Protocol):
    """Storage interface that every job-store backend must implement.

    Rows travel as plain dicts in both directions.  Implementations
    must return the full written row from ``insert`` and ``update`` so
    the caller can rebuild models without a second read.
    """

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows from table.

        Args:
            table: Table name.
            columns: Comma-separated column names, or ``"*"``.
            filters: Optional dict of field=value filters (all must match via AND).
            order_by: Optional column name, optionally followed by ``DESC``.

        Returns:
            List of dicts, one per row.  Empty list if no matches.
        """
        ...

    async def insert(self, table: str, data: dict) -> dict:
        """Insert row into table and return the created row.

        Raises:
            Exception: If duplicate key or constraint violation.
        """
        ...

    async def update(self, table: str, data: dict, filters: dict[str, Any]) -> dict:
        """Update rows in table and return the first updated row.

        Raises:
            ValueError: If no rows match filters.
        """
        ...

    async def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a raw SQL statement (DDL or other non-query operations).

        Backends without SQL treat this as a no-op.
        """
        ...

    async def close(self) -> None:
        """Close the client and release its resources."""
        ...
