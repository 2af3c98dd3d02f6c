"""Target database introspection via pg_catalog.

Queries the database a dump was restored into:
- Connectivity check (``SELECT version()``)
- Schema/table enumeration, excluding system schemas
- Per-table row counts

Uses psycopg (v3) async connections in autocommit mode, so a failed
count on one table does not abort the session for the next one.
"""

import logging

import psycopg
from psycopg import AsyncConnection, sql

from db_restore.errors import (
    TargetConnectionError,
    VerificationCatalogError,
    VerificationRowCountError,
)
from db_restore.jobs.models import TargetConfig
from db_restore.schema.models import TableRef

logger = logging.getLogger(__name__)


class TargetIntrospector:
    """Introspects the target PostgreSQL database.

    Usage:
        async with TargetIntrospector(config) as introspector:
            version = await introspector.server_version()
            for table in await introspector.list_tables():
                count = await introspector.count_rows(table)

    Raises:
        TargetConnectionError: From ``__aenter__`` when the connection
            cannot be established.
    """

    # Schemas never reported or verified
    EXCLUDED_SCHEMAS = ("information_schema", "pg_catalog", "pg_toast")

    def __init__(self, config: TargetConfig, connect_timeout: int = 10):
        """Initialize with target connection parameters.

        Args:
            config: Target database connection parameters.
            connect_timeout: Seconds to wait for the server.
        """
        self._config = config
        self._connect_timeout = connect_timeout
        self._conn: AsyncConnection | None = None

    async def __aenter__(self) -> "TargetIntrospector":
        """Context manager entry - opens connection."""
        try:
            self._conn = await psycopg.AsyncConnection.connect(
                host=self._config.host,
                port=self._config.port,
                dbname=self._config.database,
                user=self._config.username,
                password=self._config.password.get_secret_value(),
                connect_timeout=self._connect_timeout,
                autocommit=True,
            )
        except psycopg.Error as e:
            raise TargetConnectionError(
                f"Cannot connect to {self._config.host}:{self._config.port}/"
                f"{self._config.database}: {e}"
            ) from e
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - closes connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> AsyncConnection:
        if not self._conn:
            raise RuntimeError("Introspector not connected. Use async with statement.")
        return self._conn

    async def server_version(self) -> str:
        """Return the server's ``version()`` string."""
        conn = self._require_conn()
        async with conn.cursor() as cur:
            await cur.execute("SELECT version()")
            row = await cur.fetchone()
            return row[0] if row else ""

    async def list_tables(self) -> list[TableRef]:
        """Enumerate user tables ordered by schema, then table.

        Raises:
            VerificationCatalogError: If the catalog query fails.
        """
        conn = self._require_conn()
        query = """
            SELECT schemaname, tablename
            FROM pg_tables
            WHERE schemaname <> ALL(%s)
            ORDER BY schemaname, tablename
        """
        try:
            async with conn.cursor() as cur:
                await cur.execute(query, (list(self.EXCLUDED_SCHEMAS),))
                rows = await cur.fetchall()
        except psycopg.Error as e:
            raise VerificationCatalogError(f"Failed to get schemas: {e}") from e

        return [TableRef(schema_name=schema, table_name=table) for schema, table in rows]

    async def count_rows(self, table: TableRef) -> int:
        """Count rows in one table.

        Raises:
            VerificationRowCountError: If the count query fails.
        """
        conn = self._require_conn()
        query = sql.SQL("SELECT COUNT(*) FROM {}.{}").format(
            sql.Identifier(table.schema_name),
            sql.Identifier(table.table_name),
        )
        try:
            async with conn.cursor() as cur:
                await cur.execute(query)
                row = await cur.fetchone()
        except psycopg.Error as e:
            raise VerificationRowCountError(
                table.schema_name, table.table_name, str(e)
            ) from e

        return int(row[0]) if row and row[0] is not None else 0
