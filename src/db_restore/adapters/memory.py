"""In-process database adapter.

Provides ``MemoryAdapter``, a ``DatabaseClient`` implementation that
keeps rows in plain Python lists.  It is the default job-store backend
when no store URL is configured, and the backend used by the tests.

Rows are copied on the way in and on the way out, so callers can never
mutate stored state through a returned dict.

Usage:
    from db_restore.adapters.memory import MemoryAdapter

    adapter = MemoryAdapter()
    await adapter.insert("migration_jobs", {"id": "j1", "status": "pending"})
    rows = await adapter.select("migration_jobs", "*", filters={"id": "j1"})
"""

import asyncio
from collections import defaultdict
from functools import partial
from typing import Any


class MemoryAdapter:
    """Dict-backed implementation of the ``DatabaseClient`` protocol.

    All mutations are serialized through an ``asyncio.Lock`` so that the
    read-compare-write inside ``update`` is atomic with respect to other
    coroutines on the same event loop.
    """

    def __init__(self) -> None:
        self._tables: dict[str, list[dict]] = defaultdict(list)
        self._lock: asyncio.Lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # CRUD Methods
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select matching rows, optionally ordered.

        ``order_by`` takes comma-separated ``column [DESC]`` terms.  A
        column missing from a row sorts as equal to every other missing
        value, so a server-filled tie-breaker such as ``seq`` falls back
        to insertion order here.
        """
        rows = [r for r in self._tables[table] if _matches(r, filters)]

        if order_by:
            terms = _parse_order_by(order_by)
            if terms[0][1]:
                # Newest insert first among equal keys
                rows.reverse()
            for column, descending in reversed(terms):
                rows.sort(key=partial(_sort_key, column), reverse=descending)

        return [_project(r, columns) for r in rows]

    async def insert(self, table: str, data: dict) -> dict:
        """Append a copy of ``data`` and return another copy."""
        row = dict(data)
        async with self._lock:
            self._tables[table].append(row)
        return dict(row)

    async def update(self, table: str, data: dict, filters: dict[str, Any]) -> dict:
        """Update matching rows and return the first updated row.

        Raises:
            ValueError: If no rows match filters.
        """
        async with self._lock:
            matched = [r for r in self._tables[table] if _matches(r, filters)]
            if not matched:
                raise ValueError(f"No rows matched filters: {filters}")
            for row in matched:
                row.update(data)
            return dict(matched[0])

    async def execute(self, sql: str, params: dict | None = None) -> None:
        """No-op: there is no schema to create in memory."""
        return None

    async def close(self) -> None:
        """Nothing to release."""
        return None


def _matches(row: dict, filters: dict[str, Any] | None) -> bool:
    if not filters:
        return True
    return all(row.get(k) == v for k, v in filters.items())


def _parse_order_by(order_by: str) -> list[tuple[str, bool]]:
    terms = []
    for term in order_by.split(","):
        parts = term.split()
        descending = len(parts) > 1 and parts[1].upper() == "DESC"
        terms.append((parts[0], descending))
    return terms


def _sort_key(column: str, row: dict) -> tuple[bool, Any]:
    value = row.get(column)
    return (value is not None, value)


def _project(row: dict, columns: str) -> dict:
    if columns.strip() == "*":
        return dict(row)
    wanted = [c.strip() for c in columns.split(",")]
    return {c: row.get(c) for c in wanted}
