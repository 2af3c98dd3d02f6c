"""Job-store adapters package.

Provides the ``DatabaseClient`` Protocol and its two implementations:
``AsyncPostgresAdapter`` for a durable store and ``MemoryAdapter`` for
process-local runs and tests.

Usage:
    from db_restore.adapters import DatabaseClient, AsyncPostgresAdapter, MemoryAdapter
"""

from db_restore.adapters.base import DatabaseClient
from db_restore.adapters.memory import MemoryAdapter
from db_restore.adapters.postgres import AsyncPostgresAdapter

__all__ = [
    "DatabaseClient",
    "AsyncPostgresAdapter",
    "MemoryAdapter",
]
