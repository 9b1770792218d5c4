"""Database adapters package.

Provides the ``DatabaseClient`` Protocol and the async MySQL adapter.

Usage:
    from db_snapshot.adapters import DatabaseClient, AsyncMySQLAdapter
"""

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.adapters.mysql import AsyncMySQLAdapter

__all__ = [
    "DatabaseClient",
    "AsyncMySQLAdapter",
]
