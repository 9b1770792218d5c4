"""Async MySQL database adapter.

Provides ``AsyncMySQLAdapter``, an async implementation of the
``DatabaseClient`` protocol using SQLAlchemy's async engine with the
``aiomysql`` driver.

Usage:
    from db_snapshot.adapters.mysql import AsyncMySQLAdapter

    async with AsyncMySQLAdapter("mysql://root:pw@localhost:3306/app") as adapter:
        rows = await adapter.fetch_all("SHOW TABLES")
"""

from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

# Raw statements bypass DBAPI "%s" interpolation entirely
_RAW = {"no_parameters": True}


def normalize_url(database_url: str) -> str:
    """Normalize a MySQL URL to the ``mysql+aiomysql://`` scheme.

    Accepts ``mysql://``, ``mariadb://``, ``mysql+pymysql://`` and
    ``mysql+aiomysql://``.

    Example:
        >>> normalize_url("mysql://root@localhost/app")
        'mysql+aiomysql://root@localhost/app'
    """
    scheme, sep, rest = database_url.partition("://")
    if not sep:
        raise ValueError(f"Not a database URL: {database_url!r}")
    if scheme in ("mysql", "mariadb", "mysql+pymysql", "mariadb+pymysql"):
        scheme = "mysql+aiomysql"
    return f"{scheme}://{rest}"


def database_name(database_url: str) -> str | None:
    """Database (schema) name addressed by a URL, if any."""
    return make_url(normalize_url(database_url)).database


def create_async_engine_pinned(database_url: str, **kwargs: Any) -> AsyncEngine:
    """Create an async SQLAlchemy engine holding a single connection.

    Default settings:

    - ``pool_size=1`` / ``max_overflow=0``: one session per endpoint, so
      session variables apply to every statement of a run.
    - ``pool_pre_ping=True``: Validate the connection before checkout.
    - ``isolation_level="AUTOCOMMIT"``: Transaction framing comes from the
      statements themselves (``START TRANSACTION`` / ``COMMIT``).

    Args:
        database_url: URL with ``mysql+aiomysql://`` scheme.
        **kwargs: Additional keyword arguments forwarded to
            ``create_async_engine``.

    Returns:
        Configured ``AsyncEngine``.
    """
    # Append connect_timeout if not already in URL
    if "connect_timeout" not in database_url:
        separator = "&" if "?" in database_url else "?"
        database_url = f"{database_url}{separator}connect_timeout=10"

    defaults: dict[str, Any] = {
        "pool_size": 1,
        "max_overflow": 0,
        "pool_pre_ping": True,
        "isolation_level": "AUTOCOMMIT",
        "echo": False,
    }
    # Caller kwargs override defaults
    merged = {**defaults, **kwargs}

    return create_async_engine(database_url, **merged)


class AsyncMySQLAdapter:
    """Async MySQL implementation of the ``DatabaseClient`` protocol.

    The adapter opens its connection lazily and keeps it for its whole
    lifetime; statements are issued one at a time on that connection.

    Args:
        database_url: MySQL connection URL (see ``normalize_url``).
        **engine_kwargs: Additional keyword arguments forwarded to
            ``create_async_engine_pinned``.

    Example:
        adapter = AsyncMySQLAdapter("mysql://root:pw@localhost:3306/app")
        try:
            await adapter.execute("SET FOREIGN_KEY_CHECKS=0")
        finally:
            await adapter.close()
    """

    def __init__(self, database_url: str, **engine_kwargs: Any) -> None:
        url = normalize_url(database_url)
        self.database: str | None = make_url(url).database
        self._engine: AsyncEngine = create_async_engine_pinned(url, **engine_kwargs)
        self._conn: AsyncConnection | None = None

    async def __aenter__(self) -> "AsyncMySQLAdapter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _connection(self) -> AsyncConnection:
        if self._conn is None:
            self._conn = await self._engine.connect()
        return self._conn

    # ------------------------------------------------------------------
    # DatabaseClient Methods
    # ------------------------------------------------------------------

    async def fetch_all(self, sql: str, params: dict[str, Any] | None = None) -> list[dict]:
        """Run a query and return rows as dicts."""
        conn = await self._connection()
        if params:
            result = await conn.execute(text(sql), params)
        else:
            result = await conn.exec_driver_sql(sql, execution_options=_RAW)
        if not result.returns_rows:
            return []
        col_names = list(result.keys())
        return [dict(zip(col_names, row)) for row in result.fetchall()]

    async def stream(self, sql: str, batch_size: int) -> AsyncIterator[list[tuple]]:
        """Stream rows from a server-side cursor in lists of ``batch_size``."""
        conn = await self._connection()
        result = await conn.stream(text(sql))
        try:
            async for partition in result.partitions(batch_size):
                yield [tuple(row) for row in partition]
        finally:
            await result.close()

    async def execute(self, sql: str, params: dict[str, Any] | None = None) -> int:
        """Execute a statement; text is sent verbatim when ``params`` is empty."""
        conn = await self._connection()
        if params:
            result = await conn.execute(text(sql), params)
        else:
            result = await conn.exec_driver_sql(sql, execution_options=_RAW)
        return result.rowcount

    async def close(self) -> None:
        """Close the session and dispose of the engine."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
        if self._engine:
            await self._engine.dispose()

    # ------------------------------------------------------------------
    # Connection Test
    # ------------------------------------------------------------------

    async def test_connection(self) -> bool:
        """Test database connection health.

        Runs ``SELECT 1`` to verify the connection is alive.

        Returns:
            ``True`` if the database connection succeeds.

        Raises:
            Exception: If the database connection fails.
        """
        rows = await self.fetch_all("SELECT 1 AS ok")
        return bool(rows) and rows[0]["ok"] == 1
