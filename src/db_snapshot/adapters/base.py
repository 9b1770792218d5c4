"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol that the snapshot engine consumes.
The engine never opens connections itself: callers hand it one client for
the source and one for the target.  All methods are ``async def``.

A client addresses exactly one database session; session settings (such as
``FOREIGN_KEY_CHECKS``) issued through ``execute`` apply to every later
statement on the same client.

Usage:
    from db_snapshot.adapters.base import DatabaseClient

    async def do_work(client: DatabaseClient) -> None:
        rows = await client.fetch_all("SHOW CREATE TABLE `accounts`")
        async for batch in client.stream("SELECT * FROM `accounts`", 100):
            ...
        await client.execute("DROP TABLE IF EXISTS `accounts`")
        await client.close()
"""

from collections.abc import AsyncIterator
from typing import Any, Protocol


class DatabaseClient(Protocol):
    """Database client interface that all adapters must implement."""

    async def fetch_all(self, sql: str, params: dict[str, Any] | None = None) -> list[dict]:
        """Run a query and return all rows.

        Args:
            sql: Query text.  Named parameters use ``:name`` placeholders.
            params: Optional dict of named parameters.

        Returns:
            List of dicts keyed by result column label.  Empty list if no rows.

        Example:
            rows = await client.fetch_all(
                "SELECT TABLE_NAME AS name FROM information_schema.TABLES "
                "WHERE TABLE_SCHEMA = :schema",
                {"schema": "app"},
            )
        """
        ...

    def stream(self, sql: str, batch_size: int) -> AsyncIterator[list[tuple]]:
        """Stream a query's rows in lists of at most ``batch_size`` tuples.

        Rows are produced from a server-side cursor so that memory stays
        bounded by one batch.  No other statement may be issued on the same
        client until the iterator is exhausted or closed.

        Example:
            async for rows in client.stream("SELECT `id` FROM `t`", 100):
                print(len(rows))
        """
        ...

    async def execute(self, sql: str, params: dict[str, Any] | None = None) -> int:
        """Execute a statement and return the affected row count.

        Without ``params`` the text is sent to the server verbatim (no
        placeholder processing), which is required for captured DDL and
        encoded insert statements.

        Example:
            await client.execute("SET FOREIGN_KEY_CHECKS=0")
        """
        ...

    async def close(self) -> None:
        """Release the session and any pooled connections."""
        ...
