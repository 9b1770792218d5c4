"""Streaming row export in fixed-size batches.

Rows are read in the column order captured by the enumerator, so every
batch can name its columns once.  Batching bounds memory and statement
length; it is not a consistency boundary.

Usage:
    from db_snapshot.backup.exporter import DataExporter

    exporter = DataExporter(client, "app", batch_size=100)
    async with aclosing(exporter.iter_batches(table)) as batches:
        async for batch in batches:
            print(batch.index, len(batch))
"""

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.backup.codec import qualified_name, quote_identifier
from db_snapshot.backup.models import RowBatch
from db_snapshot.errors import ConnectivityError, EnumerationError
from db_snapshot.schema.models import SchemaObject

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


class DataExporter:
    """Produces lazy, per-table sequences of ``RowBatch``.

    Args:
        client: Source ``DatabaseClient``.
        schema_name: Schema the tables live in.
        batch_size: Maximum rows per batch (must be positive).
    """

    def __init__(
        self,
        client: DatabaseClient,
        schema_name: str,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._client = client
        self.schema_name = schema_name
        self.batch_size = batch_size

    def select_statement(self, table: SchemaObject) -> str:
        """``SELECT`` of the table's columns in captured order."""
        columns = ", ".join(quote_identifier(c) for c in table.columns)
        return f"SELECT {columns} FROM {qualified_name(self.schema_name, table.name)}"

    async def iter_batches(self, table: SchemaObject) -> AsyncIterator[RowBatch]:
        """Yield the table's rows in batches of at most ``batch_size``.

        Each call starts a fresh read, so a table's sequence can be
        restarted.  A table with zero rows yields nothing.

        Args:
            table: A ``TABLE`` object from the inventory.

        Raises:
            ValueError: If ``table`` is not a table or has no columns.
            EnumerationError: If the source rejects the read.
            ConnectivityError: If the source connection is lost.
        """
        if not table.is_table:
            raise ValueError(f"{table.kind.value} '{table.name}' has no rows to export")
        if not table.columns:
            raise ValueError(f"Table '{table.name}' has no insertable columns")

        index = 0
        pending: list[tuple] = []
        async with aclosing(self._read(table)) as partitions:
            async for rows in partitions:
                # Re-chunk: clients may hand back partitions of any size
                pending.extend(rows)
                while len(pending) >= self.batch_size:
                    chunk, pending = pending[: self.batch_size], pending[self.batch_size :]
                    yield RowBatch(
                        table=table.name, columns=table.columns, rows=chunk, index=index
                    )
                    index += 1

        if pending:
            yield RowBatch(table=table.name, columns=table.columns, rows=pending, index=index)
            index += 1

        logger.debug(f"[{table.name}] exported {index} batch(es)")

    async def _read(self, table: SchemaObject) -> AsyncIterator[list[tuple]]:
        """Raw row partitions from the source, with driver errors translated."""
        try:
            stream = self._client.stream(self.select_statement(table), self.batch_size)
            async with aclosing(stream) as partitions:
                async for rows in partitions:
                    yield rows
        except DBAPIError as e:
            if e.connection_invalidated:
                raise ConnectivityError("source", str(e.orig or e)) from e
            raise EnumerationError(table.kind.value, table.name, str(e.orig or e)) from e
        except SQLAlchemyError as e:
            raise EnumerationError(table.kind.value, table.name, str(e)) from e

    async def count_rows(self, table_name: str) -> int:
        """Exact row count of a table (``COUNT(*)``)."""
        rows = await self._client.fetch_all(
            f"SELECT COUNT(*) AS row_count FROM {qualified_name(self.schema_name, table_name)}"
        )
        return int(rows[0]["row_count"]) if rows else 0
