"""Apply a snapshot to the target database.

Two ways in:

- Artifact replay: stream statements out of a backup file and execute them
  one at a time on the target session.
- Live copy: issue drop/create for each enumerated object and insert each
  exported batch as soon as it is produced; nothing is staged on disk.

Integrity-constraint checks are disabled on the target session for the
whole load and re-enabled only after every statement succeeded.  A rejected
statement stops the run with ``ApplyError``; the target is left as it is
(no rollback, no retry).

Usage:
    from db_snapshot.restore.executor import RestoreExecutor

    executor = RestoreExecutor(target)
    result = await executor.replay_file("backups/app_backup.sql")
    print(result.statements_executed)
"""

import io
import logging
import re
from collections.abc import Iterable
from contextlib import aclosing
from pathlib import Path

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.backup import statements
from db_snapshot.backup.exporter import DataExporter
from db_snapshot.backup.models import CopyResult, RestoreResult
from db_snapshot.errors import ApplyError, ConnectivityError
from db_snapshot.restore.script import ScriptStatement, iter_statements
from db_snapshot.schema.models import SchemaInventory

logger = logging.getLogger(__name__)

_OBJECT_NAME_RE = re.compile(
    r"^\s*(?:"
    r"(?:CREATE|DROP)\b[^\n]*?\b(?:TABLE|VIEW|PROCEDURE|FUNCTION|TRIGGER|EVENT)"
    r"\s+(?:IF\s+(?:NOT\s+)?EXISTS\s+)?"
    r"|INSERT\s+INTO\s+"
    r"|LOCK\s+TABLES\s+"
    r")(`(?:[^`]|``)+`|\w+)",
    re.IGNORECASE,
)


def statement_object_name(sql: str) -> str | None:
    """Name of the object a DROP/CREATE/INSERT/LOCK statement touches.

    Example:
        >>> statement_object_name("DROP TABLE IF EXISTS `accounts`")
        'accounts'
        >>> statement_object_name("SET FOREIGN_KEY_CHECKS=0") is None
        True
    """
    match = _OBJECT_NAME_RE.match(sql)
    if not match:
        return None
    name = match.group(1)
    if name.startswith("`"):
        name = name[1:-1].replace("``", "`")
    return name


class RestoreExecutor:
    """Executes structural and data statements against one target.

    Args:
        target: Target ``DatabaseClient``.  All statements run on its single
            session, so ``FOREIGN_KEY_CHECKS`` applies to the whole load.
    """

    def __init__(self, target: DatabaseClient) -> None:
        self._target = target

    # ------------------------------------------------------------------
    # Artifact replay
    # ------------------------------------------------------------------

    async def replay_file(self, path: str | Path) -> RestoreResult:
        """Replay a backup artifact from disk.

        Raises:
            FileNotFoundError: If the artifact does not exist.
            ApplyError: On the first statement the target rejects; carries
                the artifact line and a statement preview.
            ConnectivityError: If the target connection is lost.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Backup file not found: {path}")

        logger.info(f"Replaying {path}")
        with open(path, encoding="utf-8", newline="") as f:
            executed = await self._replay(iter_statements(f))

        return RestoreResult(path=str(path), statements_executed=executed)

    async def replay_text(self, text: str) -> RestoreResult:
        """Replay an artifact held in memory."""
        executed = await self._replay(iter_statements(io.StringIO(text, newline="")))
        return RestoreResult(statements_executed=executed)

    async def _replay(self, script: Iterable[ScriptStatement]) -> int:
        await self._run(statements.disable_constraints())

        executed = 0
        for statement in script:
            await self._run(
                statement.sql,
                object_name=statement_object_name(statement.sql),
                line=statement.line,
            )
            executed += 1

        await self._run(statements.enable_constraints())
        logger.info(f"Replay complete: {executed} statement(s) executed")
        return executed

    # ------------------------------------------------------------------
    # Live copy
    # ------------------------------------------------------------------

    async def copy_live(
        self,
        exporter: DataExporter,
        inventory: SchemaInventory,
        *,
        structure_only: bool = False,
    ) -> CopyResult:
        """Recreate the inventory on the target straight from the source.

        Objects are applied in inventory order (tables with their data,
        then views, routines, triggers and events).  Routine bodies are
        sent as single statements, so no delimiter change is needed.

        Args:
            exporter: Exporter reading the source tables.
            inventory: Objects to recreate, in replay order.
            structure_only: Skip every data insert.

        Returns:
            CopyResult with per-table row counts actually inserted.

        Raises:
            ApplyError: With object name and batch index of the rejected
                statement.
            EncodingError: If a source value has no literal encoding.
        """
        executed = 0
        for sql in statements.session_preamble():
            await self._run(sql)

        row_counts: dict[str, int] = {}
        for obj in inventory.objects:
            await self._run(statements.drop_statement(obj), object_name=obj.name)
            await self._run(statements.create_statement(obj), object_name=obj.name)
            executed += 2

            if not obj.is_table:
                continue

            rows = 0
            if not structure_only:
                async with aclosing(exporter.iter_batches(obj)) as batches:
                    async for batch in batches:
                        await self._run(
                            statements.insert_statement(batch),
                            object_name=obj.name,
                            batch_index=batch.index,
                        )
                        executed += 1
                        rows += len(batch)
            row_counts[obj.name] = rows
            logger.info(f"[{obj.name}] copied {rows} row(s)")

        await self._run(statements.enable_constraints())

        return CopyResult(
            object_counts=inventory.counts(),
            row_counts=row_counts,
            statements_executed=executed,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run(
        self,
        sql: str,
        *,
        object_name: str | None = None,
        batch_index: int | None = None,
        line: int | None = None,
    ) -> None:
        """Execute one statement, translating driver errors."""
        try:
            await self._target.execute(sql)
        except DBAPIError as e:
            if e.connection_invalidated:
                raise ConnectivityError("target", str(e.orig or e)) from e
            raise ApplyError(
                str(e.orig or e),
                object_name=object_name,
                batch_index=batch_index,
                line=line,
                statement=sql,
            ) from e
        except SQLAlchemyError as e:
            raise ApplyError(
                str(e),
                object_name=object_name,
                batch_index=batch_index,
                line=line,
                statement=sql,
            ) from e
