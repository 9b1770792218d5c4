"""MySQL schema enumeration via information_schema and SHOW CREATE.

This module queries the live source database to build the ordered object
inventory of one schema:
- Tables: verbatim ``SHOW CREATE TABLE`` plus insertable column order
- Views: ``SHOW CREATE VIEW``, definer-stripped, schema qualifier removed
- Procedures and functions: ``SHOW CREATE PROCEDURE/FUNCTION``
- Triggers: ``SHOW CREATE TRIGGER`` (``SQL Original Statement``)
- Events: ``SHOW CREATE EVENT``

Structural statements are taken exactly as the server regenerates them;
nothing is reconstructed field by field.
"""

import logging
import re
from typing import Literal

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.backup.codec import qualified_name
from db_snapshot.errors import ConnectivityError, EnumerationError
from db_snapshot.schema.models import (
    ObjectKind,
    SchemaInventory,
    SchemaObject,
    SkippedObject,
)

logger = logging.getLogger(__name__)


LIST_QUERIES: dict[ObjectKind, str] = {
    ObjectKind.TABLE: (
        "SELECT TABLE_NAME AS name FROM information_schema.TABLES "
        "WHERE TABLE_SCHEMA = :schema AND TABLE_TYPE = 'BASE TABLE' "
        "ORDER BY TABLE_NAME"
    ),
    ObjectKind.VIEW: (
        "SELECT TABLE_NAME AS name FROM information_schema.VIEWS "
        "WHERE TABLE_SCHEMA = :schema ORDER BY TABLE_NAME"
    ),
    ObjectKind.PROCEDURE: (
        "SELECT ROUTINE_NAME AS name FROM information_schema.ROUTINES "
        "WHERE ROUTINE_SCHEMA = :schema AND ROUTINE_TYPE = 'PROCEDURE' "
        "ORDER BY ROUTINE_NAME"
    ),
    ObjectKind.FUNCTION: (
        "SELECT ROUTINE_NAME AS name FROM information_schema.ROUTINES "
        "WHERE ROUTINE_SCHEMA = :schema AND ROUTINE_TYPE = 'FUNCTION' "
        "ORDER BY ROUTINE_NAME"
    ),
    ObjectKind.TRIGGER: (
        "SELECT TRIGGER_NAME AS name, EVENT_OBJECT_TABLE AS table_name "
        "FROM information_schema.TRIGGERS WHERE TRIGGER_SCHEMA = :schema "
        "ORDER BY EVENT_OBJECT_TABLE, ACTION_TIMING, EVENT_MANIPULATION, ACTION_ORDER"
    ),
    ObjectKind.EVENT: (
        "SELECT EVENT_NAME AS name FROM information_schema.EVENTS "
        "WHERE EVENT_SCHEMA = :schema ORDER BY EVENT_NAME"
    ),
}

COLUMNS_QUERY = (
    "SELECT COLUMN_NAME AS name, EXTRA AS extra FROM information_schema.COLUMNS "
    "WHERE TABLE_SCHEMA = :schema AND TABLE_NAME = :table "
    "ORDER BY ORDINAL_POSITION"
)

# Result column holding the definition in each SHOW CREATE output
DEFINITION_COLUMNS: dict[ObjectKind, str] = {
    ObjectKind.TABLE: "Create Table",
    ObjectKind.VIEW: "Create View",
    ObjectKind.PROCEDURE: "Create Procedure",
    ObjectKind.FUNCTION: "Create Function",
    ObjectKind.TRIGGER: "SQL Original Statement",
    ObjectKind.EVENT: "Create Event",
}

_QUOTED_USER = r"(?:`(?:[^`]|``)*`|'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|[^\s@`'\"]+)"
_QUOTED_HOST = r"(?:`(?:[^`]|``)*`|'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|[^\s`'\"]+)"

# DEFINER clause between CREATE (plus view options) and the object keyword
_DEFINER_RE = re.compile(
    r"^(\s*CREATE\s+(?:(?:OR\s+REPLACE|ALGORITHM\s*=\s*\w+)\s+)*)"
    rf"DEFINER\s*=\s*{_QUOTED_USER}(?:\s*@\s*{_QUOTED_HOST})?\s+",
    re.IGNORECASE,
)

_IDENTIFIER_RE = re.compile(r"`((?:[^`]|``)+)`")

# String literals and identifiers are matched whole so nothing inside them
# is taken for a qualifier
_LITERAL_OR_QUALIFIER_RE = re.compile(
    r"'(?:[^'\\]|\\.|'')*'"
    r'|"(?:[^"\\]|\\.|"")*"'
    r"|(`(?:[^`]|``)+`)(\.)?",
    re.DOTALL,
)


def strip_definer(definition: str) -> str:
    """Remove the ``DEFINER=user@host`` clause from a create statement.

    Only the clause in the statement header is touched; routine bodies are
    left as they are.

    Example:
        >>> strip_definer("CREATE DEFINER=`root`@`localhost` PROCEDURE `p`() BEGIN END")
        'CREATE PROCEDURE `p`() BEGIN END'
    """
    return _DEFINER_RE.sub(r"\1", definition, count=1)


def strip_schema_qualifier(definition: str, schema_name: str) -> str:
    """Remove ``` `schema`. ``` qualifiers so a view resolves in any schema.

    Text inside string literals is left as it is.

    Example:
        >>> strip_schema_qualifier("select `app`.`t`.`id`, '`app`.x' from `app`.`t`", "app")
        "select `t`.`id`, '`app`.x' from `t`"
    """
    quoted = "`" + schema_name.replace("`", "``") + "`"

    def _replace(match: re.Match) -> str:
        if match.group(2) and match.group(1) == quoted:
            return ""
        return match.group(0)

    return _LITERAL_OR_QUALIFIER_RE.sub(_replace, definition)


def order_views(views: list[SchemaObject]) -> list[SchemaObject]:
    """Order views so every view follows the views it selects from.

    Dependencies are the other view names appearing as quoted identifiers in
    a definition.  Views keep their original relative order where no
    dependency applies; a dependency cycle falls back to original order.
    """
    names = {v.name for v in views}
    deps: dict[str, set[str]] = {}
    for view in views:
        referenced = {
            m.group(1).replace("``", "`") for m in _IDENTIFIER_RE.finditer(view.definition)
        }
        deps[view.name] = (referenced & names) - {view.name}

    ordered: list[SchemaObject] = []
    placed: set[str] = set()
    remaining = list(views)
    while remaining:
        ready = [v for v in remaining if deps[v.name] <= placed]
        if not ready:
            # Cycle -- keep the rest in original order
            ordered.extend(remaining)
            break
        for view in ready:
            ordered.append(view)
            placed.add(view.name)
        remaining = [v for v in remaining if v.name not in placed]
    return ordered


class SchemaEnumerator:
    """Enumerates the objects of one MySQL schema.

    Args:
        client: Source ``DatabaseClient``.
        schema_name: Schema (database) to enumerate.
        strip_definers: Remove ``DEFINER=`` clauses from view, routine,
            trigger and event definitions.
        on_error: ``"abort"`` raises the first ``EnumerationError``;
            ``"skip"`` logs it, records it in ``inventory.skipped`` and
            continues.
        include_events: Enumerate scheduled events.

    Usage:
        enumerator = SchemaEnumerator(client, "app")
        inventory = await enumerator.enumerate()
        for obj in inventory.objects:
            print(obj.kind, obj.name)
    """

    def __init__(
        self,
        client: DatabaseClient,
        schema_name: str,
        *,
        strip_definers: bool = True,
        on_error: Literal["abort", "skip"] = "abort",
        include_events: bool = True,
    ) -> None:
        self._client = client
        self.schema_name = schema_name
        self.strip_definers = strip_definers
        self.on_error = on_error
        self.include_events = include_events

    @property
    def kinds(self) -> list[ObjectKind]:
        """Kinds enumerated, in replay order."""
        return [k for k in ObjectKind if self.include_events or k is not ObjectKind.EVENT]

    async def enumerate(self) -> SchemaInventory:
        """Build the ordered inventory of the schema.

        Returns:
            SchemaInventory with tables first, then views (dependency
            ordered), procedures, functions, triggers and events.

        Raises:
            EnumerationError: Under the ``"abort"`` policy, for the first
                category or object that cannot be read.
            ConnectivityError: If the source connection is lost.
        """
        inventory = SchemaInventory(schema_name=self.schema_name)

        for kind in self.kinds:
            try:
                entries = await self._list(kind)
            except EnumerationError as e:
                self._handle(e, inventory)
                continue

            objects: list[SchemaObject] = []
            for name, table_name in entries:
                try:
                    objects.append(await self._describe(kind, name, table_name))
                except EnumerationError as e:
                    self._handle(e, inventory)

            if kind is ObjectKind.VIEW:
                objects = order_views(objects)

            logger.info(f"[{self.schema_name}] {len(objects)} {kind.value}(s) enumerated")
            inventory.objects.extend(objects)

        return inventory

    async def list_names(self, kind: ObjectKind) -> list[str]:
        """Names of all objects of ``kind`` (no definitions fetched)."""
        return [name for name, _ in await self._list(kind)]

    async def table_columns(self, table_name: str) -> tuple[str, ...]:
        """Insertable column names of a table in ordinal order.

        Generated columns are excluded: the server computes them and
        rejects explicit values.
        """
        rows = await self._query(
            ObjectKind.TABLE,
            table_name,
            COLUMNS_QUERY,
            {"schema": self.schema_name, "table": table_name},
        )
        return tuple(
            row["name"]
            for row in rows
            if "GENERATED" not in (row.get("extra") or "").upper()
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _list(self, kind: ObjectKind) -> list[tuple[str, str | None]]:
        rows = await self._query(kind, None, LIST_QUERIES[kind], {"schema": self.schema_name})
        return [(row["name"], row.get("table_name")) for row in rows]

    async def _describe(
        self, kind: ObjectKind, name: str, table_name: str | None = None
    ) -> SchemaObject:
        target = qualified_name(self.schema_name, name)
        rows = await self._query(kind, name, f"SHOW CREATE {kind.keyword} {target}")

        column = DEFINITION_COLUMNS[kind]
        definition = rows[0].get(column) if rows else None
        if not definition:
            # SHOW CREATE returns NULL bodies when the account lacks privileges
            raise EnumerationError(kind.value, name, "definition not accessible")

        if kind is ObjectKind.TABLE:
            return SchemaObject(
                kind=kind,
                name=name,
                definition=definition,
                columns=await self.table_columns(name),
            )

        if self.strip_definers:
            definition = strip_definer(definition)
        if kind is ObjectKind.VIEW:
            definition = strip_schema_qualifier(definition, self.schema_name)

        return SchemaObject(kind=kind, name=name, definition=definition, table=table_name)

    async def _query(
        self,
        kind: ObjectKind,
        name: str | None,
        sql: str,
        params: dict | None = None,
    ) -> list[dict]:
        """Run an enumeration query, translating driver errors."""
        try:
            return await self._client.fetch_all(sql, params)
        except DBAPIError as e:
            if e.connection_invalidated:
                raise ConnectivityError("source", str(e.orig or e)) from e
            raise EnumerationError(kind.value, name, str(e.orig or e)) from e
        except SQLAlchemyError as e:
            raise EnumerationError(kind.value, name, str(e)) from e

    def _handle(self, error: EnumerationError, inventory: SchemaInventory) -> None:
        if self.on_error == "abort":
            raise error
        logger.warning(f"Skipping {error}")
        inventory.skipped.append(
            SkippedObject(kind=ObjectKind(error.kind), name=error.name, reason=error.detail)
        )
