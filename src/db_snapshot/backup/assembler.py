"""Script assembly: object definitions and data batches into one artifact.

The assembler is a pure text-building step.  It performs no I/O; callers
either ask for the whole artifact (``assemble``) or write it segment by
segment as batches arrive from the exporter.

Artifact layout:
    header      comments, session settings, constraint checks off,
                transaction start
    tables      DROP TABLE IF EXISTS + CREATE TABLE, then batched INSERTs
    views       DROP VIEW IF EXISTS + CREATE VIEW
    routines    DROP ... IF EXISTS, then CREATE wrapped in DELIMITER $$
    footer      constraint checks on, COMMIT

Usage:
    from db_snapshot.backup.assembler import ScriptAssembler

    assembler = ScriptAssembler()
    sql = assembler.assemble(inventory, {"accounts": [batch0, batch1]})
"""

from collections.abc import Iterable, Mapping
from datetime import datetime

from db_snapshot.backup import statements
from db_snapshot.backup.codec import quote_identifier
from db_snapshot.backup.models import RowBatch
from db_snapshot.schema.models import ObjectKind, SchemaInventory, SchemaObject

ROUTINE_DELIMITER = "$$"

_RULE = "-- " + "=" * 76

_SECTION_TITLES: dict[ObjectKind, str] = {
    ObjectKind.VIEW: "Views",
    ObjectKind.PROCEDURE: "Stored Procedures",
    ObjectKind.FUNCTION: "Stored Functions",
    ObjectKind.TRIGGER: "Triggers",
    ObjectKind.EVENT: "Events",
}


def _banner(title: str) -> str:
    return f"{_RULE}\n-- {title}\n{_RULE}\n\n"


def _terminated(statement: str, delimiter: str = ";") -> str:
    return f"{statement}{delimiter}\n"


class ScriptAssembler:
    """Builds a replayable MySQL script.

    Args:
        create_database: Emit ``CREATE DATABASE IF NOT EXISTS`` and ``USE``
            for the source schema name in the header.  Off by default so the
            artifact loads into whatever database the client is using.
    """

    def __init__(self, create_database: bool = False) -> None:
        self.create_database = create_database

    # ------------------------------------------------------------------
    # Framing
    # ------------------------------------------------------------------

    def header(self, schema_name: str, created_at: datetime | None = None) -> str:
        created_at = created_at or datetime.now()
        parts = [
            f"{_RULE}\n",
            f"-- Database Backup: {schema_name}\n",
            f"-- Created: {created_at.isoformat(timespec='seconds')}\n",
            f"{_RULE}\n\n",
        ]
        parts.extend(_terminated(s) for s in statements.session_preamble())
        parts.append(_terminated("SET AUTOCOMMIT=0"))
        parts.append(_terminated("START TRANSACTION"))
        parts.append("\n")

        if self.create_database:
            name = quote_identifier(schema_name)
            parts.append(_terminated(f"CREATE DATABASE IF NOT EXISTS {name}"))
            parts.append(_terminated(f"USE {name}"))
            parts.append("\n")

        return "".join(parts)

    def footer(self) -> str:
        return (
            _terminated(statements.ENABLE_CONSTRAINTS)
            + _terminated("COMMIT")
            + "\n"
            + _banner("Backup Complete").rstrip("\n")
            + "\n"
        )

    def section(self, kind: ObjectKind) -> str:
        """Banner opening the section of non-table objects of ``kind``."""
        return _banner(_SECTION_TITLES[kind])

    def section_break(self, previous: ObjectKind | None, obj: SchemaObject) -> str:
        """Section banner when ``obj`` starts a new non-table kind, else empty."""
        if obj.is_table or obj.kind is previous:
            return ""
        return self.section(obj.kind)

    # ------------------------------------------------------------------
    # Segments
    # ------------------------------------------------------------------

    def table_segment_start(self, table: SchemaObject) -> str:
        """Drop-if-exists and verbatim create for one table."""
        return (
            _banner(f"Table: {table.name}")
            + _terminated(statements.drop_statement(table))
            + _terminated(statements.create_statement(table))
            + "\n"
        )

    def data_start(self, table: SchemaObject) -> str:
        return f"-- Data for table: {table.name}\n" + _terminated(
            statements.lock_tables(table.name)
        )

    def insert_block(self, batch: RowBatch) -> str:
        """One batched INSERT statement."""
        return _terminated(statements.insert_statement(batch))

    def data_end(self) -> str:
        return _terminated(statements.unlock_tables()) + "\n"

    def data_segment(self, table: SchemaObject, batches: Iterable[RowBatch]) -> str:
        """All inserts for a table; empty text when there are no batches."""
        blocks = [self.insert_block(b) for b in batches if b.rows]
        if not blocks:
            return ""
        return self.data_start(table) + "".join(blocks) + self.data_end()

    def view_segment(self, view: SchemaObject) -> str:
        return (
            _terminated(statements.drop_statement(view))
            + _terminated(statements.create_statement(view))
            + "\n"
        )

    def routine_segment(self, routine: SchemaObject) -> str:
        """Drop, then create wrapped in a delimiter change.

        Routine and trigger bodies legally contain ``;``, so the create
        statement is terminated with ``$$`` instead.
        """
        return (
            _terminated(statements.drop_statement(routine))
            + f"DELIMITER {ROUTINE_DELIMITER}\n"
            + _terminated(statements.create_statement(routine), ROUTINE_DELIMITER)
            + "DELIMITER ;\n\n"
        )

    def segment(self, obj: SchemaObject, batches: Iterable[RowBatch] = ()) -> str:
        """Segment for any object kind (batches apply to tables only)."""
        if obj.is_table:
            return self.table_segment_start(obj) + self.data_segment(obj, batches)
        if obj.kind.is_routine:
            return self.routine_segment(obj)
        return self.view_segment(obj)

    # ------------------------------------------------------------------
    # Whole artifact
    # ------------------------------------------------------------------

    def assemble(
        self,
        inventory: SchemaInventory,
        batches_by_table: Mapping[str, Iterable[RowBatch]] | None = None,
        created_at: datetime | None = None,
    ) -> str:
        """Build the complete artifact from in-memory inputs.

        Args:
            inventory: Ordered schema objects.
            batches_by_table: Row batches per table name.  Missing tables
                (or ``None`` for structure-only) get no data segment.
            created_at: Timestamp written in the header.

        Returns:
            The artifact text.
        """
        batches_by_table = batches_by_table or {}
        parts = [self.header(inventory.schema_name, created_at)]

        previous: ObjectKind | None = None
        for obj in inventory.objects:
            parts.append(self.section_break(previous, obj))
            previous = obj.kind
            parts.append(self.segment(obj, batches_by_table.get(obj.name, ())))

        parts.append(self.footer())
        return "".join(parts)
