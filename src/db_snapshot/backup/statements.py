"""Statement builder shared by the script assembler and the live copy.

Every statement is assembled from ``SqlFragment`` pieces produced by the
codec, so identifiers and literals are always escaped at one place.  All
functions are pure.

Usage:
    from db_snapshot.backup.statements import drop_statement, insert_statement

    drop_statement(obj)        # "DROP TABLE IF EXISTS `accounts`"
    insert_statement(batch)    # "INSERT INTO `accounts` (`id`, ...) VALUES\\n(...)"
"""

from db_snapshot.backup.codec import SqlFragment, encode_value, quote_identifier
from db_snapshot.backup.models import RowBatch
from db_snapshot.errors import EncodingError
from db_snapshot.schema.models import SchemaObject

# Statements are returned without a trailing terminator; callers that
# write scripts append ";" (or the active delimiter).

DISABLE_CONSTRAINTS = SqlFragment("SET FOREIGN_KEY_CHECKS=0")
ENABLE_CONSTRAINTS = SqlFragment("SET FOREIGN_KEY_CHECKS=1")


def disable_constraints() -> SqlFragment:
    return DISABLE_CONSTRAINTS


def enable_constraints() -> SqlFragment:
    return ENABLE_CONSTRAINTS


def session_preamble() -> list[SqlFragment]:
    """Session settings applied before any structural or data statement.

    ``SQL_MODE`` is reset so backslash escapes in text literals are honoured
    and explicit zero values in AUTO_INCREMENT columns are kept.
    """
    return [
        SqlFragment("SET NAMES utf8mb4"),
        DISABLE_CONSTRAINTS,
        SqlFragment("SET SQL_MODE='NO_AUTO_VALUE_ON_ZERO'"),
    ]


def drop_statement(obj: SchemaObject) -> SqlFragment:
    """Unconditional remove-if-present for ``obj``."""
    return SqlFragment(
        f"DROP {obj.kind.keyword} IF EXISTS {quote_identifier(obj.name)}"
    )


def create_statement(obj: SchemaObject) -> SqlFragment:
    """The captured structural statement, without trailing terminator."""
    return SqlFragment(obj.definition.rstrip().rstrip(";").rstrip())


def insert_statement(batch: RowBatch) -> SqlFragment:
    """Multi-row INSERT for one batch.

    The column list is emitted once; each row becomes one encoded tuple on
    its own line.

    Raises:
        ValueError: If the batch has no rows.
        EncodingError: If a value cannot be encoded (table and column are
            attached to the error).
    """
    if not batch.rows:
        raise ValueError(f"Empty batch for table {batch.table}")

    column_list = ", ".join(quote_identifier(c) for c in batch.columns)
    tuples = [_encode_row(batch, row) for row in batch.rows]
    return SqlFragment(
        f"INSERT INTO {quote_identifier(batch.table)} ({column_list}) VALUES\n"
        + ",\n".join(tuples)
    )


def lock_tables(table: str) -> SqlFragment:
    return SqlFragment(f"LOCK TABLES {quote_identifier(table)} WRITE")


def unlock_tables() -> SqlFragment:
    return SqlFragment("UNLOCK TABLES")


def _encode_row(batch: RowBatch, row: tuple) -> str:
    if len(row) != len(batch.columns):
        raise EncodingError(
            f"Row has {len(row)} values for {len(batch.columns)} columns",
            table=batch.table,
        )
    values: list[str] = []
    for column, value in zip(batch.columns, row):
        try:
            values.append(encode_value(value))
        except EncodingError as e:
            raise EncodingError(e.detail, table=batch.table, column=column) from e
    return "(" + ", ".join(values) + ")"
