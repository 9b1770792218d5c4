"""Value codec: Python column values to MySQL literals.

Every value read from a row is classified into exactly one ``ValueKind`` and
encoded into a ``SqlFragment`` -- text that is already safe to splice into a
statement.  There is no decode step: the target server evaluates the literal
itself.

Usage:
    from db_snapshot.backup.codec import encode_value, quote_identifier

    encode_value("O'Brien")          # "'O''Brien'"
    encode_value(None)               # "NULL"
    quote_identifier("order")        # "`order`"
"""

import json
import math
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from db_snapshot.errors import EncodingError


class SqlFragment(str):
    """SQL text whose literal boundaries are already settled.

    Only the codec and the statement builder create fragments; anything
    that is not a fragment is raw text and must go through ``encode_value``
    or ``quote_identifier`` first.
    """

    __slots__ = ()


class ValueKind(str, Enum):
    """Semantic tag of a single cell value."""

    NULL = "null"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    TEXT = "text"
    TEMPORAL = "temporal"
    STRUCTURED = "structured"
    BINARY = "binary"


NULL = SqlFragment("NULL")

_TEXT_TYPES = (str, UUID, set, frozenset)
_TEMPORAL_TYPES = (datetime, date, time, timedelta)
_STRUCTURED_TYPES = (dict, list, tuple)
_BINARY_TYPES = (bytes, bytearray, memoryview)

# Same escapes mysqldump writes inside string literals
_TEXT_ESCAPES = str.maketrans(
    {
        "\\": "\\\\",
        "'": "''",
        "\0": "\\0",
        "\n": "\\n",
        "\r": "\\r",
        "\x1a": "\\Z",
    }
)


def classify(value: Any) -> ValueKind:
    """Return the tag for a runtime value.

    ``bool`` is checked before ``int`` (it is an ``int`` subclass) and
    ``Decimal`` is tagged ``FLOAT``.

    Raises:
        EncodingError: If the runtime type has no tag.
    """
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, (float, Decimal)):
        return ValueKind.FLOAT
    if isinstance(value, _TEXT_TYPES):
        return ValueKind.TEXT
    if isinstance(value, _TEMPORAL_TYPES):
        return ValueKind.TEMPORAL
    if isinstance(value, _STRUCTURED_TYPES):
        return ValueKind.STRUCTURED
    if isinstance(value, _BINARY_TYPES):
        return ValueKind.BINARY
    raise EncodingError(f"Unsupported column value type: {type(value).__name__}")


def quote_text(text: str) -> SqlFragment:
    """Single-quote ``text``, doubling quotes and escaping backslashes.

    NUL, line breaks and Ctrl-Z are written as backslash escapes so the
    literal stays on one line and survives newline translation.
    """
    return SqlFragment("'" + text.translate(_TEXT_ESCAPES) + "'")


def quote_identifier(name: str) -> SqlFragment:
    """Backtick-quote an identifier (embedded backticks are doubled)."""
    return SqlFragment("`" + name.replace("`", "``") + "`")


def qualified_name(schema: str, name: str) -> SqlFragment:
    """Return ``` `schema`.`name` ```."""
    return SqlFragment(f"{quote_identifier(schema)}.{quote_identifier(name)}")


def encode_value(value: Any) -> SqlFragment:
    """Encode one column value as a MySQL literal.

    Args:
        value: Value as returned by the driver.

    Returns:
        The literal, e.g. ``NULL``, ``1``, ``'2024-01-31 08:15:00'``,
        ``X'00ff'``.

    Raises:
        EncodingError: For runtime types without a tag and for non-finite
            numbers (which MySQL cannot store).

    Example:
        >>> encode_value(True)
        '1'
        >>> encode_value("O'Brien")
        "'O''Brien'"
    """
    kind = classify(value)

    if kind is ValueKind.NULL:
        return NULL
    if kind is ValueKind.BOOLEAN:
        return SqlFragment("1" if value else "0")
    if kind is ValueKind.INTEGER:
        return SqlFragment(str(int(value)))
    if kind is ValueKind.FLOAT:
        return _encode_number(value)
    if kind is ValueKind.TEXT:
        return _encode_text(value)
    if kind is ValueKind.TEMPORAL:
        return _encode_temporal(value)
    if kind is ValueKind.STRUCTURED:
        flattened = json.dumps(
            value, separators=(",", ":"), ensure_ascii=False, default=str
        )
        return quote_text(flattened)
    # BINARY
    return SqlFragment(f"X'{bytes(value).hex()}'")


def _encode_number(value: float | Decimal) -> SqlFragment:
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise EncodingError(f"Non-finite decimal value: {value}")
        return SqlFragment(format(value, "f"))
    if not math.isfinite(value):
        raise EncodingError(f"Non-finite float value: {value}")
    # repr() is the shortest text that round-trips to the same double
    return SqlFragment(repr(value))


def _encode_text(value: str | UUID | set | frozenset) -> SqlFragment:
    if isinstance(value, (set, frozenset)):
        # SET columns
        return quote_text(",".join(sorted(str(v) for v in value)))
    return quote_text(str(value))


def _encode_temporal(value: datetime | date | time | timedelta) -> SqlFragment:
    # Sub-second precision is truncated everywhere; years are always 4 digits
    if isinstance(value, datetime):
        text = value.replace(tzinfo=None).isoformat(sep=" ", timespec="seconds")
        return SqlFragment(f"'{text}'")
    if isinstance(value, date):
        return SqlFragment(f"'{value.isoformat()}'")
    if isinstance(value, time):
        text = value.replace(tzinfo=None).isoformat(timespec="seconds")
        return SqlFragment(f"'{text}'")

    # timedelta: MySQL TIME, range -838:59:59 .. 838:59:59
    total = int(value.total_seconds())
    sign = "-" if total < 0 else ""
    total = abs(total)
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    return SqlFragment(f"'{sign}{hours}:{minutes:02d}:{seconds:02d}'")
