"""Split a MySQL script into individual statements.

Follows the rules the stock ``mysql`` client applies when it reads a file:

- ``DELIMITER <token>`` at the start of a statement changes the terminator
  (the directive itself is never sent to the server)
- terminators inside ``'...'``, ``"..."`` and `` `...` `` do not count;
  backslash escapes and doubled quotes are honoured inside string literals
- ``--`` (followed by whitespace) and ``#`` start a comment that runs to the
  end of the line
- ``/* ... */`` block comments are kept in the statement text;
  ``/*! ... */`` version comments count as executable content
- chunks holding only whitespace and comments are dropped

Input is consumed line by line, so arbitrarily large artifacts are split
with memory bounded by the largest single statement.

Usage:
    from db_snapshot.restore.script import iter_statements

    with open("backups/app_backup.sql", encoding="utf-8", newline="") as f:
        for statement in iter_statements(f):
            print(statement.line, statement.sql[:40])
"""

import io
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

DEFAULT_DELIMITER = ";"

_DELIMITER_RE = re.compile(r"^\s*DELIMITER\s+(\S+)\s*$", re.IGNORECASE)

_QUOTES = ("'", '"', "`")


@dataclass(frozen=True)
class ScriptStatement:
    """One statement and the 1-based script line it starts on."""

    sql: str
    line: int


def iter_statements(lines: Iterable[str]) -> Iterator[ScriptStatement]:
    """Yield the statements of a script in order.

    Args:
        lines: Script lines with their terminators (a file opened with
            ``newline=""``, or ``io.StringIO(text, newline="")``).  Only
            ``\\n``, ``\\r\\n`` and ``\\r`` may end a line; ``str.splitlines``
            also breaks on characters such as U+2028 and must not be used.

    Yields:
        ScriptStatement for each non-empty statement.  A trailing statement
        without terminator is yielded as well.
    """
    delimiter = DEFAULT_DELIMITER
    buffer: list[str] = []
    start_line = 0
    has_code = False
    quote: str | None = None
    in_comment = False

    for lineno, line in enumerate(lines, start=1):
        if quote is None and not in_comment and not has_code:
            match = _DELIMITER_RE.match(line)
            if match:
                delimiter = match.group(1)
                buffer.clear()
                continue

        i = 0
        length = len(line)
        while i < length:
            ch = line[i]

            if in_comment:
                if line.startswith("*/", i):
                    buffer.append("*/")
                    in_comment = False
                    i += 2
                else:
                    buffer.append(ch)
                    i += 1
                continue

            if quote is not None:
                if ch == "\\" and quote != "`" and i + 1 < length:
                    buffer.append(line[i : i + 2])
                    i += 2
                    continue
                if ch == quote:
                    if line.startswith(quote * 2, i):
                        buffer.append(quote * 2)
                        i += 2
                        continue
                    quote = None
                buffer.append(ch)
                i += 1
                continue

            if line.startswith(delimiter, i):
                if has_code:
                    yield ScriptStatement(sql="".join(buffer).strip(), line=start_line)
                buffer.clear()
                has_code = False
                i += len(delimiter)
                continue

            if ch == "#" or (
                line.startswith("--", i) and (i + 2 >= length or line[i + 2].isspace())
            ):
                # Line comment: drop the rest of the line, keep its terminator
                buffer.append(line[len(line.rstrip("\r\n")) :])
                break

            if line.startswith("/*", i):
                if line.startswith("/*!", i) and not has_code:
                    buffer.clear()
                    has_code = True
                    start_line = lineno
                in_comment = True
                buffer.append("/*")
                i += 2
                continue

            if not ch.isspace() and not has_code:
                # Leading comments and blank lines are not part of the statement
                buffer.clear()
                has_code = True
                start_line = lineno
            if ch in _QUOTES:
                quote = ch
            buffer.append(ch)
            i += 1

    if has_code:
        yield ScriptStatement(sql="".join(buffer).strip(), line=start_line)


def split_statements(text: str) -> list[ScriptStatement]:
    """Split a whole script held in memory."""
    return list(iter_statements(io.StringIO(text, newline="")))
