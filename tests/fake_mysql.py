"""An in-memory stand-in for one MySQL schema.

``FakeMySQL`` implements the ``DatabaseClient`` protocol.  It answers the
catalog queries the enumerator issues, streams table rows, and applies the
DROP / CREATE / INSERT statements the executor sends, so full
backup -> replay -> verify runs can be exercised without a server.
"""

import re

from sqlalchemy.exc import OperationalError, ProgrammingError

_IDENT = r"`((?:[^`]|``)+)`"

_KIND_WORDS = ("TABLE", "VIEW", "PROCEDURE", "FUNCTION", "TRIGGER", "EVENT")

_DROP_RE = re.compile(rf"^DROP (\w+) IF EXISTS {_IDENT}", re.IGNORECASE)
_CREATE_RE = re.compile(
    rf"^CREATE\b.*?\b({'|'.join(_KIND_WORDS)})\s+{_IDENT}", re.IGNORECASE | re.DOTALL
)
_TRIGGER_TABLE_RE = re.compile(rf"\bON\s+{_IDENT}", re.IGNORECASE)
_INSERT_RE = re.compile(rf"^INSERT INTO {_IDENT} \((.*?)\) VALUES\n", re.DOTALL)
_COLUMN_LINE_RE = re.compile(rf"^\s+{_IDENT}", re.MULTILINE)
_SHOW_RE = re.compile(rf"^SHOW CREATE (\w+) {_IDENT}\.{_IDENT}$")
_FROM_RE = re.compile(rf"FROM {_IDENT}\.{_IDENT}")

_DEFINITION_COLUMNS = {
    "TABLE": "Create Table",
    "VIEW": "Create View",
    "PROCEDURE": "Create Procedure",
    "FUNCTION": "Create Function",
    "TRIGGER": "SQL Original Statement",
    "EVENT": "Create Event",
}


def _unquote(name: str) -> str:
    return name.replace("``", "`")


def split_tuples(values: str) -> list[str]:
    """Split ``(..),\\n(..)`` into tuple texts, honouring quoted strings."""
    tuples: list[str] = []
    depth = 0
    quote: str | None = None
    start = 0
    i = 0
    while i < len(values):
        ch = values[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                if values[i + 1 : i + 2] == quote:
                    i += 2
                    continue
                quote = None
        elif ch == "'":
            quote = ch
        elif ch == "(":
            if depth == 0:
                start = i
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                tuples.append(values[start : i + 1])
        i += 1
    return tuples


_LITERAL_ESCAPES = {"0": "\0", "n": "\n", "r": "\r", "Z": "\x1a", "t": "\t", "b": "\b"}


def parse_tuple(text: str) -> tuple:
    """Read a stored ``(..)`` tuple back into values the way the server would.

    Quoted literals are unescaped, ``NULL`` becomes ``None`` and any other
    token is kept as its text.
    """
    body = text[1:-1]
    values: list = []
    i = 0
    while i < len(body):
        while body[i] == " ":
            i += 1
        if body[i] == "'":
            chars: list[str] = []
            i += 1
            while True:
                ch = body[i]
                if ch == "\\":
                    nxt = body[i + 1]
                    chars.append(_LITERAL_ESCAPES.get(nxt, nxt))
                    i += 2
                elif ch == "'":
                    if body[i + 1 : i + 2] == "'":
                        chars.append("'")
                        i += 2
                    else:
                        i += 1
                        break
                else:
                    chars.append(ch)
                    i += 1
            values.append("".join(chars))
            comma = body.find(",", i)
        else:
            comma = body.find(",", i)
            token = body[i:] if comma == -1 else body[i:comma]
            values.append(None if token.strip() == "NULL" else token.strip())
        if comma == -1:
            break
        i = comma + 1
    return tuple(values)


def table_definition(name: str, columns: list[str], extra: str = "") -> str:
    lines = [f"  `{c}` varchar(255) DEFAULT NULL" for c in columns]
    if extra:
        lines.append(f"  {extra}")
    body = ",\n".join(lines)
    return f"CREATE TABLE `{name}` (\n{body}\n) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4"


class FakeMySQL:
    """One schema held in dicts, speaking just enough SQL for the engine."""

    def __init__(self, schema: str = "app", partition_size: int | None = None) -> None:
        self.schema = schema
        self.partition_size = partition_size  # stream() partition override
        self.tables: dict[str, dict] = {}
        self.objects: dict[str, dict[str, dict]] = {
            kind: {} for kind in _KIND_WORDS if kind != "TABLE"
        }
        self.executed: list[str] = []
        self.fk_checks = 1
        self.inserts_with_checks_on = 0
        self.fail_on: str | None = None
        self.fail_catalog: str | None = None
        self.hidden: set[str] = set()  # names whose SHOW CREATE returns NULL
        self.closed = False

    # ------------------------------------------------------------------
    # Fixture builders
    # ------------------------------------------------------------------

    def add_table(
        self,
        name: str,
        columns: list[str],
        rows: list[tuple] | None = None,
        *,
        generated: tuple[str, ...] = (),
        extra: str = "",
    ) -> None:
        self.tables[name] = {
            "definition": table_definition(name, columns, extra),
            "columns": list(columns),
            "generated": set(generated),
            "rows": list(rows or []),
        }

    def add_object(self, kind: str, name: str, definition: str, table: str | None = None) -> None:
        self.objects[kind.upper()][name] = {"definition": definition, "table": table}

    def row_count(self, table: str) -> int:
        return len(self.tables[table]["rows"])

    # ------------------------------------------------------------------
    # DatabaseClient
    # ------------------------------------------------------------------

    async def fetch_all(self, sql: str, params: dict | None = None) -> list[dict]:
        if self.fail_catalog and self.fail_catalog in sql:
            raise ProgrammingError(sql, params, Exception("SELECT command denied"))

        if sql == "SELECT 1 AS ok":
            return [{"ok": 1}]
        if "information_schema.COLUMNS" in sql:
            table = self.tables[params["table"]]
            return [
                {"name": c, "extra": "VIRTUAL GENERATED" if c in table["generated"] else ""}
                for c in table["columns"]
            ]
        if "information_schema.TABLES" in sql:
            return [{"name": n} for n in sorted(self.tables)]
        if "information_schema.VIEWS" in sql:
            return self._names("VIEW")
        if "ROUTINE_TYPE = 'PROCEDURE'" in sql:
            return self._names("PROCEDURE")
        if "ROUTINE_TYPE = 'FUNCTION'" in sql:
            return self._names("FUNCTION")
        if "information_schema.TRIGGERS" in sql:
            return [
                {"name": n, "table_name": o["table"]}
                for n, o in sorted(self.objects["TRIGGER"].items())
            ]
        if "information_schema.EVENTS" in sql:
            return self._names("EVENT")

        show = _SHOW_RE.match(sql)
        if show:
            kind, name = show.group(1).upper(), _unquote(show.group(3))
            store = self.tables if kind == "TABLE" else self.objects[kind]
            if name not in store:
                raise ProgrammingError(sql, params, Exception(f"{kind} {name} does not exist"))
            definition = None if name in self.hidden else store[name]["definition"]
            return [{_DEFINITION_COLUMNS[kind]: definition}]

        if sql.startswith("SELECT COUNT(*) AS row_count"):
            table = _unquote(_FROM_RE.search(sql).group(2))
            return [{"row_count": self.row_count(table)}]

        raise AssertionError(f"Unexpected query: {sql}")

    async def stream(self, sql: str, batch_size: int):
        table = _unquote(_FROM_RE.search(sql).group(2))
        rows = self.tables[table]["rows"]
        size = self.partition_size or batch_size
        for start in range(0, len(rows), size):
            yield rows[start : start + size]

    async def execute(self, sql: str, params: dict | None = None) -> int:
        self.executed.append(sql)
        if self.fail_on and self.fail_on in sql:
            raise ProgrammingError(sql, params, Exception("You have an error in your SQL syntax"))

        upper = sql.upper()
        if upper.startswith("SET FOREIGN_KEY_CHECKS="):
            self.fk_checks = int(sql.rsplit("=", 1)[1])
            return 0

        drop = _DROP_RE.match(sql)
        if drop:
            kind, name = drop.group(1).upper(), _unquote(drop.group(2))
            store = self.tables if kind == "TABLE" else self.objects[kind]
            store.pop(name, None)
            return 0

        if upper.startswith("CREATE"):
            return self._create(sql)

        insert = _INSERT_RE.match(sql)
        if insert:
            name = _unquote(insert.group(1))
            if name not in self.tables:
                raise ProgrammingError(sql, params, Exception(f"Table '{name}' doesn't exist"))
            if self.fk_checks:
                self.inserts_with_checks_on += 1
            tuples = split_tuples(sql[insert.end() :])
            self.tables[name]["rows"].extend(tuples)
            return len(tuples)

        # SET NAMES / SQL_MODE / AUTOCOMMIT, transactions, LOCK / UNLOCK
        return 0

    async def close(self) -> None:
        self.closed = True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _names(self, kind: str) -> list[dict]:
        return [{"name": n} for n in sorted(self.objects[kind])]

    def _create(self, sql: str) -> int:
        match = _CREATE_RE.match(sql)
        if not match:
            raise ProgrammingError(sql, None, Exception("Unsupported CREATE"))
        kind, name = match.group(1).upper(), _unquote(match.group(2))

        if kind == "TABLE":
            if name in self.tables:
                raise ProgrammingError(sql, None, Exception(f"Table '{name}' already exists"))
            columns = [_unquote(c) for c in _COLUMN_LINE_RE.findall(sql)]
            self.tables[name] = {
                "definition": sql,
                "columns": columns,
                "generated": set(),
                "rows": [],
            }
            return 0

        if name in self.objects[kind]:
            raise ProgrammingError(sql, None, Exception(f"{kind} {name} already exists"))
        table = None
        if kind == "TRIGGER":
            on = _TRIGGER_TABLE_RE.search(sql)
            table = _unquote(on.group(1)) if on else None
        self.objects[kind][name] = {"definition": sql, "table": table}
        return 0


class LostConnection(OperationalError):
    """Driver error flagged as an invalidated connection."""

    def __init__(self, statement: str) -> None:
        super().__init__(
            statement,
            None,
            Exception("Lost connection to MySQL server"),
            connection_invalidated=True,
        )
