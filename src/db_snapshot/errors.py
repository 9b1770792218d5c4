"""Exception taxonomy for snapshot runs.

Every failure that stops a run derives from ``SnapshotError``.  There are no
retries anywhere in the engine: a database operation either succeeds or the
run stops with one of these errors.

Usage:
    from db_snapshot.errors import ApplyError, SnapshotError

    try:
        await restore_database(target, "backups/app_backup.sql")
    except ApplyError as e:
        print(e.object_name, e.line)
"""


class SnapshotError(Exception):
    """Base class for all snapshot engine errors."""

    pass


class ProfileNotFoundError(SnapshotError):
    """Raised when an endpoint identifier matches no configured profile."""

    pass


class ConnectivityError(SnapshotError):
    """Raised when the source or target endpoint cannot be reached.

    Fatal: aborts the run immediately.
    """

    def __init__(self, endpoint: str, detail: str) -> None:
        self.endpoint = endpoint
        self.detail = detail
        super().__init__(f"Cannot reach {endpoint} database: {detail}")


class EnumerationError(SnapshotError):
    """Raised when an object (or a whole object category) cannot be read.

    ``name`` is ``None`` when listing the category itself failed.
    """

    def __init__(self, kind: str, name: str | None, detail: str) -> None:
        self.kind = kind
        self.name = name
        self.detail = detail
        target = f"{kind} '{name}'" if name else f"{kind} list"
        super().__init__(f"Cannot read {target}: {detail}")


class EncodingError(SnapshotError):
    """Raised when a column value has no literal encoding.

    Indicates a codec gap, never a transient condition.
    """

    def __init__(
        self,
        detail: str,
        table: str | None = None,
        column: str | None = None,
    ) -> None:
        self.detail = detail
        self.table = table
        self.column = column
        where = ""
        if table and column:
            where = f" ({table}.{column})"
        elif table:
            where = f" ({table})"
        super().__init__(f"{detail}{where}")


class ApplyError(SnapshotError):
    """Raised when the target rejects a structural or data statement.

    Carries enough context to locate the failing statement: the object it
    belongs to, the data batch index (live copy) or the artifact line
    (replay), and a truncated preview of the statement text.
    """

    PREVIEW_LENGTH = 200

    def __init__(
        self,
        detail: str,
        object_name: str | None = None,
        batch_index: int | None = None,
        line: int | None = None,
        statement: str = "",
    ) -> None:
        self.detail = detail
        self.object_name = object_name
        self.batch_index = batch_index
        self.line = line
        self.statement = statement

        context: list[str] = []
        if object_name:
            context.append(f"object '{object_name}'")
        if batch_index is not None:
            context.append(f"batch {batch_index}")
        if line is not None:
            context.append(f"line {line}")
        prefix = f"[{', '.join(context)}] " if context else ""
        super().__init__(f"{prefix}{detail}")

    @property
    def preview(self) -> str:
        """First ``PREVIEW_LENGTH`` characters of the failing statement."""
        text = " ".join(self.statement.split())
        if len(text) > self.PREVIEW_LENGTH:
            return text[: self.PREVIEW_LENGTH] + "..."
        return text
