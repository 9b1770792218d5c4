"""Pydantic models for the schema object inventory.

This module contains schema-domain models:
- ``ObjectKind``: the kinds of objects a snapshot captures
- ``SchemaObject``: one captured object and its structural statement
- ``SchemaInventory``: the ordered objects of one schema
- ``ObjectCounts``: per-kind object counts (backup results, run reports)
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ObjectKind(str, Enum):
    """Kind of schema object, in replay order."""

    TABLE = "table"
    VIEW = "view"
    PROCEDURE = "procedure"
    FUNCTION = "function"
    TRIGGER = "trigger"
    EVENT = "event"

    @property
    def keyword(self) -> str:
        """SQL keyword used in DROP/SHOW CREATE statements."""
        return self.value.upper()

    @property
    def is_routine(self) -> bool:
        """True for kinds whose bodies may contain the statement terminator."""
        return self in ROUTINE_KINDS


ROUTINE_KINDS = frozenset(
    {ObjectKind.PROCEDURE, ObjectKind.FUNCTION, ObjectKind.TRIGGER, ObjectKind.EVENT}
)


# ============================================================================
# Schema Objects
# ============================================================================


class SchemaObject(BaseModel):
    """A schema object captured from the source.

    Read once per run and never mutated.

    Example:
        >>> obj = SchemaObject(kind=ObjectKind.TABLE, name="accounts",
        ...                    definition="CREATE TABLE `accounts` (...)",
        ...                    columns=["id", "email"])
        >>> obj.is_table
        True
    """

    model_config = ConfigDict(frozen=True)

    kind: ObjectKind
    name: str
    definition: str
    columns: tuple[str, ...] = ()  # tables only: insertable columns in ordinal order
    table: str | None = None  # triggers only: table the trigger is attached to

    @property
    def is_table(self) -> bool:
        return self.kind is ObjectKind.TABLE


class ObjectCounts(BaseModel):
    """Number of objects of each kind."""

    tables: int = 0
    views: int = 0
    procedures: int = 0
    functions: int = 0
    triggers: int = 0
    events: int = 0

    def get(self, kind: ObjectKind) -> int:
        """Count for ``kind``."""
        return getattr(self, f"{kind.value}s")

    @property
    def total(self) -> int:
        return sum(self.get(kind) for kind in ObjectKind)


class SkippedObject(BaseModel):
    """An object (or category, when ``name`` is None) left out of a run."""

    kind: ObjectKind
    name: str | None = None
    reason: str = ""


class SchemaInventory(BaseModel):
    """Ordered objects needed to recreate one schema.

    Tables always precede views; views precede procedures, functions,
    triggers and events.
    """

    schema_name: str
    objects: list[SchemaObject] = Field(default_factory=list)
    skipped: list[SkippedObject] = Field(default_factory=list)

    def of_kind(self, kind: ObjectKind) -> list[SchemaObject]:
        """Objects of ``kind`` in inventory order."""
        return [obj for obj in self.objects if obj.kind is kind]

    @property
    def tables(self) -> list[SchemaObject]:
        return self.of_kind(ObjectKind.TABLE)

    @property
    def views(self) -> list[SchemaObject]:
        return self.of_kind(ObjectKind.VIEW)

    def counts(self) -> ObjectCounts:
        """Per-kind object counts."""
        return ObjectCounts(
            **{f"{kind.value}s": len(self.of_kind(kind)) for kind in ObjectKind}
        )
