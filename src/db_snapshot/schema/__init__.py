"""Schema enumeration and the object inventory.

Usage:
    from db_snapshot.schema import SchemaEnumerator, ObjectKind
"""

from db_snapshot.schema.enumerator import SchemaEnumerator
from db_snapshot.schema.models import (
    ObjectCounts,
    ObjectKind,
    SchemaInventory,
    SchemaObject,
    SkippedObject,
)

__all__ = [
    "SchemaEnumerator",
    "ObjectKind",
    "ObjectCounts",
    "SchemaInventory",
    "SchemaObject",
    "SkippedObject",
]
