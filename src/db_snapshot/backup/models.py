"""Models produced by backup, live copy and artifact replay.

Usage:
    from db_snapshot.backup.models import RowBatch, BackupResult

    batch = RowBatch(table="accounts", columns=("id", "email"),
                     rows=[(1, "a@example.com")], index=0)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from db_snapshot.schema.models import ObjectCounts


@dataclass(frozen=True)
class RowBatch:
    """Up to ``batch_size`` rows of one table, in source order.

    Values in each row follow ``columns`` order, so inserts can name the
    columns once per batch.
    """

    table: str
    columns: tuple[str, ...]
    rows: list[tuple[Any, ...]] = field(default_factory=list)
    index: int = 0

    def __len__(self) -> int:
        return len(self.rows)


class BackupResult(BaseModel):
    """Result of ``backup_database()``."""

    path: str
    size_bytes: int = 0
    created_at: datetime
    object_counts: ObjectCounts = Field(default_factory=ObjectCounts)
    row_counts: dict[str, int] = Field(default_factory=dict)  # rows actually exported

    @property
    def total_rows(self) -> int:
        return sum(self.row_counts.values())


class CopyResult(BaseModel):
    """Result of a direct live copy."""

    object_counts: ObjectCounts = Field(default_factory=ObjectCounts)
    row_counts: dict[str, int] = Field(default_factory=dict)
    statements_executed: int = 0


class RestoreResult(BaseModel):
    """Result of replaying an artifact."""

    path: str | None = None
    statements_executed: int = 0
