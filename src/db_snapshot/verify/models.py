"""Pydantic models for post-run verification.

The report is returned to the caller and never persisted.
"""

from typing import Literal

from pydantic import BaseModel, Field

from db_snapshot.schema.models import ObjectCounts, ObjectKind


class TableRowCount(BaseModel):
    """Row counts of one table on both sides.

    ``None`` marks a side on which the table does not exist.

    Example:
        >>> TableRowCount(table="accounts", source_rows=3, target_rows=3).matches
        True
    """

    table: str
    source_rows: int | None = None
    target_rows: int | None = None

    @property
    def matches(self) -> bool:
        return self.source_rows == self.target_rows


class RunReport(BaseModel):
    """Object and row counts compared between source and target.

    ``row_counts_match`` compares the summed row counts; per-table
    differences that cancel out in the sum still show up in
    ``mismatched_tables`` and fail the run.

    Example:
        >>> report = RunReport(row_counts_match=True)
        >>> report.ok
        True
    """

    source_objects: ObjectCounts = Field(default_factory=ObjectCounts)
    target_objects: ObjectCounts = Field(default_factory=ObjectCounts)
    tables: list[TableRowCount] = Field(default_factory=list)
    row_counts_match: bool
    source_counts_origin: Literal["export", "live"] = "live"
    artifact_path: str | None = None  # set when the run went through an artifact

    @property
    def objects_match(self) -> bool:
        return self.source_objects == self.target_objects

    @property
    def mismatched_tables(self) -> list[TableRowCount]:
        return [t for t in self.tables if not t.matches]

    @property
    def total_source_rows(self) -> int:
        return sum(t.source_rows or 0 for t in self.tables)

    @property
    def total_target_rows(self) -> int:
        return sum(t.target_rows or 0 for t in self.tables)

    @property
    def ok(self) -> bool:
        """True when object counts match and every table has equal row counts."""
        return (
            self.objects_match
            and self.row_counts_match
            and not self.mismatched_tables
        )

    def format_report(self) -> str:
        """Format the comparison as a human-readable report."""
        lines = ["Verification passed" if self.ok else "Verification failed:"]

        for kind in ObjectKind:
            source = self.source_objects.get(kind)
            target = self.target_objects.get(kind)
            if source or target:
                marker = "" if source == target else "  <- mismatch"
                lines.append(f"  {kind.value}s: {source} -> {target}{marker}")

        lines.append(
            f"  rows ({self.source_counts_origin}): "
            f"{self.total_source_rows} -> {self.total_target_rows}"
        )

        mismatched = self.mismatched_tables
        if mismatched:
            lines.append(f"\n  Tables with differing row counts ({len(mismatched)}):")
            for t in mismatched:
                source = "missing" if t.source_rows is None else t.source_rows
                target = "missing" if t.target_rows is None else t.target_rows
                lines.append(f"    - {t.table}: {source} -> {target}")

        return "\n".join(lines)
