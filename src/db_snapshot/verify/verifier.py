"""Compare source and target after a snapshot run.

Counts objects of every kind on both sides and ``COUNT(*)`` rows of every
table.  Views are not row-counted.

Usage:
    from db_snapshot.verify.verifier import Verifier

    verifier = Verifier(source, target, "app", "app_copy")
    report = await verifier.verify()
    print(report.format_report())
"""

import logging

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.backup.exporter import DataExporter
from db_snapshot.schema.enumerator import SchemaEnumerator
from db_snapshot.schema.models import ObjectCounts, ObjectKind
from db_snapshot.verify.models import RunReport, TableRowCount

logger = logging.getLogger(__name__)


class Verifier:
    """Builds a ``RunReport`` for one source/target pair.

    Args:
        source: Source ``DatabaseClient``.
        target: Target ``DatabaseClient``.
        source_schema: Schema name on the source.
        target_schema: Schema name on the target.
        include_events: Count scheduled events.
    """

    def __init__(
        self,
        source: DatabaseClient,
        target: DatabaseClient,
        source_schema: str,
        target_schema: str,
        *,
        include_events: bool = True,
    ) -> None:
        self._source = SchemaEnumerator(source, source_schema, include_events=include_events)
        self._target = SchemaEnumerator(target, target_schema, include_events=include_events)
        self._source_rows = DataExporter(source, source_schema)
        self._target_rows = DataExporter(target, target_schema)

    async def verify(self, exported_counts: dict[str, int] | None = None) -> RunReport:
        """Compare object and row counts.

        Args:
            exported_counts: Rows per table actually exported during the
                run.  When given, they stand in for the source row counts
                (the source may have changed since); otherwise the source is
                counted live.

        Returns:
            RunReport.  A mismatch is reported, never raised.
        """
        source_names = await self._names(self._source)
        target_names = await self._names(self._target)

        if exported_counts is not None:
            source_rows = dict(exported_counts)
            origin = "export"
        else:
            source_rows = {
                name: await self._source_rows.count_rows(name)
                for name in source_names[ObjectKind.TABLE]
            }
            origin = "live"

        target_rows = {
            name: await self._target_rows.count_rows(name)
            for name in target_names[ObjectKind.TABLE]
        }

        tables = [
            TableRowCount(
                table=name,
                source_rows=source_rows.get(name),
                target_rows=target_rows.get(name),
            )
            for name in sorted(source_rows.keys() | target_rows.keys())
        ]

        report = RunReport(
            source_objects=_counts(source_names),
            target_objects=_counts(target_names),
            tables=tables,
            row_counts_match=sum(source_rows.values()) == sum(target_rows.values()),
            source_counts_origin=origin,
        )

        if report.ok:
            logger.info(
                f"Verification passed: {report.total_target_rows} row(s) in "
                f"{len(tables)} table(s)"
            )
        else:
            logger.warning("Verification failed: source and target differ")
        return report

    async def _names(self, enumerator: SchemaEnumerator) -> dict[ObjectKind, list[str]]:
        return {kind: await enumerator.list_names(kind) for kind in enumerator.kinds}


def _counts(names: dict[ObjectKind, list[str]]) -> ObjectCounts:
    return ObjectCounts(**{f"{kind.value}s": len(found) for kind, found in names.items()})
