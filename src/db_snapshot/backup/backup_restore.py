"""Snapshot runs: backup, restore, live copy and the full round trip.

Each function takes already-open ``DatabaseClient`` handles and explicit
``SnapshotOptions``; nothing here opens connections or reads global state.

Usage:
    from db_snapshot.backup.backup_restore import (
        backup_database,
        restore_database,
        snapshot_database,
    )
    from db_snapshot.config import SnapshotOptions

    options = SnapshotOptions(batch_size=500)

    # Backup
    result = await backup_database(source, "app", options)

    # Restore
    await restore_database(target, result.path)

    # Backup, replay and verify in one go
    report = await snapshot_database(source, target, "app", "app_copy", options)
"""

import logging
from contextlib import aclosing
from datetime import datetime
from pathlib import Path

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.backup.assembler import ScriptAssembler
from db_snapshot.backup.exporter import DataExporter
from db_snapshot.backup.models import BackupResult, CopyResult, RestoreResult
from db_snapshot.config.models import SnapshotOptions
from db_snapshot.restore.executor import RestoreExecutor
from db_snapshot.schema.enumerator import SchemaEnumerator
from db_snapshot.schema.models import ObjectKind, SchemaInventory
from db_snapshot.verify.models import RunReport
from db_snapshot.verify.verifier import Verifier

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".partial"


def default_backup_path(schema_name: str, backup_dir: str, created_at: datetime) -> Path:
    """``<backup_dir>/<schema>_backup_<YYYY-MM-DD_HH-MM-SS>.sql``"""
    timestamp = created_at.strftime("%Y-%m-%d_%H-%M-%S")
    return Path(backup_dir) / f"{schema_name}_backup_{timestamp}.sql"


async def enumerate_schema(
    source: DatabaseClient, schema_name: str, options: SnapshotOptions
) -> SchemaInventory:
    """Enumerate ``schema_name`` with the enumeration settings in ``options``."""
    enumerator = SchemaEnumerator(
        source,
        schema_name,
        strip_definers=options.strip_definers,
        on_error=options.on_enumeration_error,
        include_events=options.include_events,
    )
    inventory = await enumerator.enumerate()
    if inventory.skipped:
        logger.warning(f"[{schema_name}] {len(inventory.skipped)} object(s) skipped")
    return inventory


async def backup_database(
    source: DatabaseClient,
    schema_name: str,
    options: SnapshotOptions,
    output_path: str | Path | None = None,
) -> BackupResult:
    """Write a self-contained SQL artifact of one schema.

    The artifact is written segment by segment while rows stream out of the
    source, so memory stays bounded by one batch.  It is written to
    ``<path>.partial`` and renamed once complete; on any failure the partial
    file is removed and the error propagates.

    Args:
        source: Source database client.
        schema_name: Schema to back up.
        options: Run options (batch size, structure-only, enumeration).
        output_path: Artifact path.  When ``None``, a timestamped file under
            ``options.backup_dir`` is used.

    Returns:
        BackupResult with the artifact path, size and per-table row counts.

    Raises:
        EnumerationError: If the schema cannot be read (abort policy).
        EncodingError: If a value has no literal encoding.
        ConnectivityError: If the source connection is lost.
    """
    created_at = datetime.now()
    path = (
        Path(output_path)
        if output_path is not None
        else default_backup_path(schema_name, options.backup_dir, created_at)
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    partial = path.with_name(path.name + PARTIAL_SUFFIX)

    inventory = await enumerate_schema(source, schema_name, options)
    exporter = DataExporter(source, schema_name, batch_size=options.batch_size)
    assembler = ScriptAssembler()

    row_counts: dict[str, int] = {}
    try:
        with open(partial, "w", encoding="utf-8", newline="") as f:
            f.write(assembler.header(schema_name, created_at))

            previous: ObjectKind | None = None
            for obj in inventory.objects:
                f.write(assembler.section_break(previous, obj))
                previous = obj.kind

                if not obj.is_table:
                    f.write(assembler.segment(obj))
                    continue

                f.write(assembler.table_segment_start(obj))
                rows = 0
                if not options.structure_only:
                    async with aclosing(exporter.iter_batches(obj)) as batches:
                        async for batch in batches:
                            if batch.index == 0:
                                f.write(assembler.data_start(obj))
                            f.write(assembler.insert_block(batch))
                            rows += len(batch)
                    if rows:
                        f.write(assembler.data_end())
                row_counts[obj.name] = rows
                logger.info(f"[{obj.name}] {rows} row(s) exported")

            f.write(assembler.footer())
        partial.replace(path)
    except BaseException:
        partial.unlink(missing_ok=True)
        raise

    size = path.stat().st_size
    logger.info(f"Backup written to {path} ({size:,} bytes)")

    return BackupResult(
        path=str(path),
        size_bytes=size,
        created_at=created_at,
        object_counts=inventory.counts(),
        row_counts=row_counts,
    )


async def restore_database(target: DatabaseClient, artifact_path: str | Path) -> RestoreResult:
    """Replay an artifact against the target session.

    Raises:
        FileNotFoundError: If the artifact does not exist.
        ApplyError: On the first statement the target rejects.
    """
    return await RestoreExecutor(target).replay_file(artifact_path)


async def copy_database(
    source: DatabaseClient,
    target: DatabaseClient,
    schema_name: str,
    options: SnapshotOptions,
) -> CopyResult:
    """Copy one schema straight from source to target (no artifact).

    Raises:
        EnumerationError: If the schema cannot be read (abort policy).
        ApplyError: With object name and batch index of a rejected statement.
    """
    inventory = await enumerate_schema(source, schema_name, options)
    exporter = DataExporter(source, schema_name, batch_size=options.batch_size)
    return await RestoreExecutor(target).copy_live(
        exporter, inventory, structure_only=options.structure_only
    )


async def snapshot_database(
    source: DatabaseClient,
    target: DatabaseClient,
    source_schema: str,
    target_schema: str,
    options: SnapshotOptions,
    output_path: str | Path | None = None,
) -> RunReport:
    """Full run: capture, apply, then verify.

    In ``artifact`` mode the schema is backed up to a file and the file is
    replayed; in ``live`` mode objects and batches go straight to the
    target.  Verification compares the target against the row counts that
    were actually exported.

    Returns:
        RunReport.  A count mismatch is reported, never raised.
    """
    artifact_path: str | None = None
    if options.mode == "live":
        copied = await copy_database(source, target, source_schema, options)
        exported = copied.row_counts
    else:
        backup = await backup_database(source, source_schema, options, output_path)
        await restore_database(target, backup.path)
        exported = backup.row_counts
        artifact_path = backup.path

    verifier = Verifier(
        source,
        target,
        source_schema,
        target_schema,
        include_events=options.include_events,
    )
    report = await verifier.verify(exported_counts=exported)
    report.artifact_path = artifact_path
    return report
