"""Backup artifacts: value encoding, statements, export and assembly.

Usage:
    from db_snapshot.backup import backup_database, restore_database
    from db_snapshot.backup import encode_value, ScriptAssembler
"""

from db_snapshot.backup.assembler import ScriptAssembler
from db_snapshot.backup.backup_restore import (
    backup_database,
    copy_database,
    restore_database,
    snapshot_database,
)
from db_snapshot.backup.codec import SqlFragment, ValueKind, classify, encode_value
from db_snapshot.backup.exporter import DataExporter
from db_snapshot.backup.models import BackupResult, CopyResult, RestoreResult, RowBatch

__all__ = [
    "SqlFragment",
    "ValueKind",
    "classify",
    "encode_value",
    "DataExporter",
    "ScriptAssembler",
    "RowBatch",
    "BackupResult",
    "CopyResult",
    "RestoreResult",
    "backup_database",
    "restore_database",
    "copy_database",
    "snapshot_database",
]
