"""db-snapshot: MySQL schema backup, restore and live copy.

Captures one schema (tables with their rows, views, procedures, functions,
triggers and events) into a self-contained SQL artifact, replays it into
another database, or copies it live, then verifies the result by counts.

Usage:
    from db_snapshot import AsyncMySQLAdapter, SnapshotOptions, snapshot_database
    from db_snapshot import backup_database, restore_database, copy_database
    from db_snapshot import load_snapshot_config, resolve_endpoint
"""

__version__ = "0.1.0"

# Adapters
from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.adapters.mysql import AsyncMySQLAdapter

# Config
from db_snapshot.config.loader import load_snapshot_config
from db_snapshot.config.models import DatabaseProfile, SnapshotConfig, SnapshotOptions

# Errors
from db_snapshot.errors import (
    ApplyError,
    ConnectivityError,
    EncodingError,
    EnumerationError,
    ProfileNotFoundError,
    SnapshotError,
)

# Factory
from db_snapshot.factory import connect_endpoint, recreate_database, resolve_endpoint, resolve_url

# Runs
from db_snapshot.backup.backup_restore import (
    backup_database,
    copy_database,
    restore_database,
    snapshot_database,
)
from db_snapshot.verify.models import RunReport, TableRowCount

__all__ = [
    # Adapters
    "DatabaseClient",
    "AsyncMySQLAdapter",
    # Config
    "load_snapshot_config",
    "DatabaseProfile",
    "SnapshotConfig",
    "SnapshotOptions",
    # Errors
    "SnapshotError",
    "ConnectivityError",
    "EnumerationError",
    "EncodingError",
    "ApplyError",
    "ProfileNotFoundError",
    # Factory
    "resolve_url",
    "resolve_endpoint",
    "connect_endpoint",
    "recreate_database",
    # Runs
    "backup_database",
    "restore_database",
    "copy_database",
    "snapshot_database",
    "RunReport",
    "TableRowCount",
]
