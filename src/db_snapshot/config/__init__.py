"""Configuration management: profiles, run options, and TOML loading.

Usage:
    >>> from db_snapshot.config import load_snapshot_config, SnapshotOptions
"""

from db_snapshot.config.loader import load_snapshot_config
from db_snapshot.config.models import DatabaseProfile, SnapshotConfig, SnapshotOptions

__all__ = ["load_snapshot_config", "DatabaseProfile", "SnapshotConfig", "SnapshotOptions"]
