"""Pydantic models for snapshot configuration."""

from typing import Literal

from pydantic import BaseModel, Field


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from snapshot.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution


class SnapshotOptions(BaseModel):
    """Run options passed explicitly to each component.

    Example:
        >>> SnapshotOptions().batch_size
        100
        >>> SnapshotOptions(mode="live", structure_only=True).mode
        'live'
    """

    batch_size: int = Field(default=100, gt=0)
    structure_only: bool = False  # skip every data segment
    mode: Literal["artifact", "live"] = "artifact"
    strip_definers: bool = True
    on_enumeration_error: Literal["abort", "skip"] = "abort"
    include_events: bool = True
    backup_dir: str = "backups"


class SnapshotConfig(BaseModel):
    """Complete configuration from snapshot.toml."""

    profiles: dict[str, DatabaseProfile] = Field(default_factory=dict)
    options: SnapshotOptions = Field(default_factory=SnapshotOptions)
