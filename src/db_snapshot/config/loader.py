"""Configuration loader for snapshot.toml."""

import tomllib
from pathlib import Path

from db_snapshot.config.models import DatabaseProfile, SnapshotConfig, SnapshotOptions


def load_snapshot_config(config_path: Path | None = None) -> SnapshotConfig:
    """Load snapshot configuration from a TOML file.

    Args:
        config_path: Path to snapshot.toml (default: ``snapshot.toml`` in the
            current working directory).

    Returns:
        SnapshotConfig with all profiles and run options.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        pydantic.ValidationError: If a profile or option is invalid.
    """
    if config_path is None:
        config_path = Path.cwd() / "snapshot.toml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Snapshot config not found: {config_path}\n"
            f"Create snapshot.toml with [profiles.<name>] entries, "
            f"or pass database URLs directly."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Parse profiles
    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        profiles[name] = DatabaseProfile(**profile_data)

    return SnapshotConfig(
        profiles=profiles,
        options=SnapshotOptions(**data.get("snapshot", {})),
    )
