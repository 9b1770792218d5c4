"""Endpoint resolution and connection factory.

An endpoint identifier is either a profile name from snapshot.toml or a
literal database URL.  When none is given on the command line the
``{prefix}SNAPSHOT_SOURCE`` / ``{prefix}SNAPSHOT_TARGET`` environment
variables are consulted.
"""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import quote

from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError

from db_snapshot.adapters.mysql import AsyncMySQLAdapter, database_name, normalize_url
from db_snapshot.backup.codec import quote_identifier
from db_snapshot.config.models import DatabaseProfile, SnapshotConfig
from db_snapshot.errors import ConnectivityError, ProfileNotFoundError

logger = logging.getLogger(__name__)


# ============================================================================
# Endpoint Resolution
# ============================================================================


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with the ``[YOUR-PASSWORD]`` placeholder replaced by
        the URL-quoted ``db_password``
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def resolve_endpoint(identifier: str, config: SnapshotConfig | None = None) -> str:
    """Turn a profile name or literal URL into a connection URL.

    Args:
        identifier: Profile name, or a URL (anything containing ``://``).
        config: Loaded configuration holding the profiles.

    Returns:
        Connection URL.

    Raises:
        ProfileNotFoundError: If ``identifier`` is not a URL and names no
            configured profile.
    """
    if "://" in identifier:
        return identifier

    profiles = config.profiles if config else {}
    if identifier not in profiles:
        available = ", ".join(profiles) or "none"
        raise ProfileNotFoundError(
            f"Profile '{identifier}' not found. Available: {available}"
        )
    return resolve_url(profiles[identifier])


def endpoint_from_env(role: str, env_prefix: str = "") -> str | None:
    """Endpoint identifier from ``{env_prefix}SNAPSHOT_{ROLE}``, if set.

    Example:
        endpoint_from_env("source", env_prefix="APP_")  # reads APP_SNAPSHOT_SOURCE
    """
    return os.environ.get(f"{env_prefix}SNAPSHOT_{role.upper()}") or None


def schema_of(url: str) -> str:
    """Schema (database) name a URL addresses.

    Raises:
        ValueError: If the URL names no database.
    """
    name = database_name(url)
    if not name:
        raise ValueError(f"Database URL names no schema: {mask_url(url)}")
    return name


def mask_url(url: str) -> str:
    """URL with the password hidden, for log and console output."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except SQLAlchemyError:
        return url


# ============================================================================
# Connections
# ============================================================================


@asynccontextmanager
async def connect_endpoint(label: str, url: str) -> AsyncIterator[AsyncMySQLAdapter]:
    """Open and health-check one endpoint; always closes it on exit.

    Args:
        label: ``"source"`` or ``"target"`` (used in error messages).
        url: Connection URL.

    Raises:
        ConnectivityError: If the endpoint cannot be reached.
    """
    adapter = AsyncMySQLAdapter(url)
    try:
        try:
            await adapter.test_connection()
        except (SQLAlchemyError, OSError) as e:
            raise ConnectivityError(label, str(e)) from e
        logger.info(f"Connected to {label}: {mask_url(url)}")
        yield adapter
    finally:
        await adapter.close()


async def recreate_database(url: str) -> None:
    """Drop and create the database a URL addresses.

    Runs on a server-level connection (no default database), so the target
    database does not need to exist.

    Raises:
        ConnectivityError: If the server cannot be reached.
    """
    name = schema_of(url)
    server_url = make_url(normalize_url(url)).set(database=None)
    server = server_url.render_as_string(hide_password=False)

    async with connect_endpoint("target", server) as adapter:
        await adapter.execute(f"DROP DATABASE IF EXISTS {quote_identifier(name)}")
        await adapter.execute(
            f"CREATE DATABASE {quote_identifier(name)} "
            f"CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
    logger.info(f"Recreated database {name}")
