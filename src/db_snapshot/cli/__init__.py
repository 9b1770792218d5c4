"""CLI for MySQL schema snapshots.

Provides commands to back up a schema to a SQL artifact, restore it, copy a
schema live between servers, verify two schemas against each other, and run
the whole round trip.

Usage:
    db-snapshot backup --source prod -o backups/app.sql
    db-snapshot restore backups/app.sql --target staging --recreate
    db-snapshot copy --source prod --target staging --structure-only
    db-snapshot verify --source prod --target staging
    db-snapshot snapshot --source prod --target mysql://root@localhost/app_copy
    db-snapshot profiles

Commands:
    backup    - Write a replayable SQL artifact of the source schema
    restore   - Replay an artifact against the target
    copy      - Copy the source schema straight to the target
    verify    - Compare object and row counts of source and target
    snapshot  - Backup (or live copy), replay, then verify
    profiles  - List profiles from snapshot.toml

Endpoints are profile names from snapshot.toml or literal URLs; when
omitted they are read from ``{prefix}SNAPSHOT_SOURCE`` /
``{prefix}SNAPSHOT_TARGET``.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import Confirm
from rich.table import Table

from db_snapshot.backup.backup_restore import (
    backup_database,
    copy_database,
    restore_database,
    snapshot_database,
)
from db_snapshot.config.loader import load_snapshot_config
from db_snapshot.config.models import SnapshotConfig, SnapshotOptions
from db_snapshot.errors import ApplyError, SnapshotError
from db_snapshot.factory import (
    connect_endpoint,
    endpoint_from_env,
    mask_url,
    recreate_database,
    resolve_endpoint,
    schema_of,
)
from db_snapshot.schema.models import ObjectKind
from db_snapshot.verify.models import RunReport
from db_snapshot.verify.verifier import Verifier

console = Console()


# ============================================================================
# Argument helpers
# ============================================================================


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config(args: argparse.Namespace) -> SnapshotConfig:
    """Load snapshot.toml; a missing default file means an empty config.

    Raises:
        FileNotFoundError: If an explicit ``--config`` path does not exist.
    """
    config_path = getattr(args, "config", None)
    if config_path is not None:
        return load_snapshot_config(Path(config_path))
    default = Path.cwd() / "snapshot.toml"
    if default.exists():
        return load_snapshot_config(default)
    return SnapshotConfig()


def _options(args: argparse.Namespace, config: SnapshotConfig) -> SnapshotOptions:
    """Config-file options with command-line overrides applied."""
    overrides = {}
    if getattr(args, "batch_size", None) is not None:
        overrides["batch_size"] = args.batch_size
    if getattr(args, "structure_only", False):
        overrides["structure_only"] = True
    if getattr(args, "mode", None) is not None:
        overrides["mode"] = args.mode
    if getattr(args, "keep_definers", False):
        overrides["strip_definers"] = False
    if getattr(args, "skip_unreadable", False):
        overrides["on_enumeration_error"] = "skip"
    if getattr(args, "no_events", False):
        overrides["include_events"] = False
    if getattr(args, "backup_dir", None) is not None:
        overrides["backup_dir"] = args.backup_dir
    return SnapshotOptions(**{**config.options.model_dump(), **overrides})


def _endpoint(args: argparse.Namespace, role: str, config: SnapshotConfig) -> str:
    """Resolve ``--source`` / ``--target`` (or its env fallback) to a URL."""
    identifier = getattr(args, role, None) or endpoint_from_env(
        role, getattr(args, "env_prefix", "")
    )
    if not identifier:
        prefix = getattr(args, "env_prefix", "")
        raise ValueError(
            f"No {role} database given. Pass --{role} or set "
            f"{prefix}SNAPSHOT_{role.upper()}"
        )
    return resolve_endpoint(identifier, config)


async def _maybe_recreate(args: argparse.Namespace, target_url: str) -> bool:
    """Drop and create the target database when ``--recreate`` is set.

    Returns:
        False if the user declined the confirmation prompt.
    """
    if not getattr(args, "recreate", False):
        return True
    name = schema_of(target_url)
    if not args.yes and not Confirm.ask(
        f"Drop and recreate database [bold red]{name}[/bold red] "
        f"on {mask_url(target_url)}?",
        console=console,
        default=False,
    ):
        console.print("[yellow]Aborted.[/yellow]")
        return False
    await recreate_database(target_url)
    return True


def _report_error(e: Exception) -> int:
    console.print(f"\n[bold red]x[/bold red] {e}")
    if isinstance(e, ApplyError) and e.statement:
        console.print(f"  [dim]Statement:[/dim] {e.preview}")
    return 1


# ============================================================================
# Report rendering
# ============================================================================


def _print_counts(object_counts, row_counts: dict[str, int], title: str) -> None:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Object", style="dim")
    table.add_column("Count", justify="right")

    for kind in ObjectKind:
        count = object_counts.get(kind)
        if count:
            table.add_row(f"{kind.value}s", str(count))
    table.add_row("rows", f"{sum(row_counts.values()):,}")

    console.print(table)


def _print_report(report: RunReport) -> None:
    objects = Table(title="Objects", show_header=True, header_style="bold")
    objects.add_column("", style="dim")
    objects.add_column("Source", justify="right")
    objects.add_column("Target", justify="right")

    for kind in ObjectKind:
        source = report.source_objects.get(kind)
        target = report.target_objects.get(kind)
        style = "" if source == target else "bold red"
        objects.add_row(
            f"{kind.value}s",
            str(source),
            f"[{style}]{target}[/{style}]" if style else str(target),
        )
    console.print(objects)

    rows = Table(
        title=f"Row counts (source: {report.source_counts_origin})",
        show_header=True,
        header_style="bold",
    )
    rows.add_column("Table", style="dim")
    rows.add_column("Source", justify="right")
    rows.add_column("Target", justify="right")

    for t in report.tables:
        source = "-" if t.source_rows is None else f"{t.source_rows:,}"
        target = "-" if t.target_rows is None else f"{t.target_rows:,}"
        if not t.matches:
            target = f"[bold red]{target}[/bold red]"
        rows.add_row(t.table, source, target)
    rows.add_row(
        "[bold]total[/bold]",
        f"{report.total_source_rows:,}",
        f"{report.total_target_rows:,}",
    )
    console.print(rows)

    console.print()
    if report.ok:
        console.print("[bold green]v[/bold green] Verification passed")
    else:
        console.print("[bold red]x[/bold red] Verification failed")
        if report.mismatched_tables:
            names = ", ".join(t.table for t in report.mismatched_tables)
            console.print(f"  Tables with differing row counts: [yellow]{names}[/yellow]")


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_backup(args: argparse.Namespace) -> int:
    """Async implementation for backup command.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = _load_config(args)
        options = _options(args, config)
        source_url = _endpoint(args, "source", config)
        schema = args.schema or schema_of(source_url)

        async with connect_endpoint("source", source_url) as source:
            result = await backup_database(source, schema, options, args.output)
    except (SnapshotError, FileNotFoundError, ValueError) as e:
        return _report_error(e)

    console.print()
    _print_counts(result.object_counts, result.row_counts, f"Backup of {schema}")
    console.print(
        f"[bold green]v[/bold green] Backup saved to [cyan]{result.path}[/cyan] "
        f"[dim]({result.size_bytes / 1024 / 1024:.2f} MB)[/dim]"
    )
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    """Async implementation for restore command.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = _load_config(args)
        target_url = _endpoint(args, "target", config)
        if not Path(args.file).exists():
            raise FileNotFoundError(f"Backup file not found: {args.file}")
        if not await _maybe_recreate(args, target_url):
            return 1

        async with connect_endpoint("target", target_url) as target:
            result = await restore_database(target, args.file)
    except (SnapshotError, FileNotFoundError, ValueError) as e:
        return _report_error(e)

    console.print(
        f"\n[bold green]v[/bold green] Restore complete: "
        f"{result.statements_executed:,} statement(s) executed"
    )
    return 0


async def _async_copy(args: argparse.Namespace) -> int:
    """Async implementation for copy command.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = _load_config(args)
        options = _options(args, config)
        source_url = _endpoint(args, "source", config)
        target_url = _endpoint(args, "target", config)
        schema = args.schema or schema_of(source_url)
        if not await _maybe_recreate(args, target_url):
            return 1

        async with (
            connect_endpoint("source", source_url) as source,
            connect_endpoint("target", target_url) as target,
        ):
            result = await copy_database(source, target, schema, options)
    except (SnapshotError, FileNotFoundError, ValueError) as e:
        return _report_error(e)

    console.print()
    _print_counts(result.object_counts, result.row_counts, f"Copied from {schema}")
    console.print("[bold green]v[/bold green] Copy complete.")
    return 0


async def _async_verify(args: argparse.Namespace) -> int:
    """Async implementation for verify command.

    Source rows are counted live.

    Returns:
        0 if source and target match, 1 on mismatch or failure.
    """
    try:
        config = _load_config(args)
        options = _options(args, config)
        source_url = _endpoint(args, "source", config)
        target_url = _endpoint(args, "target", config)

        async with (
            connect_endpoint("source", source_url) as source,
            connect_endpoint("target", target_url) as target,
        ):
            verifier = Verifier(
                source,
                target,
                schema_of(source_url),
                schema_of(target_url),
                include_events=options.include_events,
            )
            report = await verifier.verify()
    except (SnapshotError, FileNotFoundError, ValueError) as e:
        return _report_error(e)

    console.print()
    _print_report(report)
    return 0 if report.ok else 1


async def _async_snapshot(args: argparse.Namespace) -> int:
    """Async implementation for snapshot command.

    Returns:
        0 if the run completed and verification passed, 1 otherwise.
    """
    try:
        config = _load_config(args)
        options = _options(args, config)
        source_url = _endpoint(args, "source", config)
        target_url = _endpoint(args, "target", config)
        if not await _maybe_recreate(args, target_url):
            return 1

        console.print(f"  Source: [bold]{mask_url(source_url)}[/bold]")
        console.print(f"  Target: [bold cyan]{mask_url(target_url)}[/bold cyan]")
        console.print(f"  Mode:   [dim]{options.mode}[/dim]")

        async with (
            connect_endpoint("source", source_url) as source,
            connect_endpoint("target", target_url) as target,
        ):
            report = await snapshot_database(
                source,
                target,
                schema_of(source_url),
                schema_of(target_url),
                options,
                args.output,
            )
    except (SnapshotError, FileNotFoundError, ValueError) as e:
        return _report_error(e)

    console.print()
    if report.artifact_path:
        console.print(f"Artifact: [cyan]{report.artifact_path}[/cyan]")
    _print_report(report)
    return 0 if report.ok else 1


# ============================================================================
# Sync command wrappers
# ============================================================================


def cmd_backup(args: argparse.Namespace) -> int:
    """Back up the source schema to a SQL artifact.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_backup(args))


def cmd_restore(args: argparse.Namespace) -> int:
    """Replay an artifact against the target."""
    return asyncio.run(_async_restore(args))


def cmd_copy(args: argparse.Namespace) -> int:
    """Copy the source schema straight to the target."""
    return asyncio.run(_async_copy(args))


def cmd_verify(args: argparse.Namespace) -> int:
    """Compare source and target."""
    return asyncio.run(_async_verify(args))


def cmd_snapshot(args: argparse.Namespace) -> int:
    """Backup (or live copy), replay and verify."""
    return asyncio.run(_async_snapshot(args))


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from snapshot.toml.

    Reads only local TOML config -- no database calls.

    Returns:
        0 on success, 1 if the config file is not found.
    """
    try:
        config = (
            load_snapshot_config(Path(args.config))
            if args.config
            else load_snapshot_config()
        )
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("Profile")
    table.add_column("URL")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        table.add_row(name, mask_url(profile.url), profile.description or "")

    console.print(table)
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def _add_endpoint_args(parser: argparse.ArgumentParser, *roles: str) -> None:
    for role in roles:
        parser.add_argument(
            f"--{role}",
            help=f"{role.capitalize()} profile name or database URL",
        )


def _add_run_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--batch-size", type=int, help="Rows per INSERT batch")
    parser.add_argument(
        "--structure-only",
        action="store_true",
        help="Copy object definitions without any rows",
    )
    parser.add_argument(
        "--keep-definers",
        action="store_true",
        help="Keep DEFINER clauses in view, routine, trigger and event definitions",
    )
    parser.add_argument(
        "--skip-unreadable",
        action="store_true",
        help="Skip objects that cannot be read instead of aborting",
    )
    parser.add_argument(
        "--no-events",
        action="store_true",
        help="Leave scheduled events out",
    )


def _add_recreate_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--recreate",
        action="store_true",
        help="Drop and create the target database first",
    )
    parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Do not ask for confirmation before --recreate",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="db-snapshot",
        description="MySQL schema backup, restore and live copy",
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to snapshot.toml (default: ./snapshot.toml)",
    )
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_SNAPSHOT_SOURCE)"
        ),
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # backup command
    p_backup = subparsers.add_parser(
        "backup",
        help="Write a replayable SQL artifact of the source schema",
    )
    _add_endpoint_args(p_backup, "source")
    p_backup.add_argument("--schema", help="Schema to back up (default: from the URL)")
    p_backup.add_argument("--output", "-o", help="Artifact path")
    p_backup.add_argument("--backup-dir", help="Directory for timestamped artifacts")
    _add_run_args(p_backup)
    p_backup.set_defaults(func=cmd_backup)

    # restore command
    p_restore = subparsers.add_parser(
        "restore",
        help="Replay an artifact against the target",
    )
    p_restore.add_argument("file", help="Path to the SQL artifact")
    _add_endpoint_args(p_restore, "target")
    _add_recreate_args(p_restore)
    p_restore.set_defaults(func=cmd_restore)

    # copy command
    p_copy = subparsers.add_parser(
        "copy",
        help="Copy the source schema straight to the target",
    )
    _add_endpoint_args(p_copy, "source", "target")
    p_copy.add_argument("--schema", help="Source schema (default: from the URL)")
    _add_run_args(p_copy)
    _add_recreate_args(p_copy)
    p_copy.set_defaults(func=cmd_copy)

    # verify command
    p_verify = subparsers.add_parser(
        "verify",
        help="Compare object and row counts of source and target",
    )
    _add_endpoint_args(p_verify, "source", "target")
    p_verify.add_argument("--no-events", action="store_true", help="Leave scheduled events out")
    p_verify.set_defaults(func=cmd_verify)

    # snapshot command
    p_snapshot = subparsers.add_parser(
        "snapshot",
        help="Backup (or live copy), replay, then verify",
    )
    _add_endpoint_args(p_snapshot, "source", "target")
    p_snapshot.add_argument(
        "--mode",
        choices=["artifact", "live"],
        default=None,
        help="Go through a SQL artifact (default) or copy live",
    )
    p_snapshot.add_argument("--output", "-o", help="Artifact path (artifact mode)")
    p_snapshot.add_argument("--backup-dir", help="Directory for timestamped artifacts")
    _add_run_args(p_snapshot)
    _add_recreate_args(p_snapshot)
    p_snapshot.set_defaults(func=cmd_snapshot)

    # profiles command
    p_profiles = subparsers.add_parser(
        "profiles",
        help="List profiles from snapshot.toml",
    )
    p_profiles.set_defaults(func=cmd_profiles)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, 1 for failures and verification mismatch).
    """
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
