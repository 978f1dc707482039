"""CLI for backup restore, export, and verification.

Usage:
    BACKUP_PROFILE=production backup-engine restore backup-2026-01-15.json
    backup-engine restore backup-2026-01-15.json --yes
    backup-engine restore-bundle ./backup-2026-01-15T02-00-00.zip --yes
    backup-engine export backup-2026-01-15.json -o ./downloads
    backup-engine validate backup-2026-01-15.json
    backup-engine validate ./backup-2026-01-15T02-00-00.zip
    backup-engine order
    backup-engine order --live --database-url postgresql://...
    backup-engine profiles

Commands:
    profiles        - List available profiles
    order           - Check the restore order against foreign keys
    validate        - Inspect a capture or bundle without writing
    restore         - Restore a capture from the archive bucket
    restore-bundle  - Restore a local zip bundle
    export          - Download a capture as a zip bundle
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from backup_engine.backup.archive import open_bundle, open_reference_archive
from backup_engine.backup.backup_restore import (
    export_bundle,
    restore_from_bundle,
    restore_from_reference,
    validate_archive,
)
from backup_engine.backup.defaults import DEFAULT_FOREIGN_KEYS
from backup_engine.backup.models import RestorePlan, RestoreResult
from backup_engine.config.loader import load_engine_config
from backup_engine.errors import BackupEngineError
from backup_engine.factory import (
    EngineContext,
    ProfileNotFoundError,
    create_context,
    read_profile_lock,
    resolve_url,
)
from backup_engine.schema.introspector import ForeignKeyIntrospector
from backup_engine.schema.order import check_restore_order

console = Console()


# ============================================================================
# Output helpers
# ============================================================================


def _print_result(result: RestoreResult) -> None:
    """Render a restore result as tables."""
    db_table = Table(title="Tables", show_header=True, header_style="bold")
    db_table.add_column("Table", style="dim")
    db_table.add_column("Restored", justify="right")
    db_table.add_column("Errors")

    for name, detail in result.db_details.items():
        if not detail.restored and not detail.errors:
            continue
        db_table.add_row(
            name,
            str(detail.restored),
            "[red]" + "; ".join(detail.errors) + "[/red]" if detail.errors else "-",
        )
    console.print(db_table)

    if result.storage_details:
        storage_table = Table(title="Storage", show_header=True, header_style="bold")
        storage_table.add_column("Bucket", style="dim")
        storage_table.add_column("Restored", justify="right", style="green")
        storage_table.add_column("Errors", justify="right")
        for bucket, detail in result.storage_details.items():
            storage_table.add_row(
                bucket,
                str(detail.restored),
                f"[red]{detail.errors}[/red]" if detail.errors else "-",
            )
        console.print(storage_table)

    console.print()
    summary = (
        f"{result.total_restored} rows, {result.files_restored} files restored"
    )
    if result.has_errors:
        console.print(
            f"[bold yellow]![/bold yellow] {summary} with "
            f"{result.total_errors} table errors and {result.file_errors} file errors"
        )
    else:
        console.print(f"[bold green]v[/bold green] {summary}")


def _confirm(source: str, yes: bool) -> bool:
    if yes:
        return True
    console.print(f"This will overwrite live data from: [bold]{source}[/bold]")
    response = input("Continue? [y/N] ")
    if response.lower() not in ["y", "yes"]:
        console.print("Cancelled.")
        return False
    return True


def _load_plan(args: argparse.Namespace) -> RestorePlan:
    """Restore plan from backup.toml, or the built-in plan when there is none."""
    try:
        return load_engine_config(args.config).restore.to_plan()
    except FileNotFoundError:
        return RestorePlan()


def _open_context(args: argparse.Namespace) -> EngineContext | None:
    try:
        return create_context(
            profile_name=args.profile,
            config_path=args.config,
            env_prefix=args.env_prefix,
        )
    except (ProfileNotFoundError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return None


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_restore(args: argparse.Namespace) -> int:
    context = _open_context(args)
    if context is None:
        return 1
    try:
        console.print(f"Restoring [bold cyan]{args.file_path}[/bold cyan]...", style="dim")
        result = await restore_from_reference(
            context.adapter, context.storage, args.file_path, plan=context.plan
        )
    except BackupEngineError as e:
        console.print(f"[bold red]x[/bold red] Restore failed: {e}")
        return 1
    finally:
        await context.close()

    _print_result(result)
    return 1 if result.has_errors else 0


async def _async_restore_bundle(args: argparse.Namespace) -> int:
    bundle_path = Path(args.bundle_path)
    if not bundle_path.exists():
        console.print(f"[red]Error: Bundle not found: {bundle_path}[/red]")
        return 1

    context = _open_context(args)
    if context is None:
        return 1
    try:
        console.print(f"Restoring bundle [bold cyan]{bundle_path.name}[/bold cyan]...", style="dim")
        result = await restore_from_bundle(
            context.adapter, context.storage, bundle_path.read_bytes(), plan=context.plan
        )
    except BackupEngineError as e:
        console.print(f"[bold red]x[/bold red] Restore failed: {e}")
        return 1
    finally:
        await context.close()

    _print_result(result)
    return 1 if result.has_errors else 0


async def _async_export(args: argparse.Namespace) -> int:
    context = _open_context(args)
    if context is None:
        return 1
    try:
        bundle = await export_bundle(context.storage, args.file_path, plan=context.plan)
    except BackupEngineError as e:
        console.print(f"[bold red]x[/bold red] Export failed: {e}")
        return 1
    finally:
        await context.close()

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)
    target = output_dir / bundle.filename
    target.write_bytes(bundle.content)

    console.print(f"[bold green]v[/bold green] Wrote {target}")
    console.print(f"  Files added: {bundle.files_added}")
    if bundle.files_skipped:
        console.print(f"  Files skipped: [yellow]{bundle.files_skipped}[/yellow]")
    return 0


async def _async_validate(args: argparse.Namespace) -> int:
    source = args.source
    context: EngineContext | None = None
    try:
        if source.endswith(".zip") and Path(source).exists():
            archive = open_bundle(Path(source).read_bytes(), identifier=source)
            plan = _load_plan(args)
        else:
            context = _open_context(args)
            if context is None:
                return 1
            archive = await open_reference_archive(context.storage, source, context.plan)
            plan = context.plan
    except BackupEngineError as e:
        console.print(f"[bold red]x[/bold red] Cannot open {source}: {e}")
        return 1
    finally:
        if context is not None:
            await context.close()

    try:
        report = validate_archive(archive, plan)
    finally:
        archive.close()

    console.print(f"Validating: [bold]{source}[/bold] ({archive.format.value})")
    non_empty = {t: n for t, n in report["rows"].items() if n}
    console.print(f"  Tables with rows: {len(non_empty)}, total rows: {sum(non_empty.values())}")

    if report["errors"]:
        console.print(f"\n[bold red]x[/bold red] Found {len(report['errors'])} errors:")
        for error in report["errors"]:
            console.print(f"   - {error}")

    if report["warnings"]:
        console.print(f"\n[yellow]Found {len(report['warnings'])} warnings:[/yellow]")
        for warning in report["warnings"]:
            console.print(f"   - {warning}")

    if report["valid"]:
        console.print("\n[bold green]v[/bold green] Archive is valid")
        return 0
    console.print("\n[bold red]x[/bold red] Archive is invalid")
    return 1


# ============================================================================
# Sync command wrappers
# ============================================================================


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore a capture from the archive bucket."""
    if not _confirm(args.file_path, args.yes):
        return 0
    return asyncio.run(_async_restore(args))


def cmd_restore_bundle(args: argparse.Namespace) -> int:
    """Restore a local zip bundle."""
    if not _confirm(args.bundle_path, args.yes):
        return 0
    return asyncio.run(_async_restore_bundle(args))


def cmd_export(args: argparse.Namespace) -> int:
    """Download a capture as a zip bundle."""
    return asyncio.run(_async_export(args))


def cmd_validate(args: argparse.Namespace) -> int:
    """Inspect a capture or bundle without writing."""
    return asyncio.run(_async_validate(args))


def cmd_order(args: argparse.Namespace) -> int:
    """Check the configured restore order against foreign keys.

    Uses the declared FK map unless ``--live`` is given, in which case the
    FK graph is read from the database at ``--database-url`` (or the
    active postgres profile).

    Returns:
        0 when the order is valid, 1 otherwise.
    """
    plan = _load_plan(args)

    if args.live:
        database_url = args.database_url
        if not database_url:
            try:
                config = load_engine_config(args.config)
                name = args.profile or read_profile_lock()
                profile = config.profiles.get(name or "")
            except FileNotFoundError:
                profile = None
            if profile is None or profile.provider != "postgres":
                console.print(
                    "[red]Error: --live needs --database-url or an active postgres profile[/red]"
                )
                return 1
            database_url = resolve_url(profile)
        try:
            with ForeignKeyIntrospector(database_url) as introspector:
                foreign_keys = introspector.get_foreign_keys()
        except Exception as e:
            console.print(f"[red]Error: Failed to read foreign keys: {e}[/red]")
            return 1
        source = "live database"
    else:
        foreign_keys = DEFAULT_FOREIGN_KEYS
        source = "declared foreign keys"

    result = check_restore_order(plan.table_order, foreign_keys)
    console.print(
        f"Checking restore order v{plan.order_version} "
        f"({len(plan.table_order)} tables) against {source}"
    )
    console.print(result.format_report())
    return 0 if result.valid else 1


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from backup.toml."""
    try:
        config = load_engine_config(args.config)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    current = read_profile_lock()

    table = Table(title="Backup Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        table.add_row(marker, name, profile.provider, profile.description or "")

    console.print(table)
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="backup-engine",
        description="Restore, export, and verify backups",
    )
    parser.add_argument("--profile", "-p", default=None, help="Profile from backup.toml")
    parser.add_argument(
        "--config", type=Path, default=None, help="Path to backup.toml (default: ./backup.toml)"
    )
    parser.add_argument(
        "--env-prefix",
        default="",
        help="Prefix for environment variable lookup (e.g., APP_ reads APP_BACKUP_PROFILE)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log engine progress")

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_profiles = subparsers.add_parser("profiles", help="List available profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    p_order = subparsers.add_parser("order", help="Check the restore order against foreign keys")
    p_order.add_argument("--live", action="store_true", help="Read foreign keys from the database")
    p_order.add_argument("--database-url", default=None, help="PostgreSQL URL for --live")
    p_order.set_defaults(func=cmd_order)

    p_validate = subparsers.add_parser("validate", help="Inspect a capture or bundle")
    p_validate.add_argument("source", help="Capture path in the archive bucket or local .zip")
    p_validate.set_defaults(func=cmd_validate)

    p_restore = subparsers.add_parser("restore", help="Restore a capture")
    p_restore.add_argument("file_path", help="Capture path in the archive bucket")
    p_restore.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")
    p_restore.set_defaults(func=cmd_restore)

    p_bundle = subparsers.add_parser("restore-bundle", help="Restore a local zip bundle")
    p_bundle.add_argument("bundle_path", help="Path to the zip bundle")
    p_bundle.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")
    p_bundle.set_defaults(func=cmd_restore_bundle)

    p_export = subparsers.add_parser("export", help="Download a capture as a zip bundle")
    p_export.add_argument("file_path", help="Capture path in the archive bucket")
    p_export.add_argument("--output", "-o", default=".", help="Output directory (default: .)")
    p_export.set_defaults(func=cmd_export)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
