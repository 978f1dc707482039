"""Restore and export entry points driven by a ``RestorePlan``.

A restore run has two sequential phases: every table in
``plan.table_order`` is restored first, then files are reconciled into the
allow-listed buckets, so rows referencing a file path exist before the
file does.  The run always completes and returns one ``RestoreResult``;
only failures to open the archive (or a concurrent run) abort it.

Restores in one process are serialized by an advisory run lock: a restore
requested while another is running fails fast with
``RestoreInProgressError``.  Restores in different processes are not
coordinated.

Usage:
    from backup_engine.backup.backup_restore import (
        export_bundle,
        restore_from_bundle,
        restore_from_reference,
        validate_archive,
    )

    # Restore a capture stored in the archive bucket
    result = await restore_from_reference(adapter, storage, "backup-2026-01-15.json")

    # Restore an uploaded bundle
    result = await restore_from_bundle(adapter, storage, zip_bytes)

    # Build a downloadable bundle for a capture
    bundle = await export_bundle(storage, "backup-2026-01-15.json")
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from backup_engine.adapters.base import DatabaseClient, StorageClient
from backup_engine.backup.archive import Archive, open_bundle, open_reference_archive
from backup_engine.backup.bundle import build_bundle
from backup_engine.backup.models import ExportBundle, RestorePlan, RestoreResult
from backup_engine.backup.storage_restore import restore_storage
from backup_engine.backup.table_restore import restore_tables
from backup_engine.errors import DatasetError, RestoreInProgressError

logger = logging.getLogger(__name__)

_run_lock = asyncio.Lock()


@asynccontextmanager
async def restore_lock(lock: asyncio.Lock | None = None) -> AsyncIterator[None]:
    """Hold the run lock for one restore, failing fast if it is taken.

    Raises:
        RestoreInProgressError: If another restore holds the lock.
    """
    lock = lock or _run_lock
    if lock.locked():
        raise RestoreInProgressError("A restore is already running")
    async with lock:
        yield


async def restore_archive(
    adapter: DatabaseClient,
    storage: StorageClient,
    archive: Archive,
    plan: RestorePlan | None = None,
) -> RestoreResult:
    """Restore an already opened archive: tables first, then storage.

    Does not take the run lock; the ``restore_from_*`` functions do.
    """
    plan = plan or RestorePlan()
    db_details = await restore_tables(adapter, archive, plan)
    storage_details = await restore_storage(storage, archive, plan)
    result = RestoreResult.from_details(db_details, storage_details)
    logger.info(
        f"Restore of {archive.identifier} finished: {result.total_restored} rows, "
        f"{result.files_restored} files, {result.total_errors} table errors, "
        f"{result.file_errors} file errors"
    )
    return result


async def restore_from_reference(
    adapter: DatabaseClient,
    storage: StorageClient,
    file_path: str,
    plan: RestorePlan | None = None,
    lock: asyncio.Lock | None = None,
) -> RestoreResult:
    """Restore a capture referenced by its path in the archive bucket.

    Args:
        adapter: Live database adapter.
        storage: Client for both the archive bucket and the live buckets.
        file_path: Path of the capture in ``plan.archive_bucket``.
        plan: Restore plan (defaults to the canonical ``RestorePlan()``).
        lock: Run lock override (defaults to the process-wide lock).

    Returns:
        Aggregated ``RestoreResult``.

    Raises:
        RequestError: If ``file_path`` is empty.
        ArchiveError: If the capture cannot be opened.
        RestoreInProgressError: If another restore is running.
    """
    plan = plan or RestorePlan()
    async with restore_lock(lock):
        logger.info(f"Restore requested from {file_path}")
        archive = await open_reference_archive(storage, file_path, plan)
        try:
            return await restore_archive(adapter, storage, archive, plan)
        finally:
            archive.close()


async def restore_from_bundle(
    adapter: DatabaseClient,
    storage: StorageClient,
    data: bytes,
    plan: RestorePlan | None = None,
    lock: asyncio.Lock | None = None,
) -> RestoreResult:
    """Restore an uploaded zip bundle.

    Raises:
        RequestError: If ``data`` is empty.
        ArchiveError: If ``data`` is not a readable zip.
        RestoreInProgressError: If another restore is running.
    """
    plan = plan or RestorePlan()
    async with restore_lock(lock):
        logger.info(f"Bundle restore requested, size: {len(data)} bytes")
        archive = open_bundle(data)
        try:
            return await restore_archive(adapter, storage, archive, plan)
        finally:
            archive.close()


async def export_bundle(
    storage: StorageClient,
    file_path: str,
    plan: RestorePlan | None = None,
) -> ExportBundle:
    """Build a downloadable bundle for a capture in the archive bucket.

    Raises:
        RequestError: If ``file_path`` is empty.
        ArchiveError: If the capture cannot be opened.
    """
    archive = await open_reference_archive(storage, file_path, plan)
    try:
        return await build_bundle(archive)
    finally:
        archive.close()


def validate_archive(archive: Archive, plan: RestorePlan | None = None) -> dict:
    """Check an opened archive against a restore plan without writing.

    Errors are datasets the restore would reject entirely; warnings are
    content the restore would skip or could fail on.

    Returns:
        Dict with ``valid`` (bool), ``errors`` (list[str]),
        ``warnings`` (list[str]), and ``rows`` (per-table row counts).

    Example:
        report = validate_archive(archive, plan)
        if not report["valid"]:
            raise ValueError("; ".join(report["errors"]))
    """
    plan = plan or RestorePlan()
    errors: list[str] = []
    warnings: list[str] = []
    rows: dict[str, int] = {}

    for table in plan.table_order:
        try:
            table_rows = archive.load_table(table)
        except DatasetError as e:
            errors.append(str(e))
            continue
        rows[table] = len(table_rows)
        missing_pk = sum(1 for r in table_rows if r.get(plan.primary_key) is None)
        if missing_pk:
            warnings.append(
                f"{table}: {missing_pk} rows missing '{plan.primary_key}'"
            )

    for table in sorted(set(archive.table_names()) - set(plan.table_order)):
        warnings.append(f"Unknown table (not restored): {table}")

    for bucket in sorted(set(archive.manifest()) - set(plan.buckets)):
        warnings.append(f"Unknown bucket (not restored): {bucket}")

    if archive.metadata.tables_count is not None:
        present = len(archive.table_names())
        if present != archive.metadata.tables_count:
            warnings.append(
                f"Metadata declares {archive.metadata.tables_count} tables, "
                f"{present} found"
            )

    return {"valid": not errors, "errors": errors, "warnings": warnings, "rows": rows}
