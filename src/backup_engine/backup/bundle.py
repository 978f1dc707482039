"""Build downloadable zip bundles from captured archives.

A bundle holds ``tables/<table>.json`` for each non-empty dataset,
``metadata.json``, ``storage_manifest.json`` (when the capture has one)
and every captured file under ``storage/<bucket>/<path>``.  Files come
from the frozen capture in the archive store, never from live buckets.
A captured file that cannot be fetched is left out of the bundle.

Bundles produced here open with ``open_bundle`` and restore to the same
counts as restoring the capture directly.
"""

import io
import json
import logging
import re
import zipfile

from backup_engine.backup.archive import (
    METADATA_ENTRY,
    MANIFEST_ENTRY,
    STORAGE_DIR,
    TABLES_DIR,
    Archive,
)
from backup_engine.backup.models import ExportBundle
from backup_engine.errors import DatasetError

logger = logging.getLogger(__name__)

COMPRESS_LEVEL = 6


def bundle_filename(created_at: str | None) -> str:
    """Deterministic bundle filename from a capture timestamp.

    Example:
        >>> bundle_filename("2026-01-15T10:30:00.123Z")
        'backup-2026-01-15T10-30-00.zip'
        >>> bundle_filename(None)
        'backup-unknown.zip'
    """
    timestamp = re.sub(r"[:.]", "-", created_at)[:19] if created_at else "unknown"
    return f"backup-{timestamp}.zip"


async def build_bundle(archive: Archive) -> ExportBundle:
    """Assemble ``archive`` and its captured files into one zip.

    Args:
        archive: An opened reference archive.

    Returns:
        ``ExportBundle`` with the zip bytes and deterministic filename.
    """
    buf = io.BytesIO()
    files_added = 0
    files_skipped = 0
    manifest = archive.manifest()

    with zipfile.ZipFile(
        buf, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=COMPRESS_LEVEL
    ) as zf:
        for table in archive.table_names():
            try:
                rows = archive.load_table(table)
            except DatasetError as e:
                logger.warning(f"Leaving {table} out of bundle: {e}")
                continue
            if rows:
                zf.writestr(f"{TABLES_DIR}{table}.json", json.dumps(rows, indent=2, default=str))

        zf.writestr(
            METADATA_ENTRY,
            json.dumps(archive.metadata.model_dump(exclude_none=True), indent=2, default=str),
        )
        if manifest:
            zf.writestr(MANIFEST_ENTRY, json.dumps(manifest, indent=2))

        for bucket, paths in manifest.items():
            for path in paths:
                try:
                    data = await archive.fetch_file(bucket, path)
                except Exception as e:
                    files_skipped += 1
                    logger.warning(f"Error adding {bucket}/{path} to bundle: {e}")
                    continue
                zf.writestr(f"{STORAGE_DIR}{bucket}/{path}", data)
                files_added += 1

    filename = bundle_filename(archive.metadata.created_at)
    logger.info(
        f"Built {filename}: {files_added} files added, {files_skipped} skipped"
    )
    return ExportBundle(
        filename=filename,
        content=buf.getvalue(),
        files_added=files_added,
        files_skipped=files_skipped,
    )
