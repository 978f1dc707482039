"""Storage reconciliation.

Re-materializes captured files into their live buckets at the original
relative path.  Table rows reference files by path, so keeping the path is
what keeps those references valid after a restore.

Only buckets on ``plan.buckets`` are touched.  Each file is one unit: a
failed fetch or upload increments the bucket's error counter and the rest
of the bucket continues.  Files of a bucket run concurrently up to
``plan.file_concurrency``; counts do not depend on completion order.
"""

import asyncio
import logging
from pathlib import PurePosixPath

from backup_engine.adapters.base import StorageClient
from backup_engine.backup.archive import Archive
from backup_engine.backup.defaults import CONTENT_TYPES, DEFAULT_CONTENT_TYPE
from backup_engine.backup.models import BucketResult, RestorePlan

logger = logging.getLogger(__name__)


def content_type_for(path: str) -> str:
    """MIME type for ``path`` from its extension (case-insensitive).

    Example:
        >>> content_type_for("invoices/2026/INV-7.PDF")
        'application/pdf'
        >>> content_type_for("notes.xyz")
        'application/octet-stream'
    """
    ext = PurePosixPath(path).suffix.lower().lstrip(".")
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


async def _restore_file(
    storage: StorageClient,
    archive: Archive,
    bucket: str,
    path: str,
    limit: asyncio.Semaphore,
) -> bool:
    async with limit:
        try:
            data = await archive.fetch_file(bucket, path)
        except Exception as e:
            logger.warning(f"Fetch failed for {bucket}/{path}: {e}")
            return False
        try:
            await storage.upload(
                bucket, path, data, content_type=content_type_for(path), upsert=True
            )
        except Exception as e:
            logger.warning(f"Upload failed for {bucket}/{path}: {e}")
            return False
        return True


async def restore_bucket(
    storage: StorageClient,
    archive: Archive,
    bucket: str,
    paths: list[str],
    plan: RestorePlan,
) -> BucketResult:
    """Restore the captured files of one bucket."""
    limit = asyncio.Semaphore(plan.file_concurrency)
    outcomes = await asyncio.gather(
        *(_restore_file(storage, archive, bucket, path, limit) for path in paths)
    )
    restored = sum(1 for ok in outcomes if ok)
    return BucketResult(restored=restored, errors=len(outcomes) - restored)


async def restore_storage(
    storage: StorageClient,
    archive: Archive,
    plan: RestorePlan,
) -> dict[str, BucketResult]:
    """Restore files for every allow-listed bucket found in the manifest.

    Buckets missing from the manifest, or listed with no files, are left out
    of the result.  Manifest buckets outside the allow-list are ignored.

    Returns:
        Mapping of bucket name to ``BucketResult``.
    """
    manifest = archive.manifest()
    details: dict[str, BucketResult] = {}

    for bucket in plan.buckets:
        paths = manifest.get(bucket)
        if not paths:
            continue
        details[bucket] = await restore_bucket(storage, archive, bucket, paths, plan)
        logger.info(f"{bucket}: {details[bucket].restored}/{len(paths)} files restored")

    unknown = sorted(set(manifest) - set(plan.buckets))
    if unknown:
        logger.warning(f"Buckets not in allow-list were ignored: {', '.join(unknown)}")

    return details
