"""Backup restore and export engine.

Restores captured archives (by reference or as uploaded bundles) into the
live database and storage buckets, and builds downloadable bundles from
captures.  Table order, bucket allow-list, and batch size come from a
``RestorePlan``.

Usage:
    from backup_engine.backup import RestorePlan, restore_from_reference
    from backup_engine.backup import restore_from_bundle, export_bundle
"""

from backup_engine.backup.archive import (
    Archive,
    BundleArchive,
    ReferenceArchive,
    open_bundle,
    open_reference_archive,
)
from backup_engine.backup.backup_restore import (
    export_bundle,
    restore_archive,
    restore_from_bundle,
    restore_from_reference,
    validate_archive,
)
from backup_engine.backup.models import (
    ArchiveFormat,
    ArchiveMetadata,
    BucketResult,
    ExportBundle,
    RestorePlan,
    RestoreResult,
    TableResult,
)

__all__ = [
    "Archive",
    "BundleArchive",
    "ReferenceArchive",
    "open_bundle",
    "open_reference_archive",
    "ArchiveFormat",
    "ArchiveMetadata",
    "BucketResult",
    "ExportBundle",
    "RestorePlan",
    "RestoreResult",
    "TableResult",
    "export_bundle",
    "restore_archive",
    "restore_from_bundle",
    "restore_from_reference",
    "validate_archive",
]
