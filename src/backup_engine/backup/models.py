"""Restore plan, archive metadata, and result models.

The ``RestorePlan`` carries the versioned constants (table order, bucket
allow-list) into the engine at construction time, so callers can extend
or narrow them without touching restore logic.

Usage:
    from backup_engine.backup.models import RestorePlan

    plan = RestorePlan()                                   # canonical defaults
    plan = RestorePlan(table_order=["organizations", "profiles"], buckets=[])
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from backup_engine.backup.defaults import (
    DEFAULT_BUCKETS,
    DEFAULT_TABLE_ORDER,
    RESTORE_ORDER_VERSION,
)


class RestorePlan(BaseModel):
    """What to restore and how. Tables ordered by dependency (parents first)."""

    table_order: list[str] = Field(default_factory=lambda: list(DEFAULT_TABLE_ORDER))
    buckets: list[str] = Field(default_factory=lambda: list(DEFAULT_BUCKETS))
    order_version: str = RESTORE_ORDER_VERSION
    batch_size: int = Field(default=100, ge=1)      # rows per upsert call
    primary_key: str = "id"                         # upsert conflict column
    archive_bucket: str = "backups"                 # bucket holding captures
    file_concurrency: int = Field(default=4, ge=1)  # parallel files per bucket


class ArchiveFormat(str, Enum):
    """Archive layout variant."""

    FLAT = "flat"              # metadata + data only, no storage manifest
    VERSIONED = "versioned"    # adds storage_manifest + backup_prefix
    BUNDLE = "bundle"          # uploaded zip bundle


class ArchiveMetadata(BaseModel):
    """Top-level metadata object of a capture. Unknown keys are kept."""

    model_config = ConfigDict(extra="allow")

    version: str | int | None = None
    created_at: str | None = None
    tables_count: int | None = None
    files_count: int | None = None
    backup_prefix: str | None = None


class TableResult(BaseModel):
    """Outcome for one table."""

    restored: int = 0
    errors: list[str] = Field(default_factory=list)


class BucketResult(BaseModel):
    """Outcome for one storage bucket."""

    restored: int = 0
    errors: int = 0


class RestoreResult(BaseModel):
    """Aggregated outcome of one restore run."""

    success: bool = True
    total_restored: int = 0
    total_errors: int = 0
    files_restored: int = 0
    file_errors: int = 0
    db_details: dict[str, TableResult] = Field(default_factory=dict)
    storage_details: dict[str, BucketResult] = Field(default_factory=dict)

    @classmethod
    def from_details(
        cls,
        db_details: dict[str, TableResult],
        storage_details: dict[str, BucketResult],
    ) -> "RestoreResult":
        """Build the run totals from per-table and per-bucket results."""
        return cls(
            total_restored=sum(r.restored for r in db_details.values()),
            total_errors=sum(len(r.errors) for r in db_details.values()),
            files_restored=sum(r.restored for r in storage_details.values()),
            file_errors=sum(r.errors for r in storage_details.values()),
            db_details=db_details,
            storage_details=storage_details,
        )

    @property
    def has_errors(self) -> bool:
        """True when any table or file recorded a failure."""
        return self.total_errors > 0 or self.file_errors > 0


class ExportBundle(BaseModel):
    """A built download bundle."""

    filename: str
    content: bytes
    files_added: int = 0
    files_skipped: int = 0
