"""backup-engine: Restore and export engine for database + storage backups.

Restores captured archives into the live database (batched upserts in a
fixed parent-before-child table order) and storage buckets, builds
downloadable zip bundles from captures, and checks the restore order
against foreign keys.

Usage:
    from backup_engine import create_context, restore_from_reference
    from backup_engine import RestorePlan, RestoreResult, export_bundle
    from backup_engine import AsyncPostgresAdapter, AsyncSupabaseAdapter
"""

__version__ = "0.1.0"

# Adapters
from backup_engine.adapters.base import DatabaseClient, StorageClient
from backup_engine.adapters.postgres import AsyncPostgresAdapter
from backup_engine.adapters.supabase import AsyncSupabaseAdapter, AsyncSupabaseStorage

# Engine
from backup_engine.backup.backup_restore import (
    export_bundle,
    restore_from_bundle,
    restore_from_reference,
    validate_archive,
)
from backup_engine.backup.models import ExportBundle, RestorePlan, RestoreResult

# Config
from backup_engine.config.loader import load_engine_config
from backup_engine.config.models import EngineConfig, EngineProfile

# Errors
from backup_engine.errors import (
    ArchiveError,
    BackupEngineError,
    DatasetError,
    RestoreInProgressError,
)

# Factory
from backup_engine.factory import (
    EngineContext,
    ProfileNotFoundError,
    create_context,
    get_adapter,
    resolve_url,
)

# Schema
from backup_engine.schema.order import check_restore_order, sort_tables

__all__ = [
    # Adapters
    "DatabaseClient",
    "StorageClient",
    "AsyncPostgresAdapter",
    "AsyncSupabaseAdapter",
    "AsyncSupabaseStorage",
    # Engine
    "export_bundle",
    "restore_from_bundle",
    "restore_from_reference",
    "validate_archive",
    "ExportBundle",
    "RestorePlan",
    "RestoreResult",
    # Config
    "load_engine_config",
    "EngineConfig",
    "EngineProfile",
    # Errors
    "BackupEngineError",
    "ArchiveError",
    "DatasetError",
    "RestoreInProgressError",
    # Factory
    "EngineContext",
    "create_context",
    "get_adapter",
    "ProfileNotFoundError",
    "resolve_url",
    # Schema
    "check_restore_order",
    "sort_tables",
]
