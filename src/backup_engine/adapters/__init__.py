"""Database and storage adapters package.

Provides the ``DatabaseClient`` and ``StorageClient`` Protocols and the
concrete async implementations for PostgreSQL and Supabase.

Usage:
    from backup_engine.adapters import (
        AsyncPostgresAdapter,
        AsyncSupabaseAdapter,
        AsyncSupabaseStorage,
        DatabaseClient,
        StorageClient,
    )
"""

from backup_engine.adapters.base import DatabaseClient, StorageClient
from backup_engine.adapters.postgres import AsyncPostgresAdapter
from backup_engine.adapters.supabase import AsyncSupabaseAdapter, AsyncSupabaseStorage

__all__ = [
    "DatabaseClient",
    "StorageClient",
    "AsyncPostgresAdapter",
    "AsyncSupabaseAdapter",
    "AsyncSupabaseStorage",
]
