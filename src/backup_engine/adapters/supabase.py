"""Async Supabase table and storage clients.

Provides ``AsyncSupabaseAdapter`` (``DatabaseClient`` over PostgREST) and
``AsyncSupabaseStorage`` (``StorageClient`` over Supabase Storage), both
built on the supabase-py async client.

The client is initialized lazily on first use with an ``asyncio.Lock``
to ensure it is created exactly once.

Usage:
    from backup_engine.adapters.supabase import (
        AsyncSupabaseAdapter,
        AsyncSupabaseStorage,
    )

    adapter = AsyncSupabaseAdapter(
        url="https://xyzproject.supabase.co",
        key="eyJ...",
    )
    await adapter.upsert("organizations", rows, on_conflict="id")

    storage = AsyncSupabaseStorage(url="https://xyzproject.supabase.co", key="eyJ...")
    data = await storage.download("backups", "backup-2026-01-15.json")
"""

import asyncio
from typing import Any

from supabase import AsyncClient, acreate_client


class LazyAsyncClient:
    """Holds a lazily created supabase ``AsyncClient``.

    Args:
        url: Supabase project URL.
        key: Supabase API key (service key for restore operations).
    """

    def __init__(self, url: str, key: str) -> None:
        self._url: str = url
        self._key: str = key
        self._client: AsyncClient | None = None
        self._lock: asyncio.Lock = asyncio.Lock()

    async def _get_client(self) -> AsyncClient:
        """Get or create the async Supabase client.

        Uses an ``asyncio.Lock`` to ensure the client is created exactly
        once, even under concurrent access.
        """
        if self._client is None:
            async with self._lock:
                # Double-check after acquiring lock
                if self._client is None:
                    self._client = await acreate_client(self._url, self._key)
        return self._client

    async def close(self) -> None:
        """Close the Supabase async client.

        If the client was never initialized this is a no-op.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class AsyncSupabaseAdapter(LazyAsyncClient):
    """Async Supabase implementation of the ``DatabaseClient`` protocol.

    Example:
        adapter = AsyncSupabaseAdapter(
            url="https://xyzproject.supabase.co",
            key="eyJhbGciOiJIUzI1NiIs...",
        )
        rows = await adapter.select("user_roles", "role", {"user_id": "u1"})
        await adapter.close()
    """

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows from table using Supabase query builder."""
        client = await self._get_client()
        query = client.table(table).select(columns)

        if filters:
            for key, value in filters.items():
                query = query.eq(key, value)

        if order_by:
            query = query.order(order_by)

        result = await query.execute()
        return result.data

    async def upsert(
        self,
        table: str,
        rows: list[dict],
        on_conflict: str = "id",
    ) -> int:
        """Upsert rows in one PostgREST request (overwrite on conflict)."""
        if not rows:
            return 0
        client = await self._get_client()
        await (
            client.table(table)
            .upsert(rows, on_conflict=on_conflict, ignore_duplicates=False)
            .execute()
        )
        return len(rows)


class AsyncSupabaseStorage(LazyAsyncClient):
    """Async Supabase Storage implementation of the ``StorageClient`` protocol."""

    async def download(self, bucket: str, path: str) -> bytes:
        """Download an object from a bucket."""
        client = await self._get_client()
        return await client.storage.from_(bucket).download(path)

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> None:
        """Upload an object, replacing it when ``upsert`` is set."""
        client = await self._get_client()
        await client.storage.from_(bucket).upload(
            path,
            data,
            file_options={
                "content-type": content_type,
                "upsert": "true" if upsert else "false",
            },
        )
