"""Database and storage client protocol definitions.

Defines the ``DatabaseClient`` Protocol that table adapters implement and
the ``StorageClient`` Protocol that blob-store clients implement.
All methods are ``async def`` -- the engine is async-first.

Usage:
    from backup_engine.adapters.base import DatabaseClient, StorageClient

    async def do_work(client: DatabaseClient, storage: StorageClient) -> None:
        await client.upsert("organizations", [{"id": "o1", "name": "Acme"}])
        data = await storage.download("backups", "backup-2026-01-15.json")
        await storage.upload("documents", "o1/contract.pdf", data,
                             content_type="application/pdf")
        await client.close()
"""

from typing import Any, Protocol


class DatabaseClient(Protocol):
    """Database client interface that all table adapters must implement.

    This Protocol ensures consistent behavior across different database
    backends (PostgreSQL, Supabase).  Rows are plain dicts -- the engine
    is schema-agnostic and never models per-table structs.

    All methods are async -- callers must ``await`` every operation.
    """

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows from table.

        Args:
            table: Table name.
            columns: Comma-separated column names (e.g., ``"id, role"``).
            filters: Optional dict of field=value filters (all must match via AND).
            order_by: Optional column name to sort by.

        Returns:
            List of dicts, one per row.  Empty list if no matches.

        Example:
            rows = await client.select(
                "user_roles",
                "role",
                filters={"user_id": "u1", "role": "admin"},
            )
        """
        ...

    async def upsert(
        self,
        table: str,
        rows: list[dict],
        on_conflict: str = "id",
    ) -> int:
        """Insert rows, overwriting existing rows with the same key.

        The whole call is one unit of work: either every row is written
        or the call raises.

        Args:
            table: Table name.
            rows: Row dicts to write.  Rows may carry different key sets.
            on_conflict: Column that identifies a row (primary key).

        Returns:
            Number of rows written.

        Raises:
            Exception: On constraint violations or connection errors.

        Example:
            await client.upsert("profiles", batch, on_conflict="id")
        """
        ...

    async def close(self) -> None:
        """Close database connection and clean up resources."""
        ...


class StorageClient(Protocol):
    """Blob storage interface (bucket + relative path addressing)."""

    async def download(self, bucket: str, path: str) -> bytes:
        """Download an object.

        Args:
            bucket: Bucket name.
            path: Object path relative to the bucket root.

        Returns:
            Raw object bytes.

        Raises:
            Exception: If the object does not exist or cannot be read.
        """
        ...

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> None:
        """Upload an object, overwriting an existing one when ``upsert``.

        Raises:
            Exception: If the upload is rejected.
        """
        ...

    async def close(self) -> None:
        """Release client resources."""
        ...
