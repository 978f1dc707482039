"""Shared in-memory fakes for the database and blob store.

``FakeDatabase`` keeps rows per table keyed by primary key, so repeated
upserts overwrite instead of duplicating.  ``FakeStorage`` keeps objects
per ``(bucket, path)`` and records the content type of every upload.
Both can be told to fail specific calls.
"""

import io
import json
import struct
import zipfile

import pytest


class FakeDatabase:
    """``DatabaseClient`` backed by dicts.

    Args:
        fail_batches: ``{table: {batch_index, ...}}`` -- upsert calls that raise.
    """

    def __init__(self, fail_batches: dict[str, set[int]] | None = None) -> None:
        self.tables: dict[str, dict] = {}
        self.calls: list[tuple[str, int]] = []
        self.fail_batches = fail_batches or {}
        self._call_index: dict[str, int] = {}
        self.closed = False

    async def select(self, table, columns, filters=None, order_by=None):
        rows = list(self.tables.get(table, {}).values())
        if filters:
            rows = [r for r in rows if all(r.get(k) == v for k, v in filters.items())]
        return rows

    async def upsert(self, table, rows, on_conflict="id"):
        index = self._call_index.get(table, 0)
        self._call_index[table] = index + 1
        self.calls.append((table, len(rows)))
        if index in self.fail_batches.get(table, set()):
            raise RuntimeError(f"violates foreign key constraint on {table}")
        stored = self.tables.setdefault(table, {})
        for row in rows:
            stored[row[on_conflict]] = dict(row)
        return len(rows)

    async def close(self):
        self.closed = True

    def count(self, table: str) -> int:
        return len(self.tables.get(table, {}))


class FakeStorage:
    """``StorageClient`` backed by a dict of ``(bucket, path) -> bytes``.

    Args:
        fail_uploads: Paths whose upload raises.
    """

    def __init__(self, fail_uploads: set[str] | None = None) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.content_types: dict[tuple[str, str], str] = {}
        self.fail_uploads = fail_uploads or set()
        self.closed = False

    async def download(self, bucket, path):
        try:
            return self.objects[(bucket, path)]
        except KeyError:
            raise FileNotFoundError(f"Object not found: {bucket}/{path}") from None

    async def upload(self, bucket, path, data, content_type="application/octet-stream", upsert=True):
        if path in self.fail_uploads:
            raise RuntimeError(f"upload rejected: {path}")
        if not upsert and (bucket, path) in self.objects:
            raise RuntimeError("The resource already exists")
        self.objects[(bucket, path)] = data
        self.content_types[(bucket, path)] = content_type

    async def close(self):
        self.closed = True

    def live(self, bucket: str) -> dict[str, bytes]:
        """Objects currently in ``bucket`` (path -> bytes)."""
        return {p: d for (b, p), d in self.objects.items() if b == bucket}


def put_capture(
    storage: FakeStorage,
    file_path: str,
    data: dict,
    files: dict[str, dict[str, bytes]] | None = None,
    backup_prefix: str | None = "daily/2026-01-15",
    created_at: str = "2026-01-15T02:00:00.000Z",
    archive_bucket: str = "backups",
) -> dict:
    """Store a capture and its files in the archive bucket.

    Args:
        files: ``{bucket: {path: bytes}}`` captured files.  Written under
            ``<backup_prefix>/storage/<bucket>/<path>`` and listed in the
            storage manifest.
        backup_prefix: ``None`` produces a flat capture without manifest.

    Returns:
        The capture document that was stored.
    """
    metadata = {
        "version": "2.0" if backup_prefix else "1.0",
        "created_at": created_at,
        "tables_count": len(data),
    }
    capture: dict = {"metadata": metadata, "data": data}
    if backup_prefix:
        metadata["backup_prefix"] = backup_prefix
        manifest = {bucket: list(entries) for bucket, entries in (files or {}).items()}
        metadata["files_count"] = sum(len(p) for p in manifest.values())
        capture["storage_manifest"] = manifest
        for bucket, entries in (files or {}).items():
            for path, content in entries.items():
                storage.objects[(archive_bucket, f"{backup_prefix}/storage/{bucket}/{path}")] = content
    storage.objects[(archive_bucket, file_path)] = json.dumps(capture).encode()
    return capture


def make_zip(entries: dict[str, bytes | str | object]) -> bytes:
    """Build a zip in memory.  Non-bytes, non-str values are JSON-encoded."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, value in entries.items():
            if isinstance(value, bytes):
                zf.writestr(name, value)
            elif isinstance(value, str):
                zf.writestr(name, value)
            else:
                zf.writestr(name, json.dumps(value))
    return buf.getvalue()


def corrupt_entry(data: bytes, name: str, count: int = 8) -> bytes:
    """Flip the first ``count`` compressed bytes of entry ``name``.

    The central directory and local header stay intact, so the zip still
    opens; only reading that entry fails.
    """
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        offset = zf.getinfo(name).header_offset
    buf = bytearray(data)
    name_len, extra_len = struct.unpack("<HH", buf[offset + 26:offset + 30])
    start = offset + 30 + name_len + extra_len
    for i in range(start, start + count):
        buf[i] ^= 0xFF
    return bytes(buf)


def rows(prefix: str, count: int, **extra) -> list[dict]:
    """``count`` rows with ids ``<prefix>-0`` ... plus ``extra`` columns."""
    return [{"id": f"{prefix}-{i}", **extra} for i in range(count)]


@pytest.fixture
def db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()
