"""Archive reader for captured backups.

An archive is opened in one of two modes:

- Reference mode (``open_reference_archive``): the archive is a JSON
  document in the archive bucket of the content store, shaped as
  ``{"metadata": {...}, "data": {table: [rows]}, "storage_manifest":
  {bucket: [paths]}}``.  Captures whose metadata carries a
  ``backup_prefix`` are ``VERSIONED``; their blobs live at
  ``<backup_prefix>/storage/<bucket>/<path>`` in the archive bucket.
  Captures without a prefix are ``FLAT`` and have no restorable files.
- Bundle mode (``open_bundle``): the archive is an uploaded zip holding
  ``tables/<table>.json``, optional ``metadata.json`` and
  ``storage_manifest.json``, and blobs under ``storage/<bucket>/<path>``.

Opening failures raise ``ArchiveError`` (fatal for the run).  A table
that is absent loads as an empty list; a table whose dataset cannot be
parsed raises ``DatasetError`` from ``load_table`` only.

Usage:
    from backup_engine.backup.archive import open_bundle, open_reference_archive

    archive = await open_reference_archive(storage, "backup-2026-01-15.json", plan)
    rows = archive.load_table("organizations")
    manifest = archive.manifest()
    data = await archive.fetch_file("documents", manifest["documents"][0])
"""

import io
import json
import logging
import zipfile
import zlib
from typing import Any

from pydantic import ValidationError

from backup_engine.adapters.base import StorageClient
from backup_engine.backup.models import ArchiveFormat, ArchiveMetadata, RestorePlan
from backup_engine.errors import ArchiveError, DatasetError, RequestError

logger = logging.getLogger(__name__)

TABLES_DIR = "tables/"
STORAGE_DIR = "storage/"
METADATA_ENTRY = "metadata.json"
MANIFEST_ENTRY = "storage_manifest.json"

# Raised while reading one zip entry: bad CRC, corrupt deflate stream,
# truncated data, encrypted entries, unsupported compression methods.
ENTRY_READ_ERRORS = (
    zipfile.BadZipFile,
    zlib.error,
    EOFError,
    RuntimeError,
    NotImplementedError,
)


def _check_dataset(table: str, value: Any) -> list[dict]:
    """Return ``value`` as a list of row dicts or raise ``DatasetError``."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise DatasetError(
            f"Invalid dataset for {table}: expected a list of rows, "
            f"got {type(value).__name__}"
        )
    for index, row in enumerate(value):
        if not isinstance(row, dict):
            raise DatasetError(
                f"Invalid dataset for {table}: row {index} is not an object"
            )
    return value


def _clean_manifest(raw: Any) -> dict[str, list[str]]:
    """Normalize a manifest to ``{bucket: [paths]}``.

    Raises:
        ValueError: If the manifest is not a mapping of lists.
    """
    if not isinstance(raw, dict):
        raise ValueError("storage manifest must be an object")
    manifest: dict[str, list[str]] = {}
    for bucket, paths in raw.items():
        if not isinstance(paths, list):
            raise ValueError(f"manifest entry for {bucket} must be a list")
        manifest[str(bucket)] = [str(p) for p in paths if p]
    return manifest


class Archive:
    """Common interface of opened archives."""

    identifier: str
    format: ArchiveFormat
    metadata: ArchiveMetadata

    def table_names(self) -> list[str]:
        """Names of all tables present in the archive (any order)."""
        raise NotImplementedError

    def load_table(self, table: str) -> list[dict]:
        """Rows captured for ``table``; ``[]`` when the table is absent."""
        raise NotImplementedError

    def manifest(self) -> dict[str, list[str]]:
        """Captured files per bucket; ``{}`` when the archive has none."""
        raise NotImplementedError

    async def fetch_file(self, bucket: str, path: str) -> bytes:
        """Bytes of one captured file."""
        raise NotImplementedError

    def close(self) -> None:
        """Release archive resources."""


class ReferenceArchive(Archive):
    """A capture stored as a JSON document in the content store."""

    def __init__(
        self,
        identifier: str,
        payload: dict,
        metadata: ArchiveMetadata,
        storage: StorageClient,
        archive_bucket: str,
    ) -> None:
        self.identifier = identifier
        self.metadata = metadata
        self.format = (
            ArchiveFormat.VERSIONED if metadata.backup_prefix else ArchiveFormat.FLAT
        )
        self._data: dict = payload["data"]
        self._storage = storage
        self._archive_bucket = archive_bucket
        self._manifest: dict[str, list[str]] = {}
        if self.format is ArchiveFormat.VERSIONED and payload.get("storage_manifest"):
            try:
                self._manifest = _clean_manifest(payload["storage_manifest"])
            except ValueError as e:
                raise ArchiveError(f"Invalid backup format: {e}") from e

    def table_names(self) -> list[str]:
        return list(self._data.keys())

    def load_table(self, table: str) -> list[dict]:
        return _check_dataset(table, self._data.get(table))

    def manifest(self) -> dict[str, list[str]]:
        return self._manifest

    def blob_path(self, bucket: str, path: str) -> str:
        """Location of a captured file inside the archive bucket."""
        return f"{self.metadata.backup_prefix}/storage/{bucket}/{path}"

    async def fetch_file(self, bucket: str, path: str) -> bytes:
        if self.format is not ArchiveFormat.VERSIONED:
            raise ArchiveError(f"{self.identifier} has no captured files")
        data = await self._storage.download(
            self._archive_bucket, self.blob_path(bucket, path)
        )
        if data is None:
            raise ArchiveError(f"Captured file not found: {bucket}/{path}")
        return data


class BundleArchive(Archive):
    """An uploaded (or freshly built) zip bundle."""

    def __init__(self, identifier: str, zf: zipfile.ZipFile) -> None:
        self.identifier = identifier
        self.format = ArchiveFormat.BUNDLE
        self._zf = zf
        self._names = [n for n in zf.namelist() if not n.endswith("/")]
        self.metadata = self._read_metadata()
        self._manifest = self._read_manifest()

    def _read_json_entry(self, name: str) -> Any:
        with self._zf.open(name) as f:
            return json.loads(f.read().decode("utf-8"))

    def _read_metadata(self) -> ArchiveMetadata:
        if METADATA_ENTRY not in self._names:
            return ArchiveMetadata()
        try:
            return ArchiveMetadata.model_validate(self._read_json_entry(METADATA_ENTRY))
        except (ValueError, *ENTRY_READ_ERRORS) as e:
            logger.warning(f"Ignoring unreadable {METADATA_ENTRY} in {self.identifier}: {e}")
            return ArchiveMetadata()

    def _read_manifest(self) -> dict[str, list[str]]:
        if MANIFEST_ENTRY in self._names:
            try:
                return _clean_manifest(self._read_json_entry(MANIFEST_ENTRY))
            except (ValueError, *ENTRY_READ_ERRORS) as e:
                logger.warning(
                    f"Ignoring unreadable {MANIFEST_ENTRY} in {self.identifier}: {e}"
                )
        return self._scan_storage_entries()

    def _scan_storage_entries(self) -> dict[str, list[str]]:
        """Derive the manifest from ``storage/<bucket>/<path>`` entries."""
        manifest: dict[str, list[str]] = {}
        for name in self._names:
            if not name.startswith(STORAGE_DIR):
                continue
            bucket, _, rel_path = name[len(STORAGE_DIR):].partition("/")
            if bucket and rel_path:
                manifest.setdefault(bucket, []).append(rel_path)
        return manifest

    def table_names(self) -> list[str]:
        return [
            name[len(TABLES_DIR):-len(".json")]
            for name in self._names
            if name.startswith(TABLES_DIR) and name.endswith(".json")
        ]

    def load_table(self, table: str) -> list[dict]:
        entry = f"{TABLES_DIR}{table}.json"
        if entry not in self._names:
            return []
        try:
            value = self._read_json_entry(entry)
        except (ValueError, *ENTRY_READ_ERRORS) as e:
            # json.JSONDecodeError and UnicodeDecodeError are ValueErrors
            raise DatasetError(f"Invalid dataset for {table}: {e}") from e
        return _check_dataset(table, value)

    def manifest(self) -> dict[str, list[str]]:
        return self._manifest

    async def fetch_file(self, bucket: str, path: str) -> bytes:
        return self._zf.read(f"{STORAGE_DIR}{bucket}/{path}")

    def close(self) -> None:
        self._zf.close()


async def open_reference_archive(
    storage: StorageClient,
    file_path: str,
    plan: RestorePlan | None = None,
) -> ReferenceArchive:
    """Download and parse a capture from the archive bucket.

    Args:
        storage: Client for the content store holding captures.
        file_path: Path of the capture inside the archive bucket.
        plan: Supplies ``archive_bucket`` (defaults to ``RestorePlan()``).

    Returns:
        The opened ``ReferenceArchive``.

    Raises:
        RequestError: If ``file_path`` is empty.
        ArchiveError: If the capture cannot be downloaded or parsed.
    """
    plan = plan or RestorePlan()
    if not file_path:
        raise RequestError("file_path required")

    try:
        raw = await storage.download(plan.archive_bucket, file_path)
    except Exception as e:
        raise ArchiveError(f"Download failed: {e}") from e
    if not raw:
        raise ArchiveError("Download failed: File not found")

    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise ArchiveError(f"Invalid backup format: {e}") from e

    if (
        not isinstance(payload, dict)
        or not isinstance(payload.get("metadata"), dict)
        or not isinstance(payload.get("data"), dict)
    ):
        raise ArchiveError("Invalid backup format")

    try:
        metadata = ArchiveMetadata.model_validate(payload["metadata"])
    except ValidationError as e:
        raise ArchiveError(f"Invalid backup metadata: {e}") from e

    archive = ReferenceArchive(
        identifier=file_path,
        payload=payload,
        metadata=metadata,
        storage=storage,
        archive_bucket=plan.archive_bucket,
    )
    logger.info(
        f"Opened {archive.format.value} backup {file_path} "
        f"(version {metadata.version}, {metadata.tables_count} tables)"
    )
    return archive


def open_bundle(data: bytes, identifier: str = "upload") -> BundleArchive:
    """Open an uploaded zip bundle held in memory.

    Raises:
        RequestError: If ``data`` is empty.
        ArchiveError: If ``data`` is not a readable zip archive.
    """
    if not data:
        raise RequestError("No ZIP file provided")
    try:
        zf = zipfile.ZipFile(io.BytesIO(data), "r")
    except zipfile.BadZipFile as e:
        raise ArchiveError(f"Invalid ZIP archive: {e}") from e

    archive = BundleArchive(identifier, zf)
    logger.info(
        f"Opened bundle {identifier}: {len(data)} bytes, "
        f"{len(archive.table_names())} table entries"
    )
    return archive
