"""Tests for restore/export orchestration, the run lock, and validation."""

import asyncio

import pytest

from conftest import FakeDatabase, FakeStorage, corrupt_entry, make_zip, put_capture, rows

from backup_engine.backup.archive import open_bundle, open_reference_archive
from backup_engine.backup.backup_restore import (
    export_bundle,
    restore_archive,
    restore_from_bundle,
    restore_from_reference,
    restore_lock,
    validate_archive,
)
from backup_engine.backup.models import RestorePlan, RestoreResult
from backup_engine.errors import ArchiveError, RequestError, RestoreInProgressError


def _capture(storage: FakeStorage, path: str = "backup-2026-01-15.json") -> None:
    put_capture(
        storage,
        path,
        {
            "organizations": rows("org", 3),
            "profiles": rows("p", 250),
            "documents": rows("d", 2),
        },
        files={
            "documents": {"o1/contract.pdf": b"%PDF", "o1/memo.docx": b"docx"},
            "avatars": {"p-0/me.png": b"png"},
        },
    )


class TestRestoreFromReference:
    """restore_from_reference() runs tables then storage."""

    async def test_full_restore(self, db: FakeDatabase, storage: FakeStorage) -> None:
        _capture(storage)

        result = await restore_from_reference(db, storage, "backup-2026-01-15.json")

        assert isinstance(result, RestoreResult)
        assert result.success is True
        assert result.total_restored == 255
        assert result.total_errors == 0
        assert result.files_restored == 3
        assert result.file_errors == 0
        assert result.db_details["profiles"].restored == 250
        assert set(result.storage_details) == {"documents", "avatars"}
        assert not result.has_errors

    async def test_tables_before_storage(self, storage: FakeStorage) -> None:
        """Every upsert happens before the first file upload."""
        _capture(storage)
        events: list[str] = []

        class RecordingDb(FakeDatabase):
            async def upsert(self, table, batch, on_conflict="id"):
                events.append("row")
                return await super().upsert(table, batch, on_conflict)

        class RecordingStorage(FakeStorage):
            async def upload(self, bucket, path, data, content_type="application/octet-stream", upsert=True):
                events.append("file")
                await super().upload(bucket, path, data, content_type, upsert)

        recording = RecordingStorage()
        recording.objects = dict(storage.objects)

        await restore_from_reference(RecordingDb(), recording, "backup-2026-01-15.json")

        assert "file" in events
        assert events.index("file") > max(i for i, e in enumerate(events) if e == "row")

    async def test_partial_failure_is_reported(self, storage: FakeStorage) -> None:
        _capture(storage)
        db = FakeDatabase(fail_batches={"profiles": {2}})
        del storage.objects[("backups", "daily/2026-01-15/storage/avatars/p-0/me.png")]

        result = await restore_from_reference(db, storage, "backup-2026-01-15.json")

        assert result.success is True
        assert result.total_restored == 205
        assert result.total_errors == 1
        assert result.db_details["profiles"].errors[0].startswith("Batch 2: ")
        assert result.files_restored == 2
        assert result.file_errors == 1
        assert result.has_errors

    async def test_repeat_restore_converges(self, db: FakeDatabase, storage: FakeStorage) -> None:
        _capture(storage)

        first = await restore_from_reference(db, storage, "backup-2026-01-15.json")
        second = await restore_from_reference(db, storage, "backup-2026-01-15.json")

        assert first.model_dump() == second.model_dump()
        assert db.count("profiles") == 250
        assert len(storage.live("documents")) == 2

    async def test_empty_path(self, db: FakeDatabase, storage: FakeStorage) -> None:
        with pytest.raises(RequestError):
            await restore_from_reference(db, storage, "")

    async def test_missing_capture_aborts_before_writes(
        self, db: FakeDatabase, storage: FakeStorage
    ) -> None:
        with pytest.raises(ArchiveError):
            await restore_from_reference(db, storage, "missing.json")
        assert db.calls == []

    async def test_flat_capture_restores_rows_only(
        self, db: FakeDatabase, storage: FakeStorage
    ) -> None:
        put_capture(storage, "old.json", {"organizations": rows("o", 4)}, backup_prefix=None)

        result = await restore_from_reference(db, storage, "old.json")

        assert result.total_restored == 4
        assert result.files_restored == 0
        assert result.storage_details == {}


class TestRestoreFromBundle:
    """restore_from_bundle() restores an uploaded zip."""

    async def test_bundle_restore(self, db: FakeDatabase, storage: FakeStorage) -> None:
        data = make_zip(
            {
                "tables/organizations.json": rows("o", 2),
                "tables/profiles.json": rows("p", 5),
                "storage/signatures/s.png": b"sig",
            }
        )

        result = await restore_from_bundle(db, storage, data)

        assert result.total_restored == 7
        assert result.files_restored == 1
        assert storage.live("signatures") == {"s.png": b"sig"}

    async def test_corrupt_table_entry_is_isolated(
        self, db: FakeDatabase, storage: FakeStorage
    ) -> None:
        """A table whose compressed data is damaged fails alone."""
        data = corrupt_entry(
            make_zip(
                {
                    "tables/organizations.json": rows("o", 50, name="Acme Holding AG"),
                    "tables/profiles.json": rows("p", 5),
                }
            ),
            "tables/organizations.json",
        )

        result = await restore_from_bundle(db, storage, data)

        assert result.db_details["organizations"].restored == 0
        assert len(result.db_details["organizations"].errors) == 1
        assert "organizations" in result.db_details["organizations"].errors[0]
        assert result.db_details["profiles"].restored == 5
        assert result.total_errors == 1

    async def test_corrupt_metadata_entry_is_ignored(
        self, db: FakeDatabase, storage: FakeStorage
    ) -> None:
        data = corrupt_entry(
            make_zip(
                {
                    "metadata.json": {"created_at": "2026-01-15T02:00:00Z", "note": "x" * 200},
                    "tables/profiles.json": rows("p", 3),
                }
            ),
            "metadata.json",
        )

        result = await restore_from_bundle(db, storage, data)

        assert result.total_restored == 3

    async def test_empty_upload(self, db: FakeDatabase, storage: FakeStorage) -> None:
        with pytest.raises(RequestError, match="No ZIP file provided"):
            await restore_from_bundle(db, storage, b"")

    async def test_invalid_zip(self, db: FakeDatabase, storage: FakeStorage) -> None:
        with pytest.raises(ArchiveError):
            await restore_from_bundle(db, storage, b"garbage")
        assert db.calls == []


class TestExportRoundTrip:
    """A built bundle restores to the same counts as the capture."""

    async def test_round_trip_counts(self, storage: FakeStorage) -> None:
        _capture(storage)

        direct = await restore_from_reference(FakeDatabase(), storage, "backup-2026-01-15.json")
        bundle = await export_bundle(storage, "backup-2026-01-15.json")
        via_bundle = await restore_from_bundle(FakeDatabase(), FakeStorage(), bundle.content)

        assert via_bundle.total_restored == direct.total_restored
        assert via_bundle.files_restored == direct.files_restored
        assert {t: r.restored for t, r in via_bundle.db_details.items()} == {
            t: r.restored for t, r in direct.db_details.items()
        }

    async def test_skipped_files_fail_in_both_paths(self, storage: FakeStorage) -> None:
        _capture(storage)
        del storage.objects[("backups", "daily/2026-01-15/storage/documents/o1/memo.docx")]

        direct = await restore_from_reference(FakeDatabase(), storage, "backup-2026-01-15.json")
        bundle = await export_bundle(storage, "backup-2026-01-15.json")
        via_bundle = await restore_from_bundle(FakeDatabase(), FakeStorage(), bundle.content)

        assert bundle.files_skipped == 1
        assert direct.files_restored == via_bundle.files_restored == 2
        assert direct.file_errors == via_bundle.file_errors == 1

    async def test_export_missing_capture(self, storage: FakeStorage) -> None:
        with pytest.raises(ArchiveError):
            await export_bundle(storage, "missing.json")


class TestRunLock:
    """Concurrent restores in one process fail fast."""

    async def test_second_restore_rejected(self, db: FakeDatabase, storage: FakeStorage) -> None:
        _capture(storage)
        lock = asyncio.Lock()

        async with restore_lock(lock):
            with pytest.raises(RestoreInProgressError):
                await restore_from_reference(
                    db, storage, "backup-2026-01-15.json", lock=lock
                )
        assert db.calls == []

    async def test_lock_released_after_failure(self, db: FakeDatabase, storage: FakeStorage) -> None:
        lock = asyncio.Lock()

        with pytest.raises(ArchiveError):
            await restore_from_reference(db, storage, "missing.json", lock=lock)

        assert not lock.locked()

    async def test_export_does_not_take_lock(self, storage: FakeStorage) -> None:
        _capture(storage)

        async with restore_lock():
            bundle = await export_bundle(storage, "backup-2026-01-15.json")
        assert bundle.files_added == 3


class TestRestoreArchive:
    async def test_custom_plan(self, db: FakeDatabase, storage: FakeStorage) -> None:
        archive = open_bundle(
            make_zip(
                {
                    "tables/books.json": rows("b", 3),
                    "tables/authors.json": rows("a", 1),
                    "storage/covers/b-0.jpg": b"jpg",
                    "storage/documents/x.pdf": b"pdf",
                }
            )
        )
        plan = RestorePlan(table_order=["authors", "books"], buckets=["covers"])

        result = await restore_archive(db, storage, archive, plan)

        assert list(result.db_details) == ["authors", "books"]
        assert set(result.storage_details) == {"covers"}
        assert storage.content_types[("covers", "b-0.jpg")] == "image/jpeg"


class TestValidateArchive:
    """validate_archive() reports problems without writing."""

    async def test_clean_capture(self, storage: FakeStorage) -> None:
        _capture(storage)
        archive = await open_reference_archive(storage, "backup-2026-01-15.json")

        report = validate_archive(archive)

        assert report["valid"] is True
        assert report["errors"] == []
        assert report["warnings"] == []
        assert report["rows"]["profiles"] == 250

    def test_broken_dataset_is_error(self) -> None:
        archive = open_bundle(make_zip({"tables/profiles.json": {"not": "a list"}}))

        report = validate_archive(archive)

        assert report["valid"] is False
        assert any("profiles" in e for e in report["errors"])

    def test_warnings(self) -> None:
        archive = open_bundle(
            make_zip(
                {
                    "tables/organizations.json": [{"name": "no id"}],
                    "tables/legacy.json": [],
                    "metadata.json": {"tables_count": 5},
                    "storage/private/x.txt": b"x",
                }
            )
        )

        report = validate_archive(archive)

        assert report["valid"] is True
        assert "organizations: 1 rows missing 'id'" in report["warnings"]
        assert "Unknown table (not restored): legacy" in report["warnings"]
        assert "Unknown bucket (not restored): private" in report["warnings"]
        assert "Metadata declares 5 tables, 2 found" in report["warnings"]

    def test_falsy_keys_are_present(self) -> None:
        """Only a null or absent key counts as missing; 0 and "" are values."""
        archive = open_bundle(
            make_zip({"tables/organizations.json": [{"id": 0}, {"id": ""}, {"id": None}]})
        )

        report = validate_archive(archive)

        assert "organizations: 1 rows missing 'id'" in report["warnings"]
