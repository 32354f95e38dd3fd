"""Tests for StoredFile, the in-memory backend and storage URI binding."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from proofkeeper.errors import StorageBackendError, UnsupportedStorageError
from proofkeeper.storage import (
    MemoryStorage,
    StoredFile,
    open_storage,
    parse_storage_target,
    parse_timestamp,
)
from proofkeeper.storage_local import LocalStorage


class TestStoredFile:
    def test_recency_prefers_updated_at(self):
        f = StoredFile(
            path="a.jpg",
            created_at=parse_timestamp("2024-01-01T00:00:00Z"),
            updated_at=parse_timestamp("2024-02-01T00:00:00Z"),
        )
        assert f.recency_timestamp == datetime(2024, 2, 1, tzinfo=timezone.utc).timestamp()

    def test_recency_falls_back_to_created_at(self):
        f = StoredFile(path="a.jpg", created_at=parse_timestamp("2024-01-01T00:00:00+00:00"))
        assert f.recency_timestamp == datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp()

    def test_recency_without_timestamps_is_epoch(self):
        assert StoredFile(path="a.jpg").recency_timestamp == 0.0

    def test_name_is_last_segment(self):
        assert StoredFile(path="payment-receipts/receipt-x.pdf").name == "receipt-x.pdf"


class TestParseTimestamp:
    def test_zulu_suffix(self):
        assert parse_timestamp("2024-03-05T10:00:00Z") == datetime(
            2024, 3, 5, 10, tzinfo=timezone.utc
        )

    def test_naive_is_utc(self):
        assert parse_timestamp("2024-03-05T10:00:00").tzinfo is not None

    @pytest.mark.parametrize("value", [None, "", "not a date", object()])
    def test_unparseable_is_none(self, value):
        assert parse_timestamp(value) is None


class TestMemoryStorage:
    def test_list_returns_files_and_folders_sorted(self):
        s = MemoryStorage()
        s.put("b", "z.jpg")
        s.put("b", "a.jpg")
        s.put("b", "sub/inner.pdf")
        entries = s.list("b")
        assert [e.path for e in entries] == ["a.jpg", "sub", "z.jpg"]
        assert [e.is_folder for e in entries] == [False, True, False]

    def test_list_inside_folder(self):
        s = MemoryStorage()
        s.put("b", "sub/inner.pdf")
        s.put("b", "sub/deeper/x.pdf")
        entries = s.list("b", "sub")
        assert [(e.path, e.is_folder) for e in entries] == [
            ("sub/deeper", True),
            ("sub/inner.pdf", False),
        ]

    def test_search_is_case_insensitive_substring(self):
        s = MemoryStorage()
        s.put("b", "ALM-1-100.jpg")
        s.put("b", "combined-alm-1-100.jpg")
        s.put("b", "ALM-2-100.jpg")
        names = [e.path for e in s.list("b", search="alm-1")]
        assert names == ["ALM-1-100.jpg", "combined-alm-1-100.jpg"]

    def test_offset_and_limit(self):
        s = MemoryStorage()
        for i in range(5):
            s.put("b", f"f{i}.jpg")
        assert [e.path for e in s.list("b", limit=2, offset=2)] == ["f2.jpg", "f3.jpg"]
        assert s.list("b", limit=2, offset=10) == []

    def test_unknown_bucket_lists_empty(self):
        assert MemoryStorage().list("missing") == []

    def test_upload_conflict_without_upsert(self):
        s = MemoryStorage()
        s.upload("b", "x.pdf", b"1")
        with pytest.raises(StorageBackendError):
            s.upload("b", "x.pdf", b"2")

    def test_upsert_overwrites_and_keeps_created_at(self):
        s = MemoryStorage()
        s.put("b", "x.pdf", b"1", created_at="2024-01-01T00:00:00Z")
        s.upload("b", "x.pdf", b"2", upsert=True, content_type="application/pdf")
        assert s.download("b", "x.pdf") == b"2"
        (entry,) = s.list("b")
        assert entry.created_at == parse_timestamp("2024-01-01T00:00:00Z")
        assert entry.updated_at is not None
        assert s.content_type("b", "x.pdf") == "application/pdf"

    def test_download_missing(self):
        with pytest.raises(StorageBackendError):
            MemoryStorage().download("b", "nope.pdf")

    def test_remove_ignores_missing(self):
        s = MemoryStorage()
        s.put("b", "x.pdf")
        s.remove("b", ["x.pdf", "nope.pdf"])
        assert s.paths("b") == []

    def test_public_url(self):
        s = MemoryStorage(public_base_url="https://cdn.test/")
        assert s.get_public_url("b", "/x.pdf") == "https://cdn.test/b/x.pdf"

    def test_public_url_without_base(self):
        assert MemoryStorage().get_public_url("b", "/x.pdf") == "memory://b/x.pdf"


class TestStorageBinding:
    def test_memory(self):
        assert parse_storage_target("memory://").backend == "memory"
        assert isinstance(open_storage("memory://"), MemoryStorage)

    def test_file(self, tmp_path):
        target = parse_storage_target(f"file://{tmp_path}")
        assert target.backend == "file"
        assert target.root == str(tmp_path)
        assert isinstance(open_storage(f"file://{tmp_path}"), LocalStorage)

    def test_s3_and_supabase(self):
        assert parse_storage_target("s3://").backend == "s3"
        target = parse_storage_target("supabase://abc.supabase.co")
        assert target.backend == "supabase"
        assert target.host == "abc.supabase.co"

    def test_unsupported(self):
        with pytest.raises(UnsupportedStorageError):
            parse_storage_target("ftp://host/bucket")

    def test_supabase_requires_credentials(self):
        with pytest.raises(StorageBackendError):
            open_storage("supabase://")
