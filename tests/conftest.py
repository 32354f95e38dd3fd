"""Shared test fixtures for proofkeeper tests."""

from __future__ import annotations

import pytest

from proofkeeper.config import ProofkeeperConfig
from proofkeeper.errors import StorageBackendError
from proofkeeper.registrations import SqliteRegistrationStore
from proofkeeper.storage import MemoryStorage, StoredFile

CDN = "https://cdn.test"


# --- Storage doubles ---


class RecordingStorage(MemoryStorage):
    """MemoryStorage that records every list() call."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.list_calls: list[dict] = []

    def list(self, bucket, prefix="", *, limit=100, offset=0, search=None):
        self.list_calls.append(
            {"bucket": bucket, "prefix": prefix, "limit": limit, "offset": offset, "search": search}
        )
        return super().list(bucket, prefix, limit=limit, offset=offset, search=search)

    def scan_calls(self) -> list[dict]:
        return [c for c in self.list_calls if c["search"] is None]

    def search_calls(self) -> list[dict]:
        return [c for c in self.list_calls if c["search"] is not None]


class BrokenStorage:
    """Every operation fails."""

    def list(self, bucket, prefix="", *, limit=100, offset=0, search=None):
        raise StorageBackendError("list", "connection refused")

    def download(self, bucket, path):
        raise StorageBackendError("download", "connection refused")

    def upload(self, bucket, path, data, *, upsert=False, content_type=None):
        raise StorageBackendError("upload", "connection refused")

    def remove(self, bucket, paths):
        raise StorageBackendError("remove", "connection refused")

    def get_public_url(self, bucket, path):
        raise StorageBackendError("get_public_url", "connection refused")

    def close(self):
        return None


class EndlessStorage:
    """A bucket that always returns a full page of non-matching files."""

    def __init__(self) -> None:
        self.calls = 0

    def list(self, bucket, prefix="", *, limit=100, offset=0, search=None):
        self.calls += 1
        if search is not None:
            return []
        return [StoredFile(path=f"other-{offset + i:09d}.jpg") for i in range(limit)]

    def get_public_url(self, bucket, path):
        return f"{CDN}/{bucket}/{path}"

    def close(self):
        return None


# --- Fixtures ---


@pytest.fixture
def config() -> ProofkeeperConfig:
    return ProofkeeperConfig(public_base_url=CDN)


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage(public_base_url=CDN)


@pytest.fixture
def registrations(tmp_path):
    """A SQLite registrations table in a temporary database."""
    store = SqliteRegistrationStore(str(tmp_path / "registrations.db"))
    yield store
    store.close()
