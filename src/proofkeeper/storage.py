"""Object storage contract, the in-memory backend, and backend selection."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlparse

from proofkeeper.config import ProofkeeperConfig
from proofkeeper.errors import StorageBackendError, UnsupportedStorageError
from proofkeeper.naming import basename, join_path

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a backend timestamp; anything unparseable counts as absent."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class StoredFile:
    """One entry returned by a bucket listing."""

    path: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    is_folder: bool = False

    @property
    def name(self) -> str:
        return basename(self.path)

    @property
    def recency_timestamp(self) -> float:
        """``updated_at``, else ``created_at``, else the epoch (oldest possible)."""
        ts = self.updated_at or self.created_at
        return ts.timestamp() if ts is not None else 0.0


@dataclass(frozen=True)
class ResolvedFile:
    """A matched file together with the bucket it lives in and its public URL."""

    bucket: str
    path: str
    url: str
    recency_timestamp: float = 0.0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "bucket": self.bucket,
            "path": self.path,
            "url": self.url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@runtime_checkable
class ObjectStorage(Protocol):
    """Backend-agnostic object storage contract used by the resolver and migrator."""

    def list(
        self,
        bucket: str,
        prefix: str = "",
        *,
        limit: int = 100,
        offset: int = 0,
        search: str | None = None,
    ) -> list[StoredFile]: ...

    def download(self, bucket: str, path: str) -> bytes: ...

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        *,
        upsert: bool = False,
        content_type: str | None = None,
    ) -> None: ...

    def remove(self, bucket: str, paths: list[str]) -> None: ...

    def get_public_url(self, bucket: str, path: str) -> str | None: ...

    def close(self) -> None: ...


def list_children(
    paths: dict[str, tuple[datetime | None, datetime | None]],
    prefix: str,
    *,
    limit: int,
    offset: int,
    search: str | None,
) -> list[StoredFile]:
    """Shared folder-style listing over a flat path map.

    Returns the direct children of *prefix* (files and virtual folders) sorted
    by name, filtered by a case-insensitive substring *search*, then sliced by
    *offset*/*limit*.
    """
    clean = prefix.strip("/")
    lead = f"{clean}/" if clean else ""
    files: dict[str, StoredFile] = {}
    folders: set[str] = set()
    for path, (created_at, updated_at) in paths.items():
        if not path.startswith(lead):
            continue
        rest = path[len(lead) :]
        if not rest:
            continue
        if "/" in rest:
            folders.add(rest.split("/", 1)[0])
        else:
            files[rest] = StoredFile(
                path=join_path(clean, rest), created_at=created_at, updated_at=updated_at
            )

    entries = [StoredFile(path=join_path(clean, f), is_folder=True) for f in folders]
    entries.extend(files.values())
    entries.sort(key=lambda e: e.name)
    if search:
        needle = search.lower()
        entries = [e for e in entries if needle in e.name.lower()]
    return entries[offset : offset + limit]


@dataclass
class _MemoryObject:
    data: bytes
    content_type: str | None
    created_at: datetime | None
    updated_at: datetime | None


class MemoryStorage:
    """In-process object store with folder-style listing semantics."""

    def __init__(self, *, public_base_url: str | None = None) -> None:
        self._buckets: dict[str, dict[str, _MemoryObject]] = {}
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None

    # --- Seeding helpers ---

    def put(
        self,
        bucket: str,
        path: str,
        data: bytes = b"",
        *,
        created_at: datetime | str | None = None,
        updated_at: datetime | str | None = None,
        content_type: str | None = None,
    ) -> None:
        """Store an object with explicit timestamps, bypassing upsert checks."""
        self._buckets.setdefault(bucket, {})[path.strip("/")] = _MemoryObject(
            data=data,
            content_type=content_type,
            created_at=parse_timestamp(created_at),
            updated_at=parse_timestamp(updated_at),
        )

    def paths(self, bucket: str) -> list[str]:
        return sorted(self._buckets.get(bucket, {}))

    def content_type(self, bucket: str, path: str) -> str | None:
        obj = self._buckets.get(bucket, {}).get(path)
        return obj.content_type if obj else None

    # --- ObjectStorage ---

    def list(
        self,
        bucket: str,
        prefix: str = "",
        *,
        limit: int = 100,
        offset: int = 0,
        search: str | None = None,
    ) -> list[StoredFile]:
        objects = self._buckets.get(bucket, {})
        return list_children(
            {p: (o.created_at, o.updated_at) for p, o in objects.items()},
            prefix,
            limit=limit,
            offset=offset,
            search=search,
        )

    def download(self, bucket: str, path: str) -> bytes:
        obj = self._buckets.get(bucket, {}).get(path.strip("/"))
        if obj is None:
            raise StorageBackendError("download", f"Object not found: {bucket}/{path}")
        return obj.data

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        *,
        upsert: bool = False,
        content_type: str | None = None,
    ) -> None:
        key = path.strip("/")
        objects = self._buckets.setdefault(bucket, {})
        existing = objects.get(key)
        if existing is not None and not upsert:
            raise StorageBackendError("upload", f"The resource already exists: {bucket}/{key}")
        now = _now()
        objects[key] = _MemoryObject(
            data=data,
            content_type=content_type,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )

    def remove(self, bucket: str, paths: list[str]) -> None:
        objects = self._buckets.get(bucket, {})
        for path in paths:
            objects.pop(path.strip("/"), None)

    def get_public_url(self, bucket: str, path: str) -> str | None:
        clean = path.strip("/")
        if self._public_base_url:
            return f"{self._public_base_url}/{bucket}/{clean}"
        return f"memory://{bucket}/{clean}"

    def close(self) -> None:
        return None


@dataclass(frozen=True)
class StorageTarget:
    """Resolved object storage target from a URI."""

    backend: str
    uri: str
    root: str | None = None
    host: str | None = None
    options: dict[str, str] = field(default_factory=dict)


def parse_storage_target(storage_uri: str) -> StorageTarget:
    """Resolve a backend target from ``memory://``, ``file://``, ``s3://`` or ``supabase://``."""
    parsed = urlparse(storage_uri)

    if parsed.scheme == "memory":
        return StorageTarget(backend="memory", uri=storage_uri)

    if parsed.scheme == "file":
        root = parsed.path
        if parsed.netloc:
            root = f"{parsed.netloc}{root}"
        if not root:
            raise StorageBackendError("parse_storage_uri", f"Invalid file URI: {storage_uri}")
        return StorageTarget(backend="file", uri=storage_uri, root=root)

    if parsed.scheme == "s3":
        return StorageTarget(backend="s3", uri=storage_uri, host=parsed.netloc or None)

    if parsed.scheme == "supabase":
        return StorageTarget(backend="supabase", uri=storage_uri, host=parsed.netloc or None)

    raise UnsupportedStorageError(storage_uri)


def open_storage(storage_uri: str, *, config: ProofkeeperConfig | None = None) -> ObjectStorage:
    """Open an object storage backend from a URI."""
    cfg = config or ProofkeeperConfig()
    target = parse_storage_target(storage_uri)
    if target.backend == "memory":
        return MemoryStorage(public_base_url=cfg.public_base_url)
    if target.backend == "file":
        from proofkeeper.storage_local import LocalStorage

        assert target.root is not None
        return LocalStorage(target.root, public_base_url=cfg.public_base_url)
    if target.backend == "s3":
        from proofkeeper.storage_s3 import S3Storage

        endpoint = cfg.s3_endpoint_url
        if endpoint is None and target.host:
            endpoint = f"https://{target.host}"
        return S3Storage(config=cfg, endpoint_url=endpoint)
    if target.backend == "supabase":
        from proofkeeper.storage_supabase import SupabaseStorage

        url = cfg.supabase_url or (f"https://{target.host}" if target.host else None)
        return SupabaseStorage.from_credentials(url, cfg.supabase_key)
    raise UnsupportedStorageError(storage_uri)


__all__ = [
    "ObjectStorage",
    "StoredFile",
    "ResolvedFile",
    "MemoryStorage",
    "StorageTarget",
    "list_children",
    "parse_storage_target",
    "parse_timestamp",
    "open_storage",
]
