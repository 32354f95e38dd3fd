"""Filesystem storage backend: one directory per bucket under a root."""

from __future__ import annotations

import contextlib
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from proofkeeper.errors import StorageBackendError
from proofkeeper.storage import StoredFile, list_children


class LocalStorage:
    """Object storage over a local directory tree.

    ``{root}/{bucket}/{path}``; file mtime is reported as ``updated_at``.
    """

    def __init__(self, root: str | os.PathLike[str], *, public_base_url: str | None = None) -> None:
        self.root = Path(root)
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def _bucket_dir(self, bucket: str) -> Path:
        if not bucket or "/" in bucket or bucket in {".", ".."}:
            raise StorageBackendError("resolve_path", f"Invalid bucket name '{bucket}'")
        return self.root / bucket

    def _object_path(self, bucket: str, path: str) -> Path:
        clean = path.strip("/")
        parts = clean.split("/")
        if not clean or any(p in {"", ".", ".."} for p in parts):
            raise StorageBackendError("resolve_path", f"Invalid object path '{path}'")
        return self._bucket_dir(bucket).joinpath(*parts)

    def list(
        self,
        bucket: str,
        prefix: str = "",
        *,
        limit: int = 100,
        offset: int = 0,
        search: str | None = None,
    ) -> list[StoredFile]:
        base = self._bucket_dir(bucket)
        if not base.is_dir():
            return []
        stamps: dict[str, tuple[datetime | None, datetime | None]] = {}
        try:
            for file_path in base.rglob("*"):
                if not file_path.is_file():
                    continue
                rel = file_path.relative_to(base).as_posix()
                mtime = datetime.fromtimestamp(file_path.stat().st_mtime, tz=timezone.utc)
                stamps[rel] = (None, mtime)
        except OSError as e:
            raise StorageBackendError("list", f"{bucket}/{prefix}: {e}") from e
        return list_children(stamps, prefix, limit=limit, offset=offset, search=search)

    def download(self, bucket: str, path: str) -> bytes:
        target = self._object_path(bucket, path)
        try:
            return target.read_bytes()
        except OSError as e:
            raise StorageBackendError("download", f"{bucket}/{path}: {e}") from e

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        *,
        upsert: bool = False,
        content_type: str | None = None,
    ) -> None:
        target = self._object_path(bucket, path)
        if target.exists() and not upsert:
            raise StorageBackendError("upload", f"The resource already exists: {bucket}/{path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
        except OSError as e:
            raise StorageBackendError("upload", f"{bucket}/{path}: {e}") from e
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_name, target)
        except OSError as e:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise StorageBackendError("upload", f"{bucket}/{path}: {e}") from e

    def remove(self, bucket: str, paths: list[str]) -> None:
        for path in paths:
            target = self._object_path(bucket, path)
            try:
                target.unlink(missing_ok=True)
            except OSError as e:
                raise StorageBackendError("remove", f"{bucket}/{path}: {e}") from e

    def get_public_url(self, bucket: str, path: str) -> str | None:
        clean = path.strip("/")
        if self._public_base_url:
            return f"{self._public_base_url}/{bucket}/{clean}"
        return self._object_path(bucket, clean).resolve().as_uri()

    def close(self) -> None:
        return None
