"""Supabase Storage backend."""

from __future__ import annotations

from typing import Any

from supabase import Client, create_client

from proofkeeper.errors import StorageBackendError
from proofkeeper.naming import join_path
from proofkeeper.storage import StoredFile, parse_timestamp


class SupabaseStorage:
    """Object storage over a Supabase project's Storage API."""

    def __init__(self, client: Client | Any) -> None:
        self._client = client

    @classmethod
    def from_credentials(cls, url: str | None, key: str | None) -> "SupabaseStorage":
        if not url or not key:
            raise StorageBackendError(
                "open_storage",
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set for supabase:// storage",
            )
        return cls(create_client(url, key))

    def _bucket(self, bucket: str) -> Any:
        return self._client.storage.from_(bucket)

    def list(
        self,
        bucket: str,
        prefix: str = "",
        *,
        limit: int = 100,
        offset: int = 0,
        search: str | None = None,
    ) -> list[StoredFile]:
        clean = prefix.strip("/")
        options: dict[str, Any] = {
            "limit": limit,
            "offset": offset,
            "sortBy": {"column": "name", "order": "asc"},
        }
        if search:
            options["search"] = search
        try:
            rows = self._bucket(bucket).list(clean, options) or []
        except Exception as e:
            raise StorageBackendError("list", f"{bucket}/{clean}: {e}") from e

        out: list[StoredFile] = []
        for row in rows:
            name = row.get("name") if isinstance(row, dict) else None
            if not name:
                continue
            # Folder placeholders come back without an object id.
            is_folder = row.get("id") is None
            out.append(
                StoredFile(
                    path=join_path(clean, name),
                    created_at=parse_timestamp(row.get("created_at")),
                    updated_at=parse_timestamp(row.get("updated_at")),
                    is_folder=is_folder,
                )
            )
        return out

    def download(self, bucket: str, path: str) -> bytes:
        try:
            return self._bucket(bucket).download(path)
        except Exception as e:
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
        file_options: dict[str, str] = {"upsert": "true" if upsert else "false"}
        if content_type:
            file_options["content-type"] = content_type
        try:
            self._bucket(bucket).upload(path, data, file_options)
        except Exception as e:
            raise StorageBackendError("upload", f"{bucket}/{path}: {e}") from e

    def remove(self, bucket: str, paths: list[str]) -> None:
        if not paths:
            return
        try:
            self._bucket(bucket).remove(list(paths))
        except Exception as e:
            raise StorageBackendError("remove", f"{bucket}: {e}") from e

    def get_public_url(self, bucket: str, path: str) -> str | None:
        try:
            url = self._bucket(bucket).get_public_url(path)
        except Exception as e:
            raise StorageBackendError("get_public_url", f"{bucket}/{path}: {e}") from e
        if isinstance(url, dict):
            url = url.get("publicURL") or url.get("publicUrl")
        return url or None

    def close(self) -> None:
        return None
