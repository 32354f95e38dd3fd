"""S3 storage backend with folder-style listing over delimiter pagination."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from urllib.parse import quote

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError, ParamValidationError

from proofkeeper.config import ProofkeeperConfig
from proofkeeper.errors import StorageBackendError
from proofkeeper.naming import join_path
from proofkeeper.storage import StoredFile, parse_timestamp


class _PreconditionFailed(Exception):
    pass


def _build_client(config: ProofkeeperConfig, endpoint_url: str | None) -> Any:
    session = boto3.Session(region_name=config.s3_region)
    return session.client(
        "s3",
        region_name=config.s3_region,
        endpoint_url=endpoint_url,
        config=BotoConfig(
            connect_timeout=config.s3_request_timeout_s,
            read_timeout=config.s3_request_timeout_s,
            retries={"max_attempts": 5, "mode": "standard"},
        ),
    )


class S3Storage:
    """S3-backed object storage.

    S3 has no server-side substring search, so ``search`` is applied to entry
    names while paging through the delimiter listing.
    """

    def __init__(
        self,
        *,
        config: ProofkeeperConfig,
        endpoint_url: str | None = None,
        client: Any | None = None,
    ) -> None:
        self._config = config
        self.endpoint_url = endpoint_url or config.s3_endpoint_url
        self._s3 = client if client is not None else _build_client(config, self.endpoint_url)

    # --- Error helpers ---

    def _is_not_found(self, err: Exception) -> bool:
        if isinstance(err, ClientError):
            code = err.response.get("Error", {}).get("Code", "")
            return code in {"NoSuchKey", "404", "NotFound"}
        return False

    def _is_precondition_failed(self, err: Exception) -> bool:
        if isinstance(err, ClientError):
            code = err.response.get("Error", {}).get("Code", "")
            return code in {"PreconditionFailed", "412"}
        return False

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
        clean = prefix.strip("/")
        lead = f"{clean}/" if clean else ""
        needle = search.lower() if search else None
        wanted = offset + limit
        collected: list[StoredFile] = []

        try:
            paginator = self._s3.get_paginator("list_objects_v2")
            pages = paginator.paginate(
                Bucket=bucket,
                Prefix=lead,
                Delimiter="/",
                PaginationConfig={"PageSize": 1000},
            )
            for page in pages:
                entries: list[StoredFile] = []
                for cp in page.get("CommonPrefixes", []) or []:
                    folder = str(cp.get("Prefix", ""))[len(lead) :].rstrip("/")
                    if folder:
                        entries.append(StoredFile(path=join_path(clean, folder), is_folder=True))
                for obj in page.get("Contents", []) or []:
                    key = str(obj.get("Key", ""))
                    name = key[len(lead) :]
                    if not name:
                        continue
                    entries.append(
                        StoredFile(
                            path=key,
                            created_at=None,
                            updated_at=self._last_modified(obj.get("LastModified")),
                        )
                    )
                entries.sort(key=lambda e: e.name)
                if needle is not None:
                    entries = [e for e in entries if needle in e.name.lower()]
                collected.extend(entries)
                if len(collected) >= wanted:
                    break
        except Exception as e:
            raise StorageBackendError("list", f"s3://{bucket}/{lead}: {e}") from e

        return collected[offset:wanted]

    @staticmethod
    def _last_modified(value: Any) -> datetime | None:
        return parse_timestamp(value)

    def download(self, bucket: str, path: str) -> bytes:
        try:
            resp = self._s3.get_object(Bucket=bucket, Key=path)
            return resp["Body"].read()
        except Exception as e:
            if self._is_not_found(e):
                raise StorageBackendError("download", f"Object not found: s3://{bucket}/{path}") from e
            raise StorageBackendError("download", f"s3://{bucket}/{path}: {e}") from e

    def _put_bytes(
        self,
        *,
        bucket: str,
        key: str,
        body: bytes,
        if_none_match: str | None = None,
        content_type: str | None = None,
    ) -> None:
        kwargs: dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": body}
        if content_type is not None:
            kwargs["ContentType"] = content_type
        if if_none_match is not None:
            kwargs["IfNoneMatch"] = if_none_match
        try:
            self._s3.put_object(**kwargs)
        except ParamValidationError:
            if if_none_match is None:
                raise
            # Endpoint without conditional writes: fall back to an existence check.
            if self._exists(bucket, key):
                raise _PreconditionFailed()
            kwargs.pop("IfNoneMatch", None)
            self._s3.put_object(**kwargs)
        except Exception as e:
            if self._is_precondition_failed(e):
                raise _PreconditionFailed() from e
            raise

    def _exists(self, bucket: str, key: str) -> bool:
        try:
            self._s3.head_object(Bucket=bucket, Key=key)
            return True
        except Exception as e:
            if self._is_not_found(e):
                return False
            raise

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
        try:
            self._put_bytes(
                bucket=bucket,
                key=key,
                body=data,
                if_none_match=None if upsert else "*",
                content_type=content_type,
            )
        except _PreconditionFailed as e:
            raise StorageBackendError(
                "upload", f"The resource already exists: s3://{bucket}/{key}"
            ) from e
        except Exception as e:
            raise StorageBackendError("upload", f"s3://{bucket}/{key}: {e}") from e

    def remove(self, bucket: str, paths: list[str]) -> None:
        if not paths:
            return
        try:
            resp = self._s3.delete_objects(
                Bucket=bucket,
                Delete={"Objects": [{"Key": p.strip("/")} for p in paths], "Quiet": True},
            )
        except Exception as e:
            raise StorageBackendError("remove", f"s3://{bucket}: {e}") from e
        errors = resp.get("Errors") or []
        if errors:
            detail = ", ".join(f"{err.get('Key')}: {err.get('Message')}" for err in errors)
            raise StorageBackendError("remove", detail)

    def get_public_url(self, bucket: str, path: str) -> str | None:
        key = quote(path.strip("/"), safe="/")
        if self._config.public_base_url:
            return f"{self._config.public_base_url.rstrip('/')}/{bucket}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{bucket}/{key}"
        if self._config.s3_region:
            return f"https://{bucket}.s3.{self._config.s3_region}.amazonaws.com/{key}"
        return f"https://{bucket}.s3.amazonaws.com/{key}"

    def close(self) -> None:
        close = getattr(self._s3, "close", None)
        if callable(close):
            close()
