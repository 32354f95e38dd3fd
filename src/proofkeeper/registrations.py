"""Registration records: the table whose proof/receipt URLs get repointed."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlparse

from proofkeeper.config import ProofkeeperConfig
from proofkeeper.errors import (
    RegistrationUpdateError,
    StorageBackendError,
    UnsupportedStorageError,
)

PROOF_URL_COLUMN = "payment_proof_url"
RECEIPT_URL_COLUMN = "payment_receipt_url"
URL_COLUMNS = frozenset({PROOF_URL_COLUMN, RECEIPT_URL_COLUMN})


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_column(column: str) -> str:
    if column not in URL_COLUMNS:
        raise ValueError(f"Unknown URL column '{column}'; expected one of {sorted(URL_COLUMNS)}")
    return column


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@runtime_checkable
class RegistrationStore(Protocol):
    """Backend-agnostic access to the registrations table."""

    def repoint_url(
        self,
        column: str,
        old_path: str,
        new_url: str,
        *,
        updated_at: str | None = None,
    ) -> int: ...

    def get_url(self, application_id: str, column: str) -> str | None: ...

    def close(self) -> None: ...


class SqliteRegistrationStore:
    """Registrations table in a local SQLite database."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS registrations (
                application_id TEXT PRIMARY KEY,
                name TEXT,
                email TEXT,
                payment_proof_url TEXT,
                payment_receipt_url TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """
        )
        self._conn.commit()

    def upsert(self, application_id: str, **fields: Any) -> None:
        """Insert or update one registration row."""
        allowed = {"name", "email", PROOF_URL_COLUMN, RECEIPT_URL_COLUMN}
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Unknown registration fields: {sorted(unknown)}")
        now = _now_iso()
        cols = ["application_id", *fields.keys(), "created_at", "updated_at"]
        placeholders = ", ".join("?" for _ in cols)
        updates = ", ".join(f"{c} = excluded.{c}" for c in [*fields.keys(), "updated_at"])
        self._conn.execute(
            f"INSERT INTO registrations ({', '.join(cols)}) VALUES ({placeholders}) "
            f"ON CONFLICT(application_id) DO UPDATE SET {updates}",
            [application_id, *fields.values(), now, now],
        )
        self._conn.commit()

    def get(self, application_id: str) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT * FROM registrations WHERE application_id = ?", (application_id,)
        ).fetchone()
        return dict(row) if row is not None else None

    def get_url(self, application_id: str, column: str) -> str | None:
        col = _check_column(column)
        row = self._conn.execute(
            f"SELECT {col} FROM registrations WHERE application_id = ?", (application_id,)
        ).fetchone()
        return row[0] if row is not None else None

    def repoint_url(
        self,
        column: str,
        old_path: str,
        new_url: str,
        *,
        updated_at: str | None = None,
    ) -> int:
        """Set *column* to *new_url* wherever it contains *old_path* (case-insensitive)."""
        col = _check_column(column)
        if not old_path:
            raise ValueError("old_path must be non-empty")
        try:
            cur = self._conn.execute(
                f"UPDATE registrations SET {col} = ?, updated_at = ? "
                f"WHERE {col} LIKE ? ESCAPE '\\'",
                (new_url, updated_at or _now_iso(), f"%{_escape_like(old_path)}%"),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise RegistrationUpdateError(col, str(e)) from e
        return cur.rowcount

    def close(self) -> None:
        self._conn.close()


class SupabaseRegistrationStore:
    """Registrations table in a Supabase (PostgREST) project."""

    def __init__(self, client: Any, *, table: str = "registrations") -> None:
        self._client = client
        self.table = table

    @classmethod
    def from_credentials(cls, url: str | None, key: str | None) -> "SupabaseRegistrationStore":
        from supabase import create_client

        if not url or not key:
            raise StorageBackendError(
                "open_registrations",
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set for supabase:// registrations",
            )
        return cls(create_client(url, key))

    def get_url(self, application_id: str, column: str) -> str | None:
        col = _check_column(column)
        resp = (
            self._client.table(self.table)
            .select(col)
            .eq("application_id", application_id)
            .limit(1)
            .execute()
        )
        rows = resp.data or []
        return rows[0].get(col) if rows else None

    def repoint_url(
        self,
        column: str,
        old_path: str,
        new_url: str,
        *,
        updated_at: str | None = None,
    ) -> int:
        col = _check_column(column)
        if not old_path:
            raise ValueError("old_path must be non-empty")
        try:
            resp = (
                self._client.table(self.table)
                .update({col: new_url, "updated_at": updated_at or _now_iso()})
                .ilike(col, f"%{old_path}%")
                .execute()
            )
        except Exception as e:
            raise RegistrationUpdateError(col, str(e)) from e
        return len(resp.data or [])

    def close(self) -> None:
        return None


def open_registrations(
    registrations_uri: str, *, config: ProofkeeperConfig | None = None
) -> RegistrationStore:
    """Open a registrations store from ``sqlite:///path`` or ``supabase://``."""
    cfg = config or ProofkeeperConfig()
    parsed = urlparse(registrations_uri)
    if parsed.scheme == "sqlite":
        path = parsed.path
        if parsed.netloc:
            path = f"{parsed.netloc}{path}"
        elif path.startswith("//"):
            # sqlite:////abs/path -> /abs/path
            path = path[1:]
        if path == "/:memory:":
            path = ":memory:"
        if not path:
            raise StorageBackendError(
                "open_registrations", f"Invalid sqlite URI: {registrations_uri}"
            )
        return SqliteRegistrationStore(path)
    if parsed.scheme == "supabase":
        url = cfg.supabase_url or (f"https://{parsed.netloc}" if parsed.netloc else None)
        return SupabaseRegistrationStore.from_credentials(url, cfg.supabase_key)
    raise UnsupportedStorageError(registrations_uri)
