"""Receipt migration: move misplaced receipts out of the legacy proofs bucket.

Each receipt-like file found in the legacy bucket is downloaded, uploaded to
the canonical bucket at its flattened path (upsert), removed from the legacy
bucket, and every registration whose receipt URL still references the old
path is repointed to the new public URL.

Storage is the source of truth. Registration updates are best-effort and are
never rolled back into storage. Re-running converges: moved files are gone
from the legacy bucket and uploads overwrite.
"""

from __future__ import annotations

import logging
import mimetypes
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from proofkeeper.config import ProofkeeperConfig
from proofkeeper.errors import MigrationError
from proofkeeper.naming import application_id_from_receipt_filename, looks_like_receipt
from proofkeeper.registrations import RECEIPT_URL_COLUMN, RegistrationStore
from proofkeeper.storage import ObjectStorage, StoredFile

logger = logging.getLogger(__name__)

__all__ = [
    "BucketMigrator",
    "FileError",
    "FileState",
    "MigrationReport",
    "STAGE_DB_UPDATE",
    "STAGE_MOVE",
    "content_type_for",
]

STAGE_MOVE = "download/upload/remove"
STAGE_DB_UPDATE = "db_update"
DEFAULT_CONTENT_TYPE = "application/pdf"


class FileState(str, Enum):
    """Per-file progress through a migration run."""

    DISCOVERED = "discovered"
    MATCHED = "matched"
    COPIED = "copied"
    DELETED = "deleted-from-legacy"
    REPAIRED = "db-repaired"

    @staticmethod
    def failed(stage: str) -> str:
        return f"failed-at-{stage}"


@dataclass
class FileError:
    """One per-file failure recorded in a migration report."""

    file: str
    stage: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"file": self.file, "stage": self.stage, "message": self.message}


@dataclass
class MigrationReport:
    """Result of one :meth:`BucketMigrator.migrate` run."""

    legacy_bucket: str
    canonical_bucket: str
    dry_run: bool = False
    scanned: int = 0
    matched: int = 0
    copied: int = 0
    deleted_from_legacy: int = 0
    db_updated: int = 0
    sample_names: list[str] = field(default_factory=list)
    errors: list[FileError] = field(default_factory=list)
    files: dict[str, str] = field(default_factory=dict)
    truncated: bool = False
    duration_s: float = 0.0

    @property
    def success(self) -> bool:
        return not self.errors

    def add_error(
        self, file: str, stage: str, err: Exception | str, *, source: str | None = None
    ) -> None:
        message = str(err) or type(err).__name__
        self.errors.append(FileError(file=file, stage=stage, message=message))
        self.files[source or file] = FileState.failed(stage)

    def to_dict(self) -> dict[str, Any]:
        return {
            "legacyBucket": self.legacy_bucket,
            "canonicalBucket": self.canonical_bucket,
            "dryRun": self.dry_run,
            "scanned": self.scanned,
            "matched": self.matched,
            "copied": self.copied,
            "deletedFromOld": self.deleted_from_legacy,
            "dbUpdated": self.db_updated,
            "sampleNames": list(self.sample_names),
            "errors": [e.to_dict() for e in self.errors],
            "truncated": self.truncated,
            "durationS": round(self.duration_s, 3),
        }


def content_type_for(name: str) -> str:
    guessed, _ = mimetypes.guess_type(name)
    return guessed or DEFAULT_CONTENT_TYPE


class BucketMigrator:
    """Moves receipts from a legacy bucket into the canonical receipts bucket.

    Performs no authorization of its own; callers are expected to have
    verified the operator before invoking :meth:`migrate`.
    """

    def __init__(
        self,
        storage: ObjectStorage,
        registrations: RegistrationStore | None = None,
        config: ProofkeeperConfig | None = None,
    ) -> None:
        self.storage = storage
        self.registrations = registrations
        self.config = config or ProofkeeperConfig()

    def migrate(
        self,
        legacy_bucket: str | None = None,
        canonical_bucket: str | None = None,
        *,
        dry_run: bool = False,
    ) -> MigrationReport:
        """Sweep *legacy_bucket* and move every receipt into *canonical_bucket*.

        Raises MigrationError only when the legacy bucket cannot be listed;
        per-file failures are collected in the report.
        """
        legacy = legacy_bucket or self.config.proof_bucket
        canonical = canonical_bucket or self.config.receipt_bucket
        if legacy == canonical:
            raise MigrationError(f"Legacy and canonical bucket are both '{legacy}'")

        report = MigrationReport(legacy_bucket=legacy, canonical_bucket=canonical, dry_run=dry_run)
        started = time.monotonic()
        logger.info(
            "Migrating receipts %s -> %s%s", legacy, canonical, " (dry run)" if dry_run else ""
        )
        for prefix in self.config.legacy_prefixes:
            self._migrate_prefix(report, prefix)
        report.duration_s = time.monotonic() - started

        logger.info(
            "Receipt migration finished: scanned=%d matched=%d copied=%d deleted=%d "
            "db_updated=%d errors=%d",
            report.scanned,
            report.matched,
            report.copied,
            report.deleted_from_legacy,
            report.db_updated,
            len(report.errors),
        )
        return report

    def _migrate_prefix(self, report: MigrationReport, prefix: str) -> None:
        cfg = self.config
        page_size = cfg.migration_page_size
        offset = 0
        for _ in range(cfg.migration_max_pages):
            try:
                files = self.storage.list(
                    report.legacy_bucket, prefix, limit=page_size, offset=offset
                )
            except Exception as e:
                raise MigrationError(
                    f"Failed to list {report.legacy_bucket}/{prefix or ''} at offset {offset}: {e}"
                ) from e
            if not files:
                return

            report.scanned += len(files)
            for f in files:
                if len(report.sample_names) >= cfg.migration_sample_size:
                    break
                report.sample_names.append(f.path)

            removed = 0
            for f in files:
                if f.is_folder or not looks_like_receipt(f.name, cfg.receipt_extensions):
                    continue
                if self._migrate_file(report, f):
                    removed += 1

            if len(files) < page_size:
                return
            # Removed files no longer occupy listing slots.
            offset += len(files) - removed
        report.truncated = True
        logger.warning(
            "Stopped scanning %s/%s after %d pages; re-run to continue",
            report.legacy_bucket,
            prefix,
            cfg.migration_max_pages,
        )

    def _migrate_file(self, report: MigrationReport, f: StoredFile) -> bool:
        """Move one file and repair its registrations. Returns True if removed from legacy."""
        old_path = f.path
        new_path = f.name
        report.matched += 1
        report.files[old_path] = FileState.MATCHED.value
        if report.dry_run:
            return False

        try:
            data = self.storage.download(report.legacy_bucket, old_path)
            self.storage.upload(
                report.canonical_bucket,
                new_path,
                data,
                upsert=True,
                content_type=content_type_for(new_path),
            )
        except Exception as e:
            logger.warning("Failed to copy %s/%s: %s", report.legacy_bucket, old_path, e)
            report.add_error(old_path, STAGE_MOVE, e)
            return False
        report.copied += 1
        report.files[old_path] = FileState.COPIED.value

        removed = False
        try:
            self.storage.remove(report.legacy_bucket, [old_path])
        except Exception as e:
            logger.warning("Copied but could not remove %s/%s: %s", report.legacy_bucket, old_path, e)
            report.add_error(old_path, STAGE_MOVE, e)
        else:
            removed = True
            report.deleted_from_legacy += 1
            report.files[old_path] = FileState.DELETED.value

        self._repair_registrations(report, old_path, new_path, removed=removed)
        return removed

    def _repair_registrations(
        self, report: MigrationReport, old_path: str, new_path: str, *, removed: bool
    ) -> None:
        if self.registrations is None:
            return
        application_id = application_id_from_receipt_filename(new_path)
        if application_id is None:
            logger.info("No application id in %s; registrations left untouched", new_path)
            return
        try:
            new_url = self.storage.get_public_url(report.canonical_bucket, new_path)
        except Exception as e:
            report.add_error(new_path, STAGE_DB_UPDATE, e, source=old_path)
            return
        if not new_url:
            return

        try:
            updated = self.registrations.repoint_url(
                RECEIPT_URL_COLUMN,
                old_path,
                new_url,
                updated_at=datetime.now(timezone.utc).isoformat(),
            )
        except Exception as e:
            logger.warning("Registration update failed for %s: %s", application_id, e)
            report.add_error(new_path, STAGE_DB_UPDATE, e, source=old_path)
            return
        report.db_updated += updated
        if removed:
            report.files[old_path] = FileState.REPAIRED.value
