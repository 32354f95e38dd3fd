"""Layered lookup of the latest payment proof / receipt for an application.

Lookup runs an ordered list of strategies against each bucket:

1. ``indexed_search`` - server-side search for the application id.
2. ``combined_prefix_search`` - server-side search for ``combined-{id}``.
3. ``full_scan`` - bounded pagination of the bucket root, only when 1 and 2
   found nothing in that bucket.

Matches from all strategies and buckets are merged, and the newest file wins.
A failing strategy contributes no matches; a failing lookup returns ``None``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from proofkeeper.config import ProofkeeperConfig
from proofkeeper.errors import ValidationError
from proofkeeper.naming import (
    combined_search_term,
    is_proof_match,
    is_receipt_match,
    join_path,
)
from proofkeeper.scan import clamp, iter_pages, scan_matches
from proofkeeper.storage import ObjectStorage, ResolvedFile, StoredFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Lookup:
    """Parameters of one lookup against one bucket."""

    application_id: str
    bucket: str
    page_size: int
    max_pages: int
    search_limit: int


@dataclass(frozen=True)
class Candidate:
    bucket: str
    file: StoredFile


StrategyFn = Callable[[ObjectStorage, Lookup], list[StoredFile]]


@dataclass(frozen=True)
class Strategy:
    name: str
    run: StrategyFn
    fallback_only: bool = False


def _proof_matches(files: list[StoredFile], application_id: str) -> list[StoredFile]:
    return [f for f in files if not f.is_folder and is_proof_match(f.name, application_id)]


def indexed_search(storage: ObjectStorage, lookup: Lookup) -> list[StoredFile]:
    files = storage.list(
        lookup.bucket, "", limit=lookup.search_limit, offset=0, search=lookup.application_id
    )
    return _proof_matches(files, lookup.application_id)


def combined_prefix_search(storage: ObjectStorage, lookup: Lookup) -> list[StoredFile]:
    files = storage.list(
        lookup.bucket,
        "",
        limit=lookup.search_limit,
        offset=0,
        search=combined_search_term(lookup.application_id),
    )
    return _proof_matches(files, lookup.application_id)


def full_scan(storage: ObjectStorage, lookup: Lookup) -> list[StoredFile]:
    return scan_matches(
        storage,
        lookup.bucket,
        lambda f: is_proof_match(f.name, lookup.application_id),
        page_size=lookup.page_size,
        max_pages=lookup.max_pages,
    )


PROOF_STRATEGIES: tuple[Strategy, ...] = (
    Strategy("indexed_search", indexed_search),
    Strategy("combined_prefix_search", combined_prefix_search),
    Strategy("full_scan", full_scan, fallback_only=True),
)


def run_strategies(
    storage: ObjectStorage,
    lookup: Lookup,
    strategies: Sequence[Strategy] = PROOF_STRATEGIES,
) -> list[StoredFile]:
    """Run *strategies* in order and merge their matches by path."""
    merged: dict[str, StoredFile] = {}
    for strategy in strategies:
        if strategy.fallback_only and merged:
            continue
        try:
            found = strategy.run(storage, lookup)
        except Exception as e:
            logger.warning(
                "Strategy %s failed for %s in bucket %s: %s",
                strategy.name,
                lookup.application_id,
                lookup.bucket,
                e,
            )
            continue
        for f in found:
            merged.setdefault(f.path, f)
        logger.debug(
            "Strategy %s found %d match(es) for %s in %s",
            strategy.name,
            len(found),
            lookup.application_id,
            lookup.bucket,
        )
    return list(merged.values())


def _rank(candidate: Candidate, canonical_bucket: str) -> tuple[float, bool, str]:
    # Newest first, then the canonical bucket, then reverse-lexicographic path.
    return (
        candidate.file.recency_timestamp,
        candidate.bucket == canonical_bucket,
        candidate.file.path,
    )


def select_latest(candidates: Sequence[Candidate], canonical_bucket: str) -> Candidate | None:
    """Pick the candidate with the greatest recency, breaking ties deterministically."""
    if not candidates:
        return None
    return max(candidates, key=lambda c: _rank(c, canonical_bucket))


def sort_newest_first(candidates: Sequence[Candidate], canonical_bucket: str) -> list[Candidate]:
    return sorted(candidates, key=lambda c: _rank(c, canonical_bucket), reverse=True)


def _require_application_id(application_id: object) -> str:
    if not isinstance(application_id, str) or not application_id.strip():
        raise ValidationError("applicationId must be a non-empty string")
    return application_id


class ProofResolver:
    """Finds the newest proof or receipt file for an application id."""

    def __init__(
        self,
        storage: ObjectStorage,
        config: ProofkeeperConfig | None = None,
        *,
        strategies: Sequence[Strategy] = PROOF_STRATEGIES,
    ) -> None:
        self.storage = storage
        self.config = config or ProofkeeperConfig()
        self.strategies = tuple(strategies)

    def _lookup(
        self,
        application_id: str,
        bucket: str,
        page_size: int | None,
        max_pages: int | None,
    ) -> Lookup:
        cfg = self.config
        return Lookup(
            application_id=application_id,
            bucket=bucket,
            page_size=clamp(
                page_size if page_size is not None else cfg.default_page_size,
                cfg.min_page_size,
                cfg.max_page_size,
            ),
            max_pages=clamp(
                max_pages if max_pages is not None else cfg.default_max_pages,
                1,
                cfg.max_pages_ceiling,
            ),
            search_limit=cfg.search_limit,
        )

    def find_proofs(
        self,
        application_id: str,
        *,
        bucket: str | None = None,
        page_size: int | None = None,
        max_pages: int | None = None,
        legacy_buckets: Sequence[str] | None = None,
    ) -> list[Candidate]:
        """All proof files for *application_id*, canonical bucket first."""
        application_id = _require_application_id(application_id)
        canonical = bucket or self.config.proof_bucket
        legacy = self.config.legacy_proof_buckets if legacy_buckets is None else legacy_buckets
        buckets = [canonical] + [b for b in legacy if b != canonical]

        candidates: list[Candidate] = []
        for name in buckets:
            lookup = self._lookup(application_id, name, page_size, max_pages)
            candidates.extend(
                Candidate(bucket=name, file=f)
                for f in run_strategies(self.storage, lookup, self.strategies)
            )
        return candidates

    def resolve(
        self,
        application_id: str,
        *,
        bucket: str | None = None,
        page_size: int | None = None,
        max_pages: int | None = None,
        legacy_buckets: Sequence[str] | None = None,
    ) -> str | None:
        """Public URL of the newest proof for *application_id*, or ``None``.

        Storage failures never propagate; they surface as ``None``.
        """
        application_id = _require_application_id(application_id)
        canonical = bucket or self.config.proof_bucket
        try:
            candidates = self.find_proofs(
                application_id,
                bucket=canonical,
                page_size=page_size,
                max_pages=max_pages,
                legacy_buckets=legacy_buckets,
            )
            best = select_latest(candidates, canonical)
            if best is None:
                logger.info("No payment proof found for %s", application_id)
                return None
            return self.storage.get_public_url(best.bucket, best.file.path)
        except Exception as e:
            logger.error("Failed to resolve payment proof for %s: %s", application_id, e)
            return None

    # --- Receipts ---

    def _receipt_prefixes(self, application_id: str) -> list[str]:
        base = list(self.config.receipt_prefixes)
        per_app = [join_path(p, application_id) for p in base]
        out: list[str] = []
        for prefix in base + per_app:
            if prefix not in out:
                out.append(prefix)
        return out

    def _receipts_in_bucket(self, application_id: str, bucket: str) -> list[StoredFile]:
        cfg = self.config
        found: dict[str, StoredFile] = {}

        def add(files: list[StoredFile]) -> None:
            for f in files:
                if f.is_folder or f.path in found:
                    continue
                if is_receipt_match(f.path, application_id):
                    found[f.path] = f

        for prefix in self._receipt_prefixes(application_id):
            try:
                add(
                    self.storage.list(
                        bucket,
                        prefix,
                        limit=cfg.receipt_search_limit,
                        offset=0,
                        search=application_id,
                    )
                )
            except Exception as e:
                logger.warning("Receipt search failed in %s/%s: %s", bucket, prefix, e)

            if found:
                continue
            try:
                for page in iter_pages(
                    self.storage,
                    bucket,
                    prefix,
                    page_size=cfg.receipt_scan_page_size,
                    max_pages=cfg.receipt_scan_max_pages,
                ):
                    add(page)
            except Exception as e:
                logger.warning("Receipt scan failed in %s/%s: %s", bucket, prefix, e)
        return list(found.values())

    def list_receipts(self, application_id: str) -> list[ResolvedFile]:
        """Every receipt for *application_id* across the receipt and proof buckets.

        Newest first; ties prefer the receipt bucket, then reverse path order.
        """
        application_id = _require_application_id(application_id)
        canonical = self.config.receipt_bucket
        buckets = [canonical]
        if self.config.proof_bucket != canonical:
            buckets.append(self.config.proof_bucket)

        candidates = [
            Candidate(bucket=bucket, file=f)
            for bucket in buckets
            for f in self._receipts_in_bucket(application_id, bucket)
        ]

        out: list[ResolvedFile] = []
        for c in sort_newest_first(candidates, canonical):
            try:
                url = self.storage.get_public_url(c.bucket, c.file.path)
            except Exception as e:
                logger.warning("No public URL for %s/%s: %s", c.bucket, c.file.path, e)
                continue
            if not url:
                continue
            out.append(
                ResolvedFile(
                    bucket=c.bucket,
                    path=c.file.path,
                    url=url,
                    recency_timestamp=c.file.recency_timestamp,
                    created_at=c.file.created_at,
                    updated_at=c.file.updated_at,
                )
            )
        return out

    def resolve_receipt(self, application_id: str) -> str | None:
        """Public URL of the newest receipt for *application_id*, or ``None``."""
        application_id = _require_application_id(application_id)
        try:
            receipts = self.list_receipts(application_id)
        except Exception as e:
            logger.error("Failed to resolve receipt for %s: %s", application_id, e)
            return None
        return receipts[0].url if receipts else None


def resolve_latest_proof_url(
    storage: ObjectStorage,
    application_id: str,
    *,
    config: ProofkeeperConfig | None = None,
    bucket: str | None = None,
    page_size: int | None = None,
    max_pages: int | None = None,
) -> str | None:
    """Convenience wrapper around :meth:`ProofResolver.resolve`."""
    return ProofResolver(storage, config).resolve(
        application_id, bucket=bucket, page_size=page_size, max_pages=max_pages
    )
