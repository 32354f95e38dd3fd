"""Bounded, strictly sequential pagination over bucket listings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator

from proofkeeper.storage import ObjectStorage, StoredFile


def clamp(value: int, low: int, high: int) -> int:
    return min(max(value, low), high)


@dataclass
class ScanStats:
    """Counters for one paginated scan."""

    pages: int = 0
    entries: int = 0
    truncated: bool = False


def iter_pages(
    storage: ObjectStorage,
    bucket: str,
    prefix: str = "",
    *,
    page_size: int,
    max_pages: int,
    stats: ScanStats | None = None,
) -> Iterator[list[StoredFile]]:
    """Yield listing pages until a short page, an empty page, or *max_pages*.

    A bucket of N entries costs at most ``ceil(N / page_size) + 1`` list calls,
    and never more than *max_pages*. Each page is requested only after the
    caller has consumed the previous one.
    """
    stats = stats if stats is not None else ScanStats()
    for page_no in range(max_pages):
        page = storage.list(bucket, prefix, limit=page_size, offset=page_no * page_size)
        stats.pages += 1
        if not page:
            return
        stats.entries += len(page)
        yield page
        if len(page) < page_size:
            return
    stats.truncated = True


def scan_matches(
    storage: ObjectStorage,
    bucket: str,
    predicate: Callable[[StoredFile], bool],
    *,
    prefix: str = "",
    page_size: int,
    max_pages: int,
    stats: ScanStats | None = None,
) -> list[StoredFile]:
    """Collect every non-folder entry of a bounded scan that satisfies *predicate*."""
    matches: list[StoredFile] = []
    for page in iter_pages(
        storage, bucket, prefix, page_size=page_size, max_pages=max_pages, stats=stats
    ):
        matches.extend(f for f in page if not f.is_folder and predicate(f))
    return matches
