"""Filename conventions tying stored files to application identifiers.

Proof files are named ``{application_id}-{suffix}`` or, for a group payment,
``combined-{application_id}-{suffix}``. Receipts are named
``receipt-{application_id}-{timestamp}.{ext}``.

Proof matching is case-sensitive while receipt matching is case-insensitive.
Both behaviours are kept as they are in production data.
"""

from __future__ import annotations

COMBINED_PREFIX = "combined-"
RECEIPT_PREFIX = "receipt-"


def join_path(prefix: str, name: str) -> str:
    """Join a virtual folder prefix and an entry name."""
    prefix = prefix.strip("/")
    return f"{prefix}/{name}" if prefix else name


def basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def combined_search_term(application_id: str) -> str:
    return f"{COMBINED_PREFIX}{application_id}"


def is_proof_match(name: str, application_id: str) -> bool:
    """True if *name* is an individual or combined proof for *application_id*."""
    if not application_id:
        return False
    name = basename(name)
    return name.startswith(f"{application_id}-") or name.startswith(
        f"{COMBINED_PREFIX}{application_id}-"
    )


def is_receipt_match(full_path: str, application_id: str) -> bool:
    """True if the bucket path *full_path* belongs to *application_id*'s receipts.

    Accepts flat ``receipt-{id}-*`` names, the same name under any folder, and
    any file stored under a ``/{id}/`` folder.
    """
    if not application_id:
        return False
    n = full_path.lower()
    app_id = application_id.lower()
    return (
        n.startswith(f"{RECEIPT_PREFIX}{app_id}-")
        or f"/{RECEIPT_PREFIX}{app_id}-" in n
        or f"/{app_id}/" in n
        or f"{RECEIPT_PREFIX}{app_id}-" in n
    )


def looks_like_receipt(name: str, extensions: tuple[str, ...] = (".pdf",)) -> bool:
    """Heuristic used when sweeping a legacy bucket for misplaced receipts."""
    n = basename(name).lower()
    if n.startswith(RECEIPT_PREFIX):
        return True
    return "receipt" in n and any(n.endswith(ext.lower()) for ext in extensions)


def application_id_from_receipt_filename(name: str) -> str | None:
    """Derive the owning application id from a receipt filename.

    ``receipt-ALM-ABC123-XYZ-1700000000.pdf`` -> ``ALM-ABC123-XYZ``. Application
    ids contain hyphens themselves, so only the last hyphen-delimited segment
    (the timestamp) is dropped.
    """
    name = basename(name)
    if not name.startswith(RECEIPT_PREFIX):
        return None
    rest = name[len(RECEIPT_PREFIX) :]
    last_dash = rest.rfind("-")
    if last_dash <= 0:
        return None
    return rest[:last_dash]
