"""Configuration for proof resolution and receipt migration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class ProofkeeperConfig:
    """Configuration for the resolver, migrator and storage backends."""

    proof_bucket: str = "payment-proofs"
    receipt_bucket: str = "payment-receipts"
    legacy_proof_buckets: tuple[str, ...] = ()
    default_page_size: int = 200
    min_page_size: int = 50
    max_page_size: int = 1000
    default_max_pages: int = 10
    max_pages_ceiling: int = 50
    search_limit: int = 100
    receipt_search_limit: int = 1000
    receipt_scan_page_size: int = 200
    receipt_scan_max_pages: int = 25
    receipt_prefixes: tuple[str, ...] = ("", "payment-receipts")
    legacy_prefixes: tuple[str, ...] = ("", "payment-receipts")
    migration_page_size: int = 200
    migration_max_pages: int = 500
    migration_sample_size: int = 30
    receipt_extensions: tuple[str, ...] = (".pdf",)
    s3_region: str | None = None
    s3_endpoint_url: str | None = None
    s3_request_timeout_s: float = 10.0
    public_base_url: str | None = None
    supabase_url: str | None = None
    supabase_key: str | None = field(default=None, repr=False)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def config_from_env() -> ProofkeeperConfig:
    """Build config from PROOFKEEPER_* and SUPABASE_* environment variables."""
    legacy = os.getenv("PROOFKEEPER_LEGACY_PROOF_BUCKETS", "")
    defaults = ProofkeeperConfig()
    return ProofkeeperConfig(
        proof_bucket=os.getenv("PROOFKEEPER_PROOF_BUCKET", defaults.proof_bucket),
        receipt_bucket=os.getenv("PROOFKEEPER_RECEIPT_BUCKET", defaults.receipt_bucket),
        legacy_proof_buckets=tuple(b.strip() for b in legacy.split(",") if b.strip()),
        default_page_size=_env_int("PROOFKEEPER_PAGE_SIZE", defaults.default_page_size),
        default_max_pages=_env_int("PROOFKEEPER_MAX_PAGES", defaults.default_max_pages),
        migration_max_pages=_env_int(
            "PROOFKEEPER_MIGRATION_MAX_PAGES", defaults.migration_max_pages
        ),
        s3_region=os.getenv("PROOFKEEPER_S3_REGION"),
        s3_endpoint_url=os.getenv("PROOFKEEPER_S3_ENDPOINT_URL")
        or os.getenv("PROOFKEEPER_S3_ENDPOINT"),
        public_base_url=os.getenv("PROOFKEEPER_PUBLIC_BASE_URL"),
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_KEY"),
    )
