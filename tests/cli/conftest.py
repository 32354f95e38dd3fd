"""Shared fixtures for CLI tests."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from proofkeeper.cli import app
from tests.conftest import CDN

if TYPE_CHECKING:
    from click.testing import Result

APP = "ALM-1A2B-9F3K"


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def _cli_env(monkeypatch):
    for var in (
        "PROOFKEEPER_STORAGE_URI",
        "PROOFKEEPER_REGISTRATIONS_URI",
        "PROOFKEEPER_LOG_LEVEL",
        "PROOFKEEPER_S3_ENDPOINT_URL",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("PROOFKEEPER_PUBLIC_BASE_URL", CDN)


def _write(root, bucket: str, path: str, data: bytes, mtime: int) -> None:
    target = root / bucket / path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    os.utime(target, (mtime, mtime))


@pytest.fixture
def storage_root(tmp_path):
    """A file:// storage root with proofs and a misplaced receipt."""
    root = tmp_path / "buckets"
    _write(root, "payment-proofs", f"{APP}-1700000000.jpg", b"old", 1_700_000_000)
    _write(root, "payment-proofs", f"combined-{APP}-1700000500.jpg", b"new", 1_700_000_500)
    _write(root, "payment-proofs", f"receipt-{APP}-1700000600.pdf", b"pdf", 1_700_000_600)
    _write(root, "payment-proofs", "payment-receipts/receipt-ALM-ZZZZ-1.pdf", b"pdf2", 1_700_000_700)
    return root


def invoke(runner: CliRunner, args: list[str], storage_root=None) -> "Result":
    """Invoke CLI with proper state setup."""
    if storage_root is not None:
        # Inject --storage-uri before subcommand
        args = ["--storage-uri", f"file://{storage_root}"] + args
    return runner.invoke(app, args, catch_exceptions=False)
