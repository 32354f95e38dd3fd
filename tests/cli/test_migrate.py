"""Tests for the migrate command."""

from __future__ import annotations

import json

from proofkeeper.cli import _exitcodes as ec
from proofkeeper.registrations import RECEIPT_URL_COLUMN, SqliteRegistrationStore
from tests.cli.conftest import APP, invoke
from tests.conftest import CDN


def test_migrate_moves_receipts(runner, storage_root):
    result = invoke(runner, ["migrate"], storage_root)
    assert result.exit_code == 0
    assert "Migration finished: payment-proofs -> payment-receipts" in result.stdout
    assert "Copied: 2" in result.stdout

    receipts = storage_root / "payment-receipts"
    assert sorted(p.name for p in receipts.iterdir()) == [
        f"receipt-{APP}-1700000600.pdf",
        "receipt-ALM-ZZZZ-1.pdf",
    ]
    assert not (storage_root / "payment-proofs" / f"receipt-{APP}-1700000600.pdf").exists()
    assert (storage_root / "payment-proofs" / f"{APP}-1700000000.jpg").exists()


def test_migrate_json(runner, storage_root):
    result = invoke(runner, ["--json", "migrate"], storage_root)
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["copied"] == 2
    assert data["deletedFromOld"] == 2
    assert data["errors"] == []
    assert data["dryRun"] is False


def test_migrate_dry_run(runner, storage_root):
    result = invoke(runner, ["migrate", "--dry-run"], storage_root)
    assert result.exit_code == 0
    assert "Migration plan" in result.stdout
    assert "Receipts matched: 2" in result.stdout
    assert not (storage_root / "payment-receipts").exists()


def test_migrate_repoints_registrations(runner, storage_root, tmp_path):
    db = tmp_path / "registrations.db"
    store = SqliteRegistrationStore(str(db))
    store.upsert(
        APP,
        payment_receipt_url=f"https://old.test/payment-proofs/receipt-{APP}-1700000600.pdf",
    )
    store.close()

    result = invoke(
        runner, ["--registrations-uri", f"sqlite:///{db}", "--json", "migrate"], storage_root
    )
    assert result.exit_code == 0
    assert json.loads(result.stdout)["dbUpdated"] == 1

    store = SqliteRegistrationStore(str(db))
    assert store.get_url(APP, RECEIPT_URL_COLUMN) == (
        f"{CDN}/payment-receipts/receipt-{APP}-1700000600.pdf"
    )
    store.close()


def test_migrate_same_bucket_fails(runner, storage_root):
    result = invoke(
        runner,
        ["migrate", "--legacy-bucket", "payment-proofs", "--canonical-bucket", "payment-proofs"],
        storage_root,
    )
    assert result.exit_code == ec.EXECUTION_FAILURE


def test_migrate_empty_bucket(runner, tmp_path):
    result = invoke(runner, ["--json", "migrate"], tmp_path / "empty")
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["scanned"] == 0
    assert data["copied"] == 0
