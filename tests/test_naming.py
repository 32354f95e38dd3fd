"""Tests for filename conventions."""

from __future__ import annotations

import pytest

from proofkeeper.naming import (
    application_id_from_receipt_filename,
    is_proof_match,
    is_receipt_match,
    join_path,
    looks_like_receipt,
)


class TestProofMatch:
    def test_individual_proof(self):
        assert is_proof_match("ALM-1A2B-9F3K-171000.jpg", "ALM-1A2B-9F3K")

    def test_combined_proof(self):
        assert is_proof_match("combined-ALM-1A2B-9F3K-170000.jpg", "ALM-1A2B-9F3K")

    def test_longer_id_with_same_prefix_does_not_match(self):
        assert not is_proof_match("ALM-1A2B-9F3KX-171000.jpg", "ALM-1A2B-9F3K")

    def test_case_sensitive(self):
        assert not is_proof_match("alm-1a2b-9f3k-171000.jpg", "ALM-1A2B-9F3K")

    def test_receipt_is_not_a_proof(self):
        assert not is_proof_match("receipt-ALM-1A2B-9F3K-171000.pdf", "ALM-1A2B-9F3K")

    def test_folder_prefix_is_ignored(self):
        assert is_proof_match("uploads/ALM-1-55.png", "ALM-1")

    def test_empty_id_never_matches(self):
        assert not is_proof_match("-x.jpg", "")


class TestReceiptMatch:
    def test_flat_receipt_case_insensitive(self):
        assert is_receipt_match("Receipt-alm-1a-1700.PDF", "ALM-1A")

    def test_receipt_in_folder(self):
        assert is_receipt_match("payment-receipts/receipt-ALM-1A-1700.pdf", "ALM-1A")

    def test_per_application_folder(self):
        assert is_receipt_match("payment-receipts/ALM-1A/scan.pdf", "alm-1a")

    def test_other_application(self):
        assert not is_receipt_match("receipt-ALM-1AB-1700.pdf", "ALM-1A")

    def test_proof_file_is_not_a_receipt(self):
        assert not is_receipt_match("ALM-1A-1700.jpg", "ALM-1A")


@pytest.mark.parametrize(
    "name,expected",
    [
        ("receipt-ALM-1-1700.jpg", True),
        ("RECEIPT-ALM-1-1700.pdf", True),
        ("bank-receipt-scan.pdf", True),
        ("bank-receipt-scan.PDF", True),
        ("receipt_notes.txt", False),
        ("ALM-1-1700.pdf", False),
        ("payment-receipts/receipt-ALM-1-1.pdf", True),
    ],
)
def test_looks_like_receipt(name, expected):
    assert looks_like_receipt(name) is expected


def test_looks_like_receipt_with_extra_extensions():
    assert not looks_like_receipt("bank-receipt.png")
    assert looks_like_receipt("bank-receipt.png", (".pdf", ".png"))


@pytest.mark.parametrize(
    "name,expected",
    [
        ("receipt-ALM-ABC123-XYZ-1700000000.pdf", "ALM-ABC123-XYZ"),
        ("receipt-ALM-1A2B-9F3K-1700000000.jpg", "ALM-1A2B-9F3K"),
        ("payment-receipts/receipt-ALM-X-1.pdf", "ALM-X"),
        ("receipt-1700000000.pdf", None),
        ("receipt--1700000000.pdf", None),
        ("ALM-ABC123-1700000000.pdf", None),
    ],
)
def test_application_id_from_receipt_filename(name, expected):
    assert application_id_from_receipt_filename(name) == expected


def test_join_path():
    assert join_path("", "a.pdf") == "a.pdf"
    assert join_path("payment-receipts/", "a.pdf") == "payment-receipts/a.pdf"
    assert join_path("/x/y/", "a.pdf") == "x/y/a.pdf"
