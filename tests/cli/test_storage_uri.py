"""Tests for --storage-uri validation and backend selection."""

from __future__ import annotations

from proofkeeper.cli import _exitcodes as ec
from tests.cli.conftest import APP


def test_invalid_storage_uri_is_a_usage_error(runner):
    from proofkeeper.cli import app

    result = runner.invoke(app, ["--storage-uri", "ftp://host/x", "resolve", APP])
    assert result.exit_code == ec.USAGE_ERROR


def test_storage_uri_from_environment(runner, storage_root, monkeypatch):
    from proofkeeper.cli import app

    monkeypatch.setenv("PROOFKEEPER_STORAGE_URI", f"file://{storage_root}")
    result = runner.invoke(app, ["resolve", APP])
    assert result.exit_code == 0
    assert "combined-" in result.stdout


def test_supabase_without_credentials(runner, monkeypatch):
    from proofkeeper.cli import app

    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
    monkeypatch.delenv("SUPABASE_KEY", raising=False)
    result = runner.invoke(app, ["--storage-uri", "supabase://", "resolve", APP])
    assert result.exit_code == ec.GENERAL_ERROR


def test_memory_backend_finds_nothing(runner):
    from proofkeeper.cli import app

    result = runner.invoke(app, ["--storage-uri", "memory://", "resolve", APP])
    assert result.exit_code == ec.NOT_FOUND


def test_version(runner):
    from proofkeeper.cli import app

    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.stdout.startswith("proofs ")
