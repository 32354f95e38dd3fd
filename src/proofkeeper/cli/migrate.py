"""proofs migrate: move receipts out of the legacy proofs bucket."""

from __future__ import annotations

from typing import Optional

import typer

from proofkeeper.cli import _exitcodes as ec
from proofkeeper.cli._output import print_error, print_object
from proofkeeper.cli._storage import cli_config, open_cli_registrations, open_cli_storage
from proofkeeper.migration import BucketMigrator


def migrate_cmd(
    legacy_bucket: Optional[str] = typer.Option(
        None, "--legacy-bucket", help="Bucket to sweep (default: payment-proofs)"
    ),
    canonical_bucket: Optional[str] = typer.Option(
        None, "--canonical-bucket", help="Destination bucket (default: payment-receipts)"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="List what would move; change nothing"),
) -> None:
    """Move receipt files into the receipts bucket and repoint registrations."""
    from proofkeeper.cli import state

    json_mode = state.json_output
    config = cli_config()
    try:
        storage = open_cli_storage(config)
        registrations = open_cli_registrations(config)
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(ec.GENERAL_ERROR)

    try:
        report = BucketMigrator(storage, registrations, config).migrate(
            legacy_bucket, canonical_bucket, dry_run=dry_run
        )
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(ec.EXECUTION_FAILURE)
    finally:
        storage.close()
        if registrations is not None:
            registrations.close()

    if json_mode:
        print_object(report.to_dict(), json_mode=True)
    else:
        title = "Migration plan" if report.dry_run else "Migration finished"
        print(f"{title}: {report.legacy_bucket} -> {report.canonical_bucket}")
        print(f"  Scanned: {report.scanned}")
        print(f"  Receipts matched: {report.matched}")
        if not report.dry_run:
            print(f"  Copied: {report.copied}")
            print(f"  Deleted from legacy: {report.deleted_from_legacy}")
            print(f"  Registrations updated: {report.db_updated}")
        if report.truncated:
            print("  Page limit reached; re-run to continue.")
        for err in report.errors:
            print(f"  ! {err.file} [{err.stage}]: {err.message}")
        if registrations is None and not report.dry_run and report.copied:
            print("  (no --registrations-uri given; registration URLs were not repointed)")

    if report.errors:
        raise typer.Exit(ec.PARTIAL_FAILURE)
