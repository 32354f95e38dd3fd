"""proofs resolve / proofs receipts: look up files for an application."""

from __future__ import annotations

from typing import Optional

import typer

from proofkeeper.cli import _exitcodes as ec
from proofkeeper.cli._output import print_error, print_object, print_table
from proofkeeper.cli._storage import cli_config, open_cli_storage
from proofkeeper.resolver import ProofResolver


def resolve_cmd(
    application_id: str = typer.Argument(..., help="Application id, e.g. ALM-1A2B-9F3K"),
    bucket: Optional[str] = typer.Option(None, "--bucket", help="Bucket to search"),
    page_size: Optional[int] = typer.Option(None, "--page-size", help="Scan page size (50-1000)"),
    max_pages: Optional[int] = typer.Option(None, "--max-pages", help="Scan page limit (1-50)"),
    legacy_bucket: Optional[list[str]] = typer.Option(
        None, "--legacy-bucket", help="Additional bucket to search (repeatable)"
    ),
) -> None:
    """Print the public URL of the newest payment proof for an application."""
    from proofkeeper.cli import state

    if not application_id.strip():
        print_error("APPLICATION_ID must be non-empty")
        raise typer.Exit(ec.USAGE_ERROR)

    config = cli_config()
    try:
        storage = open_cli_storage(config)
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(ec.GENERAL_ERROR)

    try:
        url = ProofResolver(storage, config).resolve(
            application_id,
            bucket=bucket,
            page_size=page_size,
            max_pages=max_pages,
            legacy_buckets=legacy_bucket or None,
        )
    finally:
        storage.close()

    if state.json_output:
        print_object({"applicationId": application_id, "url": url}, json_mode=True)
    elif url:
        print(url)
    else:
        print(f"No payment proof found for {application_id}.")

    if url is None:
        raise typer.Exit(ec.NOT_FOUND)


def receipts_cmd(
    application_id: str = typer.Argument(..., help="Application id, e.g. ALM-1A2B-9F3K"),
) -> None:
    """List every receipt for an application, newest first."""
    from proofkeeper.cli import state

    if not application_id.strip():
        print_error("APPLICATION_ID must be non-empty")
        raise typer.Exit(ec.USAGE_ERROR)

    config = cli_config()
    try:
        storage = open_cli_storage(config)
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(ec.GENERAL_ERROR)

    try:
        receipts = ProofResolver(storage, config).list_receipts(application_id)
    finally:
        storage.close()

    rows = [[r.bucket, r.path, r.created_at, r.updated_at, r.url] for r in receipts]
    if not rows and not state.json_output:
        print(f"No receipts found for {application_id}.")
        return
    print_table(
        ["bucket", "path", "created_at", "updated_at", "url"], rows, json_mode=state.json_output
    )
