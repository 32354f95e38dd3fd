"""proofs CLI: operator console for payment proof lookup and receipt migration."""

from __future__ import annotations

from typing import Optional

import typer

from proofkeeper.cli import migrate, resolve, serve

app = typer.Typer(
    name="proofs",
    help="proofs CLI: look up payment proofs and reconcile receipt buckets.",
    no_args_is_help=True,
)


class _State:
    """Global CLI state shared across subcommands."""

    storage_uri: str = "supabase://"
    registrations_uri: str | None = None
    json_output: bool = False


state = _State()


def _version_callback(value: bool) -> None:
    if value:
        try:
            from importlib.metadata import version

            v = version("proofkeeper")
        except Exception:
            v = "unknown"
        print(f"proofs {v}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    storage_uri: Optional[str] = typer.Option(
        None,
        "--storage-uri",
        envvar="PROOFKEEPER_STORAGE_URI",
        help="Object storage URI (memory://, file:///dir, s3://, supabase://)",
    ),
    registrations_uri: Optional[str] = typer.Option(
        None,
        "--registrations-uri",
        envvar="PROOFKEEPER_REGISTRATIONS_URI",
        help="Registrations table URI (sqlite:///path or supabase://)",
    ),
    log_level: str = typer.Option(
        "WARNING", "--log-level", envvar="PROOFKEEPER_LOG_LEVEL", help="Logging level"
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output when supported"),
    version: bool = typer.Option(
        False, "--version", help="Show version", is_eager=True, callback=_version_callback
    ),
) -> None:
    """Global options for all proofs commands."""
    from proofkeeper.logging_config import setup_logging
    from proofkeeper.storage import parse_storage_target

    resolved_uri = storage_uri or "supabase://"
    try:
        parse_storage_target(resolved_uri)
    except Exception as e:
        raise typer.BadParameter(str(e))

    setup_logging(log_level)
    state.storage_uri = resolved_uri
    state.registrations_uri = registrations_uri
    state.json_output = json_output
    if ctx.invoked_subcommand is None and not version:
        print(ctx.get_help())
        raise typer.Exit()


app.command(name="resolve")(resolve.resolve_cmd)
app.command(name="receipts")(resolve.receipts_cmd)
app.command(name="migrate")(migrate.migrate_cmd)
app.command(name="serve")(serve.serve_cmd)


def main() -> None:
    """Entry point for the proofs CLI."""
    app()
