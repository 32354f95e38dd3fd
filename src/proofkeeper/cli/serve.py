"""proofs serve: run the HTTP endpoints."""

from __future__ import annotations

import typer

from proofkeeper.cli import _exitcodes as ec
from proofkeeper.cli._output import print_error
from proofkeeper.cli._storage import cli_config, open_cli_registrations, open_cli_storage


def serve_cmd(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
    port: int = typer.Option(8080, "--port", help="Port to listen on"),
    debug: bool = typer.Option(False, "--debug", help="Enable the Flask debugger"),
) -> None:
    """Serve /resolve-payment-proof, /list-payment-receipts and /migrate-payment-receipts."""
    from proofkeeper.server import create_app

    config = cli_config()
    try:
        storage = open_cli_storage(config)
        registrations = open_cli_registrations(config)
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(ec.GENERAL_ERROR)

    app = create_app(config, storage=storage, registrations=registrations)
    app.run(host=host, port=port, debug=debug)
