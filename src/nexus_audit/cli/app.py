# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Typer CLI application root."""

from __future__ import annotations

import os
from typing import Annotated

import typer

from nexus_audit.cli.commands import db
from nexus_audit.cli.commands import logs as logs_cmd

app = typer.Typer(
    name="nexus-audit",
    help="Audit trail and live notifications for the Nexus ERP",
    no_args_is_help=True,
)

app.add_typer(db.app, name="db", help="Database management")
app.add_typer(logs_cmd.app, name="logs", help="Query and prune the audit log")


@app.command()
def serve(
    host: Annotated[
        str | None, typer.Option("--host", help="Bind address (default: NEXUS_API_HOST)")
    ] = None,
    port: Annotated[
        int | None, typer.Option("--port", "-p", help="Bind port (default: NEXUS_API_PORT)")
    ] = None,
    workers: Annotated[
        int | None, typer.Option("--workers", "-w", help="Worker processes")
    ] = None,
    no_retention: Annotated[
        bool, typer.Option("--no-retention", help="Disable the background retention sweeper")
    ] = False,
) -> None:
    """Start the HTTP API and notification WebSocket server."""
    import uvicorn

    from nexus_audit.core.config import get_settings

    settings = get_settings()
    if no_retention:
        # Worker processes build the app from the environment.
        os.environ["NEXUS_NO_RETENTION"] = "1"

    uvicorn.run(
        "nexus_audit.api.app:_create_app_from_env",
        host=host or settings.api_host,
        port=port or settings.api_port,
        workers=workers or settings.api_workers,
        factory=True,
    )


@app.command()
def version() -> None:
    """Print the installed version."""
    from nexus_audit import __version__

    typer.echo(f"nexus-audit {__version__}")


if __name__ == "__main__":
    app()
