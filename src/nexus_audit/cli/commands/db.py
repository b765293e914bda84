# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Database management commands: schema setup, migrations and status."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer()


@app.command()
def init() -> None:
    """Create the audit database and apply the schema."""
    asyncio.run(_init_db())


async def _init_db() -> None:
    from nexus_audit.core.config import get_settings
    from nexus_audit.storage.database import close_db, init_db

    settings = get_settings()
    typer.echo(f"Initializing audit database at {settings.db_path}...")
    await init_db(settings.db_path)
    await close_db()
    typer.echo("Database initialized.")


@app.command()
def migrate() -> None:
    """Apply pending schema migrations in version order."""
    asyncio.run(_migrate_db())


async def _migrate_db() -> None:
    from nexus_audit.core.config import get_settings
    from nexus_audit.storage.database import close_db, init_db
    from nexus_audit.storage.migrations import (
        get_current_version,
        get_pending_migrations,
        run_migrations,
    )

    settings = get_settings()
    db = await init_db(settings.db_path, auto_migrate=False)
    try:
        before = await get_current_version(db)
        typer.echo(f"Database: {settings.db_path}")
        typer.echo(f"Current schema version: {before}")

        if not await get_pending_migrations(db):
            typer.echo("No pending migrations.")
            return

        for m in await run_migrations(db):
            typer.echo(f"Applied migration {m.version:03d}: {m.name}")
        typer.echo(f"Schema version is now: {await get_current_version(db)}")
    finally:
        await close_db()


@app.command()
def status() -> None:
    """Show the schema version and how many audit records each severity holds."""
    asyncio.run(_db_status())


async def _db_status() -> None:
    from nexus_audit.core.config import get_settings
    from nexus_audit.storage.database import close_db, init_db
    from nexus_audit.storage.migrations import get_current_version

    settings = get_settings()
    db = await init_db(settings.db_path)
    try:
        version = await get_current_version(db)
        cursor = await db.execute(
            "SELECT severity, COUNT(*), MIN(created_at), MAX(created_at) "
            "FROM audit_log GROUP BY severity ORDER BY severity"
        )
        rows = await cursor.fetchall()
    finally:
        await close_db()

    console = Console()
    console.print(f"Database: {settings.db_path}")
    console.print(f"Schema version: {version}")
    if not rows:
        console.print("[dim]The audit log is empty.[/dim]")
        return

    table = Table(title="Audit Records by Severity")
    table.add_column("Severity", style="cyan")
    table.add_column("Records", justify="right")
    table.add_column("Oldest", style="dim")
    table.add_column("Newest", style="dim")
    for severity, count, oldest, newest in rows:
        table.add_row(severity, str(count), oldest[:19], newest[:19])
    console.print(table)
    console.print(f"Total records: {sum(r[1] for r in rows)}")
