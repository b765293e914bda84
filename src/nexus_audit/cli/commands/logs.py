# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""CLI commands for querying and pruning the audit log."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Annotated

import typer

from nexus_audit.core.exceptions import InvalidFilterError, InvalidRetentionWindowError

if TYPE_CHECKING:
    from nexus_audit.audit.query import AuditQuery

app = typer.Typer()

_SEVERITY_STYLES = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "green",
}


@app.command(name="list")
def logs_list(
    action: Annotated[
        str | None,
        typer.Option("--action", "-a", help="Filter by action tag"),
    ] = None,
    severity: Annotated[
        str | None,
        typer.Option("--severity", "-s", help="Filter by severity"),
    ] = None,
    user: Annotated[
        str | None,
        typer.Option("--user", "-u", help="Filter by actor ID"),
    ] = None,
    start_date: Annotated[
        str | None,
        typer.Option("--start", help="Start date (ISO format)"),
    ] = None,
    end_date: Annotated[
        str | None,
        typer.Option("--end", help="End date (ISO format)"),
    ] = None,
    search: Annotated[
        str | None,
        typer.Option("--search", "-q", help="Case-insensitive text in the description"),
    ] = None,
    page: Annotated[int, typer.Option("--page", "-p", help="Page number")] = 1,
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Events per page"),
    ] = 50,
) -> None:
    """List audit events, newest first."""
    from nexus_audit.audit.query import AuditQuery

    query = AuditQuery(
        action=action,
        severity=severity,
        actor_id=user,
        start_date=start_date,
        end_date=end_date,
        search=search,
        page=page,
        page_size=limit,
    )
    try:
        asyncio.run(_async_logs_list(query))
    except InvalidFilterError as exc:
        typer.echo(f"Invalid filter: {exc}", err=True)
        raise typer.Exit(2) from exc


async def _async_logs_list(query: AuditQuery) -> None:
    from rich.console import Console
    from rich.table import Table

    from nexus_audit.audit.query import QueryService
    from nexus_audit.audit.store import AuditStore
    from nexus_audit.core.config import get_settings
    from nexus_audit.storage.database import close_db, init_db

    settings = get_settings()
    db = await init_db(settings.db_path)

    try:
        result = await QueryService(AuditStore(db)).search(query)
        console = Console()

        if not result.records:
            console.print("[dim]No audit events found.[/dim]")
            return

        table = Table(title="Audit Events")
        table.add_column("Timestamp", style="dim", no_wrap=True)
        table.add_column("Action", style="cyan")
        table.add_column("Severity")
        table.add_column("Actor", style="yellow")
        table.add_column("Description", style="bold")

        for event in result.records:
            style = _SEVERITY_STYLES.get(str(event.severity), "")
            actor = f"{event.actor_id} ({event.actor_role})" if event.actor_id else "system"
            table.add_row(
                event.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                str(event.action),
                f"[{style}]{event.severity}[/{style}]" if style else str(event.severity),
                actor,
                event.description,
            )

        console.print(table)
        p = result.pagination
        console.print(f"\n[dim]Page {p.current} of {p.pages} ({p.total} event(s))[/dim]")
    finally:
        await close_db()


@app.command(name="actions")
def logs_actions() -> None:
    """List the action tags present in the audit log."""
    asyncio.run(_async_logs_actions())


async def _async_logs_actions() -> None:
    from nexus_audit.audit.store import AuditStore
    from nexus_audit.core.config import get_settings
    from nexus_audit.storage.database import close_db, init_db

    settings = get_settings()
    db = await init_db(settings.db_path)
    try:
        actions = sorted(await AuditStore(db).distinct_actions())
    finally:
        await close_db()

    if not actions:
        typer.echo("No audit events recorded yet.")
        return
    for action in actions:
        typer.echo(action)


@app.command(name="stats")
def logs_stats(
    days: Annotated[int, typer.Option("--days", "-d", help="Look-back window in days")] = 30,
) -> None:
    """Summarise audit activity per action and severity."""
    try:
        asyncio.run(_async_logs_stats(days))
    except InvalidFilterError as exc:
        typer.echo(f"Invalid window: {exc}", err=True)
        raise typer.Exit(2) from exc


async def _async_logs_stats(days: int) -> None:
    from rich.console import Console
    from rich.table import Table

    from nexus_audit.audit.query import QueryService
    from nexus_audit.audit.store import AuditStore
    from nexus_audit.core.config import get_settings
    from nexus_audit.storage.database import close_db, init_db

    settings = get_settings()
    db = await init_db(settings.db_path)
    try:
        stats = await QueryService(AuditStore(db)).stats(days)
    finally:
        await close_db()

    console = Console()
    if stats.total == 0:
        console.print(f"[dim]No audit events in the last {days} days.[/dim]")
        return

    table = Table(title=f"Audit Activity (last {days} days)")
    table.add_column("Action", style="cyan")
    table.add_column("Count", justify="right")
    for action, count in stats.action_counts:
        table.add_row(action, str(count))
    console.print(table)

    by_severity = ", ".join(f"{sev}={count}" for sev, count in stats.severity_counts)
    console.print(f"Severity: {by_severity}")
    console.print(f"Total: {stats.total}")


@app.command(name="cleanup")
def logs_cleanup(
    days: Annotated[
        int,
        typer.Option("--days", "-d", help="Delete non-critical events older than this"),
    ] = 90,
    yes: Annotated[
        bool, typer.Option("--yes", "-y", help="Skip the confirmation prompt")
    ] = False,
) -> None:
    """Permanently delete old audit events (critical events are kept)."""
    if not yes:
        typer.confirm(
            f"Delete all non-critical audit events older than {days} days?", abort=True
        )
    try:
        deleted = asyncio.run(_async_logs_cleanup(days))
    except InvalidRetentionWindowError as exc:
        typer.echo(f"Invalid retention window: {exc}", err=True)
        raise typer.Exit(2) from exc
    typer.echo(f"Deleted {deleted} audit event(s) older than {days} days.")


async def _async_logs_cleanup(days: int) -> int:
    from nexus_audit.audit.logger import AuditLogger
    from nexus_audit.audit.retention import RetentionSweeper
    from nexus_audit.audit.store import AuditStore
    from nexus_audit.core.config import get_settings
    from nexus_audit.storage.database import close_db, init_db

    settings = get_settings()
    db = await init_db(settings.db_path)
    try:
        store = AuditStore(db)

        async def _store() -> AuditStore:
            return store

        sweeper = RetentionSweeper(store, audit_logger=AuditLogger(store_provider=_store))
        return await sweeper.sweep(days)
    finally:
        await close_db()
