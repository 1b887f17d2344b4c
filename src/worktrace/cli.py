"""
WorkTrace CLI - command-line interface for WorkTrace.

Runs the tracking server and inspects the store.
"""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from worktrace.config import settings
from worktrace.logging_config import setup_logging

app = typer.Typer(
    name="worktrace",
    help="WorkTrace - infer working time from editor activity and allocate it to commits",
    no_args_is_help=True,
)

console = Console()


def _format_duration(seconds: int) -> str:
    hours, remainder = divmod(int(seconds), 3600)
    minutes = remainder // 60
    return f"{hours}h {minutes:02d}m"


@app.command("init-db")
def init_db_command() -> None:
    """Create the database schema."""
    from worktrace.db.connection import init_db

    setup_logging(context="cli")
    init_db()
    console.print("[green]✓ Database initialized[/green]")


@app.command()
def workspaces(
    active_only: bool = typer.Option(False, "--active-only", help="Hide inactive workspaces"),
) -> None:
    """List known workspaces."""
    from worktrace.db.connection import db_session
    from worktrace.db.repositories import WorkspaceRepository

    with db_session() as db:
        repo = WorkspaceRepository(db)
        rows = repo.get_active() if active_only else repo.list_all()

        if not rows:
            console.print("[yellow]No workspaces found[/yellow]")
            return

        table = Table(title="Workspaces")
        table.add_column("Name", style="cyan")
        table.add_column("Path")
        table.add_column("Active")
        table.add_column("ID", style="dim")
        for workspace in rows:
            table.add_row(
                workspace.name,
                workspace.path,
                "yes" if workspace.is_active else "no",
                str(workspace.id),
            )
    console.print(table)


@app.command()
def status(
    days: int = typer.Option(7, help="Window for the total column, in days"),
) -> None:
    """Show unallocated time and recent tracked time per workspace."""
    from datetime import timedelta
    from zoneinfo import ZoneInfo

    from worktrace.db.connection import db_session
    from worktrace.db.repositories import WorkSessionRepository, WorkspaceRepository
    from worktrace.models.db import utc_now

    with db_session() as db:
        rows = WorkspaceRepository(db).get_active()
        if not rows:
            console.print("[yellow]No active workspaces[/yellow]")
            return

        sessions = WorkSessionRepository(db)
        # Calendar days are those of the allocation timezone, not the host
        today = utc_now().astimezone(ZoneInfo(settings.allocation_timezone)).date()
        from_date = today - timedelta(days=max(days, 1) - 1)
        table = Table(title="Tracked time")
        table.add_column("Workspace", style="cyan")
        table.add_column("Unallocated", justify="right")
        table.add_column(f"Last {days}d", justify="right")
        for workspace in rows:
            table.add_row(
                workspace.name,
                _format_duration(sessions.unallocated_seconds(workspace.id)),
                _format_duration(
                    sessions.total_active_seconds(workspace.id, from_date, today)
                ),
            )
    console.print(table)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind to"),
    port: Optional[int] = typer.Option(None, help="Port to bind to"),
    root: Optional[list[str]] = typer.Option(
        None, "--root", help="Workspace root to track (repeatable)"
    ),
) -> None:
    """
    Start the tracking server.

    Runs the local API and tracks the given roots (or the configured
    tracked_roots) until interrupted.
    """
    import uvicorn

    from worktrace.api.app import create_app

    host = host or settings.api_host
    port = port or settings.api_port
    roots = root or settings.tracked_roots

    console.print("[bold green]Starting WorkTrace server...[/bold green]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  Roots: {', '.join(roots) if roots else 'none'}")
    console.print(f"  Idle threshold: {settings.idle_threshold_minutes}m")

    uvicorn.run(create_app(roots=roots), host=host, port=port)


if __name__ == "__main__":
    app()
