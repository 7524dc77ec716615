"""Database management CLI commands."""

import asyncio
import subprocess
import sys

import typer
from rich.console import Console

from rolink.database import get_session_context
from rolink.services import storage

console = Console()
app = typer.Typer(help="Database management commands")


def _alembic(*args: str) -> int:
    result = subprocess.run(
        [sys.executable, "-m", "alembic", *args],
        check=False, capture_output=False,
    )
    return result.returncode


@app.command("migrate")
def migrate(
    revision: str = typer.Argument("head", help="Target revision (default: head)"),
):
    """Run database migrations to the specified revision."""
    console.print(f"[dim]Running migrations to {revision}...[/dim]")

    if _alembic("upgrade", revision) == 0:
        console.print("[green]Migrations complete![/green]")
    else:
        console.print("[red]Migration failed![/red]")
        raise typer.Exit(1)


@app.command("rollback")
def rollback(
    revision: str = typer.Argument("-1", help="Target revision (default: -1 for one step back)"),
):
    """Rollback database migrations."""
    console.print(f"[dim]Rolling back to {revision}...[/dim]")

    if _alembic("downgrade", revision) == 0:
        console.print("[green]Rollback complete![/green]")
    else:
        console.print("[red]Rollback failed![/red]")
        raise typer.Exit(1)


@app.command("current")
def current():
    """Show current database revision."""
    _alembic("current")


@app.command("history")
def history(
    limit: int = typer.Option(10, "--limit", "-l", help="Number of revisions to show"),
):
    """Show migration history."""
    _alembic("history", f"-r-{limit}:")


@app.command("create-migration")
def create_migration(
    message: str = typer.Argument(..., help="Migration message"),
    autogenerate: bool = typer.Option(True, "--autogenerate/--no-autogenerate", help="Auto-detect model changes"),
):
    """Create a new migration."""
    console.print(f"[dim]Creating migration: {message}[/dim]")

    args = ["revision", "-m", message]
    if autogenerate:
        args.append("--autogenerate")

    if _alembic(*args) == 0:
        console.print("[green]Migration created![/green]")
    else:
        console.print("[red]Failed to create migration![/red]")
        raise typer.Exit(1)


@app.command("seed")
def seed():
    """Add demo servers, approval requests and a stats row to empty tables."""

    async def _seed():
        async with get_session_context() as session:
            created = await storage.seed_sample_data(session)
            await session.commit()
        return created

    created = asyncio.run(_seed())
    if not any(created.values()):
        console.print("[yellow]Database already has data, nothing seeded[/yellow]")
        return
    for table, count in created.items():
        console.print(f"  {table}: [green]{count}[/green] created")
