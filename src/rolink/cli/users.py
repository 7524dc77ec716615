"""Linked account CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from rolink.database import get_session_context
from rolink.services import storage

console = Console()
app = typer.Typer(help="Linked account commands")


@app.command("list")
def list_users():
    """List all verified users."""

    async def _list():
        async with get_session_context() as session:
            accounts = await storage.list_linked_accounts(session)

            table = Table(title="Verified Users")
            table.add_column("Discord ID", style="cyan")
            table.add_column("Roblox Username", style="green")
            table.add_column("Roblox ID", style="magenta")
            table.add_column("Verified", style="dim")

            for account in accounts:
                table.add_row(
                    account.discord_id,
                    account.roblox_username,
                    account.roblox_id,
                    account.verified_at.strftime("%Y-%m-%d"),
                )

            console.print(table)

    asyncio.run(_list())


@app.command("show")
def show_user(
    user_id: str = typer.Argument(..., help="Discord user ID, or Roblox user ID with --roblox"),
    roblox: bool = typer.Option(False, "--roblox", help="Look up by Roblox user ID"),
):
    """Show the link for one user."""

    async def _show():
        async with get_session_context() as session:
            if roblox:
                account = await storage.get_linked_account_by_roblox_id(session, user_id)
            else:
                account = await storage.get_linked_account(session, user_id)

            if account is None:
                console.print(f"[red]Error:[/red] No verified user for {user_id}")
                raise typer.Exit(1)

            console.print(f"[bold]Discord ID:[/bold] {account.discord_id}")
            console.print(f"[bold]Roblox:[/bold] {account.roblox_username} ({account.roblox_id})")
            console.print(f"[bold]Verified:[/bold] {account.verified_at.isoformat()}")
            console.print(f"[bold]Last updated:[/bold] {account.last_updated_at.isoformat()}")

    asyncio.run(_show())
