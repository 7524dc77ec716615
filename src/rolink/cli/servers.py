"""Server approval CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from rolink.database import async_session_factory, get_session_context
from rolink.models import ApprovalStatus
from rolink.services import storage
from rolink.services.storage import DatabaseStorage

console = Console()
app = typer.Typer(help="Server approval commands")


@app.command("list")
def list_servers(
    approved: bool = typer.Option(False, "--approved", help="Only show approved servers"),
    pending: bool = typer.Option(False, "--pending", help="Show pending approval requests instead"),
):
    """List servers or pending approval requests."""

    async def _list():
        async with get_session_context() as session:
            if pending:
                requests = await storage.list_approval_requests(session, ApprovalStatus.PENDING)
                table = Table(title="Pending Approval Requests")
                table.add_column("Server ID", style="cyan")
                table.add_column("Name", style="green")
                table.add_column("Requested By")
                table.add_column("Members", justify="right")
                table.add_column("Requested", style="dim")
                for request in requests:
                    table.add_row(
                        request.server_id,
                        request.server_name,
                        request.requested_by,
                        str(request.member_count),
                        request.requested_at.strftime("%Y-%m-%d"),
                    )
                console.print(table)
                return

            servers = await storage.list_servers(session, approved_only=approved)
            table = Table(title="Servers")
            table.add_column("Server ID", style="cyan")
            table.add_column("Name", style="green")
            table.add_column("Approved", style="magenta")
            table.add_column("Members", justify="right")
            table.add_column("Owner", style="dim")
            for server in servers:
                approved_str = "[green]Yes[/green]" if server.is_approved else "No"
                table.add_row(
                    server.server_id,
                    server.server_name,
                    approved_str,
                    str(server.member_count),
                    server.owner_discord_id,
                )
            console.print(table)

    asyncio.run(_list())


@app.command("approve")
def approve(
    server_id: str = typer.Argument(..., help="Discord server ID"),
    owner_id: str = typer.Option("", "--owner-id", help="Owner Discord ID for servers not seen yet"),
):
    """Approve a server, registering it if the bot has not joined yet."""
    server = asyncio.run(DatabaseStorage(async_session_factory).approve_server(server_id, owner_id))
    console.print(f"[green]Approved server:[/green] {server.server_name} ({server_id})")


@app.command("revoke")
def revoke(server_id: str = typer.Argument(..., help="Discord server ID")):
    """Revoke a server's approval."""
    server = asyncio.run(DatabaseStorage(async_session_factory).revoke_server(server_id))
    if server is None:
        console.print(f"[red]Error:[/red] Server {server_id} not found")
        raise typer.Exit(1)
    console.print(f"[green]Revoked server:[/green] {server.server_name} ({server_id})")
