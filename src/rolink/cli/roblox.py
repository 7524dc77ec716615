"""Roblox lookup diagnostics."""

import asyncio

import typer
from rich.console import Console

from rolink.config import settings
from rolink.services.identity import IdentityResolver
from rolink.services.profile import ProfileMatcher, token_in_text
from rolink.services.roblox import RobloxClient

console = Console()
app = typer.Typer(help="Roblox lookup diagnostics")


@app.command("resolve-handle")
def resolve_handle(username: str = typer.Argument(..., help="Roblox username")):
    """Resolve a username to a user ID, showing which strategy answered."""

    async def _resolve():
        client = RobloxClient.from_settings(settings)
        try:
            resolver = IdentityResolver.from_settings(client, settings)
            result = await resolver.by_username_chain.run(username)
        finally:
            await client.close()

        console.print(f"[bold]{result.value.username}[/bold] -> [cyan]{result.value.user_id}[/cyan]")
        console.print(f"[dim]via strategy {result.index} ({result.strategy})[/dim]")

    asyncio.run(_resolve())


@app.command("resolve-id")
def resolve_id(user_id: str = typer.Argument(..., help="Roblox user ID")):
    """Resolve a user ID to a username, showing which strategy answered."""
    if not user_id.isdigit():
        console.print("[red]Error:[/red] Roblox user ID must be numeric")
        raise typer.Exit(1)

    async def _resolve():
        client = RobloxClient.from_settings(settings)
        try:
            resolver = IdentityResolver.from_settings(client, settings)
            result = await resolver.by_user_id_chain.run(user_id)
        finally:
            await client.close()

        console.print(f"[cyan]{result.value.user_id}[/cyan] -> [bold]{result.value.username}[/bold]")
        console.print(f"[dim]via strategy {result.index} ({result.strategy})[/dim]")

    asyncio.run(_resolve())


@app.command("check-profile")
def check_profile(
    user_id: str = typer.Argument(..., help="Roblox user ID"),
    token: str | None = typer.Option(None, "--token", "-t", help="Verification code to look for"),
):
    """Fetch a profile's About text and optionally look for a verification code."""

    async def _check():
        client = RobloxClient.from_settings(settings)
        try:
            matcher = ProfileMatcher.from_settings(client, settings)
            description = await matcher.fetch_description(user_id)
        finally:
            await client.close()

        if description is None:
            console.print("[red]Could not read the profile[/red]")
            raise typer.Exit(1)

        console.print(f"[bold]About text[/bold] ({len(description)} chars):")
        if description:
            console.print(description, markup=False)
        else:
            console.print("[dim](empty)[/dim]")

        if token:
            rule = token_in_text(token, description)
            if rule:
                console.print(f"[green]Code found[/green] by rule '{rule}'")
            else:
                console.print("[yellow]Code not found[/yellow]")

    asyncio.run(_check())
