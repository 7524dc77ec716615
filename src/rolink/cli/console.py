"""Interactive bot console.

Drives the command dispatcher in-process, without a Discord connection, so
the verification flow can be exercised against real Roblox endpoints.
"""

import asyncio

import typer
from rich.console import Console
from rich.panel import Panel

from rolink.bot import BotRuntime, InteractionContext, Reply
from rolink.config import settings
from rolink.database import async_session_factory

console = Console()

HELP = (
    "[dim]Type a slash command ([cyan]/verify Builderman[/cyan]), a button id in brackets "
    "([cyan][verify_check][/cyan]), a prefix message ([cyan]!done[/cyan]) or [cyan]quit[/cyan].[/dim]"
)

# Which option each slash command's single argument fills
SLASH_OPTIONS = {
    "verify": "username",
    "reverify": "username",
    "allowid": "server_id",
    "disallowid": "server_id",
}


async def _sync_nickname(handle: str) -> str:
    console.print(f"[dim](nickname set to {handle})[/dim]")
    return "Your nickname has been updated to match your Roblox username."


def render(reply: Reply | None) -> None:
    if reply is None:
        console.print("[dim](no reply)[/dim]")
        return
    if reply.content:
        console.print(reply.content, markup=False)
    if reply.embed:
        console.print(Panel(reply.embed.description, title=reply.embed.title, border_style="blue"))
    for button in reply.buttons:
        console.print(f"[bold][{button.custom_id}][/bold] {button.label}")


async def dispatch(runtime: BotRuntime, ctx: InteractionContext, line: str) -> Reply | None:
    dispatcher = runtime.dispatcher
    if line.startswith("/"):
        name, _, arg = line[1:].partition(" ")
        options = {}
        if name in SLASH_OPTIONS and arg.strip():
            options[SLASH_OPTIONS[name]] = arg.strip()
        return await dispatcher.handle_slash_command(ctx, name, options)
    if line.startswith("[") and line.endswith("]"):
        return await dispatcher.handle_button(ctx, line[1:-1])
    return await dispatcher.handle_message(ctx, line)


def run(
    user_id: str = typer.Option(..., "--user-id", "-u", help="Discord user ID to act as"),
    server_id: str = typer.Option(..., "--server-id", "-s", help="Discord server ID to act in"),
):
    """Start an interactive session with the bot."""

    async def _run():
        runtime = BotRuntime.create(settings, async_session_factory)
        ctx = InteractionContext(
            user_id=user_id,
            server_id=server_id,
            user_tag=f"console-{user_id}",
            nickname_sync=_sync_nickname,
        )
        console.print(HELP)
        try:
            while True:
                line = (await asyncio.to_thread(console.input, "[bold]> [/bold]")).strip()
                if line in ("quit", "exit"):
                    break
                if line:
                    render(await dispatch(runtime, ctx, line))
        except (EOFError, KeyboardInterrupt):
            pass
        finally:
            await runtime.stop()

    asyncio.run(_run())
