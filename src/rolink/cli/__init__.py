"""CLI commands using Typer."""

import typer

from rolink.cli.console import run as console_command
from rolink.cli.db import app as db_app
from rolink.cli.roblox import app as roblox_app
from rolink.cli.servers import app as servers_app
from rolink.cli.users import app as users_app
from rolink.logging import setup_logging

app = typer.Typer(name="rolink", help="Rolink CLI")

# Register sub-apps
app.add_typer(db_app, name="db")
app.add_typer(servers_app, name="servers")
app.add_typer(users_app, name="users")
app.add_typer(roblox_app, name="roblox")
app.command("console")(console_command)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Discord to Roblox account verification."""
    setup_logging("DEBUG" if verbose else None)


@app.command()
def version():
    """Show version information."""
    from rolink import __version__

    typer.echo(f"Rolink v{__version__}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
):
    """Run the API server and bot runtime."""
    import uvicorn

    from rolink.logging import get_uvicorn_log_config

    uvicorn.run(
        "rolink.main:app",
        host=host,
        port=port,
        reload=reload,
        log_config=get_uvicorn_log_config(),
    )


if __name__ == "__main__":
    app()
