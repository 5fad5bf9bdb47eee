"""Karat CLI.

Usage:
    karat serve                    Start the API server
    karat init-db                  Create database tables
    karat classify "some text"     Run the content filter on a message
    karat mode /dashboard --auth   Show the mode resolved for a location
    karat firm set OWNER --name X  Configure an owner's firm profile
"""

import logging
import os
from typing import Optional

import typer
from rich.console import Console

from karat.cli.output import format_mode, format_verdict
from karat.config import get_config, load_config, set_config

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="karat",
    help="Conversational invoicing assistant for jewelry shops",
    no_args_is_help=True,
)
firm_app = typer.Typer(help="Manage firm profiles")
app.add_typer(firm_app, name="firm")

console = Console()

# --- Global state ---
_config_path: str | None = None


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to karat.yaml config file"
    ),
):
    """Karat CLI."""
    global _config_path
    _config_path = config
    if config:
        set_config(load_config(config_path=config))


@app.command()
def version():
    """Show the installed Karat version."""
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as pkg_version

    try:
        v = pkg_version("karat-assistant")
    except PackageNotFoundError:
        v = "unknown"
    console.print(f"[bold]Karat[/bold] v{v}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Start the Karat API server."""
    import uvicorn

    # The API process loads the same config as the CLI
    if _config_path:
        os.environ["KARAT_CONFIG_PATH"] = str(_config_path)

    console.print(f"[bold]Starting Karat API on {host}:{port}[/bold]")
    uvicorn.run("karat.api.main:app", host=host, port=port, reload=reload)


@app.command("init-db")
def init_db_cmd():
    """Create database tables."""
    from karat.db.connection import get_database_url, init_db

    init_db()
    console.print(f"[green]Database ready:[/green] {get_database_url()}")


@app.command()
def classify(
    text: str = typer.Argument(..., help="Message to classify"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Run the content filter on a message and show the verdict."""
    from karat.orchestrator.security.content_filter import classify as run_filter

    result = run_filter(text, get_config().content_filter.max_batch_count)
    output = format_verdict(text, result, as_json=as_json)
    if as_json:
        typer.echo(output)
    else:
        console.print(output, end="")
    if not result.safe:
        raise typer.Exit(1)


@app.command()
def mode(
    location: str = typer.Argument(..., help="Page path, e.g. /dashboard"),
    authenticated: bool = typer.Option(
        False, "--authenticated", "--auth", help="Resolve as a signed-in user"
    ),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show the capability mode resolved for a location."""
    from karat.orchestrator.modes.resolver import get_mode_config, resolve_mode

    resolved = resolve_mode(authenticated, location)
    output = format_mode(location, get_mode_config(resolved), as_json=as_json)
    # JSON goes out unstyled so long values are not wrapped
    if as_json:
        typer.echo(output)
    else:
        console.print(output, end="")


@firm_app.command("set")
def firm_set(
    owner_id: str = typer.Argument(..., help="Owner id (the X-User-Id value)"),
    name: Optional[str] = typer.Option(None, "--name", help="Firm name"),
    address: Optional[str] = typer.Option(None, "--address", help="Firm address"),
    phone: Optional[str] = typer.Option(None, "--phone", help="Firm phone"),
    gstin: Optional[str] = typer.Option(None, "--gstin", help="Firm GSTIN"),
):
    """Create or update an owner's firm profile."""
    from karat.db.connection import get_db_context, init_db
    from karat.services.firm_profile_service import FirmProfileService

    patch = {
        key: value
        for key, value in {
            "firm_name": name,
            "firm_address": address,
            "firm_phone": phone,
            "firm_gstin": gstin,
        }.items()
        if value is not None
    }
    if not patch:
        console.print("[yellow]Nothing to update.[/yellow]")
        raise typer.Exit(1)

    init_db()
    try:
        with get_db_context() as db:
            profile = FirmProfileService(db).upsert(owner_id, patch)
            firm_name = profile.firm_name
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]Firm profile saved:[/green] {firm_name}")


if __name__ == "__main__":
    app()
