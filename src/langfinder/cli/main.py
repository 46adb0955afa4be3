"""
langfinder CLI - Main entry point.

Search GitHub users by language from the terminal, or serve the same
search over HTTP.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.traceback import install as install_rich_traceback

from langfinder import __app_name__, __version__

# Load environment variables from .env (if present)
load_dotenv()

# Install rich traceback for better error display
install_rich_traceback(show_locals=False, width=120)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name=__app_name__,
    help="Find GitHub users by programming language",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """langfinder - GitHub users by language."""
    pass


# =============================================================================
# Register command modules
# =============================================================================

from .commands import search, serve  # noqa: E402

app.command("search")(search.search_command)
app.command("serve")(serve.serve_command)


# =============================================================================
# Init Command
# =============================================================================


@app.command()
def init(
    config_path: Path = typer.Option(
        Path("configs/app.yaml"),
        "--config",
        "-c",
        help="Where to write the configuration file",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration",
    ),
) -> None:
    """Write a default configuration file."""
    from langfinder.core.config.loader import write_default_app_config

    existed = config_path.exists()
    write_default_app_config(config_path, force=force)

    if existed and not force:
        console.print(f"[yellow]{config_path} already exists[/yellow] (use --force to overwrite)")
        return

    console.print(Panel.fit(
        f"[bold green]OK - wrote {config_path}[/bold green]\n\n"
        "Next steps:\n"
        "  1. Export a token: [yellow]export GITHUB_TOKEN=...[/yellow]\n"
        "  2. Search: [yellow]langfinder search --lang python --size 20[/yellow]\n"
        "  3. Serve: [yellow]langfinder serve[/yellow]",
        title="[bold]Initialization Complete[/bold]",
        border_style="green",
    ))


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
