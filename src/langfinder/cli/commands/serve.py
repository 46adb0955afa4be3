"""
Serve command: run the HTTP search endpoint with uvicorn.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
import uvicorn
from rich.console import Console

from langfinder.core.config.loader import ConfigError, load_app_config
from langfinder.core.logging import setup_logging

console = Console()
err_console = Console(stderr=True)


def serve_command(
    host: Optional[str] = typer.Option(
        None,
        "--host",
        help="Bind address (default from config)",
    ),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        help="Bind port (default from config, 3000)",
    ),
    config_path: Path = typer.Option(
        Path("configs/app.yaml"),
        "--config",
        "-c",
        help="Configuration file",
    ),
) -> None:
    """Serve GET /?lang=&size=&token= over HTTP."""
    from langfinder.api.app import create_app

    try:
        config = load_app_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1)

    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
    )

    bind_host = host or config.server.host
    bind_port = port or config.server.port
    console.print(f"[bold]Serving on[/bold] http://{bind_host}:{bind_port}/")

    uvicorn.run(
        create_app(config),
        host=bind_host,
        port=bind_port,
        log_level=config.logging.level.lower(),
    )
