"""
Search command: run one search and print the users found.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from langfinder.core.config import AppConfig, DetailFailurePolicy
from langfinder.core.config.loader import ConfigError, load_app_config
from langfinder.core.logging import json_dumps, setup_logging
from langfinder.core.orchestrator import InputError, SearchOrchestrator, SearchOutcome, SearchRequest
from langfinder.core.providers.github import GitHubClient

console = Console()
err_console = Console(stderr=True)


def search_command(
    lang: Optional[str] = typer.Option(
        None,
        "--lang",
        "-l",
        help="Language to search for",
    ),
    size: Optional[str] = typer.Option(
        None,
        "--size",
        "-n",
        help="Number of users to return (default 50, max 1000)",
    ),
    token: Optional[str] = typer.Option(
        None,
        "--token",
        "-t",
        help="GitHub access token (default: $GITHUB_TOKEN)",
    ),
    config_path: Path = typer.Option(
        Path("configs/app.yaml"),
        "--config",
        "-c",
        help="Configuration file",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the raw JSON response instead of a table",
    ),
    skip_failed: bool = typer.Option(
        False,
        "--skip-failed",
        help="Skip users whose profile lookup fails instead of aborting",
    ),
) -> None:
    """Search GitHub for users writing in a language.

    Examples:
        langfinder search --lang python
        langfinder search -l rust -n 250 --json
    """
    try:
        config = load_app_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Error loading config:[/red] {e}")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)

    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
    )

    if skip_failed:
        config.search.detail_failure_policy = DetailFailurePolicy.SKIP

    try:
        request = SearchRequest.from_params(
            lang,
            size,
            token or os.environ.get("GITHUB_TOKEN") or config.github.token,
            default_count=config.search.default_count,
        )
    except InputError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(2)

    outcome = asyncio.run(_run(request, config))

    if as_json:
        console.print_json(json_dumps(outcome.to_dict()))
    elif outcome.ok:
        _print_table(outcome, request)

    if not outcome.ok:
        err_console.print(f"[red]{outcome.message}[/red]")
        raise typer.Exit(1)


async def _run(request: SearchRequest, config: AppConfig) -> SearchOutcome:
    async with GitHubClient.from_config(config.github) as client:
        orchestrator = SearchOrchestrator.from_config(config, client)
        with console.status(f"[cyan]Searching {request.language} users...[/cyan]"):
            return await orchestrator.run(request)


def _print_table(outcome: SearchOutcome, request: SearchRequest) -> None:
    table = Table(
        title=f"{request.language} users ({len(outcome.records)})",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Login", style="cyan")
    table.add_column("Name")
    table.add_column("Followers", justify="right")
    table.add_column("Avatar", style="dim")

    for record in outcome.records:
        table.add_row(
            record.identifier,
            record.display_name or "",
            str(record.follower_count),
            record.avatar_url or "",
        )

    console.print(table)

    if outcome.skipped:
        console.print(f"[yellow]Skipped {len(outcome.skipped)}:[/yellow] {', '.join(outcome.skipped)}")
    if outcome.stats.duration_seconds is not None:
        console.print(
            f"[dim]{outcome.stats.pages_fetched} pages, "
            f"{outcome.stats.details_fetched} profiles in {outcome.stats.duration_seconds:.1f}s[/dim]"
        )
