"""
HTTP entry point.

GET /?lang=<language>&size=<count>&token=<token>

Starts a search run and answers with its outcome once the run hands it
back. Missing parameters are rejected before any GitHub call is made.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from langfinder import __app_name__, __version__
from langfinder.core.config.models import AppConfig
from langfinder.core.logging import get_logger
from langfinder.core.orchestrator import (
    InputError,
    ResultSink,
    SearchOrchestrator,
    SearchOutcome,
    SearchRequest,
)
from langfinder.core.providers.base import DetailProvider, SearchProvider
from langfinder.core.providers.github import GitHubClient

logger = get_logger("api")


def future_sink(future: asyncio.Future[SearchOutcome]) -> ResultSink:
    """Build a sink that resolves a future, ignoring it once cancelled."""

    def resolve(outcome: SearchOutcome) -> None:
        if not future.done():
            future.set_result(outcome)

    return resolve


def create_app(
    config: AppConfig | None = None,
    search_provider: SearchProvider | None = None,
    detail_provider: DetailProvider | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Application config (defaults apply when omitted)
        search_provider: Search provider to use instead of a GitHub client
        detail_provider: Profile provider (defaults to the search provider)

    Returns:
        Configured FastAPI app
    """
    config = config or AppConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        provider = search_provider
        owned: GitHubClient | None = None
        if provider is None:
            owned = GitHubClient.from_config(config.github)
            provider = owned

        app.state.orchestrator = SearchOrchestrator.from_config(config, provider, detail_provider)
        logger.info(f"{__app_name__} {__version__} ready")
        try:
            yield
        finally:
            await app.state.orchestrator.wait_idle()
            if owned is not None:
                await owned.close()

    app = FastAPI(
        title=__app_name__,
        version=__version__,
        description="Find GitHub users by programming language",
        lifespan=lifespan,
    )
    app.state.config = config

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": __app_name__, "version": __version__}

    @app.get("/")
    async def search(
        request: Request,
        lang: str | None = None,
        size: str | None = None,
        token: str | None = None,
    ) -> JSONResponse:
        """Search GitHub users writing in a language."""
        try:
            search_request = SearchRequest.from_params(
                lang,
                size,
                token,
                default_count=config.search.default_count,
            )
        except InputError as e:
            logger.warning(str(e))
            return JSONResponse(status_code=400, content={"status": "error", "message": str(e)})

        orchestrator: SearchOrchestrator = request.app.state.orchestrator
        delivered: asyncio.Future[SearchOutcome] = asyncio.get_running_loop().create_future()

        ack = orchestrator.start(search_request, future_sink(delivered))
        logger.info(f"{ack.message} run={ack.run_id} lang={search_request.language}")

        outcome = await delivered
        status_code = 200 if outcome.ok else 502
        return JSONResponse(status_code=status_code, content=outcome.to_dict())

    return app
