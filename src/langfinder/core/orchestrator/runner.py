"""
Search orchestrator.

Drives the two-stage pipeline for one search: paginate the user search,
then look up each hit's profile, with both stages sharing one budget of
in-flight API calls.
"""

from __future__ import annotations

import asyncio
import inspect
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from langfinder.core.config.models import DetailFailurePolicy
from langfinder.core.logging import get_contextual_logger
from langfinder.core.providers.base import (
    DetailProvider,
    DetailRecord,
    ProviderError,
    SearchPage,
    SearchProvider,
)

from .state import (
    DEFAULT_CONCURRENCY_LIMIT,
    PROCESSING_MESSAGE,
    OrchestrationState,
    PageWindow,
    RunStats,
    RunStatus,
    SearchAck,
    SearchOutcome,
    SearchRequest,
    check_status,
)

if TYPE_CHECKING:
    from langfinder.core.config.models import AppConfig
    from langfinder.core.logging import ContextualLogger


ResultSink = Callable[[SearchOutcome], Union[Awaitable[Any], Any]]


@dataclass(frozen=True)
class _PageCall:
    page: int


@dataclass(frozen=True)
class _DetailCall:
    identifier: str


class SearchOrchestrator:
    """Runs user searches against a search provider and a detail provider.

    Scheduling:
    - Page 1 is issued alone; its total count bounds every later page
    - After that, outstanding pages are issued before pending profiles
    - Every completion frees a slot and triggers a fresh issuing pass
    - Any page failure, and by default any profile failure, aborts the run
    """

    def __init__(
        self,
        search_provider: SearchProvider,
        detail_provider: DetailProvider | None = None,
        *,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
        detail_failure_policy: DetailFailurePolicy = DetailFailurePolicy.ABORT,
        run_timeout: float | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            search_provider: Paged user search
            detail_provider: Profile lookup (defaults to search_provider)
            concurrency_limit: Max calls in flight across both stages
            detail_failure_policy: Abort the run or skip the user when a
                profile lookup fails
            run_timeout: Overall deadline per run in seconds
        """
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")

        if detail_provider is None:
            if not isinstance(search_provider, DetailProvider):
                raise TypeError("detail_provider is required when search_provider cannot look up users")
            detail_provider = search_provider

        self.search_provider = search_provider
        self.detail_provider = detail_provider
        self.concurrency_limit = concurrency_limit
        self.detail_failure_policy = DetailFailurePolicy(detail_failure_policy)
        self.run_timeout = run_timeout

        # Background runs started with start(); kept so they are not collected
        self._background: set[asyncio.Task[None]] = set()

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        search_provider: SearchProvider,
        detail_provider: DetailProvider | None = None,
    ) -> "SearchOrchestrator":
        """Create an orchestrator using the search section of app config."""
        return cls(
            search_provider,
            detail_provider,
            concurrency_limit=config.search.concurrency_limit,
            detail_failure_policy=config.search.detail_failure_policy,
            run_timeout=config.search.run_timeout_seconds,
        )

    # -------------------------------------------------------------------------
    # Public entry points
    # -------------------------------------------------------------------------

    def start(self, request: SearchRequest, sink: ResultSink) -> SearchAck:
        """Launch a search in the background and return at once.

        The outcome is handed to sink when the run ends. Must be called
        from inside a running event loop.
        """
        run_id = uuid.uuid4().hex[:12]
        task = asyncio.get_running_loop().create_task(self._deliver(request, sink, run_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return SearchAck(run_id=run_id, message=PROCESSING_MESSAGE)

    async def run(self, request: SearchRequest, run_id: str | None = None) -> SearchOutcome:
        """Execute a search and return its outcome.

        Provider failures never raise out of here; they come back as an
        error outcome.
        """
        run_id = run_id or uuid.uuid4().hex[:12]
        log = get_contextual_logger("orchestrator", language=request.language, run_id=run_id)
        stats = RunStats()

        try:
            if self.run_timeout is not None:
                outcome = await asyncio.wait_for(
                    self._drive(request, stats, log),
                    timeout=self.run_timeout,
                )
            else:
                outcome = await self._drive(request, stats, log)
        except asyncio.TimeoutError:
            message = f"Error: search timed out after {self.run_timeout}s"
            log.error(message)
            outcome = SearchOutcome.failure(message, stats=stats)

        stats.finished_at = datetime.now(timezone.utc)
        return outcome

    async def wait_idle(self) -> None:
        """Wait for every background run started with start() to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Driving loop
    # -------------------------------------------------------------------------

    async def _deliver(self, request: SearchRequest, sink: ResultSink, run_id: str) -> None:
        outcome = await self.run(request, run_id=run_id)
        delivered = sink(outcome)
        if inspect.isawaitable(delivered):
            await delivered

    async def _drive(
        self,
        request: SearchRequest,
        stats: RunStats,
        log: ContextualLogger,
    ) -> SearchOutcome:
        state = OrchestrationState(request=request, window=PageWindow.for_count(request.requested_count))
        tasks: dict[asyncio.Task[Any], _PageCall | _DetailCall] = {}

        log.info(
            f"Searching {request.requested_count} users: "
            f"page_size={state.window.page_size}, pages<={state.window.total_pages}"
        )

        try:
            while True:
                if state.error is None:
                    self._issue(state, tasks)

                if check_status(state) is not RunStatus.RUNNING:
                    break
                if not tasks:
                    state.error = "Error: search stalled with no calls in flight"
                    log.error(state.error)
                    break

                done, _ = await asyncio.wait(tasks.keys(), return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    call = tasks.pop(task)
                    state.call_finished()
                    self._complete(state, call, task, log)
                    if state.error is not None:
                        break
        finally:
            await self._cancel(tasks, state)

        stats.pages_fetched = state.pages_resolved
        stats.details_fetched = len(state.results)
        stats.details_skipped = len(state.skipped)
        stats.max_in_flight = state.max_in_flight

        if state.error is not None:
            return SearchOutcome.failure(state.error, stats=stats)

        log.info(
            f"Search finished: {len(state.results)} users from {state.pages_resolved} pages"
            + (f", {len(state.skipped)} skipped" if state.skipped else "")
        )
        return SearchOutcome.success(state.results, skipped=state.skipped, stats=stats)

    def _issue(
        self,
        state: OrchestrationState,
        tasks: dict[asyncio.Task[Any], _PageCall | _DetailCall],
    ) -> None:
        """Issue every call the budget allows, pages before profiles."""
        request = state.request

        while state.in_flight < self.concurrency_limit:
            if state.can_issue_page:
                state.pages_issued += 1
                page = state.pages_issued
                coro = self.search_provider.search_users(
                    request.language,
                    page,
                    state.window.page_size,
                    request.token,
                )
                call: _PageCall | _DetailCall = _PageCall(page=page)
            elif state.pending_summaries:
                # Dequeued at issue time so no user is looked up twice
                summary = state.pending_summaries.popleft()
                coro = self.detail_provider.get_user(summary.identifier, request.token)
                call = _DetailCall(identifier=summary.identifier)
            else:
                break

            state.call_started()
            tasks[asyncio.create_task(coro)] = call

    def _complete(
        self,
        state: OrchestrationState,
        call: _PageCall | _DetailCall,
        task: asyncio.Task[Any],
        log: ContextualLogger,
    ) -> None:
        """Fold one finished call into the run state."""
        try:
            result = task.result()
        except ProviderError as e:
            self._fail(state, call, e, log)
            return
        except Exception as e:
            self._fail(state, call, ProviderError(str(e) or type(e).__name__, cause=e), log)
            return

        if isinstance(call, _PageCall):
            self._page_done(state, call.page, result, log)
        else:
            self._detail_done(state, result)

    def _page_done(
        self,
        state: OrchestrationState,
        page_number: int,
        page: SearchPage,
        log: ContextualLogger,
    ) -> None:
        state.pages_resolved += 1

        if page_number == 1 and not state.window_revised:
            before = state.window.total_pages
            state.window = state.window.revised(page.total_count)
            state.window_revised = True
            log.debug(
                f"GitHub reports {page.total_count} matches; "
                f"pages {before} -> {state.window.total_pages}"
            )

        if not page.items:
            state.paging_closed = True

        accepted = state.accept_summaries(page.items)
        log.debug(
            f"Page {page_number}: {len(page.items)} users, {accepted} kept",
            extra={"page": page_number, "in_flight": state.in_flight},
        )

    def _detail_done(self, state: OrchestrationState, record: DetailRecord) -> None:
        state.results.append(record)

    def _fail(
        self,
        state: OrchestrationState,
        call: _PageCall | _DetailCall,
        error: ProviderError,
        log: ContextualLogger,
    ) -> None:
        if isinstance(call, _DetailCall) and self.detail_failure_policy is DetailFailurePolicy.SKIP:
            state.skipped.append(call.identifier)
            log.warning(
                f"Skipping {call.identifier}: {error}",
                extra={"identifier": call.identifier},
            )
            return

        if isinstance(call, _PageCall):
            log.error(f"Page {call.page} failed: {error}", extra={"page": call.page})
        else:
            log.error(f"Profile lookup for {call.identifier} failed: {error}", extra={"identifier": call.identifier})
        state.error = f"Error: {error}"

    async def _cancel(
        self,
        tasks: dict[asyncio.Task[Any], _PageCall | _DetailCall],
        state: OrchestrationState,
    ) -> None:
        """Cancel and reap calls still in flight; their results are dropped."""
        if not tasks:
            return
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for _ in tasks:
            state.call_finished()
        tasks.clear()


async def search_users(
    language: str | None,
    size: Any = None,
    token: str | None = None,
    *,
    config: AppConfig | None = None,
) -> SearchOutcome:
    """Convenience function: run one search against GitHub.

    Args:
        language: Language to search for
        size: Requested number of records
        token: GitHub access token (falls back to config)
        config: Application config (defaults apply when omitted)

    Returns:
        SearchOutcome with records or an error message

    Raises:
        InputError: If language is missing
    """
    from langfinder.core.config.models import AppConfig
    from langfinder.core.providers.github import GitHubClient

    config = config or AppConfig()
    request = SearchRequest.from_params(
        language,
        size,
        token or config.github.token,
        default_count=config.search.default_count,
        require_token=False,
    )

    async with GitHubClient.from_config(config.github) as client:
        orchestrator = SearchOrchestrator.from_config(config, client)
        return await orchestrator.run(request)
