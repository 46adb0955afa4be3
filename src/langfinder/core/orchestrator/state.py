"""
Search run state.

Holds the request, the page window and the mutable bookkeeping of one
orchestration, plus the terminal-state check the runner consults after
every completion event.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from langfinder.core.providers.base import DetailRecord, SummaryRecord

DEFAULT_RECORD_COUNT = 50
# GitHub serves at most 1000 results for a single search query
SEARCH_RESULT_CEILING = 1000
MAX_PAGE_SIZE = 100
DEFAULT_CONCURRENCY_LIMIT = 1010

PROCESSING_MESSAGE = "Processing request..."
LANGUAGE_MISSING_MESSAGE = "Error: Language (lang) not defined"
TOKEN_MISSING_MESSAGE = "Error: Access token (token) not defined"


class InputError(ValueError):
    """Missing or invalid search parameters."""
    pass


class RunStatus(str, Enum):
    """Where a search run stands."""

    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


def clamp_record_count(value: Any, default: int = DEFAULT_RECORD_COUNT) -> int:
    """Turn a raw size parameter into a record count in [1, 1000].

    Missing, non-numeric, NaN and negative values fall back to the default.
    Fractions are floored.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or number < 0:
        return default
    if number > SEARCH_RESULT_CEILING:
        return SEARCH_RESULT_CEILING
    return max(1, math.floor(number))


@dataclass(frozen=True)
class SearchRequest:
    """A validated search request."""

    language: str
    requested_count: int = DEFAULT_RECORD_COUNT
    token: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.language:
            raise InputError(LANGUAGE_MISSING_MESSAGE)
        object.__setattr__(self, "requested_count", clamp_record_count(self.requested_count))

    @classmethod
    def from_params(
        cls,
        language: str | None,
        size: Any = None,
        token: str | None = None,
        *,
        default_count: int = DEFAULT_RECORD_COUNT,
        require_token: bool = True,
    ) -> "SearchRequest":
        """Build a request from raw inbound parameters.

        Args:
            language: Language to search for (required)
            size: Requested number of records, any type
            token: GitHub access token
            default_count: Count used when size is missing or invalid
            require_token: Reject requests without a token

        Raises:
            InputError: If language (or a required token) is missing
        """
        if language is None or not str(language).strip():
            raise InputError(LANGUAGE_MISSING_MESSAGE)
        if require_token and not token:
            raise InputError(TOKEN_MISSING_MESSAGE)
        return cls(
            language=str(language),
            requested_count=clamp_record_count(size, default=default_count),
            token=token or None,
        )


@dataclass(frozen=True)
class PageWindow:
    """Page size and page count for a search."""

    page_size: int
    total_pages: int

    @classmethod
    def for_count(cls, requested_count: int) -> "PageWindow":
        """Initial window, before the provider has reported its total."""
        page_size = min(MAX_PAGE_SIZE, requested_count)
        return cls(page_size=page_size, total_pages=math.ceil(requested_count / page_size))

    def revised(self, total_count: int) -> "PageWindow":
        """Shrink the window to what the provider can actually serve."""
        available_pages = math.ceil(max(0, total_count) / self.page_size)
        ceiling_pages = math.ceil(SEARCH_RESULT_CEILING / self.page_size)
        return PageWindow(
            page_size=self.page_size,
            total_pages=min(self.total_pages, available_pages, ceiling_pages),
        )


@dataclass
class OrchestrationState:
    """Mutable bookkeeping for a single search run.

    Owned by the runner's driving coroutine; nothing else writes to it.
    """

    request: SearchRequest
    window: PageWindow
    pending_summaries: deque[SummaryRecord] = field(default_factory=deque)
    in_flight: int = 0
    max_in_flight: int = 0
    found_count: int = 0
    pages_issued: int = 0
    pages_resolved: int = 0
    window_revised: bool = False
    # Set once no further page will be issued (cap reached or empty page)
    paging_closed: bool = False
    results: list[DetailRecord] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def all_pages_issued(self) -> bool:
        return self.paging_closed or self.pages_issued >= self.window.total_pages

    @property
    def can_issue_page(self) -> bool:
        """True if another page may be issued now.

        Page 1 goes out alone; later pages wait until its total is known.
        """
        if self.all_pages_issued:
            return False
        return self.pages_issued == 0 or self.window_revised

    def accept_summaries(self, items: list[SummaryRecord]) -> int:
        """Queue search hits up to the record cap.

        Returns:
            Number of items accepted
        """
        accepted = 0
        for item in items:
            if self.found_count >= self.request.requested_count:
                break
            self.pending_summaries.append(item)
            self.found_count += 1
            accepted += 1

        if self.found_count >= self.request.requested_count:
            self.paging_closed = True
        return accepted

    def call_started(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)

    def call_finished(self) -> None:
        self.in_flight -= 1


def check_status(state: OrchestrationState) -> RunStatus:
    """Decide whether a run is still going, finished or failed.

    A run is done exactly when every page it will ever issue has been
    issued and resolved, no summary waits for its profile, and no call is
    in flight.
    """
    if state.error is not None:
        return RunStatus.FAILED
    if (
        state.all_pages_issued
        and state.pages_resolved == state.pages_issued
        and not state.pending_summaries
        and state.in_flight == 0
    ):
        return RunStatus.DONE
    return RunStatus.RUNNING


@dataclass
class RunStats:
    """Statistics for a search run."""

    pages_fetched: int = 0
    details_fetched: int = 0
    details_skipped: int = 0
    max_in_flight: int = 0

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        """Get run duration in seconds."""
        if self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "pages_fetched": self.pages_fetched,
            "details_fetched": self.details_fetched,
            "details_skipped": self.details_skipped,
            "max_in_flight": self.max_in_flight,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class SearchOutcome:
    """What the result sink receives: every record, or one error."""

    status: str
    records: list[DetailRecord] = field(default_factory=list)
    message: str | None = None
    skipped: list[str] = field(default_factory=list)
    stats: RunStats = field(default_factory=RunStats)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @classmethod
    def success(
        cls,
        records: list[DetailRecord],
        skipped: list[str] | None = None,
        stats: RunStats | None = None,
    ) -> "SearchOutcome":
        return cls(status="ok", records=list(records), skipped=list(skipped or []), stats=stats or RunStats())

    @classmethod
    def failure(cls, message: str, stats: RunStats | None = None) -> "SearchOutcome":
        return cls(status="error", message=message, stats=stats or RunStats())

    def to_dict(self) -> dict[str, Any]:
        """Convert to the public response body."""
        if not self.ok:
            return {"status": "error", "message": self.message}
        body: dict[str, Any] = {
            "status": "ok",
            "records": [record.to_dict() for record in self.records],
        }
        if self.skipped:
            body["skipped"] = list(self.skipped)
        return body


@dataclass(frozen=True)
class SearchAck:
    """Immediate answer from SearchOrchestrator.start()."""

    run_id: str
    accepted: bool = True
    message: str = PROCESSING_MESSAGE
