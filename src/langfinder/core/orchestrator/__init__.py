"""Orchestrator - paged search and profile fan-out under one call budget."""

from .runner import ResultSink, SearchOrchestrator, search_users
from .state import (
    InputError,
    OrchestrationState,
    PageWindow,
    RunStats,
    RunStatus,
    SearchAck,
    SearchOutcome,
    SearchRequest,
    check_status,
    clamp_record_count,
)

__all__ = [
    "SearchOrchestrator",
    "ResultSink",
    "search_users",
    "InputError",
    "OrchestrationState",
    "PageWindow",
    "RunStats",
    "RunStatus",
    "SearchAck",
    "SearchOutcome",
    "SearchRequest",
    "check_status",
    "clamp_record_count",
]
