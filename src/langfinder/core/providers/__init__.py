"""Remote providers for user search and profile lookup."""

from .base import (
    DetailProvider,
    DetailRecord,
    MalformedResponseError,
    ProviderError,
    RateLimitError,
    SearchPage,
    SearchProvider,
    SummaryRecord,
    TransientProviderError,
)
from .github import GitHubClient, build_user_query

__all__ = [
    # Base classes
    "SearchProvider",
    "DetailProvider",
    "SearchPage",
    "SummaryRecord",
    "DetailRecord",
    # Errors
    "ProviderError",
    "TransientProviderError",
    "MalformedResponseError",
    "RateLimitError",
    # GitHub
    "GitHubClient",
    "build_user_query",
]
