"""
Provider base classes and data structures.

Defines the contract for the remote search and profile lookups the
orchestrator drives, the records they return, and the errors they raise.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class SummaryRecord:
    """A search hit waiting for its profile lookup."""

    identifier: str


@dataclass(frozen=True)
class DetailRecord:
    """A fully enriched user profile."""

    identifier: str
    display_name: str | None = None
    avatar_url: str | None = None
    follower_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to the public output shape."""
        return {
            "login": self.identifier,
            "name": self.display_name,
            "avatar_url": self.avatar_url,
            "followers": self.follower_count,
        }


@dataclass
class SearchPage:
    """One page of user-search results."""

    page: int
    total_count: int
    items: list[SummaryRecord] = field(default_factory=list)


class SearchProvider(ABC):
    """Paged keyword search over user accounts."""

    @abstractmethod
    async def search_users(
        self,
        language: str,
        page: int,
        per_page: int,
        token: str | None = None,
    ) -> SearchPage:
        """Fetch one page of users writing in a language.

        Args:
            language: Language filter, passed through verbatim
            page: 1-based page number
            per_page: Page size (at most 100)
            token: Access token, opaque to the caller

        Returns:
            SearchPage with the provider's total match count and the hits

        Raises:
            ProviderError: On any failure
        """

    async def close(self) -> None:
        """Clean up provider resources."""

    async def __aenter__(self) -> "SearchProvider":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


class DetailProvider(ABC):
    """Per-user profile lookup."""

    @abstractmethod
    async def get_user(self, identifier: str, token: str | None = None) -> DetailRecord:
        """Fetch the profile of one user.

        Raises:
            ProviderError: On any failure
        """


class ProviderError(Exception):
    """Base exception for remote provider failures."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.cause = cause


class TransientProviderError(ProviderError):
    """Server-side failure (5xx) worth retrying."""
    pass


class MalformedResponseError(ProviderError):
    """Response body missing, not JSON, or missing required fields."""
    pass


class RateLimitError(ProviderError):
    """Rate limit hit (429, or 403 with no quota left)."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int = 429,
        retry_after: float | None = None,
    ):
        super().__init__(message, url, status_code=status_code)
        self.retry_after = retry_after
