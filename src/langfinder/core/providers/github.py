"""
GitHub REST API client using httpx.

Implements both provider contracts over a single pooled client:
- user search (GET /search/users)
- profile lookup (GET /users/{login})

Transient failures are retried with exponential backoff; everything else
surfaces as a ProviderError.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import httpx

from langfinder import __app_name__, __version__
from langfinder.core.fetch.retries import RetryConfig, retry_async

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

if TYPE_CHECKING:
    from langfinder.core.config.models import GitHubConfig


DEFAULT_API_URL = "https://api.github.com"

# Status codes that should trigger retry
RETRY_STATUS_CODES = {500, 502, 503, 504}

# Search ordering used for every query
SEARCH_SORT = "created"
SEARCH_ORDER = "asc"


def build_user_query(language: str) -> str:
    """Build the search qualifier string for users writing in a language."""
    return f"language:{language} type:user"


class GitHubClient(SearchProvider, DetailProvider):
    """GitHub API client.

    Features:
    - Persistent connection pooling
    - Per-call access token
    - Retry with exponential backoff on transport errors, 5xx and 429
    - Rate limit detection
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_backoff: float = 2.0,
        retry_min_wait: float = 1.0,
        retry_max_wait: float = 30.0,
        max_connections: int = 100,
        user_agent: str | None = None,
        default_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the GitHub client.

        Args:
            base_url: API root
            timeout: Per-request timeout in seconds
            max_retries: Maximum attempts per call
            retry_backoff: Exponential backoff multiplier
            retry_min_wait: Shortest backoff wait in seconds
            retry_max_wait: Longest single backoff wait in seconds
            max_connections: Connection pool size
            user_agent: Custom user agent
            default_token: Token used when a call passes none
            transport: Custom httpx transport (tests use MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.max_connections = max_connections
        self.default_token = default_token
        self._transport = transport

        self.default_headers = {
            "User-Agent": user_agent or f"{__app_name__}/{__version__}",
            "Accept": "application/vnd.github+json",
        }

        self.retry_config = RetryConfig(
            max_attempts=max_retries,
            min_wait=retry_min_wait,
            max_wait=retry_max_wait,
            multiplier=retry_backoff,
            retry_exceptions=(httpx.TransportError, TransientProviderError, RateLimitError),
        )

        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(
        cls,
        config: GitHubConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "GitHubClient":
        """Create a client from GitHub configuration."""
        return cls(
            base_url=config.api_url,
            timeout=config.timeout_seconds,
            max_retries=config.max_retries,
            retry_backoff=config.retry_backoff_factor,
            retry_max_wait=config.retry_max_wait_seconds,
            max_connections=config.max_connections,
            user_agent=config.user_agent,
            default_token=config.token,
            transport=transport,
        )

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers=self.default_headers,
                transport=self._transport,
                limits=httpx.Limits(
                    max_connections=self.max_connections,
                    max_keepalive_connections=min(self.max_connections, 20),
                ),
            )
        return self._client

    def _auth_headers(self, token: str | None) -> dict[str, str]:
        token = token or self.default_token
        if not token:
            return {}
        return {"Authorization": f"token {token}"}

    def _check_rate_limit(self, response: httpx.Response) -> None:
        """Raise RateLimitError on 429, or 403 with the quota used up."""
        exhausted = (
            response.status_code == 403
            and response.headers.get("X-RateLimit-Remaining") == "0"
        )
        if response.status_code != 429 and not exhausted:
            return

        retry_seconds = None
        retry_after = response.headers.get("Retry-After")
        reset_at = response.headers.get("X-RateLimit-Reset")
        try:
            if retry_after:
                retry_seconds = float(retry_after)
            elif reset_at:
                retry_seconds = max(0.0, float(reset_at) - time.time())
        except ValueError:
            pass

        raise RateLimitError(
            "GitHub rate limit exceeded",
            url=str(response.request.url),
            status_code=response.status_code,
            retry_after=retry_seconds,
        )

    def _check_status(self, response: httpx.Response) -> None:
        """Map error status codes onto provider errors."""
        if response.is_success:
            return

        message = _error_message(response)
        url = str(response.request.url)

        if response.status_code in RETRY_STATUS_CODES:
            raise TransientProviderError(
                f"GitHub returned {response.status_code}: {message}",
                url=url,
                status_code=response.status_code,
            )
        raise ProviderError(
            f"GitHub returned {response.status_code}: {message}",
            url=url,
            status_code=response.status_code,
        )

    async def _send(
        self,
        client: httpx.AsyncClient,
        path: str,
        params: dict[str, Any] | None,
        headers: dict[str, str],
    ) -> httpx.Response:
        response = await client.get(path, params=params, headers=headers)
        self._check_rate_limit(response)
        self._check_status(response)
        return response

    async def _get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        token: str | None = None,
    ) -> Any:
        """GET a path and decode the JSON body, retrying transient failures.

        Raises:
            ProviderError: On transport failure, error status, or bad body
        """
        client = await self._ensure_client()
        url = f"{self.base_url}{path}"

        try:
            response = await retry_async(
                self._send,
                client,
                path,
                params,
                self._auth_headers(token),
                config=self.retry_config,
            )
        except httpx.TransportError as e:
            raise ProviderError(
                f"Transport error after {self.max_retries} attempts: {e}",
                url=url,
                cause=e,
            ) from e

        if not response.content:
            raise MalformedResponseError("Empty response body", url=url, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Response is not valid JSON: {e}",
                url=url,
                status_code=response.status_code,
                cause=e,
            ) from e

        if body is None:
            raise MalformedResponseError("Null response body", url=url, status_code=response.status_code)
        return body

    async def search_users(
        self,
        language: str,
        page: int,
        per_page: int,
        token: str | None = None,
    ) -> SearchPage:
        """Fetch one page of users writing in a language."""
        params = {
            "q": build_user_query(language),
            "sort": SEARCH_SORT,
            "order": SEARCH_ORDER,
            "page": page,
            "per_page": per_page,
        }
        body = await self._get_json("/search/users", params=params, token=token)

        url = f"{self.base_url}/search/users"
        if not isinstance(body, dict):
            raise MalformedResponseError("Search response is not an object", url=url)

        total_count = body.get("total_count")
        items = body.get("items")
        if not isinstance(total_count, int) or not isinstance(items, list):
            raise MalformedResponseError(
                "Search response lacks total_count or items",
                url=url,
            )

        summaries = []
        for item in items:
            login = item.get("login") if isinstance(item, dict) else None
            if not login:
                raise MalformedResponseError("Search item without login", url=url)
            summaries.append(SummaryRecord(identifier=login))

        return SearchPage(page=page, total_count=total_count, items=summaries)

    async def get_user(self, identifier: str, token: str | None = None) -> DetailRecord:
        """Fetch the profile of one user."""
        if not identifier:
            raise ValueError("identifier must be non-empty")

        path = f"/users/{identifier}"
        body = await self._get_json(path, token=token)

        if not isinstance(body, dict) or not body.get("login"):
            raise MalformedResponseError(
                "Profile response lacks login",
                url=f"{self.base_url}{path}",
            )

        return DetailRecord(
            identifier=body["login"],
            display_name=body.get("name"),
            avatar_url=body.get("avatar_url"),
            follower_count=body.get("followers") or 0,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


def _error_message(response: httpx.Response) -> str:
    """Pull GitHub's error message out of a response, if it sent one."""
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or "error"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase or "error"
