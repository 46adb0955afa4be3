"""Shared fixtures: an in-memory stand-in for the GitHub search and profile APIs."""

from __future__ import annotations

import asyncio

import pytest

from langfinder.core.providers.base import (
    DetailProvider,
    DetailRecord,
    ProviderError,
    SearchPage,
    SearchProvider,
    SummaryRecord,
)


class FakeGitHub(SearchProvider, DetailProvider):
    """Serves `total_count` users named user1..userN, in pages.

    Records every call in issue order and the highest number of calls
    running at once.
    """

    def __init__(
        self,
        total_count: int,
        *,
        failing_users: set[str] | None = None,
        failing_pages: set[int] | None = None,
        yields: int = 2,
    ) -> None:
        self.total_count = total_count
        self.logins = [f"user{i}" for i in range(1, total_count + 1)]
        self.failing_users = failing_users or set()
        self.failing_pages = failing_pages or set()
        self.yields = yields

        self.calls: list[tuple[str, object]] = []
        self.tokens: list[str | None] = []
        self.active = 0
        self.max_active = 0
        self.closed = False

    async def _busy(self) -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            for _ in range(self.yields):
                await asyncio.sleep(0)
        finally:
            self.active -= 1

    async def search_users(self, language, page, per_page, token=None) -> SearchPage:
        self.calls.append(("page", page))
        self.tokens.append(token)
        await self._busy()
        if page in self.failing_pages:
            raise ProviderError(f"page {page} exploded")

        # GitHub never serves past the 1000th result
        visible = self.logins[:1000]
        start = (page - 1) * per_page
        items = [SummaryRecord(login) for login in visible[start:start + per_page]]
        return SearchPage(page=page, total_count=self.total_count, items=items)

    async def get_user(self, identifier, token=None) -> DetailRecord:
        self.calls.append(("user", identifier))
        await self._busy()
        if identifier in self.failing_users:
            raise ProviderError(f"lookup of {identifier} failed")
        number = int(identifier.removeprefix("user"))
        return DetailRecord(
            identifier=identifier,
            display_name=f"User {number}",
            avatar_url=f"https://avatars.example/{identifier}",
            follower_count=number * 3,
        )

    async def close(self) -> None:
        self.closed = True

    @property
    def page_calls(self) -> list[int]:
        return [arg for kind, arg in self.calls if kind == "page"]

    @property
    def user_calls(self) -> list[str]:
        return [arg for kind, arg in self.calls if kind == "user"]


@pytest.fixture
def fake_github():
    """Factory for FakeGitHub instances."""
    return FakeGitHub
