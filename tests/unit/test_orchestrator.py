"""
Tests for SearchOrchestrator: paging, profile fan-out, the shared call
budget, termination and failure handling.
"""

import asyncio

import pytest

from langfinder.core.config.models import AppConfig, DetailFailurePolicy
from langfinder.core.orchestrator import (
    InputError,
    SearchOrchestrator,
    SearchOutcome,
    SearchRequest,
)


def _logins(outcome: SearchOutcome) -> set[str]:
    return {record.identifier for record in outcome.records}


# =============================================================================
# Reference scenarios
# =============================================================================


class TestScenarios:
    """End-to-end runs against the in-memory GitHub."""

    @pytest.mark.asyncio
    async def test_small_request_fits_in_one_page(self, fake_github) -> None:
        github = fake_github(3000)
        outcome = await SearchOrchestrator(github).run(SearchRequest("python", 50, "tok"))

        assert outcome.ok
        assert len(outcome.records) == 50
        assert github.page_calls == [1]

    @pytest.mark.asyncio
    async def test_pages_shrink_to_available_matches(self, fake_github) -> None:
        github = fake_github(180)
        outcome = await SearchOrchestrator(github).run(SearchRequest("python", 250, "tok"))

        assert outcome.ok
        assert len(outcome.records) == 180
        assert sorted(github.page_calls) == [1, 2]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("total", [600, 5000])
    async def test_oversized_request_is_clamped_to_ceiling(self, fake_github, total: int) -> None:
        github = fake_github(total)
        request = SearchRequest.from_params("python", "2000", "tok")
        assert request.requested_count == 1000

        outcome = await SearchOrchestrator(github).run(request)

        assert outcome.ok
        assert len(outcome.records) == min(1000, total)
        assert len(github.page_calls) <= 10

    @pytest.mark.asyncio
    async def test_failed_profile_lookup_aborts_without_partial_results(self, fake_github) -> None:
        github = fake_github(100, failing_users={"user3"})
        outcome = await SearchOrchestrator(github).run(SearchRequest("python", 10, "tok"))

        assert not outcome.ok
        assert outcome.records == []
        assert "user3" in outcome.message
        assert outcome.to_dict() == {"status": "error", "message": outcome.message}

    def test_missing_language_fails_before_any_call(self, fake_github) -> None:
        github = fake_github(100)

        with pytest.raises(InputError):
            SearchRequest.from_params(None, "10", "tok")

        assert github.calls == []


# =============================================================================
# Record counts and paging
# =============================================================================


class TestPaging:
    """Record cap and page window behaviour."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "requested,total",
        [(1, 1), (7, 3), (100, 100), (150, 5000), (250, 180), (999, 2000), (1000, 1000)],
    )
    async def test_result_count_is_min_of_request_matches_and_ceiling(
        self, fake_github, requested: int, total: int
    ) -> None:
        github = fake_github(total)
        outcome = await SearchOrchestrator(github).run(SearchRequest("go", requested, "tok"))

        assert outcome.ok
        assert len(outcome.records) == min(requested, total, 1000)

    @pytest.mark.asyncio
    async def test_page_straddling_cap_only_enriches_first_items(self, fake_github) -> None:
        github = fake_github(5000)
        outcome = await SearchOrchestrator(github).run(SearchRequest("go", 150, "tok"))

        assert len(outcome.records) == 150
        assert len(github.user_calls) == 150
        assert _logins(outcome) == {f"user{i}" for i in range(1, 151)}

    @pytest.mark.asyncio
    async def test_no_matches_returns_empty_list(self, fake_github) -> None:
        github = fake_github(0)
        outcome = await SearchOrchestrator(github).run(SearchRequest("brainfuck", 50, "tok"))

        assert outcome.ok
        assert outcome.records == []
        assert github.page_calls == [1]

    @pytest.mark.asyncio
    async def test_empty_page_stops_paging(self, fake_github) -> None:
        github = fake_github(300)
        # Reported total is higher than what is actually served
        github.logins = github.logins[:120]

        outcome = await SearchOrchestrator(github).run(SearchRequest("go", 300, "tok"))

        assert outcome.ok
        assert len(outcome.records) == 120
        assert sorted(github.page_calls) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_page_one_goes_out_alone_then_pages_before_profiles(self, fake_github) -> None:
        github = fake_github(5000)
        await SearchOrchestrator(github).run(SearchRequest("go", 300, "tok"))

        assert github.calls[0] == ("page", 1)
        assert github.calls[1:3] == [("page", 2), ("page", 3)]
        assert all(kind == "user" for kind, _ in github.calls[3:])

    @pytest.mark.asyncio
    async def test_no_user_is_fabricated_or_looked_up_twice(self, fake_github) -> None:
        github = fake_github(450)
        outcome = await SearchOrchestrator(github).run(SearchRequest("go", 400, "tok"))

        served = set(github.logins)
        assert _logins(outcome) <= served
        assert len(github.user_calls) == len(set(github.user_calls)) == 400

    @pytest.mark.asyncio
    async def test_token_reaches_every_call(self, fake_github) -> None:
        github = fake_github(250)
        await SearchOrchestrator(github).run(SearchRequest("go", 250, "s3cret"))

        assert github.tokens and set(github.tokens) == {"s3cret"}


# =============================================================================
# Concurrency budget
# =============================================================================


class TestConcurrencyBudget:
    """Pages and profiles share one in-flight budget."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [1, 3, 17])
    async def test_in_flight_never_exceeds_limit(self, fake_github, limit: int) -> None:
        github = fake_github(500, yields=3)
        orchestrator = SearchOrchestrator(github, concurrency_limit=limit)

        outcome = await orchestrator.run(SearchRequest("go", 200, "tok"))

        assert outcome.ok
        assert len(outcome.records) == 200
        assert github.max_active <= limit
        assert outcome.stats.max_in_flight <= limit

    @pytest.mark.asyncio
    async def test_calls_overlap_when_budget_allows(self, fake_github) -> None:
        github = fake_github(500, yields=3)
        outcome = await SearchOrchestrator(github).run(SearchRequest("go", 300, "tok"))

        assert outcome.stats.max_in_flight > 1

    @pytest.mark.asyncio
    async def test_nothing_left_running_after_abort(self, fake_github) -> None:
        github = fake_github(500, failing_users={"user1"}, yields=5)
        outcome = await SearchOrchestrator(github).run(SearchRequest("go", 300, "tok"))

        assert not outcome.ok
        assert github.active == 0

    def test_limit_must_be_positive(self, fake_github) -> None:
        with pytest.raises(ValueError):
            SearchOrchestrator(fake_github(1), concurrency_limit=0)


# =============================================================================
# Failures
# =============================================================================


class TestFailures:
    """Fatal and skippable failures."""

    @pytest.mark.asyncio
    async def test_page_failure_is_fatal(self, fake_github) -> None:
        github = fake_github(5000, failing_pages={2})
        outcome = await SearchOrchestrator(github).run(SearchRequest("go", 300, "tok"))

        assert not outcome.ok
        assert outcome.records == []
        assert "page 2" in outcome.message

    @pytest.mark.asyncio
    async def test_page_failure_is_fatal_even_when_skipping_profiles(self, fake_github) -> None:
        github = fake_github(50, failing_pages={1})
        orchestrator = SearchOrchestrator(github, detail_failure_policy=DetailFailurePolicy.SKIP)

        outcome = await orchestrator.run(SearchRequest("go", 10, "tok"))

        assert not outcome.ok

    @pytest.mark.asyncio
    async def test_skip_policy_drops_only_failed_users(self, fake_github) -> None:
        github = fake_github(100, failing_users={"user2", "user5"})
        orchestrator = SearchOrchestrator(github, detail_failure_policy="skip")

        outcome = await orchestrator.run(SearchRequest("go", 10, "tok"))

        assert outcome.ok
        assert len(outcome.records) == 8
        assert sorted(outcome.skipped) == ["user2", "user5"]
        assert outcome.to_dict()["skipped"] == outcome.skipped
        assert outcome.stats.details_skipped == 2

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_error_outcome(self, fake_github) -> None:
        github = fake_github(10)

        async def broken(identifier, token=None):
            raise RuntimeError("socket went away")

        github.get_user = broken
        outcome = await SearchOrchestrator(github).run(SearchRequest("go", 5, "tok"))

        assert not outcome.ok
        assert "socket went away" in outcome.message

    @pytest.mark.asyncio
    async def test_run_timeout_reports_error(self, fake_github) -> None:
        github = fake_github(10)
        never = asyncio.Event()

        async def hang(language, page, per_page, token=None):
            await never.wait()

        github.search_users = hang
        orchestrator = SearchOrchestrator(github, run_timeout=0.05)

        outcome = await orchestrator.run(SearchRequest("go", 5, "tok"))

        assert not outcome.ok
        assert "timed out" in outcome.message


# =============================================================================
# Background runs and result sinks
# =============================================================================


class TestStart:
    """start() acknowledges at once and delivers to the sink later."""

    @pytest.mark.asyncio
    async def test_start_returns_ack_and_feeds_sink(self, fake_github) -> None:
        github = fake_github(40)
        orchestrator = SearchOrchestrator(github)
        received: list[SearchOutcome] = []

        ack = orchestrator.start(SearchRequest("go", 30, "tok"), received.append)

        assert ack.accepted
        assert ack.message == "Processing request..."
        assert received == []

        await orchestrator.wait_idle()

        assert len(received) == 1
        assert received[0].ok
        assert len(received[0].records) == 30

    @pytest.mark.asyncio
    async def test_async_sink_is_awaited(self, fake_github) -> None:
        orchestrator = SearchOrchestrator(fake_github(5, failing_users={"user1"}))
        received: list[SearchOutcome] = []

        async def sink(outcome: SearchOutcome) -> None:
            await asyncio.sleep(0)
            received.append(outcome)

        orchestrator.start(SearchRequest("go", 5, "tok"), sink)
        await orchestrator.wait_idle()

        assert [o.status for o in received] == ["error"]

    @pytest.mark.asyncio
    async def test_from_config_applies_search_settings(self, fake_github) -> None:
        config = AppConfig.model_validate(
            {"search": {"concurrency_limit": 2, "detail_failure_policy": "skip"}}
        )
        orchestrator = SearchOrchestrator.from_config(config, fake_github(5))

        assert orchestrator.concurrency_limit == 2
        assert orchestrator.detail_failure_policy is DetailFailurePolicy.SKIP


class TestSearchUsersHelper:
    """search_users() wires config, GitHub client and orchestrator together."""

    @pytest.mark.asyncio
    async def test_runs_against_configured_client(self, fake_github, monkeypatch) -> None:
        import langfinder.core.providers.github as github_module
        from langfinder.core.orchestrator import search_users

        github = fake_github(30)

        class StubClient:
            @classmethod
            def from_config(cls, config):
                return github

        monkeypatch.setattr(github_module, "GitHubClient", StubClient)
        config = AppConfig.model_validate({"github": {"token": "cfg-token"}})

        outcome = await search_users("go", "12", config=config)

        assert outcome.ok
        assert len(outcome.records) == 12
        assert set(github.tokens) == {"cfg-token"}
        assert github.closed

    @pytest.mark.asyncio
    async def test_missing_language_raises(self) -> None:
        from langfinder.core.orchestrator import search_users

        with pytest.raises(InputError):
            await search_users(None, 10, "tok")


class TestStall:
    """A run that can neither issue nor wait ends as an error outcome."""

    @pytest.mark.asyncio
    async def test_stalled_run_becomes_error_outcome(self, fake_github) -> None:
        github = fake_github(10)
        orchestrator = SearchOrchestrator(github)
        orchestrator._issue = lambda state, tasks: None

        outcome = await orchestrator.run(SearchRequest("go", 5, "tok"))

        assert not outcome.ok
        assert "stalled" in outcome.message
        assert github.calls == []
