"""Unit tests for ProClubsSource.

Test Strategy:
1. Match payloads: plain list and object-of-lists are both flattened
2. Member payloads: list, {"members": [...]} wrapper, and map of players
3. Transient failures (503, timeouts) are retried up to max_attempts
4. Non-retryable statuses and malformed payloads fail fast to an empty list
5. Results are cached per club for the TTL
6. In-flight requests never exceed max_concurrency

All tests run against httpx.MockTransport; no network access.
"""
import asyncio

import httpx
import pytest

from proclubs.sources.proclubs_source import ProClubsSource

BASE_URL = "https://ea.test/api/fc"


def make_source(handler, **kwargs) -> ProClubsSource:
    kwargs.setdefault("match_types", ["leagueMatch"])
    kwargs.setdefault("retry_backoff", 0)
    kwargs.setdefault("max_attempts", 3)
    return ProClubsSource(
        base_url=BASE_URL,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


class TestFetchMatches:
    """Test suite for fetch_matches payload handling."""

    @pytest.mark.asyncio
    async def test_list_payload(self):
        """Should return the match list and pass club/platform params."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"matchId": "1"}, {"matchId": "2"}])

        source = make_source(handler)
        matches = await source.fetch_matches("2491998")
        await source.close()

        assert [m["matchId"] for m in matches] == ["1", "2"]
        assert seen[0].url.path == "/api/fc/clubs/matches"
        assert seen[0].url.params["clubIds"] == "2491998"
        assert seen[0].url.params["platform"] == "common-gen5"
        assert seen[0].url.params["matchType"] == "leagueMatch"

    @pytest.mark.asyncio
    async def test_object_of_lists_is_concatenated(self):
        def handler(request):
            return httpx.Response(
                200, json={"league": [{"matchId": "1"}], "cup": [{"matchId": "2"}]}
            )

        source = make_source(handler)
        matches = await source.fetch_matches("1")

        assert {m["matchId"] for m in matches} == {"1", "2"}

    @pytest.mark.asyncio
    async def test_each_match_type_is_requested(self):
        types = []

        def handler(request):
            types.append(request.url.params["matchType"])
            return httpx.Response(200, json=[{"matchId": request.url.params["matchType"]}])

        source = make_source(handler, match_types=["leagueMatch", "playoffMatch"])
        matches = await source.fetch_matches("1")

        assert types == ["leagueMatch", "playoffMatch"]
        assert len(matches) == 2


class TestFetchMembers:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            [{"name": "a"}, {"name": "b"}],
            {"members": [{"name": "a"}, {"name": "b"}]},
            {"p1": {"name": "a"}, "p2": {"name": "b"}},
        ],
    )
    async def test_member_payload_shapes(self, payload):
        def handler(request):
            assert request.url.path == "/api/fc/members/stats"
            assert request.url.params["clubId"] == "7"
            return httpx.Response(200, json=payload)

        source = make_source(handler)
        members = await source.fetch_members("7")

        assert [m["name"] for m in members] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_member_failure_returns_empty(self):
        source = make_source(lambda request: httpx.Response(500))
        assert await source.fetch_members("7") == []


class TestFailures:
    """Retry and failure-isolation behaviour."""

    @pytest.mark.asyncio
    async def test_retries_transient_status_then_succeeds(self):
        attempts = {"count": 0}

        def handler(request):
            attempts["count"] += 1
            if attempts["count"] == 1:
                return httpx.Response(503)
            return httpx.Response(200, json=[{"matchId": "1"}])

        source = make_source(handler)
        matches = await source.fetch_matches("1")

        assert attempts["count"] == 2
        assert len(matches) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        attempts = {"count": 0}

        def handler(request):
            attempts["count"] += 1
            return httpx.Response(429)

        source = make_source(handler, max_attempts=3)
        assert await source.fetch_matches("1") == []
        assert attempts["count"] == 3

    @pytest.mark.asyncio
    async def test_timeout_is_retried_then_empty(self):
        attempts = {"count": 0}

        def handler(request):
            attempts["count"] += 1
            raise httpx.ReadTimeout("timed out", request=request)

        source = make_source(handler, max_attempts=2)
        assert await source.fetch_matches("1") == []
        assert attempts["count"] == 2

    @pytest.mark.asyncio
    async def test_non_retryable_status_fails_fast(self):
        attempts = {"count": 0}

        def handler(request):
            attempts["count"] += 1
            return httpx.Response(404)

        source = make_source(handler)
        assert await source.fetch_matches("1") == []
        assert attempts["count"] == 1

    @pytest.mark.asyncio
    async def test_malformed_json_is_not_retried(self):
        attempts = {"count": 0}

        def handler(request):
            attempts["count"] += 1
            return httpx.Response(200, content=b"<html>maintenance</html>")

        source = make_source(handler)
        assert await source.fetch_matches("1") == []
        assert attempts["count"] == 1

    @pytest.mark.asyncio
    async def test_unexpected_shape_is_empty(self):
        source = make_source(lambda request: httpx.Response(200, json="nope"))
        assert await source.fetch_matches("1") == []

    @pytest.mark.asyncio
    async def test_one_failing_club_does_not_affect_others(self):
        def handler(request):
            if request.url.params["clubIds"] == "bad":
                return httpx.Response(404)
            return httpx.Response(200, json=[{"matchId": request.url.params["clubIds"]}])

        source = make_source(handler)
        by_club = await source.fetch_all_matches(["a", "bad", "b"])

        assert by_club["bad"] == []
        assert by_club["a"] == [{"matchId": "a"}]
        assert by_club["b"] == [{"matchId": "b"}]


class TestCachingAndConcurrency:
    @pytest.mark.asyncio
    async def test_results_are_cached_within_ttl(self):
        attempts = {"count": 0}

        def handler(request):
            attempts["count"] += 1
            return httpx.Response(200, json=[{"matchId": "1"}])

        source = make_source(handler, cache_ttl=60)
        first = await source.fetch_matches("1")
        second = await source.fetch_matches("1")

        assert first == second
        assert attempts["count"] == 1

    @pytest.mark.asyncio
    async def test_zero_ttl_disables_cache(self):
        attempts = {"count": 0}

        def handler(request):
            attempts["count"] += 1
            return httpx.Response(200, json=[])

        source = make_source(handler, cache_ttl=0)
        await source.fetch_matches("1")
        await source.fetch_matches("1")

        assert attempts["count"] == 2

    @pytest.mark.asyncio
    async def test_in_flight_requests_are_bounded(self):
        """Should never run more than max_concurrency requests at once."""
        state = {"in_flight": 0, "peak": 0}

        async def handler(request):
            state["in_flight"] += 1
            state["peak"] = max(state["peak"], state["in_flight"])
            await asyncio.sleep(0.01)
            state["in_flight"] -= 1
            return httpx.Response(200, json=[])

        source = make_source(handler, max_concurrency=2)
        result = await source.fetch_all_matches([str(i) for i in range(6)])

        assert len(result) == 6
        assert state["peak"] == 2
