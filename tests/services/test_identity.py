"""Roblox identity resolution tests."""

import httpx
import pytest

from rolink.config import settings
from rolink.services.identity import KNOWN_IDENTITIES, IdentityCache, IdentityResolver, ResolvedIdentity
from rolink.services.roblox import RobloxAPIError, RobloxClient, is_unavailable_error


def make_resolver(handler, **kwargs) -> IdentityResolver:
    client = RobloxClient(transport=httpx.MockTransport(handler))
    return IdentityResolver(client, api_timeout=1.0, page_timeout=1.0, **kwargs)


def unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("unreachable", request=request)


class TestIdentityCache:
    def test_lookup_is_case_insensitive(self):
        cache = IdentityCache([ResolvedIdentity("156", "Builderman")])

        assert cache.by_username("builderman") == ResolvedIdentity("156", "Builderman")
        assert cache.by_user_id("156").username == "Builderman"

    def test_new_pair_replaces_stale_entries(self):
        """Re-resolving a name to a new ID drops the old ID's mapping."""
        cache = IdentityCache()
        cache.remember(ResolvedIdentity("111", "Alice"))
        cache.remember(ResolvedIdentity("222", "Alice"))

        assert cache.by_username("alice").user_id == "222"
        assert cache.by_user_id("111") is None
        assert len(cache) == 1


class TestResolveHandleToId:
    @pytest.mark.asyncio
    async def test_legacy_endpoint_answers_first(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/users/get-by-username":
                return httpx.Response(200, json={"Id": 156, "Username": "Builderman"})
            raise AssertionError(f"Unexpected request to {request.url}")

        resolver = make_resolver(handler)

        assert await resolver.resolve_handle_to_id("builderman") == "156"

    @pytest.mark.asyncio
    async def test_search_prefers_exact_match(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "users.roblox.com" and request.url.path == "/v1/users/search":
                return httpx.Response(
                    200,
                    json={"data": [{"id": 1, "name": "AliceFan"}, {"id": 2, "name": "alice"}]},
                )
            return httpx.Response(404)

        resolver = make_resolver(handler)

        assert await resolver.resolve_handle_to_id("Alice") == "2"

    @pytest.mark.asyncio
    async def test_falls_back_to_profile_scrape(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/user.aspx":
                return httpx.Response(200, text='<div data-userid="987654"></div>')
            return httpx.Response(500)

        resolver = make_resolver(handler)

        assert await resolver.resolve_handle_to_id("Alice") == "987654"

    @pytest.mark.asyncio
    async def test_malformed_payload_is_a_strategy_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/users/get-by-username":
                return httpx.Response(200, json={"Id": "not-a-number"})
            if request.url.path == "/v1/users/search":
                return httpx.Response(200, text="<html>not json</html>")
            if request.url.path == "/v1/usernames/users":
                return httpx.Response(200, json={"data": [{"id": 4242, "name": "Alice"}]})
            return httpx.Response(404)

        resolver = make_resolver(handler)

        assert await resolver.resolve_handle_to_id("Alice") == "4242"

    @pytest.mark.asyncio
    async def test_never_fails_when_roblox_is_down(self):
        """Every network strategy failing still yields a numeric placeholder ID."""
        resolver = make_resolver(unreachable, rng=lambda low, high: 12345678)

        user_id = await resolver.resolve_handle_to_id("NobodyKnowsMe")

        assert user_id == "12345678"
        assert user_id.isdigit()

    @pytest.mark.asyncio
    async def test_cache_answers_before_placeholder(self):
        cache = IdentityCache([ResolvedIdentity("156", "Builderman")])
        resolver = make_resolver(unreachable, cache=cache)

        assert await resolver.resolve_handle_to_id("Builderman") == "156"

    @pytest.mark.asyncio
    async def test_empty_handle_rejected(self):
        resolver = make_resolver(unreachable)

        with pytest.raises(ValueError):
            await resolver.resolve_handle_to_id("   ")


class TestResolveIdToHandle:
    @pytest.mark.asyncio
    async def test_users_api(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/users/156":
                return httpx.Response(200, json={"id": 156, "name": "Builderman"})
            return httpx.Response(404)

        resolver = make_resolver(handler)

        assert await resolver.resolve_id_to_handle("156") == "Builderman"

    @pytest.mark.asyncio
    async def test_profile_page_title(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/users/156/profile":
                return httpx.Response(200, text="<title>Builderman's Profile - Roblox</title>")
            return httpx.Response(503)

        resolver = make_resolver(handler)

        assert await resolver.resolve_id_to_handle("156") == "Builderman"

    @pytest.mark.asyncio
    async def test_placeholder_when_everything_fails(self):
        resolver = make_resolver(unreachable)

        assert await resolver.resolve_id_to_handle("31337") == "User_31337"

    @pytest.mark.asyncio
    async def test_non_numeric_id_rejected(self):
        resolver = make_resolver(unreachable)

        with pytest.raises(ValueError):
            await resolver.resolve_id_to_handle("abc")


@pytest.mark.asyncio
async def test_round_trip_through_cache_when_roblox_is_down():
    """A never-seen handle resolved to a placeholder ID maps back to the same handle."""
    resolver = make_resolver(unreachable)

    user_id = await resolver.resolve_handle_to_id("FreshHandle")
    handle = await resolver.resolve_id_to_handle(user_id)

    assert handle == "FreshHandle"


@pytest.mark.asyncio
async def test_repeated_failures_open_the_circuit():
    """After the threshold, a failing endpoint is skipped without a request."""
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        raise httpx.ConnectError("unreachable", request=request)

    resolver = make_resolver(handler, failure_threshold=1, recovery_timeout=60)

    await resolver.resolve_handle_to_id("Alice")
    first_round = len(calls)
    await resolver.resolve_handle_to_id("Bob")

    assert first_round == 5
    assert len(calls) == first_round


@pytest.mark.asyncio
async def test_unknown_names_do_not_open_the_circuit():
    """Roblox answering "no such user" is not an outage."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "users.roblox.com" and request.url.path == "/v1/users/search":
            if request.url.params["keyword"] == "Alice":
                return httpx.Response(200, json={"data": [{"id": 2, "name": "Alice"}]})
            return httpx.Response(200, json={"data": []})
        return httpx.Response(404)

    resolver = make_resolver(handler, failure_threshold=1, recovery_timeout=60)

    for i in range(5):
        await resolver.resolve_handle_to_id(f"Typo{i}")

    assert await resolver.resolve_handle_to_id("Alice") == "2"
    for strategy in resolver.by_username_chain.strategies:
        if strategy.circuit is not None:
            assert strategy.circuit.failure_count == 0


@pytest.mark.parametrize(
    "error,expected",
    [
        (httpx.ConnectError("unreachable"), True),
        (TimeoutError(), True),
        (RobloxAPIError("https://users.roblox.com", 503), True),
        (RobloxAPIError("https://users.roblox.com", 429), True),
        (RobloxAPIError("https://users.roblox.com", 404), False),
        (LookupError("User not found in results"), False),
    ],
)
def test_is_unavailable_error(error, expected):
    assert is_unavailable_error(error) is expected


def test_from_settings_seeds_known_identities():
    client = RobloxClient(transport=httpx.MockTransport(unreachable))
    resolver = IdentityResolver.from_settings(client, settings)

    assert len(resolver.cache) == len(KNOWN_IDENTITIES)
    assert resolver.cache.by_username("builderman").user_id == "156"
