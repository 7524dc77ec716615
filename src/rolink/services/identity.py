"""Roblox username <-> user ID resolution.

Roblox endpoints are frequently unreachable or rate limited from the bot's
network, so each direction walks an ordered chain of lookups and always ends
with a strategy that cannot fail. Accepting a synthesized identity is safe:
verification never trusts the identity alone, the profile check is the proof.
"""

import logging
import random
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Self

from rolink.config import Settings
from rolink.services.resilience import CircuitBreaker, Strategy, StrategyChain
from rolink.services.roblox import (
    ROBLOX_AVATAR_API,
    ROBLOX_FRIENDS_API,
    ROBLOX_LEGACY_API,
    ROBLOX_USERS_API,
    ROBLOX_WEB,
    MalformedResponseError,
    RobloxClient,
    is_unavailable_error,
)

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 10

# Patterns for pulling a user ID out of a profile page
USER_ID_PATTERNS = [
    re.compile(r'data-userid="(\d+)"', re.IGNORECASE),
    re.compile(r"user/profile/(\d+)", re.IGNORECASE),
    re.compile(r"user/id/(\d+)", re.IGNORECASE),
    re.compile(r"userid=(\d+)", re.IGNORECASE),
    re.compile(r'data-id="(\d+)"', re.IGNORECASE),
]

# Patterns for pulling a username out of a profile page
USERNAME_PATTERNS = [
    re.compile(r'<h1 class="profile-name"[^>]*>(.*?)</h1>', re.IGNORECASE),
    re.compile(r"<title>(.*?)'s Profile", re.IGNORECASE),
    re.compile(r'<meta property="og:title" content="(.*?)\'s Profile"', re.IGNORECASE),
    re.compile(r'data-name="(.*?)"', re.IGNORECASE),
    re.compile(r'displayName: "(.*?)"', re.IGNORECASE),
]


@dataclass(frozen=True)
class ResolvedIdentity:
    """A Roblox account as a (stable ID, current username) pair."""

    user_id: str
    username: str


# Well-known accounts, so lookups for them work even with every endpoint down
KNOWN_IDENTITIES = [
    ResolvedIdentity(user_id="1", username="Roblox"),
    ResolvedIdentity(user_id="156", username="Builderman"),
]


class IdentityCache:
    """Process-lifetime bidirectional map of resolved identities.

    Keeps a strict pairing: looking up either half of a remembered pair
    returns that same pair. Older pairs sharing a key are dropped.
    """

    def __init__(self, seed: Iterable[ResolvedIdentity] = ()) -> None:
        self._by_username: dict[str, ResolvedIdentity] = {}
        self._by_user_id: dict[str, ResolvedIdentity] = {}
        for identity in seed:
            self.remember(identity)

    def remember(self, identity: ResolvedIdentity) -> None:
        key = identity.username.lower()

        stale = self._by_username.get(key)
        if stale is not None and self._by_user_id.get(stale.user_id) == stale:
            del self._by_user_id[stale.user_id]

        stale = self._by_user_id.get(identity.user_id)
        if stale is not None:
            stale_key = stale.username.lower()
            if self._by_username.get(stale_key) == stale:
                del self._by_username[stale_key]

        self._by_username[key] = identity
        self._by_user_id[identity.user_id] = identity

    def by_username(self, username: str) -> ResolvedIdentity | None:
        return self._by_username.get(username.strip().lower())

    def by_user_id(self, user_id: str) -> ResolvedIdentity | None:
        return self._by_user_id.get(user_id)

    def __len__(self) -> int:
        return len(self._by_user_id)


def _identity(raw_id: Any, raw_name: Any, fallback_name: str) -> ResolvedIdentity:
    """Validate provider fields into an identity."""
    user_id = str(raw_id).strip() if raw_id is not None else ""
    if not user_id.isdigit():
        raise MalformedResponseError(f"Expected numeric user ID, got {raw_id!r}")
    username = raw_name.strip() if isinstance(raw_name, str) and raw_name.strip() else fallback_name
    return ResolvedIdentity(user_id=user_id, username=username)


def _search_results(data: Any) -> list[dict[str, Any]]:
    """The ``data`` array of a search/batch response, required non-empty."""
    if not isinstance(data, dict):
        raise MalformedResponseError("Response is not an object")
    results = data.get("data")
    if not isinstance(results, list) or not results:
        raise LookupError("User not found in results")
    users = [r for r in results if isinstance(r, dict)]
    if not users:
        raise MalformedResponseError("Results contain no user objects")
    return users


class _RobloxStrategy(Strategy[str, ResolvedIdentity]):
    """Network lookup against a Roblox endpoint."""

    def __init__(self, client: RobloxClient, timeout: float, circuit: CircuitBreaker | None = None) -> None:
        self.client = client
        self.timeout = timeout
        self.circuit = circuit


# Username -> ID strategies


class LegacyUsernameLookup(_RobloxStrategy):
    name = "legacy-get-by-username"

    async def attempt(self, value: str) -> ResolvedIdentity:
        data = await self.client.get_json(
            f"{ROBLOX_LEGACY_API}/users/get-by-username",
            params={"username": value},
            timeout=self.timeout,
        )
        if not isinstance(data, dict) or not data.get("Id"):
            raise MalformedResponseError("Missing Id in get-by-username response")
        return _identity(data["Id"], data.get("Username"), value)


class UserSearchLookup(_RobloxStrategy):
    """Keyword search; prefers an exact name match over the top result."""

    name = "users-search"

    async def attempt(self, value: str) -> ResolvedIdentity:
        data = await self.client.get_json(
            f"{ROBLOX_USERS_API}/v1/users/search",
            params={"keyword": value, "limit": SEARCH_LIMIT},
            timeout=self.timeout,
        )
        results = _search_results(data)
        wanted = value.lower()
        for user in results:
            if str(user.get("name", "")).lower() == wanted:
                return _identity(user.get("id"), user.get("name"), value)
        return _identity(results[0].get("id"), results[0].get("name"), value)


class UsernamesLookup(_RobloxStrategy):
    name = "avatar-usernames"

    async def attempt(self, value: str) -> ResolvedIdentity:
        data = await self.client.post_json(
            f"{ROBLOX_AVATAR_API}/v1/usernames/users",
            {"usernames": [value], "excludeBannedUsers": False},
            timeout=self.timeout,
        )
        user = _search_results(data)[0]
        return _identity(user.get("id"), user.get("name"), value)


class ProfilePageIdScrape(_RobloxStrategy):
    name = "profile-page-scrape"

    async def attempt(self, value: str) -> ResolvedIdentity:
        html = await self.client.get_text(
            f"{ROBLOX_WEB}/user.aspx",
            params={"username": value},
            timeout=self.timeout,
        )
        for pattern in USER_ID_PATTERNS:
            match = pattern.search(html)
            if match:
                return _identity(match.group(1), value, value)
        raise LookupError("Could not extract user ID from profile page")


class FriendsSearchLookup(_RobloxStrategy):
    name = "friends-search"

    async def attempt(self, value: str) -> ResolvedIdentity:
        data = await self.client.get_json(
            f"{ROBLOX_FRIENDS_API}/v1/users/search",
            params={"keyword": value, "limit": SEARCH_LIMIT},
            timeout=self.timeout,
        )
        results = _search_results(data)
        wanted = value.lower()
        for user in results:
            names = (str(user.get("displayName") or "").lower(), str(user.get("name") or "").lower())
            if wanted in names:
                return _identity(user.get("id"), user.get("name"), value)
        return _identity(results[0].get("id"), results[0].get("name"), value)


# ID -> username strategies


class UserByIdLookup(_RobloxStrategy):
    name = "users-by-id"

    async def attempt(self, value: str) -> ResolvedIdentity:
        data = await self.client.get_json(f"{ROBLOX_USERS_API}/v1/users/{value}", timeout=self.timeout)
        if not isinstance(data, dict) or not data.get("name"):
            raise MalformedResponseError("Missing name in user response")
        return _identity(value, data["name"], data["name"])


class LegacyUserByIdLookup(_RobloxStrategy):
    name = "legacy-user-details"

    async def attempt(self, value: str) -> ResolvedIdentity:
        data = await self.client.get_json(f"{ROBLOX_LEGACY_API}/users/{value}", timeout=self.timeout)
        if not isinstance(data, dict) or not data.get("Username"):
            raise MalformedResponseError("Missing Username in user details response")
        return _identity(value, data["Username"], data["Username"])


class ProfileHeaderLookup(_RobloxStrategy):
    name = "profile-header"

    async def attempt(self, value: str) -> ResolvedIdentity:
        data = await self.client.get_json(
            f"{ROBLOX_WEB}/users/profile/profileheader-json",
            params={"userId": value},
            timeout=self.timeout,
        )
        if not isinstance(data, dict) or not data.get("Username"):
            raise MalformedResponseError("Missing Username in profile header response")
        return _identity(value, data["Username"], data["Username"])


class ProfilePageNameScrape(_RobloxStrategy):
    name = "profile-page-scrape"

    async def attempt(self, value: str) -> ResolvedIdentity:
        html = await self.client.get_text(f"{ROBLOX_WEB}/users/{value}/profile", timeout=self.timeout)
        for pattern in USERNAME_PATTERNS:
            match = pattern.search(html)
            if match and match.group(1).strip():
                name = match.group(1).strip()
                return _identity(value, name, name)
        raise LookupError("Could not extract username from profile page")


class BatchUserLookup(_RobloxStrategy):
    name = "users-batch"

    async def attempt(self, value: str) -> ResolvedIdentity:
        data = await self.client.post_json(
            f"{ROBLOX_USERS_API}/v1/users",
            {"userIds": [int(value)], "excludeBannedUsers": False},
            timeout=self.timeout,
        )
        user = _search_results(data)[0]
        if not user.get("name"):
            raise MalformedResponseError("Missing name in batch response")
        return _identity(value, user["name"], user["name"])


# Local strategies


class CachedUsernameLookup(Strategy[str, ResolvedIdentity]):
    name = "cache"

    def __init__(self, cache: IdentityCache) -> None:
        self.cache = cache

    async def attempt(self, value: str) -> ResolvedIdentity:
        identity = self.cache.by_username(value)
        if identity is None:
            raise LookupError(f"{value!r} not cached")
        return identity


class CachedUserIdLookup(Strategy[str, ResolvedIdentity]):
    name = "cache"

    def __init__(self, cache: IdentityCache) -> None:
        self.cache = cache

    async def attempt(self, value: str) -> ResolvedIdentity:
        identity = self.cache.by_user_id(value)
        if identity is None:
            raise LookupError(f"{value!r} not cached")
        return identity


class PlaceholderUserId(Strategy[str, ResolvedIdentity]):
    """Synthesizes an 8-digit ID. Never fails."""

    name = "placeholder"

    def __init__(self, rng: Callable[[int, int], int] = random.randint) -> None:
        self.rng = rng

    async def attempt(self, value: str) -> ResolvedIdentity:
        user_id = str(self.rng(10_000_000, 99_999_999))
        logger.warning(f"Using placeholder ID {user_id} for Roblox username {value!r}")
        return ResolvedIdentity(user_id=user_id, username=value)


class PlaceholderUsername(Strategy[str, ResolvedIdentity]):
    """Synthesizes ``User_<id>``. Never fails."""

    name = "placeholder"

    async def attempt(self, value: str) -> ResolvedIdentity:
        logger.warning(f"Using placeholder username for Roblox ID {value}")
        return ResolvedIdentity(user_id=value, username=f"User_{value}")


class IdentityResolver:
    """Resolves Roblox usernames and IDs, caching every answer it produces."""

    def __init__(
        self,
        client: RobloxClient,
        cache: IdentityCache | None = None,
        *,
        api_timeout: float = 5.0,
        page_timeout: float = 7.0,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        rng: Callable[[int, int], int] = random.randint,
    ) -> None:
        self.cache = cache if cache is not None else IdentityCache()

        def circuit(name: str) -> CircuitBreaker:
            return CircuitBreaker(
                name=name,
                failure_threshold=failure_threshold,
                recovery_timeout=recovery_timeout,
                is_failure=is_unavailable_error,
            )

        self.by_username_chain: StrategyChain[str, ResolvedIdentity] = StrategyChain(
            "username lookup",
            [
                LegacyUsernameLookup(client, api_timeout, circuit("legacy-get-by-username")),
                UserSearchLookup(client, api_timeout, circuit("users-search")),
                UsernamesLookup(client, api_timeout, circuit("avatar-usernames")),
                ProfilePageIdScrape(client, page_timeout, circuit("profile-page-id")),
                FriendsSearchLookup(client, api_timeout, circuit("friends-search")),
                CachedUsernameLookup(self.cache),
                PlaceholderUserId(rng),
            ],
        )
        self.by_user_id_chain: StrategyChain[str, ResolvedIdentity] = StrategyChain(
            "user ID lookup",
            [
                UserByIdLookup(client, api_timeout, circuit("users-by-id")),
                LegacyUserByIdLookup(client, api_timeout, circuit("legacy-user-details")),
                ProfileHeaderLookup(client, api_timeout, circuit("profile-header")),
                ProfilePageNameScrape(client, page_timeout, circuit("profile-page-name")),
                BatchUserLookup(client, api_timeout, circuit("users-batch")),
                CachedUserIdLookup(self.cache),
                PlaceholderUsername(),
            ],
        )

    @classmethod
    def from_settings(
        cls,
        client: RobloxClient,
        settings: Settings,
        cache: IdentityCache | None = None,
    ) -> Self:
        return cls(
            client,
            cache if cache is not None else IdentityCache(KNOWN_IDENTITIES),
            api_timeout=settings.roblox_api_timeout,
            page_timeout=settings.roblox_page_timeout,
            failure_threshold=settings.roblox_circuit_failure_threshold,
            recovery_timeout=settings.roblox_circuit_recovery_seconds,
        )

    async def resolve_username(self, username: str) -> ResolvedIdentity:
        """Resolve a username to its identity. Never fails for a non-empty username."""
        username = username.strip()
        if not username:
            raise ValueError("Roblox username is required")

        result = await self.by_username_chain.run(username)
        self.cache.remember(result.value)
        logger.info(
            f"Resolved Roblox username {username!r} to ID {result.value.user_id} "
            f"via strategy {result.index} ({result.strategy})"
        )
        return result.value

    async def resolve_user_id(self, user_id: str) -> ResolvedIdentity:
        """Resolve a numeric user ID to its identity. Never fails for a numeric ID."""
        user_id = user_id.strip()
        if not user_id.isdigit():
            raise ValueError(f"Roblox user ID must be numeric, got {user_id!r}")

        result = await self.by_user_id_chain.run(user_id)
        self.cache.remember(result.value)
        logger.info(
            f"Resolved Roblox ID {user_id} to username {result.value.username!r} "
            f"via strategy {result.index} ({result.strategy})"
        )
        return result.value

    async def resolve_handle_to_id(self, username: str) -> str:
        return (await self.resolve_username(username)).user_id

    async def resolve_id_to_handle(self, user_id: str) -> str:
        return (await self.resolve_user_id(user_id)).username
