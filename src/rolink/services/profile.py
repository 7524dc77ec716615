"""Checks whether a challenge token appears in a Roblox profile's About text."""

import json
import logging
import re
from typing import Any, Self

import httpx

from rolink.config import Settings
from rolink.services.challenges import Challenge
from rolink.services.resilience import Strategy, StrategyChain, StrategyChainError
from rolink.services.roblox import ROBLOX_USERS_API, ROBLOX_WEB, ROBLOX_WEB_BARE, RobloxClient

logger = logging.getLogger(__name__)

# Fallback extraction over the compact JSON payload
DESCRIPTION_PATTERNS = [
    re.compile(r'"description":"([^"]*?)"'),
    re.compile(r'"aboutMe":"([^"]*?)"'),
    re.compile(r'"blurb":"([^"]*?)"'),
    re.compile(r'"status":"([^"]*?)"'),
]

# Keys on the profile header endpoint, tried when the main payload has no text
PROFILE_HEADER_KEYS = ("ProfileStatus", "UserStatus")

WHITESPACE = re.compile(r"\s+")
NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9]")
DIGIT_RUNS = re.compile(r"\d+")


def _numeric_parts_in_order(token: str, text: str) -> bool:
    parts = DIGIT_RUNS.findall(token)
    if len(parts) < 2:
        return False
    first, second = parts[0], parts[1]
    return first in text and text.find(second) > text.find(first)


MATCH_RULES = [
    ("exact", lambda token, text: token in text),
    (
        "no whitespace",
        lambda token, text: WHITESPACE.sub("", token) in WHITESPACE.sub("", text),
    ),
    (
        "alphanumeric only",
        lambda token, text: NON_ALPHANUMERIC.sub("", token) in NON_ALPHANUMERIC.sub("", text),
    ),
    ("case-insensitive", lambda token, text: token.lower() in text.lower()),
    ("numeric parts in order", _numeric_parts_in_order),
]


def token_in_text(token: str, text: str) -> str | None:
    """Name of the first rule under which ``token`` is found in ``text``, else None.

    Profile text is user-edited and Roblox may normalize whitespace, case or
    punctuation, so looser rules follow the exact check. Every rule still
    needs both numeric halves of the token present.
    """
    for name, rule in MATCH_RULES:
        if rule(token, text):
            return name
    return None


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def extract_description(data: Any) -> str:
    """Pull the About text out of a user payload, trying known shapes first.

    A description that is present but not a string counts as empty.
    """
    if not isinstance(data, dict):
        return ""
    if "description" in data:
        return _as_text(data.get("description"))
    profile = data.get("profile")
    if isinstance(profile, dict) and "description" in profile:
        return _as_text(profile.get("description"))

    raw = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
    for pattern in DESCRIPTION_PATTERNS:
        match = pattern.search(raw)
        if match and match.group(1):
            logger.debug(f"Found profile text using pattern {pattern.pattern}")
            return match.group(1)
    return ""


class ProfileFetch(Strategy[str, httpx.Response]):
    """GET one profile endpoint. Only transport errors count as failure."""

    def __init__(self, name: str, url_template: str, client: RobloxClient, timeout: float) -> None:
        self.name = name
        self.url_template = url_template
        self.client = client
        self.timeout = timeout

    async def attempt(self, value: str) -> httpx.Response:
        return await self.client.get(self.url_template.format(user_id=value), timeout=self.timeout)


class ProfileMatcher:
    """Fetches a target's profile text and looks for the challenge token.

    Fails closed: any fetch or parse problem means no match.
    """

    def __init__(self, client: RobloxClient, timeout: float = 8.0) -> None:
        self.client = client
        self.timeout = timeout
        self.fetch_chain: StrategyChain[str, httpx.Response] = StrategyChain(
            "profile fetch",
            [
                ProfileFetch("users-api", f"{ROBLOX_USERS_API}/v1/users/{{user_id}}", client, timeout),
                ProfileFetch("profile-page", f"{ROBLOX_WEB}/users/{{user_id}}/profile", client, timeout),
            ],
        )

    @classmethod
    def from_settings(cls, client: RobloxClient, settings: Settings) -> Self:
        return cls(client, timeout=settings.roblox_profile_timeout)

    async def fetch_description(self, user_id: str) -> str | None:
        """The profile's About text, "" when it has none, None when it could not be read."""
        try:
            result = await self.fetch_chain.run(user_id)
        except StrategyChainError as e:
            logger.warning(f"Could not fetch Roblox profile {user_id}: {e}")
            return None

        response = result.value
        if not response.is_success:
            logger.warning(f"Roblox profile check for {user_id} failed with status {response.status_code}")
            return None
        try:
            data = response.json()
        except ValueError:
            logger.warning(f"Roblox profile response for {user_id} was not JSON")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Unexpected Roblox profile payload for {user_id}: {type(data).__name__}")
            return None

        description = extract_description(data)
        if not description:
            description = await self._fetch_profile_header_status(user_id)
        return description

    async def _fetch_profile_header_status(self, user_id: str) -> str:
        try:
            data = await self.client.get_json(
                f"{ROBLOX_WEB_BARE}/users/profile/profileheader-json",
                params={"userId": user_id},
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning(f"Profile header lookup for {user_id} failed: {e!r}")
            return ""
        if isinstance(data, dict):
            for key in PROFILE_HEADER_KEYS:
                value = data.get(key)
                if isinstance(value, str) and value:
                    return value
        return ""

    async def matches(self, challenge: Challenge) -> bool:
        description = await self.fetch_description(challenge.target_id)
        if description is None:
            return False

        rule = token_in_text(challenge.token, description)
        if rule is None:
            logger.info(
                f"Code {challenge.token} not found in profile of {challenge.target_handle} "
                f"({challenge.target_id}), text length {len(description)}"
            )
            return False

        logger.info(
            f"Code {challenge.token} found in profile of {challenge.target_handle} "
            f"({challenge.target_id}) by rule '{rule}'"
        )
        return True
