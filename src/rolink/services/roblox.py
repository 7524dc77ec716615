"""Thin httpx client for the Roblox web endpoints used during verification."""

import logging
from typing import Any, Self

import httpx

from rolink.config import Settings

logger = logging.getLogger(__name__)

# Roblox endpoint hosts
ROBLOX_USERS_API = "https://users.roblox.com"
ROBLOX_LEGACY_API = "https://api.roblox.com"
ROBLOX_FRIENDS_API = "https://friends.roblox.com"
ROBLOX_AVATAR_API = "https://avatar.roblox.com"
ROBLOX_WEB = "https://www.roblox.com"
ROBLOX_WEB_BARE = "https://roblox.com"

DEFAULT_TIMEOUT = 5.0


class RobloxAPIError(Exception):
    """Non-2xx response from a Roblox endpoint."""

    def __init__(self, url: str, status_code: int) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(f"{url} responded with status {status_code}")


class MalformedResponseError(Exception):
    """Response body did not have the expected shape."""

    pass


class RobloxClient:
    """Shared httpx client carrying the auth cookie and User-Agent.

    Pass ``transport`` to route requests through an ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        cookie: str = "",
        user_agent: str = "rolink/0.1",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"User-Agent": user_agent}
        if cookie:
            headers["Cookie"] = f".ROBLOSECURITY={cookie}"
        self._client = httpx.AsyncClient(
            headers=headers,
            transport=transport,
            timeout=DEFAULT_TIMEOUT,
            follow_redirects=True,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> Self:
        if not settings.roblox_cookie:
            logger.info("ROBLOX_COOKIE not set, authenticated Roblox lookups will run anonymously")
        return cls(
            cookie=settings.roblox_cookie,
            user_agent=settings.roblox_user_agent,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Raw GET; status is not checked."""
        return await self._client.get(url, params=params, timeout=timeout or DEFAULT_TIMEOUT)

    async def get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """GET and decode JSON, raising on non-2xx or invalid JSON."""
        response = await self.get(url, params=params, timeout=timeout)
        return _decode_json(response)

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        timeout: float | None = None,
    ) -> Any:
        """POST a JSON body and decode the JSON reply."""
        response = await self._client.post(url, json=payload, timeout=timeout or DEFAULT_TIMEOUT)
        return _decode_json(response)

    async def get_text(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> str:
        """GET an HTML page, raising on non-2xx."""
        response = await self.get(url, params=params, timeout=timeout)
        _check_status(response)
        return response.text


def is_unavailable_error(error: Exception) -> bool:
    """True when Roblox could not answer, as opposed to answering that nothing matched."""
    if isinstance(error, RobloxAPIError):
        return error.status_code == 429 or error.status_code >= 500
    return isinstance(error, (httpx.TransportError, TimeoutError))


def _check_status(response: httpx.Response) -> None:
    if not response.is_success:
        raise RobloxAPIError(str(response.request.url), response.status_code)


def _decode_json(response: httpx.Response) -> Any:
    _check_status(response)
    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponseError(f"Invalid JSON from {response.request.url}") from e
