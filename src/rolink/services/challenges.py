"""In-memory store of pending verification challenges.

One outstanding challenge per Discord user; issuing a new one replaces the
old. Entries live for ``ttl`` seconds and are lost on restart, so users who
were mid-verification simply see "no pending challenge" afterwards.
"""

import asyncio
import contextlib
import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "VERIFY"

DEFAULT_TTL_SECONDS = 600.0
DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0


class ChallengeKind(str, Enum):
    """Which flow issued the challenge, deciding create vs update on success."""

    VERIFY = "verify"
    REVERIFY = "reverify"


@dataclass(frozen=True)
class Challenge:
    """A code the user must place in their Roblox profile."""

    requester_id: str
    token: str
    target_id: str
    target_handle: str
    kind: ChallengeKind
    issued_at: float

    def is_expired(self, now: float, ttl: float) -> bool:
        return now - self.issued_at > ttl


def _random_code() -> int:
    return 100_000 + secrets.randbelow(900_000)


def make_token(requester_id: str, code: int) -> str:
    """Build ``VERIFY-######-XXXX`` where XXXX is the requester's last 4 characters."""
    return f"{TOKEN_PREFIX}-{code:06d}-{requester_id[-4:]}"


class ChallengeStore:
    """Challenges keyed by requester, with a background expiry sweep."""

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        code_factory: Callable[[], int] = _random_code,
    ) -> None:
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._code_factory = code_factory
        self._challenges: dict[str, Challenge] = {}
        self._sweeper: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._challenges)

    def issue(
        self,
        requester_id: str,
        target_id: str,
        target_handle: str,
        kind: ChallengeKind = ChallengeKind.VERIFY,
    ) -> Challenge:
        """Create a challenge, replacing any the requester already had."""
        challenge = Challenge(
            requester_id=requester_id,
            token=make_token(requester_id, self._code_factory()),
            target_id=target_id,
            target_handle=target_handle,
            kind=kind,
            issued_at=self._clock(),
        )
        replaced = self._challenges.get(requester_id)
        self._challenges[requester_id] = challenge
        if replaced is not None:
            logger.debug(f"Replaced pending challenge for {requester_id}")
        return challenge

    def peek(self, requester_id: str) -> Challenge | None:
        """Current unexpired challenge, left in place."""
        challenge = self._challenges.get(requester_id)
        if challenge is None or challenge.is_expired(self._clock(), self.ttl):
            return None
        return challenge

    def consume(self, requester_id: str) -> None:
        """Delete the requester's challenge, if any."""
        self._challenges.pop(requester_id, None)

    def claim(self, requester_id: str, token: str) -> Challenge | None:
        """Atomically remove and return the challenge if it still holds ``token``.

        Contains no await, so two concurrent confirmations can never both
        claim the same challenge.
        """
        challenge = self.peek(requester_id)
        if challenge is None or challenge.token != token:
            return None
        del self._challenges[requester_id]
        return challenge

    def restore(self, challenge: Challenge) -> bool:
        """Put back a claimed challenge unless a newer one has been issued."""
        if challenge.requester_id in self._challenges:
            return False
        self._challenges[challenge.requester_id] = challenge
        return True

    def sweep(self) -> int:
        """Remove every expired challenge. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, c in self._challenges.items() if c.is_expired(now, self.ttl)]
        for key in expired:
            del self._challenges[key]
        return len(expired)

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._run_sweeper(), name="challenge-sweeper")

    async def stop(self) -> None:
        """Cancel the periodic sweep."""
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweeper
        self._sweeper = None

    async def _run_sweeper(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            removed = self.sweep()
            if removed:
                logger.info(f"Expired {removed} verification challenge(s)")
