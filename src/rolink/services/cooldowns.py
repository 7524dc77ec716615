"""Per-user, per-command cooldowns for bot commands."""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass
class CooldownResult:
    """Result of a cooldown check."""

    allowed: bool
    retry_after: float  # Seconds until the command may be used again


class CommandCooldowns:
    """In-memory cooldown table keyed by ``{user_id}-{command}``.

    Entries are evicted once their cooldown has passed, so the table only
    holds users who ran something in the last ``cooldown`` seconds.
    Suitable for a single bot process.
    """

    def __init__(
        self,
        cooldown: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown = cooldown
        self._clock = clock
        # Maps key to the time the command was last allowed
        self._last_used: dict[str, float] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._last_used)

    async def check(self, user_id: str, command: str) -> CooldownResult:
        """Record a use of ``command`` by ``user_id`` unless it is still cooling down.

        Args:
            user_id: Discord user ID
            command: Command name

        Returns:
            CooldownResult; a denied check does not restart the cooldown
        """
        key = f"{user_id}-{command}"
        now = self._clock()

        async with self._lock:
            self._evict_expired(now)

            last = self._last_used.get(key)
            if last is not None:
                remaining = last + self.cooldown - now
                if remaining > 0:
                    return CooldownResult(allowed=False, retry_after=remaining)

            self._last_used[key] = now
            return CooldownResult(allowed=True, retry_after=0.0)

    def _evict_expired(self, now: float) -> int:
        expired = [key for key, last in self._last_used.items() if now - last >= self.cooldown]
        for key in expired:
            del self._last_used[key]
        return len(expired)

    async def cleanup_old_entries(self) -> int:
        """Remove expired entries from memory.

        Returns:
            Number of entries removed
        """
        async with self._lock:
            return self._evict_expired(self._clock())

    def reset(self) -> None:
        """Reset all cooldown entries. Useful for testing."""
        self._last_used.clear()
