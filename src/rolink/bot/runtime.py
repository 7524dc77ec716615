"""Wires the verification services together for one bot process."""

import asyncio
import contextlib
import logging
import time
from typing import Self

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rolink.bot.dispatcher import CommandDispatcher
from rolink.config import Settings
from rolink.services.challenges import ChallengeStore
from rolink.services.cooldowns import CommandCooldowns
from rolink.services.identity import IdentityResolver
from rolink.services.profile import ProfileMatcher
from rolink.services.roblox import RobloxClient
from rolink.services.storage import DatabaseStorage
from rolink.services.verification import VerificationService

logger = logging.getLogger(__name__)


class BotRuntime:
    """Owns every piece of in-memory bot state and the background tasks.

    Created at startup, torn down at shutdown. Tests build one against an
    in-memory database and a mocked Roblox transport.
    """

    def __init__(
        self,
        settings: Settings,
        roblox: RobloxClient,
        storage: DatabaseStorage,
        challenges: ChallengeStore,
        verification: VerificationService,
        dispatcher: CommandDispatcher,
    ) -> None:
        self.settings = settings
        self.roblox = roblox
        self.storage = storage
        self.challenges = challenges
        self.verification = verification
        self.dispatcher = dispatcher
        self._started_at: float | None = None
        self._uptime_task: asyncio.Task[None] | None = None

    @classmethod
    def create(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> Self:
        roblox = RobloxClient.from_settings(settings, transport=transport)
        storage = DatabaseStorage(session_factory, max_attempts=settings.storage_max_attempts)
        challenges = ChallengeStore(
            ttl=settings.challenge_ttl_seconds,
            sweep_interval=settings.challenge_sweep_interval_seconds,
        )
        verification = VerificationService(
            resolver=IdentityResolver.from_settings(roblox, settings),
            challenges=challenges,
            matcher=ProfileMatcher.from_settings(roblox, settings),
            storage=storage,
        )
        dispatcher = CommandDispatcher(
            verification,
            storage,
            CommandCooldowns(cooldown=settings.command_cooldown_seconds),
            admin_user_id=settings.admin_user_id,
            prefix=settings.command_prefix,
        )
        return cls(settings, roblox, storage, challenges, verification, dispatcher)

    @property
    def uptime_seconds(self) -> int:
        if self._started_at is None:
            return 0
        return int(time.monotonic() - self._started_at)

    async def start(self) -> None:
        """Record the startup and launch the challenge sweep and uptime tracker."""
        try:
            await self.storage.mark_startup()
        except Exception as e:
            logger.error(f"Could not record bot startup: {e!r}")

        self._started_at = time.monotonic()
        self.challenges.start()
        if self._uptime_task is None:
            self._uptime_task = asyncio.create_task(self._track_uptime(), name="uptime-tracker")
        logger.info("Bot runtime started")

    async def stop(self) -> None:
        await self.challenges.stop()
        if self._uptime_task is not None:
            self._uptime_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._uptime_task
            self._uptime_task = None
        await self.roblox.close()
        logger.info("Bot runtime stopped")

    async def _track_uptime(self) -> None:
        while True:
            await asyncio.sleep(self.settings.uptime_interval_seconds)
            try:
                await self.storage.update_uptime(self.uptime_seconds)
            except Exception as e:
                logger.warning(f"Could not update uptime: {e!r}")
