"""Persistence operations for servers, account links, approval requests and stats.

Module-level functions take a session and only flush; callers own the
transaction. ``DatabaseStorage`` wraps them with a session and commit per
call for the bot side, which has no request-scoped session.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from rolink.models import ApprovalRequest, ApprovalStatus, BotStats, LinkedAccount, Server
from rolink.models.approval_request import ApprovalRequestCreate
from rolink.models.base import utcnow
from rolink.models.server import ServerCreate
from rolink.services.resilience import with_retry

logger = logging.getLogger(__name__)


# Servers


async def get_server(session: AsyncSession, server_id: str) -> Server | None:
    stmt = select(Server).where(Server.server_id == server_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_servers(session: AsyncSession, *, approved_only: bool = False) -> list[Server]:
    stmt = select(Server).order_by(Server.id)  # type: ignore[arg-type]
    if approved_only:
        stmt = stmt.where(Server.is_approved == True)  # noqa: E712
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_server(session: AsyncSession, data: ServerCreate) -> Server:
    server = Server(
        server_id=data.server_id,
        server_name=data.server_name,
        owner_discord_id=data.owner_discord_id,
        is_approved=data.is_approved,
        member_count=data.member_count,
        approved_at=utcnow() if data.is_approved else None,
    )
    session.add(server)
    await session.flush()
    return server


async def set_server_approval(session: AsyncSession, server_id: str, is_approved: bool) -> Server | None:
    """Approve or revoke a server. Returns None if the server is unknown."""
    server = await get_server(session, server_id)
    if server is None:
        return None
    server.is_approved = is_approved
    server.approved_at = utcnow() if is_approved else None
    await session.flush()
    return server


async def is_server_approved(session: AsyncSession, server_id: str) -> bool:
    server = await get_server(session, server_id)
    return bool(server and server.is_approved)


# Linked accounts


async def get_linked_account(session: AsyncSession, discord_id: str) -> LinkedAccount | None:
    stmt = select(LinkedAccount).where(LinkedAccount.discord_id == discord_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_linked_account_by_roblox_id(session: AsyncSession, roblox_id: str) -> LinkedAccount | None:
    stmt = select(LinkedAccount).where(LinkedAccount.roblox_id == roblox_id)
    result = await session.execute(stmt)
    return result.scalars().first()


async def list_linked_accounts(session: AsyncSession) -> list[LinkedAccount]:
    stmt = select(LinkedAccount).order_by(LinkedAccount.verified_at)  # type: ignore[arg-type]
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_linked_account(
    session: AsyncSession,
    discord_id: str,
    roblox_id: str,
    roblox_username: str,
) -> LinkedAccount:
    now = utcnow()
    account = LinkedAccount(
        discord_id=discord_id,
        roblox_id=roblox_id,
        roblox_username=roblox_username,
        verified_at=now,
        last_updated_at=now,
    )
    session.add(account)
    await session.flush()
    return account


async def update_linked_account(
    session: AsyncSession,
    discord_id: str,
    roblox_id: str,
    roblox_username: str,
) -> LinkedAccount | None:
    """Replace the Roblox side of a link. Returns None if there is no link."""
    account = await get_linked_account(session, discord_id)
    if account is None:
        return None
    account.roblox_id = roblox_id
    account.roblox_username = roblox_username
    account.last_updated_at = utcnow()
    await session.flush()
    return account


# Approval requests


async def get_approval_request(session: AsyncSession, server_id: str) -> ApprovalRequest | None:
    stmt = select(ApprovalRequest).where(ApprovalRequest.server_id == server_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_approval_requests(
    session: AsyncSession,
    status: ApprovalStatus | None = None,
) -> list[ApprovalRequest]:
    stmt = select(ApprovalRequest).order_by(ApprovalRequest.requested_at)  # type: ignore[arg-type]
    if status is not None:
        stmt = stmt.where(ApprovalRequest.status == status)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_approval_request(session: AsyncSession, data: ApprovalRequestCreate) -> ApprovalRequest:
    now = utcnow()
    request = ApprovalRequest(
        server_id=data.server_id,
        server_name=data.server_name,
        requested_by=data.requested_by,
        member_count=data.member_count,
        status=ApprovalStatus.PENDING,
        requested_at=now,
        updated_at=now,
    )
    session.add(request)
    await session.flush()
    return request


async def set_approval_request_status(
    session: AsyncSession,
    server_id: str,
    status: ApprovalStatus,
) -> ApprovalRequest | None:
    request = await get_approval_request(session, server_id)
    if request is None:
        return None
    request.status = status
    request.updated_at = utcnow()
    await session.flush()
    return request


# Bot stats


async def get_bot_stats(session: AsyncSession) -> BotStats | None:
    stmt = select(BotStats).order_by(BotStats.id)  # type: ignore[arg-type]
    result = await session.execute(stmt)
    return result.scalars().first()


async def get_or_create_bot_stats(session: AsyncSession) -> BotStats:
    stats = await get_bot_stats(session)
    if stats is None:
        stats = BotStats()
        session.add(stats)
        await session.flush()
    return stats


async def increment_commands_run(session: AsyncSession) -> None:
    stats = await get_or_create_bot_stats(session)
    await session.execute(
        update(BotStats)
        .where(BotStats.id == stats.id)  # type: ignore[arg-type]
        .values(commands_run=BotStats.commands_run + 1)
        .execution_options(synchronize_session="fetch")
    )


async def increment_verifications(session: AsyncSession) -> None:
    stats = await get_or_create_bot_stats(session)
    await session.execute(
        update(BotStats)
        .where(BotStats.id == stats.id)  # type: ignore[arg-type]
        .values(verifications=BotStats.verifications + 1)
        .execution_options(synchronize_session="fetch")
    )


async def set_uptime(session: AsyncSession, seconds: int) -> None:
    stats = await get_or_create_bot_stats(session)
    stats.uptime = seconds
    await session.flush()


async def mark_startup(session: AsyncSession, when: datetime | None = None) -> None:
    stats = await get_or_create_bot_stats(session)
    stats.last_startup = when or utcnow()
    stats.uptime = 0
    await session.flush()


# Sample data

SAMPLE_SERVERS = [
    ServerCreate(
        server_id="123456789012345678",
        server_name="Premium Server #1",
        owner_discord_id="987654321098765432",
        is_approved=True,
        member_count=250,
    ),
    ServerCreate(
        server_id="234567890123456789",
        server_name="Gaming Community",
        owner_discord_id="876543210987654321",
        is_approved=True,
        member_count=820,
    ),
    ServerCreate(
        server_id="345678901234567890",
        server_name="Roblox Developers",
        owner_discord_id="765432109876543210",
        is_approved=True,
        member_count=1500,
    ),
]

SAMPLE_APPROVAL_REQUESTS = [
    ApprovalRequestCreate(
        server_id="456789012345678901",
        server_name="Roblox Fan Server",
        requested_by="UsernameExample#1234",
        member_count=250,
    ),
    ApprovalRequestCreate(
        server_id="567890123456789012",
        server_name="Gaming Community",
        requested_by="GamerTag#5678",
        member_count=820,
    ),
]


async def seed_sample_data(session: AsyncSession) -> dict[str, int]:
    """Fill empty tables with demo servers, approval requests and a stats row.

    Tables that already have rows are left alone.

    Returns:
        Number of rows created per table
    """
    created = {"servers": 0, "approval_requests": 0, "bot_stats": 0}

    if not await list_servers(session):
        for data in SAMPLE_SERVERS:
            await create_server(session, data)
        created["servers"] = len(SAMPLE_SERVERS)

    if not await list_approval_requests(session):
        for data in SAMPLE_APPROVAL_REQUESTS:
            await create_approval_request(session, data)
        created["approval_requests"] = len(SAMPLE_APPROVAL_REQUESTS)

    if await get_bot_stats(session) is None:
        await get_or_create_bot_stats(session)
        created["bot_stats"] = 1

    logger.info(f"Seeded sample data: {created}")
    return created


class DatabaseStorage:
    """Session-per-call persistence used by the verification flow and the bot."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_attempts: int = 3,
    ) -> None:
        self.session_factory = session_factory
        self.max_attempts = max_attempts

    async def _run[T](self, operation: Callable[[AsyncSession], Awaitable[T]], *, commit: bool = False) -> T:
        async def once() -> T:
            async with self.session_factory() as session:
                result = await operation(session)
                if commit:
                    await session.commit()
                return result

        return await with_retry(once, max_attempts=self.max_attempts)

    async def get_linked_account(self, discord_id: str) -> LinkedAccount | None:
        return await self._run(lambda s: get_linked_account(s, discord_id))

    async def create_linked_account(self, discord_id: str, roblox_id: str, roblox_username: str) -> LinkedAccount:
        return await self._run(
            lambda s: create_linked_account(s, discord_id, roblox_id, roblox_username),
            commit=True,
        )

    async def update_linked_account(
        self, discord_id: str, roblox_id: str, roblox_username: str
    ) -> LinkedAccount | None:
        return await self._run(
            lambda s: update_linked_account(s, discord_id, roblox_id, roblox_username),
            commit=True,
        )

    async def increment_verifications(self) -> None:
        await self._run(increment_verifications, commit=True)

    async def increment_commands_run(self) -> None:
        await self._run(increment_commands_run, commit=True)

    async def is_server_approved(self, server_id: str) -> bool:
        return await self._run(lambda s: is_server_approved(s, server_id))

    async def get_server(self, server_id: str) -> Server | None:
        return await self._run(lambda s: get_server(s, server_id))

    async def approve_server(self, server_id: str, owner_discord_id: str) -> Server:
        """Approve a server, registering a placeholder row if it was never seen."""

        async def operation(session: AsyncSession) -> Server:
            server = await set_server_approval(session, server_id, True)
            if server is None:
                server = await create_server(
                    session,
                    ServerCreate(
                        server_id=server_id,
                        server_name="Approved Server",
                        owner_discord_id=owner_discord_id,
                        is_approved=True,
                    ),
                )
            await set_approval_request_status(session, server_id, ApprovalStatus.APPROVED)
            return server

        return await self._run(operation, commit=True)

    async def revoke_server(self, server_id: str) -> Server | None:
        """Revoke approval. Returns None if the server is unknown."""

        async def operation(session: AsyncSession) -> Server | None:
            server = await set_server_approval(session, server_id, False)
            if server is not None:
                await set_approval_request_status(session, server_id, ApprovalStatus.DENIED)
            return server

        return await self._run(operation, commit=True)

    async def register_pending_server(
        self,
        server_id: str,
        server_name: str,
        owner_discord_id: str,
        owner_tag: str,
        member_count: int,
    ) -> bool:
        """Record a newly joined server awaiting approval.

        Returns False when the server is already approved and nothing was recorded.
        """

        async def operation(session: AsyncSession) -> bool:
            server = await get_server(session, server_id)
            if server is not None and server.is_approved:
                return False

            if await get_approval_request(session, server_id) is None:
                await create_approval_request(
                    session,
                    ApprovalRequestCreate(
                        server_id=server_id,
                        server_name=server_name,
                        requested_by=owner_tag,
                        member_count=member_count,
                    ),
                )
            else:
                await set_approval_request_status(session, server_id, ApprovalStatus.PENDING)

            if server is None:
                await create_server(
                    session,
                    ServerCreate(
                        server_id=server_id,
                        server_name=server_name,
                        owner_discord_id=owner_discord_id,
                        member_count=member_count,
                    ),
                )
            else:
                server.server_name = server_name
                server.member_count = member_count
                await session.flush()
            return True

        return await self._run(operation, commit=True)

    async def mark_startup(self) -> None:
        await self._run(mark_startup, commit=True)

    async def update_uptime(self, seconds: int) -> None:
        await self._run(lambda s: set_uptime(s, seconds), commit=True)

    async def get_bot_stats(self) -> BotStats | None:
        return await self._run(get_bot_stats)
