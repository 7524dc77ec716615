"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator
from typing import Any

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ADMIN_USER_ID"] = "100000000000000001"

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import rolink.models  # noqa: F401
from rolink.config import settings
from rolink.database import get_session
from rolink.main import app
from rolink.models import Server
from rolink.services.challenges import ChallengeStore
from rolink.services.identity import IdentityResolver
from rolink.services.profile import ProfileMatcher
from rolink.services.roblox import RobloxClient
from rolink.services.storage import DatabaseStorage
from rolink.services.verification import VerificationService


class FakeRoblox:
    """In-process stand-in for the Roblox web endpoints.

    Serves the users API (search, lookup by ID) from ``users`` and answers
    every other endpoint with 404, so lookups fall through to the users API.
    Set ``down`` to make every request fail at the transport level.
    """

    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.down = False

    def add_user(self, user_id: str, name: str, description: str = "") -> None:
        self.users[user_id] = {"id": int(user_id), "name": name, "description": description}

    def set_description(self, user_id: str, description: str) -> None:
        self.users[user_id]["description"] = description

    def requested_paths(self) -> list[str]:
        return [f"{r.url.host}{r.url.path}" for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.down:
            raise httpx.ConnectError("Roblox unreachable", request=request)

        if request.url.host == "users.roblox.com":
            path = request.url.path
            if path == "/v1/users/search":
                keyword = request.url.params.get("keyword", "").lower()
                matches = [
                    {"id": u["id"], "name": u["name"]}
                    for u in self.users.values()
                    if keyword in u["name"].lower()
                ]
                return httpx.Response(200, json={"data": matches})
            if path.startswith("/v1/users/"):
                user = self.users.get(path.rsplit("/", 1)[-1])
                if user is None:
                    return httpx.Response(404, json={"errors": [{"message": "User not found"}]})
                return httpx.Response(200, json=user)

        return httpx.Response(404, text="Not found")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-User-Id": settings.admin_user_id}


@pytest.fixture
def storage(session_factory) -> DatabaseStorage:
    return DatabaseStorage(session_factory, max_attempts=1)


@pytest.fixture
def fake_roblox() -> FakeRoblox:
    roblox = FakeRoblox()
    roblox.add_user("1234567", "Alice")
    return roblox


@pytest.fixture
async def roblox_client(fake_roblox: FakeRoblox) -> AsyncGenerator[RobloxClient, None]:
    client = RobloxClient(transport=fake_roblox.transport)
    yield client
    await client.close()


@pytest.fixture
def challenge_store() -> ChallengeStore:
    return ChallengeStore(code_factory=lambda: 482913)


@pytest.fixture
def verification(
    roblox_client: RobloxClient,
    challenge_store: ChallengeStore,
    storage: DatabaseStorage,
) -> VerificationService:
    return VerificationService(
        resolver=IdentityResolver(roblox_client),
        challenges=challenge_store,
        matcher=ProfileMatcher(roblox_client),
        storage=storage,
    )


@pytest.fixture
async def approved_server(session: AsyncSession) -> Server:
    server = Server(
        server_id="200000000000000002",
        server_name="Test Server",
        owner_discord_id="300000000000000003",
        is_approved=True,
        member_count=42,
    )
    session.add(server)
    await session.commit()
    return server
