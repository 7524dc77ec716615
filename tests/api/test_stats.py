"""Bot stats endpoint tests."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from rolink.services import storage


@pytest.mark.asyncio
async def test_stats_not_found(client: AsyncClient):
    """Test stats before the bot has ever started."""
    response = await client.get("/api/bot/stats")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_stats(client: AsyncClient, session: AsyncSession):
    """Test reading the dashboard counters."""
    await storage.mark_startup(session)
    await storage.increment_commands_run(session)
    await storage.set_uptime(session, 90)
    await session.commit()

    response = await client.get("/api/bot/stats")
    assert response.status_code == 200
    data = response.json()
    assert data["commands_run"] == 1
    assert data["verifications"] == 0
    assert data["uptime"] == 90
    assert data["last_startup"] is not None
