"""Linked account endpoint tests."""

import pytest
from httpx import AsyncClient

LINK = {"discord_id": "111", "roblox_id": "1234567", "roblox_username": "Alice"}


@pytest.mark.asyncio
async def test_get_verified_user_not_found(client: AsyncClient):
    """Test looking up a Discord user with no link."""
    response = await client.get("/api/users/verified/111")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_verified_user(client: AsyncClient):
    """Test linking a Discord user to a Roblox account."""
    response = await client.post("/api/users/verified", json=LINK)
    assert response.status_code == 201
    data = response.json()
    assert data["roblox_username"] == "Alice"
    assert data["verified_at"] is not None

    response = await client.get("/api/users/verified/111")
    assert response.status_code == 200
    assert response.json()["roblox_id"] == "1234567"


@pytest.mark.asyncio
async def test_create_verified_user_counts_verification(client: AsyncClient):
    """Test that a new link bumps the verification counter."""
    await client.post("/api/users/verified", json=LINK)

    response = await client.get("/api/bot/stats")
    assert response.status_code == 200
    assert response.json()["verifications"] == 1


@pytest.mark.asyncio
async def test_create_verified_user_duplicate(client: AsyncClient):
    """Test that a Discord user can only be linked once."""
    await client.post("/api/users/verified", json=LINK)

    response = await client.post("/api/users/verified", json={**LINK, "roblox_username": "Other"})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_update_verified_user(client: AsyncClient):
    """Test moving a link to another Roblox account."""
    await client.post("/api/users/verified", json=LINK)

    response = await client.patch(
        "/api/users/verified/111",
        json={"roblox_id": "7654321", "roblox_username": "Bob"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["roblox_id"] == "7654321"
    assert data["roblox_username"] == "Bob"


@pytest.mark.asyncio
async def test_update_verified_user_not_found(client: AsyncClient):
    """Test updating a link that does not exist."""
    response = await client.patch(
        "/api/users/verified/111",
        json={"roblox_id": "7654321", "roblox_username": "Bob"},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_verified_user_validation(client: AsyncClient):
    """Test that all link fields are required."""
    response = await client.post("/api/users/verified", json={"discord_id": "111"})
    assert response.status_code == 422
