"""Linked account endpoints."""

from fastapi import APIRouter, HTTPException, status

from rolink.api.deps import SessionDep
from rolink.models.linked_account import LinkedAccountCreate, LinkedAccountRead, LinkedAccountUpdate
from rolink.services import storage

router = APIRouter()


@router.get("/verified/{discord_id}", response_model=LinkedAccountRead)
async def get_verified_user(discord_id: str, session: SessionDep):
    """Get the Roblox account linked to a Discord user."""
    account = await storage.get_linked_account(session, discord_id)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not verified")
    return account


@router.post("/verified", response_model=LinkedAccountRead, status_code=status.HTTP_201_CREATED)
async def create_verified_user(account_in: LinkedAccountCreate, session: SessionDep):
    """Link a Discord user to a Roblox account and count the verification."""
    if await storage.get_linked_account(session, account_in.discord_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Discord user {account_in.discord_id} is already verified",
        )
    account = await storage.create_linked_account(
        session,
        account_in.discord_id,
        account_in.roblox_id,
        account_in.roblox_username,
    )
    await storage.increment_verifications(session)
    await session.commit()
    return account


@router.patch("/verified/{discord_id}", response_model=LinkedAccountRead)
async def update_verified_user(discord_id: str, account_in: LinkedAccountUpdate, session: SessionDep):
    """Replace the Roblox account a Discord user is linked to."""
    account = await storage.update_linked_account(
        session,
        discord_id,
        account_in.roblox_id,
        account_in.roblox_username,
    )
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not verified")
    await session.commit()
    return account
