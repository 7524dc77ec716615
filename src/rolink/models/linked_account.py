"""Discord to Roblox account link model."""

from datetime import datetime

from sqlmodel import Field, SQLModel

from rolink.models.base import timestamp_field


class LinkedAccount(SQLModel, table=True):
    """A Discord user verified as the owner of a Roblox account.

    One link per Discord user; re-verification replaces the Roblox side.
    """

    __tablename__ = "verified_users"

    id: int | None = Field(default=None, primary_key=True)
    discord_id: str = Field(unique=True, index=True, max_length=32)
    roblox_id: str = Field(index=True, max_length=32, description="Stable Roblox user ID")
    roblox_username: str = Field(max_length=255)
    verified_at: datetime = timestamp_field()
    last_updated_at: datetime = timestamp_field()


class LinkedAccountCreate(SQLModel):
    """Schema for creating a link."""

    discord_id: str
    roblox_id: str
    roblox_username: str


class LinkedAccountUpdate(SQLModel):
    """Schema for replacing the Roblox side of a link."""

    roblox_id: str
    roblox_username: str


class LinkedAccountRead(SQLModel):
    """Schema for reading a link."""

    id: int
    discord_id: str
    roblox_id: str
    roblox_username: str
    verified_at: datetime
    last_updated_at: datetime
