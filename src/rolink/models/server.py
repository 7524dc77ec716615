"""Discord server (guild) approval model."""

from datetime import datetime

from sqlmodel import Field, SQLModel

from rolink.models.base import timestamp_field


class Server(SQLModel, table=True):
    """A Discord server the bot has joined or been approved for."""

    __tablename__ = "servers"

    id: int | None = Field(default=None, primary_key=True)
    server_id: str = Field(unique=True, index=True, max_length=32, description="Discord guild ID")
    server_name: str = Field(max_length=255)
    owner_discord_id: str = Field(max_length=32)
    is_approved: bool = Field(default=False)
    member_count: int = Field(default=0)
    requested_at: datetime = timestamp_field()
    approved_at: datetime | None = timestamp_field(nullable=True)


class ServerCreate(SQLModel):
    """Schema for registering a server."""

    server_id: str
    server_name: str
    owner_discord_id: str
    is_approved: bool = False
    member_count: int = 0


class ServerRead(SQLModel):
    """Schema for reading a server."""

    id: int
    server_id: str
    server_name: str
    owner_discord_id: str
    is_approved: bool
    member_count: int
    requested_at: datetime
    approved_at: datetime | None


class ServerApprovalUpdate(SQLModel):
    """Schema for changing a server's approval."""

    is_approved: bool
