"""Server approval request model."""

from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from rolink.models.base import timestamp_field


class ApprovalStatus(str, Enum):
    """Lifecycle of an approval request."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class ApprovalRequest(SQLModel, table=True):
    """Request to let the bot operate in a server, created when the bot joins."""

    __tablename__ = "approval_requests"

    id: int | None = Field(default=None, primary_key=True)
    server_id: str = Field(unique=True, index=True, max_length=32)
    server_name: str = Field(max_length=255)
    requested_by: str = Field(max_length=255, description="Tag of the server owner")
    member_count: int = Field(default=0)
    status: ApprovalStatus = Field(default=ApprovalStatus.PENDING)
    requested_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()


class ApprovalRequestCreate(SQLModel):
    """Schema for creating an approval request."""

    server_id: str
    server_name: str
    requested_by: str
    member_count: int = 0


class ApprovalRequestRead(SQLModel):
    """Schema for reading an approval request."""

    id: int
    server_id: str
    server_name: str
    requested_by: str
    member_count: int
    status: ApprovalStatus
    requested_at: datetime
    updated_at: datetime


class ApprovalStatusUpdate(SQLModel):
    """Schema for changing a request's status."""

    status: ApprovalStatus
