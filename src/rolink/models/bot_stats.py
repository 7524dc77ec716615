"""Dashboard counters."""

from datetime import datetime

from sqlmodel import Field, SQLModel

from rolink.models.base import timestamp_field


class BotStats(SQLModel, table=True):
    """Single-row table of bot usage counters."""

    __tablename__ = "bot_stats"

    id: int | None = Field(default=None, primary_key=True)
    commands_run: int = Field(default=0)
    verifications: int = Field(default=0)
    uptime: int = Field(default=0, description="Seconds since last startup")
    last_startup: datetime = timestamp_field()


class BotStatsRead(SQLModel):
    """Schema for reading bot stats."""

    id: int
    commands_run: int
    verifications: int
    uptime: int
    last_startup: datetime
