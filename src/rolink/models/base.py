"""Shared helpers for table timestamps."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime
from sqlmodel import Field


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def timestamp_field(*, nullable: bool = False, description: str | None = None) -> Any:
    """Timezone-aware timestamp column, defaulting to now unless nullable."""
    if nullable:
        return Field(
            default=None,
            nullable=True,
            sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
            description=description,
        )
    return Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
        description=description,
    )
