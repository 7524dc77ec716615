"""FastAPI dependencies for dependency injection."""

import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from rolink.config import settings
from rolink.database import get_session

logger = logging.getLogger(__name__)

# Type alias for database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_admin_user_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """Require the caller to identify as the configured admin Discord user."""
    if not settings.admin_user_id:
        logger.error("ADMIN_USER_ID is not set, admin endpoints are disabled")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Admin user is not configured",
        )
    if x_user_id != settings.admin_user_id:
        logger.warning(f"Rejected admin request from user {x_user_id!r}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return x_user_id


AdminUserId = Annotated[str, Depends(get_admin_user_id)]
