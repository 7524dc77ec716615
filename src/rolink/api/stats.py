"""Bot dashboard counters."""

from fastapi import APIRouter, HTTPException, status

from rolink.api.deps import SessionDep
from rolink.models.bot_stats import BotStatsRead
from rolink.services import storage

router = APIRouter()


@router.get("/stats", response_model=BotStatsRead)
async def get_bot_stats(session: SessionDep):
    """Commands run, verifications, uptime and last startup."""
    stats = await storage.get_bot_stats(session)
    if stats is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bot stats not found")
    return stats
