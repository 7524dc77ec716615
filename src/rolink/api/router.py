"""Main API router that aggregates all route modules."""

from fastapi import APIRouter

from rolink.api import approval_requests, health, servers, stats, users

api_router = APIRouter()

# Include all route modules
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(servers.router, prefix="/servers", tags=["servers"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(
    approval_requests.router,
    prefix="/approval-requests",
    tags=["approval-requests"],
)
api_router.include_router(stats.router, prefix="/bot", tags=["stats"])
