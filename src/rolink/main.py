"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rolink import __version__
from rolink.api.middleware import RequestIDMiddleware
from rolink.api.router import api_router
from rolink.bot import BotRuntime
from rolink.config import settings
from rolink.database import async_session_factory, close_db

logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking
if settings.sentry_dsn:
    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
    )
    logger.info("Sentry initialized")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Database schema is managed by Alembic migrations
    runtime = BotRuntime.create(settings, async_session_factory)
    app.state.bot = runtime
    if settings.discord_bot_token:
        await runtime.start()
    else:
        logger.warning("DISCORD_BOT_TOKEN not set, bot background tasks will not run")
    yield
    await runtime.stop()
    await close_db()


app = FastAPI(
    title="Rolink API",
    description="Discord to Roblox account verification",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug_enabled else None,
    redoc_url="/api/redoc" if settings.debug_enabled else None,
    openapi_url="/api/openapi.json" if settings.debug_enabled else None,
)

# Request ID middleware for distributed tracing
app.add_middleware(RequestIDMiddleware)  # type: ignore[arg-type]

# CORS middleware
app.add_middleware(
    CORSMiddleware,  # type: ignore[arg-type]
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Request-ID", "X-User-Id"],
    expose_headers=["X-Request-ID"],
)

# Include API router
app.include_router(api_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    from rolink.logging import get_uvicorn_log_config

    uvicorn.run(
        "rolink.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_config=get_uvicorn_log_config(),
    )
