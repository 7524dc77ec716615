"""Logging configuration for the bot, API and CLI."""

import logging
import sys
from typing import Any

from rolink.config import settings

DEV_FORMAT = "%(levelname)s:     %(name)s - %(message)s"

# Request id is stamped by RequestContextFilter, "-" outside a request
PROD_FORMAT = "%(asctime)s - [%(request_id)s] %(name)s - %(levelname)s - %(message)s"

REQUEST_FILTER = "rolink.api.middleware.RequestContextFilter"

# Every failed lookup strategy already logs its own warning
QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite")


def _handler(formatter: str) -> dict[str, Any]:
    return {
        "class": "logging.StreamHandler",
        "formatter": formatter,
        "filters": ["request_context"],
        "stream": "ext://sys.stdout",
    }


def get_uvicorn_log_config() -> dict[str, Any]:
    """dictConfig for uvicorn that shares the app's formats and request ids."""
    is_dev = settings.is_development
    access_fmt = (
        '%(levelprefix)s "%(request_line)s" %(status_code)s'
        if is_dev
        else '%(levelprefix)s [%(request_id)s] %(client_addr)s - "%(request_line)s" %(status_code)s'
    )

    loggers: dict[str, Any] = {
        "uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
        "uvicorn.error": {"handlers": ["app"], "level": "INFO", "propagate": False},
    }
    for name in QUIET_LOGGERS:
        loggers[name] = {"level": "WARNING"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_context": {"()": REQUEST_FILTER}},
        "formatters": {
            "access": {"()": "uvicorn.logging.AccessFormatter", "fmt": access_fmt},
            "app": {"format": DEV_FORMAT if is_dev else PROD_FORMAT},
        },
        "handlers": {"access": _handler("access"), "app": _handler("app")},
        "loggers": loggers,
        "root": {"handlers": ["app"], "level": settings.log_level},
    }


def setup_logging(level: str | None = None) -> None:
    """Configure root logging for the bot and CLI.

    ``level`` overrides ``LOG_LEVEL``, e.g. for ``rolink --verbose``.
    """
    from rolink.api.middleware import RequestContextFilter

    logging.basicConfig(
        level=getattr(logging, level or settings.log_level),
        format=DEV_FORMAT if settings.is_development else PROD_FORMAT,
        stream=sys.stdout,
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(RequestContextFilter())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
