"""SQLModel database models."""

from rolink.models.approval_request import ApprovalRequest, ApprovalStatus
from rolink.models.bot_stats import BotStats
from rolink.models.linked_account import LinkedAccount
from rolink.models.server import Server

__all__ = [
    "ApprovalRequest",
    "ApprovalStatus",
    "BotStats",
    "LinkedAccount",
    "Server",
]
