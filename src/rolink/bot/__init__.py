"""Discord interaction handling for the verification bot."""

from rolink.bot.dispatcher import CommandDispatcher
from rolink.bot.replies import Button, Embed, GuildGreeting, InteractionContext, Reply
from rolink.bot.runtime import BotRuntime

__all__ = [
    "BotRuntime",
    "Button",
    "CommandDispatcher",
    "Embed",
    "GuildGreeting",
    "InteractionContext",
    "Reply",
]
