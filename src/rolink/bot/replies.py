"""Transport-neutral replies and interaction context for the bot.

The Discord gateway client turns events into ``InteractionContext`` and
renders ``Reply`` back into messages, embeds and buttons.
"""

from dataclasses import dataclass, field

from rolink.services.verification import NicknameSync


@dataclass(frozen=True)
class Button:
    custom_id: str
    label: str = "Verify"
    style: str = "primary"


@dataclass(frozen=True)
class Embed:
    title: str
    description: str
    color: int


@dataclass(frozen=True)
class Reply:
    content: str = ""
    embed: Embed | None = None
    buttons: tuple[Button, ...] = ()
    ephemeral: bool = False


@dataclass(frozen=True)
class InteractionContext:
    """Who triggered an interaction and where.

    ``server_id`` is None for direct messages. ``nickname_sync`` renames the
    member in the server and reports what happened.
    """

    user_id: str
    server_id: str | None
    user_tag: str = ""
    is_bot: bool = False
    nickname_sync: NicknameSync | None = field(default=None, compare=False)


@dataclass(frozen=True)
class GuildGreeting:
    """Messages to send after joining a server that still needs approval."""

    system_channel: str
    owner_dm: str


NOT_IN_SERVER_COMMAND = "Commands can only be used in servers, not in DMs."
NOT_IN_SERVER_BUTTON = "Buttons can only be used in servers, not in DMs."
NOT_APPROVED = "This server is not approved to use this bot. Please contact the bot owner to get approval."
NOT_APPROVED_SLASH = (
    "This server is not approved to use this bot. Please contact the bot owner to get approval "
    "or use the `/allowid` command if you are the bot admin."
)
COMMAND_ERROR = "There was an error executing that command."
BUTTON_ERROR = "There was an error processing your request. Please try again later."

MISSING_SERVER_ID = "Please provide a server ID."
ADMIN_DISABLED = "This command is currently disabled. Please contact the bot owner."
ADMIN_DENIED = "You don't have permission to use this command. This incident has been logged."

SLASH_HELP = (
    "Available Commands:\n"
    "- `/verify [roblox_username]` - Link your Discord account with your Roblox account\n"
    "- `/update` - Update your verification information\n"
    "- `/reverify [roblox_username]` - Re-verify with a different Roblox account\n"
    "- `/help` - Show this help message"
)
ADMIN_HELP = (
    "\n\nAdmin Commands:\n"
    "- `/allowid [server_id]` - Approve a server to use the bot\n"
    "- `/disallowid [server_id]` - Revoke a server's permission to use the bot"
)
SLASH_UNKNOWN = "Unknown command. Use `/help` to see available commands."

UPDATE_POINTER = "Please use `/update` to update your verification information."
REVERIFY_POINTER = "Please use `/reverify` to re-verify with a different Roblox account."
MISSING_HANDLE_TEXT = "Please provide your Roblox username. Example: `!verify YourRobloxUsername`"


def cooldown_message(command: str, retry_after: float) -> str:
    return f"Please wait {retry_after:.1f} more seconds before using the `{command}` command."


def text_help(prefix: str) -> str:
    return (
        "Available Commands:\n"
        f"- `{prefix}verify [roblox_username]` - Link your Discord account with your Roblox account\n"
        f"- `{prefix}done` - Confirm your verification once the code is in your profile\n"
        f"- `{prefix}update` - Update your verification information\n"
        f"- `{prefix}reverify [roblox_username]` - Re-verify with a different Roblox account\n"
        f"- `{prefix}help` - Show this help message\n\n"
        "You can also use slash commands like `/verify`, `/update`, `/reverify`, and `/help`."
    )


def text_unknown(prefix: str) -> str:
    return f"Unknown command. Use `{prefix}help` to see available commands."


def guild_greeting(server_name: str) -> GuildGreeting:
    body = (
        "This server is not yet approved to use this bot. Your request has been sent to the bot administrator.\n"
        "Once approved, all features will be available.\n\n"
        "For expedited approval, please contact us on our website."
    )
    return GuildGreeting(
        system_channel=f"Thank you for adding the Roblox Verifier bot!\n\n{body}",
        owner_dm=(
            f'Thank you for adding the Roblox Verifier bot to "{server_name}"!\n\n'
            + body.replace("This server is", "Your server is")
        ),
    )
