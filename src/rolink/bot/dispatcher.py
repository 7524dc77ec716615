"""Routes slash commands, button clicks and prefix messages to the verification flow."""

import logging
from typing import Any

from rolink.bot import replies
from rolink.bot.replies import Button, Embed, GuildGreeting, InteractionContext, Reply
from rolink.services.cooldowns import CommandCooldowns
from rolink.services.storage import DatabaseStorage
from rolink.services.verification import (
    REVERIFY_BUTTON_ID,
    VERIFY_BUTTON_ID,
    AlreadyLinkedError,
    ChallengeIssued,
    MissingHandleError,
    VerificationError,
    VerificationService,
    instructions,
)

logger = logging.getLogger(__name__)

ADMIN_COMMANDS = frozenset({"allowid", "disallowid"})
CONFIRM_BUTTONS = frozenset({VERIFY_BUTTON_ID, REVERIFY_BUTTON_ID})


def _challenge_reply(issued: ChallengeIssued) -> Reply:
    return Reply(
        embed=Embed(title=issued.title, description=issued.embed_text, color=issued.color),
        buttons=(Button(custom_id=issued.button_id, label="Verify"),),
        ephemeral=True,
    )


class CommandDispatcher:
    """Turns interactions into replies. Never raises for a handler failure."""

    def __init__(
        self,
        verification: VerificationService,
        storage: DatabaseStorage,
        cooldowns: CommandCooldowns,
        admin_user_id: str = "",
        prefix: str = "!",
    ) -> None:
        self.verification = verification
        self.storage = storage
        self.cooldowns = cooldowns
        self.admin_user_id = admin_user_id
        self.prefix = prefix

    def is_admin(self, user_id: str) -> bool:
        return bool(self.admin_user_id) and user_id == self.admin_user_id

    async def _is_allowed_here(self, ctx: InteractionContext) -> bool:
        if self.is_admin(ctx.user_id):
            return True
        if ctx.server_id is None:
            return False
        return await self.storage.is_server_approved(ctx.server_id)

    async def _cooldown_reply(self, ctx: InteractionContext, command: str, *, ephemeral: bool) -> Reply | None:
        """Reply to send if the command is cooling down, else record the use and count it."""
        result = await self.cooldowns.check(ctx.user_id, command)
        if not result.allowed:
            return Reply(content=replies.cooldown_message(command, result.retry_after), ephemeral=ephemeral)

        try:
            await self.storage.increment_commands_run()
        except Exception as e:
            logger.warning(f"Could not increment commands run: {e!r}")
        return None

    # Slash commands

    async def handle_slash_command(
        self,
        ctx: InteractionContext,
        name: str,
        options: dict[str, Any] | None = None,
    ) -> Reply:
        options = options or {}
        if ctx.server_id is None:
            return Reply(content=replies.NOT_IN_SERVER_COMMAND, ephemeral=True)

        try:
            if name not in ADMIN_COMMANDS and not await self._is_allowed_here(ctx):
                return Reply(content=replies.NOT_APPROVED_SLASH, ephemeral=True)

            limited = await self._cooldown_reply(ctx, name, ephemeral=True)
            if limited is not None:
                return limited

            return await self._run_slash(ctx, name, options)
        except VerificationError as e:
            return Reply(content=str(e), ephemeral=True)
        except Exception as e:
            logger.error(f"Error executing slash command {name}: {e!r}", exc_info=True)
            return Reply(content=replies.COMMAND_ERROR, ephemeral=True)

    async def _run_slash(self, ctx: InteractionContext, name: str, options: dict[str, Any]) -> Reply:
        match name:
            case "verify":
                issued = await self.verification.start_verify(ctx.user_id, options.get("username"))
                return _challenge_reply(issued)
            case "reverify":
                issued = await self.verification.start_reverify(ctx.user_id, options.get("username"))
                return _challenge_reply(issued)
            case "update":
                result = await self.verification.start_update(ctx.user_id, ctx.nickname_sync)
                return Reply(content=result.message, ephemeral=True)
            case "help":
                content = replies.SLASH_HELP
                if self.is_admin(ctx.user_id):
                    content += replies.ADMIN_HELP
                return Reply(content=content, ephemeral=True)
            case "allowid" | "disallowid":
                return await self._run_admin(ctx, name, options.get("server_id"))
            case _:
                return Reply(content=replies.SLASH_UNKNOWN, ephemeral=True)

    async def _run_admin(self, ctx: InteractionContext, name: str, server_id: str | None) -> Reply:
        if not server_id:
            return Reply(content=replies.MISSING_SERVER_ID, ephemeral=True)
        if not self.admin_user_id:
            logger.error("ADMIN_USER_ID is not set, admin commands are disabled")
            return Reply(content=replies.ADMIN_DISABLED, ephemeral=True)
        if ctx.user_id != self.admin_user_id:
            logger.warning(f"Unauthorized attempt to use /{name} by user {ctx.user_id} ({ctx.user_tag})")
            return Reply(content=replies.ADMIN_DENIED, ephemeral=True)

        if name == "allowid":
            logger.info(f"Admin {ctx.user_tag} ({ctx.user_id}) is approving server {server_id}")
            await self.storage.approve_server(server_id, ctx.user_id)
            return Reply(content=f"Server {server_id} has been approved.", ephemeral=True)

        logger.info(f"Admin {ctx.user_tag} ({ctx.user_id}) is revoking server {server_id}")
        server = await self.storage.revoke_server(server_id)
        if server is None:
            return Reply(content=f"Server {server_id} not found in the database.", ephemeral=True)
        return Reply(
            content=(
                f"Server {server_id} permission has been revoked. "
                "The bot will no longer function in that server."
            ),
            ephemeral=True,
        )

    # Buttons

    async def handle_button(self, ctx: InteractionContext, custom_id: str) -> Reply | None:
        if ctx.server_id is None:
            return Reply(content=replies.NOT_IN_SERVER_BUTTON, ephemeral=True)
        if custom_id not in CONFIRM_BUTTONS:
            logger.debug(f"Ignoring unknown button {custom_id}")
            return None

        try:
            if not await self._is_allowed_here(ctx):
                return Reply(content=replies.NOT_APPROVED, ephemeral=True)

            logger.info(f"Checking verification for user {ctx.user_id}")
            result = await self.verification.confirm(ctx.user_id, ctx.nickname_sync)
            return Reply(content=result.message, ephemeral=True)
        except Exception as e:
            logger.error(f"Error handling button {custom_id}: {e!r}", exc_info=True)
            return Reply(content=replies.BUTTON_ERROR, ephemeral=True)

    # Prefix messages

    async def handle_message(self, ctx: InteractionContext, content: str) -> Reply | None:
        """Handle a ``!command`` message. Returns None for messages the bot ignores."""
        if ctx.is_bot or ctx.server_id is None or not content.startswith(self.prefix):
            return None

        args = content[len(self.prefix) :].split()
        if not args:
            return None
        command, args = args[0].lower(), args[1:]

        try:
            if not await self._is_allowed_here(ctx):
                return Reply(content=replies.NOT_APPROVED)

            limited = await self._cooldown_reply(ctx, command, ephemeral=False)
            if limited is not None:
                return limited

            return await self._run_text(ctx, command, args)
        except VerificationError as e:
            return Reply(content=str(e))
        except Exception as e:
            logger.error(f"Error executing command {command}: {e!r}", exc_info=True)
            return Reply(content=replies.COMMAND_ERROR)

    async def _run_text(self, ctx: InteractionContext, command: str, args: list[str]) -> Reply:
        match command:
            case "verify":
                return await self._text_verify(ctx, args[0] if args else None)
            case "done":
                result = await self.verification.confirm(ctx.user_id, ctx.nickname_sync)
                return Reply(content=result.message)
            case "help":
                content = replies.text_help(self.prefix)
                if self.is_admin(ctx.user_id):
                    content += replies.ADMIN_HELP
                return Reply(content=content)
            case "update":
                return Reply(content=replies.UPDATE_POINTER)
            case "reverify":
                return Reply(content=replies.REVERIFY_POINTER)
            case _:
                return Reply(content=replies.text_unknown(self.prefix))

    async def _text_verify(self, ctx: InteractionContext, handle: str | None) -> Reply:
        try:
            issued = await self.verification.start_verify(ctx.user_id, handle)
        except MissingHandleError:
            return Reply(content=replies.MISSING_HANDLE_TEXT)
        except AlreadyLinkedError as e:
            return Reply(content=str(AlreadyLinkedError(e.roblox_username, f"{self.prefix}reverify")))

        return Reply(
            embed=Embed(
                title=issued.title,
                description=instructions(issued.handle, issued.token, via_button=False),
                color=issued.color,
            )
        )

    # Guild events

    async def handle_guild_join(
        self,
        server_id: str,
        server_name: str,
        owner_id: str,
        owner_tag: str,
        member_count: int,
    ) -> GuildGreeting | None:
        """Register a newly joined server for approval.

        Returns the greeting to post, or None if the server is already approved.
        """
        registered = await self.storage.register_pending_server(
            server_id=server_id,
            server_name=server_name,
            owner_discord_id=owner_id,
            owner_tag=owner_tag,
            member_count=member_count,
        )
        if not registered:
            return None
        logger.info(f"Joined unapproved server {server_name} ({server_id}), approval requested by {owner_tag}")
        return replies.guild_greeting(server_name)
