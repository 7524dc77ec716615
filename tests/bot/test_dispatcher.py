"""Command dispatcher tests."""

from unittest.mock import AsyncMock

import pytest

from rolink.bot import replies
from rolink.bot.dispatcher import CommandDispatcher
from rolink.bot.replies import InteractionContext
from rolink.services.cooldowns import CommandCooldowns
from rolink.services.verification import REVERIFY_BUTTON_ID, VERIFY_BUTTON_ID

ADMIN_ID = "100000000000000001"
MEMBER_ID = "111111111111111111"
TOKEN = "VERIFY-482913-1111"
UNAPPROVED_SERVER_ID = "900000000000000009"


@pytest.fixture
def dispatcher(verification, storage) -> CommandDispatcher:
    return CommandDispatcher(
        verification,
        storage,
        CommandCooldowns(cooldown=3.0),
        admin_user_id=ADMIN_ID,
        prefix="!",
    )


@pytest.fixture
def member(approved_server) -> InteractionContext:
    return InteractionContext(user_id=MEMBER_ID, server_id=approved_server.server_id, user_tag="member#0001")


@pytest.fixture
def admin() -> InteractionContext:
    return InteractionContext(user_id=ADMIN_ID, server_id=UNAPPROVED_SERVER_ID, user_tag="admin#0001")


class TestSlashCommands:
    @pytest.mark.asyncio
    async def test_rejected_in_dms(self, dispatcher):
        ctx = InteractionContext(user_id=MEMBER_ID, server_id=None)

        reply = await dispatcher.handle_slash_command(ctx, "verify", {"username": "Alice"})

        assert reply.content == replies.NOT_IN_SERVER_COMMAND
        assert reply.ephemeral

    @pytest.mark.asyncio
    async def test_direct_message_not_allowed_for_members(self, dispatcher):
        dm = InteractionContext(user_id=MEMBER_ID, server_id=None)
        admin_dm = InteractionContext(user_id=ADMIN_ID, server_id=None)

        assert await dispatcher._is_allowed_here(dm) is False
        assert await dispatcher._is_allowed_here(admin_dm) is True

    @pytest.mark.asyncio
    async def test_unapproved_server(self, dispatcher):
        ctx = InteractionContext(user_id=MEMBER_ID, server_id=UNAPPROVED_SERVER_ID)

        reply = await dispatcher.handle_slash_command(ctx, "help")

        assert reply.content == replies.NOT_APPROVED_SLASH

    @pytest.mark.asyncio
    async def test_admin_bypasses_approval(self, dispatcher, admin):
        reply = await dispatcher.handle_slash_command(admin, "help")

        assert reply.content == replies.SLASH_HELP + replies.ADMIN_HELP

    @pytest.mark.asyncio
    async def test_help_for_members(self, dispatcher, member):
        reply = await dispatcher.handle_slash_command(member, "help")

        assert reply.content == replies.SLASH_HELP
        assert reply.ephemeral

    @pytest.mark.asyncio
    async def test_verify_sends_embed_with_button(self, dispatcher, member):
        reply = await dispatcher.handle_slash_command(member, "verify", {"username": "Alice"})

        assert reply.ephemeral
        assert reply.embed.title == "Roblox Verification"
        assert TOKEN in reply.embed.description
        assert [b.custom_id for b in reply.buttons] == [VERIFY_BUTTON_ID]

    @pytest.mark.asyncio
    async def test_verify_without_username(self, dispatcher, member):
        reply = await dispatcher.handle_slash_command(member, "verify", {})

        assert reply.content == "Please provide your Roblox username."

    @pytest.mark.asyncio
    async def test_verify_when_already_linked(self, dispatcher, member, storage):
        await storage.create_linked_account(MEMBER_ID, "1234567", "Alice")

        reply = await dispatcher.handle_slash_command(member, "verify", {"username": "Alice"})

        assert "already verified as Alice" in reply.content
        assert "`/reverify`" in reply.content

    @pytest.mark.asyncio
    async def test_reverify_uses_reverify_button(self, dispatcher, member, storage):
        await storage.create_linked_account(MEMBER_ID, "1234567", "Alice")

        reply = await dispatcher.handle_slash_command(member, "reverify", {"username": "Alice"})

        assert reply.embed.title == "Roblox Re-Verification"
        assert [b.custom_id for b in reply.buttons] == [REVERIFY_BUTTON_ID]

    @pytest.mark.asyncio
    async def test_update(self, dispatcher, member, storage):
        await storage.create_linked_account(MEMBER_ID, "1234567", "OldAlice")

        reply = await dispatcher.handle_slash_command(member, "update")

        assert "now verified as **Alice**" in reply.content

    @pytest.mark.asyncio
    async def test_cooldown(self, dispatcher, member):
        await dispatcher.handle_slash_command(member, "help")

        reply = await dispatcher.handle_slash_command(member, "help")

        assert reply.content.startswith("Please wait ")
        assert "before using the `help` command." in reply.content

    @pytest.mark.asyncio
    async def test_counts_commands_run(self, dispatcher, member, storage):
        await dispatcher.handle_slash_command(member, "help")
        await dispatcher.handle_slash_command(member, "help")

        stats = await storage.get_bot_stats()

        assert stats.commands_run == 1

    @pytest.mark.asyncio
    async def test_unexpected_error(self, dispatcher, member, verification, monkeypatch):
        monkeypatch.setattr(verification, "start_verify", AsyncMock(side_effect=RuntimeError("boom")))

        reply = await dispatcher.handle_slash_command(member, "verify", {"username": "Alice"})

        assert reply.content == replies.COMMAND_ERROR


class TestAdminCommands:
    @pytest.mark.asyncio
    async def test_allowid_approves_server(self, dispatcher, admin, storage):
        reply = await dispatcher.handle_slash_command(admin, "allowid", {"server_id": UNAPPROVED_SERVER_ID})

        assert reply.content == f"Server {UNAPPROVED_SERVER_ID} has been approved."
        assert await storage.is_server_approved(UNAPPROVED_SERVER_ID)

    @pytest.mark.asyncio
    async def test_disallowid_revokes_server(self, dispatcher, admin, storage, approved_server):
        reply = await dispatcher.handle_slash_command(
            admin, "disallowid", {"server_id": approved_server.server_id}
        )

        assert "permission has been revoked" in reply.content
        assert not await storage.is_server_approved(approved_server.server_id)

    @pytest.mark.asyncio
    async def test_disallowid_unknown_server(self, dispatcher, admin):
        reply = await dispatcher.handle_slash_command(admin, "disallowid", {"server_id": "404"})

        assert reply.content == "Server 404 not found in the database."

    @pytest.mark.asyncio
    async def test_non_admin_denied(self, dispatcher, storage, caplog):
        """Admin commands skip the approval gate but still check the caller."""
        ctx = InteractionContext(user_id=MEMBER_ID, server_id=UNAPPROVED_SERVER_ID, user_tag="member#0001")

        reply = await dispatcher.handle_slash_command(ctx, "allowid", {"server_id": UNAPPROVED_SERVER_ID})

        assert reply.content == replies.ADMIN_DENIED
        assert not await storage.is_server_approved(UNAPPROVED_SERVER_ID)
        assert "Unauthorized attempt to use /allowid" in caplog.text

    @pytest.mark.asyncio
    async def test_missing_server_id(self, dispatcher, admin):
        reply = await dispatcher.handle_slash_command(admin, "allowid", {})

        assert reply.content == replies.MISSING_SERVER_ID

    @pytest.mark.asyncio
    async def test_disabled_without_admin_configured(self, verification, storage):
        dispatcher = CommandDispatcher(verification, storage, CommandCooldowns(), admin_user_id="")
        ctx = InteractionContext(user_id=MEMBER_ID, server_id=UNAPPROVED_SERVER_ID)

        reply = await dispatcher.handle_slash_command(ctx, "allowid", {"server_id": UNAPPROVED_SERVER_ID})

        assert reply.content == replies.ADMIN_DISABLED


class TestButtons:
    @pytest.mark.asyncio
    async def test_confirm_links_account(self, dispatcher, member, fake_roblox, storage):
        await dispatcher.handle_slash_command(member, "verify", {"username": "Alice"})
        fake_roblox.set_description("1234567", TOKEN)

        reply = await dispatcher.handle_button(member, VERIFY_BUTTON_ID)

        assert reply.content.startswith("✅ Verification successful!")
        assert reply.ephemeral
        assert (await storage.get_linked_account(MEMBER_ID)).roblox_id == "1234567"

    @pytest.mark.asyncio
    async def test_confirm_without_code(self, dispatcher, member):
        await dispatcher.handle_slash_command(member, "verify", {"username": "Alice"})

        reply = await dispatcher.handle_button(member, VERIFY_BUTTON_ID)

        assert reply.content.startswith("❌ Verification failed")
        assert TOKEN in reply.content

    @pytest.mark.asyncio
    async def test_unknown_button_ignored(self, dispatcher, member):
        assert await dispatcher.handle_button(member, "something_else") is None

    @pytest.mark.asyncio
    async def test_rejected_in_dms(self, dispatcher):
        ctx = InteractionContext(user_id=MEMBER_ID, server_id=None)

        reply = await dispatcher.handle_button(ctx, VERIFY_BUTTON_ID)

        assert reply.content == replies.NOT_IN_SERVER_BUTTON

    @pytest.mark.asyncio
    async def test_unapproved_server(self, dispatcher):
        ctx = InteractionContext(user_id=MEMBER_ID, server_id=UNAPPROVED_SERVER_ID)

        reply = await dispatcher.handle_button(ctx, VERIFY_BUTTON_ID)

        assert reply.content == replies.NOT_APPROVED

    @pytest.mark.asyncio
    async def test_unexpected_error(self, dispatcher, member, verification, monkeypatch):
        monkeypatch.setattr(verification, "confirm", AsyncMock(side_effect=RuntimeError("boom")))

        reply = await dispatcher.handle_button(member, VERIFY_BUTTON_ID)

        assert reply.content == replies.BUTTON_ERROR


class TestPrefixMessages:
    @pytest.mark.asyncio
    async def test_ignores_bots_dms_and_plain_messages(self, dispatcher, member):
        bot = InteractionContext(user_id="1", server_id=member.server_id, is_bot=True)
        dm = InteractionContext(user_id=MEMBER_ID, server_id=None)

        assert await dispatcher.handle_message(bot, "!help") is None
        assert await dispatcher.handle_message(dm, "!help") is None
        assert await dispatcher.handle_message(member, "hello there") is None
        assert await dispatcher.handle_message(member, "!") is None

    @pytest.mark.asyncio
    async def test_unapproved_server(self, dispatcher):
        ctx = InteractionContext(user_id=MEMBER_ID, server_id=UNAPPROVED_SERVER_ID)

        reply = await dispatcher.handle_message(ctx, "!help")

        assert reply.content == replies.NOT_APPROVED

    @pytest.mark.asyncio
    async def test_verify_then_done(self, dispatcher, member, fake_roblox, storage):
        reply = await dispatcher.handle_message(member, "!verify Alice")

        assert not reply.ephemeral
        assert "reply with `!done`" in reply.embed.description
        assert TOKEN in reply.embed.description

        fake_roblox.set_description("1234567", TOKEN)
        reply = await dispatcher.handle_message(member, "!done")

        assert reply.content.startswith("✅ Verification successful!")
        assert await storage.get_linked_account(MEMBER_ID) is not None

    @pytest.mark.asyncio
    async def test_verify_without_username(self, dispatcher, member):
        reply = await dispatcher.handle_message(member, "!verify")

        assert reply.content == replies.MISSING_HANDLE_TEXT

    @pytest.mark.asyncio
    async def test_verify_when_already_linked(self, dispatcher, member, storage):
        await storage.create_linked_account(MEMBER_ID, "1234567", "Alice")

        reply = await dispatcher.handle_message(member, "!verify Alice")

        assert "`!reverify`" in reply.content

    @pytest.mark.asyncio
    async def test_command_is_case_insensitive(self, dispatcher, member):
        reply = await dispatcher.handle_message(member, "!HELP")

        assert reply.content == replies.text_help("!")

    @pytest.mark.asyncio
    async def test_pointers_and_unknown(self, dispatcher, member):
        assert (await dispatcher.handle_message(member, "!update")).content == replies.UPDATE_POINTER
        assert (await dispatcher.handle_message(member, "!reverify Bob")).content == replies.REVERIFY_POINTER
        assert (await dispatcher.handle_message(member, "!dance")).content == replies.text_unknown("!")

    @pytest.mark.asyncio
    async def test_cooldown_not_ephemeral(self, dispatcher, member):
        await dispatcher.handle_message(member, "!help")

        reply = await dispatcher.handle_message(member, "!help")

        assert reply.content.startswith("Please wait ")
        assert not reply.ephemeral


class TestGuildJoin:
    @pytest.mark.asyncio
    async def test_new_server_requests_approval(self, dispatcher, storage):
        greeting = await dispatcher.handle_guild_join(
            UNAPPROVED_SERVER_ID, "Fresh Guild", "400000000000000004", "owner#0001", 25
        )

        assert "not yet approved" in greeting.system_channel
        assert '"Fresh Guild"' in greeting.owner_dm
        assert "Your server is not yet approved" in greeting.owner_dm
        assert not await storage.is_server_approved(UNAPPROVED_SERVER_ID)

    @pytest.mark.asyncio
    async def test_approved_server_gets_no_greeting(self, dispatcher, approved_server):
        greeting = await dispatcher.handle_guild_join(
            approved_server.server_id, "Test Server", "300000000000000003", "owner#0001", 42
        )

        assert greeting is None
