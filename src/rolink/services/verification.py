"""Discord to Roblox account verification flow.

A requester asks to link a Roblox username, receives a challenge token to
paste into their Roblox profile, then confirms. Confirmation checks the
profile and, on a match, creates or updates the link depending on which flow
issued the challenge.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from rolink.services.challenges import Challenge, ChallengeKind, ChallengeStore
from rolink.services.identity import IdentityResolver
from rolink.services.profile import ProfileMatcher
from rolink.services.storage import DatabaseStorage

logger = logging.getLogger(__name__)

# Takes the linked Roblox username, returns a message for the user
NicknameSync = Callable[[str], Awaitable[str]]

EMBED_COLOR = 0x5865F2
VERIFY_BUTTON_ID = "verify_check"
REVERIFY_BUTTON_ID = "reverify_check"
PROFILE_EDIT_URL = "https://www.roblox.com/my/profile"

NICKNAME_SYNC_FAILED = "I couldn't update your nickname due to an error."
SAVE_FAILED = "There was an error saving your verification. Please try again later."
NO_PENDING = "No pending verification found. Please run `/verify` again to get a new code."


class VerificationError(Exception):
    """A verification request that cannot proceed. The message is user-facing."""

    pass


class MissingHandleError(VerificationError):
    def __init__(self, message: str = "Please provide your Roblox username.") -> None:
        super().__init__(message)


class AlreadyLinkedError(VerificationError):
    def __init__(self, roblox_username: str, reverify_command: str = "/reverify") -> None:
        self.roblox_username = roblox_username
        super().__init__(
            f"You are already verified as {roblox_username}. "
            f"If you need to change your account, use `{reverify_command}` instead."
        )


class NotLinkedError(VerificationError):
    def __init__(self) -> None:
        super().__init__("You are not verified yet. Please use `/verify` to link your Roblox account first.")


class ConfirmOutcome(str, Enum):
    LINKED = "linked"
    NOT_FOUND = "not_found"
    NO_PENDING = "no_pending"
    SAVE_FAILED = "save_failed"


@dataclass(frozen=True)
class ChallengeIssued:
    kind: ChallengeKind
    token: str
    handle: str
    target_id: str
    title: str
    embed_text: str
    button_id: str
    color: int = EMBED_COLOR


@dataclass(frozen=True)
class UpdateResult:
    new_handle: str
    message: str


@dataclass(frozen=True)
class ConfirmResult:
    outcome: ConfirmOutcome
    message: str
    handle: str | None = None
    remediation_text: str | None = None

    @property
    def success(self) -> bool:
        return self.outcome is ConfirmOutcome.LINKED


def instructions(handle: str, token: str, *, via_button: bool = True) -> str:
    """Steps for placing ``token`` in the About section of ``handle``'s profile."""
    if via_button:
        steps = [
            f"1. Go to [your Roblox profile]({PROFILE_EDIT_URL})",
            "2. Click the pencil icon (✏️) next to your profile",
            '3. Add the following code to your "About Me" section:',
            f"```\n{token}\n```",
            "4. Click Save",
            '5. Click the "Verify" button below once you\'ve added the code',
        ]
        footer = (
            "The code will expire in 10 minutes. Make sure to add the code exactly as shown above, "
            "with no extra spaces or characters."
        )
    else:
        steps = [
            "1. Go to your Roblox profile",
            '2. Add the following code to your "About Me" section:',
            f"```\n{token}\n```",
            "3. Once you've added the code, reply with `!done`",
        ]
        footer = "The code will expire in 10 minutes."

    return (
        f"To verify that you own the Roblox account **{handle}**, please follow these steps:\n\n"
        + "\n".join(steps)
        + f"\n\n{footer}"
    )


def remediation(token: str) -> str:
    """Retry help for a confirmation whose code was not found."""
    return (
        "❌ Verification failed. The code was not found in your Roblox profile.\n"
        f"Your verification code is:\n```\n{token}\n```\n"
        "Please make sure you:\n\n"
        "1. Go to Roblox.com and log in\n"
        "2. Click on your avatar in the top-right and select 'My Profile'\n"
        "3. Click the pencil icon (✏️) to edit your profile\n"
        "4. Copy and paste the entire verification code to your About section\n"
        "5. Click the Save button\n"
        "6. Try verifying again\n\n"
        "The code must be added exactly as shown above, with no extra spaces or characters.\n\n"
        "If you're still having trouble, try clearing your profile description completely, "
        "then add only the verification code."
    )


class VerificationService:
    """Runs verify, reverify, update and confirm for Discord users."""

    def __init__(
        self,
        resolver: IdentityResolver,
        challenges: ChallengeStore,
        matcher: ProfileMatcher,
        storage: DatabaseStorage,
    ) -> None:
        self.resolver = resolver
        self.challenges = challenges
        self.matcher = matcher
        self.storage = storage

    async def start_verify(self, requester_id: str, handle: str | None) -> ChallengeIssued:
        """Issue a challenge for a requester with no existing link.

        Raises:
            MissingHandleError: No username given.
            AlreadyLinkedError: The requester is already linked.
        """
        handle = (handle or "").strip()
        if not handle:
            raise MissingHandleError()

        existing = await self.storage.get_linked_account(requester_id)
        if existing is not None:
            raise AlreadyLinkedError(existing.roblox_username)

        return await self._issue(requester_id, handle, ChallengeKind.VERIFY)

    async def start_reverify(self, requester_id: str, handle: str | None) -> ChallengeIssued:
        """Issue a challenge to move an existing link to another Roblox account.

        Raises:
            MissingHandleError: No username given.
            NotLinkedError: The requester has no link yet.
        """
        handle = (handle or "").strip()
        if not handle:
            raise MissingHandleError("Please provide your new Roblox username.")

        existing = await self.storage.get_linked_account(requester_id)
        if existing is None:
            raise NotLinkedError()

        return await self._issue(requester_id, handle, ChallengeKind.REVERIFY)

    async def _issue(self, requester_id: str, handle: str, kind: ChallengeKind) -> ChallengeIssued:
        target_id = await self.resolver.resolve_handle_to_id(handle)
        challenge = self.challenges.issue(requester_id, target_id, handle, kind)
        logger.info(f"Issued {kind.value} challenge to {requester_id} for Roblox user {handle} ({target_id})")

        if kind is ChallengeKind.REVERIFY:
            title, button_id = "Roblox Re-Verification", REVERIFY_BUTTON_ID
        else:
            title, button_id = "Roblox Verification", VERIFY_BUTTON_ID
        return ChallengeIssued(
            kind=kind,
            token=challenge.token,
            handle=handle,
            target_id=target_id,
            title=title,
            embed_text=instructions(handle, challenge.token),
            button_id=button_id,
        )

    async def start_update(self, requester_id: str, nickname_sync: NicknameSync | None = None) -> UpdateResult:
        """Refresh the linked username from Roblox, keeping the same Roblox ID.

        Raises:
            NotLinkedError: The requester has no link yet.
        """
        existing = await self.storage.get_linked_account(requester_id)
        if existing is None:
            raise NotLinkedError()

        new_handle = await self.resolver.resolve_id_to_handle(existing.roblox_id)
        await self.storage.update_linked_account(requester_id, existing.roblox_id, new_handle)
        logger.info(f"Updated link for {requester_id}: {existing.roblox_username} -> {new_handle}")

        nickname_message = await self._sync_nickname(nickname_sync, new_handle)
        message = f"Your verification has been updated. You are now verified as **{new_handle}**."
        if nickname_message:
            message = f"{message}\n\n{nickname_message}"
        return UpdateResult(new_handle=new_handle, message=message)

    async def confirm(self, requester_id: str, nickname_sync: NicknameSync | None = None) -> ConfirmResult:
        """Check the requester's profile for their token and commit the link on a match.

        A failed match leaves the challenge in place so the same token can be
        retried. A failed save restores the challenge for the same reason.
        """
        challenge = self.challenges.peek(requester_id)
        if challenge is None:
            logger.info(f"No pending challenge for {requester_id}")
            return ConfirmResult(outcome=ConfirmOutcome.NO_PENDING, message=NO_PENDING)

        if not await self.matcher.matches(challenge):
            text = remediation(challenge.token)
            return ConfirmResult(
                outcome=ConfirmOutcome.NOT_FOUND,
                message=text,
                handle=challenge.target_handle,
                remediation_text=text,
            )

        claimed = self.challenges.claim(requester_id, challenge.token)
        if claimed is None:
            logger.info(f"Challenge for {requester_id} was replaced or already used during confirmation")
            return ConfirmResult(outcome=ConfirmOutcome.NO_PENDING, message=NO_PENDING)

        try:
            await self._commit(claimed)
        except Exception as e:
            logger.error(f"Failed to save verification for {requester_id}: {e!r}", exc_info=True)
            self.challenges.restore(claimed)
            return ConfirmResult(
                outcome=ConfirmOutcome.SAVE_FAILED,
                message=SAVE_FAILED,
                handle=claimed.target_handle,
            )

        try:
            await self.storage.increment_verifications()
        except Exception as e:
            logger.warning(f"Could not increment verification counter: {e!r}")

        nickname_message = await self._sync_nickname(nickname_sync, claimed.target_handle)
        message = (
            "✅ Verification successful! Your Discord account is now linked to your "
            f"Roblox account **{claimed.target_handle}**."
        )
        if nickname_message:
            message = f"{message}\n\n{nickname_message}"
        return ConfirmResult(outcome=ConfirmOutcome.LINKED, message=message, handle=claimed.target_handle)

    async def _commit(self, challenge: Challenge) -> None:
        if challenge.kind is ChallengeKind.REVERIFY:
            updated = await self.storage.update_linked_account(
                challenge.requester_id, challenge.target_id, challenge.target_handle
            )
            if updated is None:
                raise LookupError(f"No linked account for {challenge.requester_id}")
        else:
            await self.storage.create_linked_account(
                challenge.requester_id, challenge.target_id, challenge.target_handle
            )
        logger.info(
            f"Linked {challenge.requester_id} to Roblox user {challenge.target_handle} "
            f"({challenge.target_id}) via {challenge.kind.value}"
        )

    async def _sync_nickname(self, nickname_sync: NicknameSync | None, handle: str) -> str:
        if nickname_sync is None:
            return ""
        try:
            return await nickname_sync(handle)
        except Exception as e:
            logger.error(f"Error updating nickname to {handle}: {e!r}")
            return NICKNAME_SYNC_FAILED
