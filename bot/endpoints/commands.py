"""
Discord chat commands.

    !verify                 (server)  start a verification, instructions go out by DM
    !verify <ig_username>   (DM)      submit the Instagram account for checking
    !verified-users         (server)  administrators only, list verified members
"""

import asyncio
import logging

import discord

from business.identity_ledger import IdentityLedger
from business.verification import VerificationOrchestrator
from constants import messages
from constants.verification import COMMAND_VERIFIED_USERS, COMMAND_VERIFY
from models.verification import (
    ProofFailureReason,
    ProofOutcome,
    StartStatus,
    SubmitOutcome,
    SubmitStatus,
    VerificationRecord,
)
from services.discord_client import send_direct_message
from utils.commands import parse_command
from utils.log import logMessage

MAX_MESSAGE_LENGTH = 2000

logger = logging.getLogger(__name__)


def proof_failure_text(proof: ProofOutcome) -> str:
    if proof.reason == ProofFailureReason.ACCOUNT_NOT_FOUND:
        return messages.ACCOUNT_NOT_FOUND
    if proof.reason == ProofFailureReason.CRITERIA_FAILED:
        text = messages.CRITERIA_FAILED_HEADER
        for name in proof.failed_criteria:
            text += messages.CRITERION_LINES.get(name, f"- {name}\n")
        return text
    if proof.reason == ProofFailureReason.NOT_FOLLOWING:
        return messages.NOT_FOLLOWING
    if proof.reason == ProofFailureReason.TOKEN_NOT_FOUND:
        return messages.TOKEN_NOT_FOUND
    return messages.TRANSIENT_ERROR


def submit_reply(outcome: SubmitOutcome) -> str:
    if outcome.status == SubmitStatus.VERIFIED:
        return messages.VERIFIED
    if outcome.status == SubmitStatus.NO_ACTIVE_CHALLENGE:
        return messages.NO_ACTIVE_CHALLENGE
    if outcome.status == SubmitStatus.CHALLENGE_EXPIRED:
        return messages.CHALLENGE_EXPIRED
    if outcome.status == SubmitStatus.PARTIAL_SUCCESS:
        return messages.PARTIAL_SUCCESS
    if outcome.status == SubmitStatus.PROOF_FAILED and outcome.proof:
        return messages.VERIFICATION_FAILED.format(
            reason=proof_failure_text(outcome.proof)
        )
    return messages.VERIFICATION_FAILED.format(reason=messages.TRANSIENT_ERROR)


def verified_users_reply(records: list[VerificationRecord]) -> str:
    if not records:
        return messages.NO_VERIFIED_USERS
    text = messages.VERIFIED_USERS_HEADER
    for record in records:
        text += messages.VERIFIED_USER_LINE.format(
            display_name=record.requester_display_name,
            handle=record.external_account_handle,
            date=record.verified_at.strftime("%Y-%m-%d"),
        )
    return text


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split on line boundaries so each chunk fits in one Discord message."""
    chunks = []
    current = ""
    for line in text.splitlines(keepends=True):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]
        if current and len(current) + len(line) > limit:
            chunks.append(current)
            current = ""
        current += line
    if current:
        chunks.append(current)
    return chunks


class CommandHandler:
    def __init__(self, orchestrator: VerificationOrchestrator, ledger: IdentityLedger):
        self.orchestrator = orchestrator
        self.ledger = ledger

    def register(self, client: discord.Client):
        @client.event
        async def on_message(message: discord.Message):
            await self.on_message(message)

        @client.event
        async def on_ready():
            logger.info(f"Discord client ready as {client.user}")

    async def on_message(self, message):
        if message.author.bot:
            return
        command = parse_command(message.content)
        if command is None:
            return

        if message.guild is not None:
            if message.content == COMMAND_VERIFY:
                await self.start_verification(message)
            elif message.content == COMMAND_VERIFIED_USERS:
                await self.list_verified_users(message)
        elif command.name == COMMAND_VERIFY:
            await self.submit_verification(message, command.argument)

    async def _report_failure(self, message, action: str, error: Exception, reply: str):
        author = message.author
        await asyncio.to_thread(
            logMessage,
            f"{action} for {author} failed unexpectedly: {error}",
            "error",
            component="commands",
            action=action,
            user_id=str(author.id),
            guild_id=str(message.guild.id) if message.guild else None,
        )
        await message.reply(reply)

    async def start_verification(self, message):
        author = message.author

        async def deliver(text: str):
            await send_direct_message(author, text)

        try:
            outcome = await self.orchestrator.start_challenge(str(author.id), deliver)
        except Exception as e:
            await self._report_failure(message, "start", e, messages.TRANSIENT_ERROR)
            return

        if outcome.status == StartStatus.ALREADY_VERIFIED:
            await message.reply(messages.ALREADY_VERIFIED)
        elif outcome.status == StartStatus.DELIVERY_BLOCKED:
            await message.reply(messages.DELIVERY_BLOCKED)
        else:
            await message.reply(messages.INSTRUCTIONS_SENT)

    async def submit_verification(self, message, handle: str | None):
        if not handle:
            await message.reply(messages.SUBMIT_USAGE)
            return

        author = message.author
        try:
            outcome = await self.orchestrator.submit(str(author.id), str(author), handle)
        except Exception as e:
            await self._report_failure(
                message,
                "submit",
                e,
                messages.VERIFICATION_FAILED.format(reason=messages.TRANSIENT_ERROR),
            )
            return

        await message.reply(submit_reply(outcome))

    async def list_verified_users(self, message):
        if not message.author.guild_permissions.administrator:
            return
        try:
            records = await asyncio.to_thread(
                self.ledger.list_by_community, str(message.guild.id)
            )
        except Exception as e:
            await self._report_failure(
                message, "list_verified_users", e, messages.TRANSIENT_ERROR
            )
            return

        for chunk in split_message(verified_users_reply(records)):
            await message.reply(chunk)
