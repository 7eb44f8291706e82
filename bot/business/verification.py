"""
Verification workflow.

    NO_CHALLENGE --start--> PENDING --submit--> VERIFIED
                               |  \--expired--> EXPIRED (challenge removed)
                               \----failed----> FAILED (retry with same code)

What happens to the stored challenge after a submission is decided by
CHALLENGE_TRANSITIONS and nothing else. Code store, ledger and log calls may
block on Redis or Postgres and always run in worker threads.
"""

import asyncio
import logging
import weakref
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable

from business.code_store import CodeStore
from business.identity_ledger import IdentityLedger
from business.proof_checker import SocialProofChecker
from business.role_granter import RoleGranter, grant_everywhere
from constants import messages
from models.verification import (
    ChallengeLookup,
    ChallengeState,
    GrantStatus,
    ProofFailureReason,
    StartOutcome,
    StartStatus,
    SubmitOutcome,
    SubmitStatus,
    VerificationRecord,
)
from utils.log import logMessage

logger = logging.getLogger(__name__)


class DeliveryBlockedError(Exception):
    """The instructions could not be delivered to the requester."""


class ChallengeAction(str, Enum):
    CONSUME = "consume"
    KEEP = "keep"
    # Kept for another attempt, reported as FAILED until then
    RETRY = "retry"


CHALLENGE_TRANSITIONS: dict[SubmitStatus, ChallengeAction] = {
    SubmitStatus.VERIFIED: ChallengeAction.CONSUME,
    # Already removed when the expiry was noticed
    SubmitStatus.CHALLENGE_EXPIRED: ChallengeAction.CONSUME,
    SubmitStatus.NO_ACTIVE_CHALLENGE: ChallengeAction.KEEP,
    SubmitStatus.PROOF_FAILED: ChallengeAction.RETRY,
    SubmitStatus.TRANSIENT_ERROR: ChallengeAction.RETRY,
    SubmitStatus.PARTIAL_SUCCESS: ChallengeAction.RETRY,
}

Deliver = Callable[[str], Awaitable[None]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def render_instructions(operator_handle: str, code: str) -> str:
    return messages.INSTRUCTIONS.format(operator_handle=operator_handle, code=code)


class VerificationOrchestrator:
    def __init__(
        self,
        code_store: CodeStore,
        ledger: IdentityLedger,
        checker: SocialProofChecker,
        granter: RoleGranter,
        operator_handle: str,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.code_store = code_store
        self.ledger = ledger
        self.checker = checker
        self.granter = granter
        self.operator_handle = operator_handle
        self.clock = clock
        self._submit_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )
        # requester id -> code of the challenge whose last submission failed
        self._failed_codes: dict[str, str] = {}

    def _submit_lock(self, requester_id: str) -> asyncio.Lock:
        lock = self._submit_locks.get(requester_id)
        if lock is None:
            lock = asyncio.Lock()
            self._submit_locks[requester_id] = lock
        return lock

    async def state_of(self, requester_id: str) -> ChallengeState:
        if await asyncio.to_thread(self.ledger.is_verified, requester_id):
            return ChallengeState.VERIFIED
        lookup = await asyncio.to_thread(self.code_store.lookup, requester_id)
        if lookup.challenge:
            if self._failed_codes.get(requester_id) == lookup.challenge.code:
                return ChallengeState.FAILED
            return ChallengeState.PENDING
        if lookup.expired:
            return ChallengeState.EXPIRED
        return ChallengeState.NO_CHALLENGE

    async def start_challenge(self, requester_id: str, deliver: Deliver) -> StartOutcome:
        """
        Issue a code and deliver the instructions to the requester.

        An earlier challenge of the same requester is replaced. If the
        instructions cannot be delivered the new challenge is still kept, so a
        later attempt through the same channel works.
        """
        if await asyncio.to_thread(self.ledger.is_verified, requester_id):
            return StartOutcome(status=StartStatus.ALREADY_VERIFIED)

        code = await asyncio.to_thread(self.code_store.issue, requester_id)
        self._failed_codes.pop(requester_id, None)
        try:
            await deliver(render_instructions(self.operator_handle, code))
        except DeliveryBlockedError as e:
            await asyncio.to_thread(
                logMessage,
                f"Could not deliver verification instructions to {requester_id}: {e}",
                "warn",
                component="verification",
                action="start_challenge",
                user_id=requester_id,
            )
            return StartOutcome(status=StartStatus.DELIVERY_BLOCKED, code=code)

        logger.info(f"Issued verification challenge for {requester_id}")
        return StartOutcome(status=StartStatus.STARTED, code=code)

    async def submit(
        self, requester_id: str, display_name: str, handle: str
    ) -> SubmitOutcome:
        async with self._submit_lock(requester_id):
            lookup = await asyncio.to_thread(self.code_store.lookup, requester_id)
            outcome = await self._submit(requester_id, display_name, handle, lookup)
            await self._apply_transition(requester_id, outcome.status, lookup)
            return outcome

    async def _apply_transition(
        self, requester_id: str, status: SubmitStatus, lookup: ChallengeLookup
    ):
        action = CHALLENGE_TRANSITIONS[status]
        if action == ChallengeAction.CONSUME:
            self._failed_codes.pop(requester_id, None)
            await asyncio.to_thread(self.code_store.consume, requester_id)
        elif action == ChallengeAction.RETRY:
            self._failed_codes[requester_id] = lookup.challenge.code

    async def _submit(
        self,
        requester_id: str,
        display_name: str,
        handle: str,
        lookup: ChallengeLookup,
    ) -> SubmitOutcome:
        if lookup.expired:
            return SubmitOutcome(status=SubmitStatus.CHALLENGE_EXPIRED)
        if lookup.challenge is None:
            return SubmitOutcome(status=SubmitStatus.NO_ACTIVE_CHALLENGE)

        proof = await asyncio.to_thread(
            self.checker.verify, handle, lookup.challenge.code
        )
        if not proof.success:
            if proof.reason == ProofFailureReason.TRANSIENT_ERROR:
                return SubmitOutcome(status=SubmitStatus.TRANSIENT_ERROR, proof=proof)
            return SubmitOutcome(status=SubmitStatus.PROOF_FAILED, proof=proof)

        grants = await grant_everywhere(self.granter, requester_id)
        records = []
        for grant in grants:
            if grant.status != GrantStatus.GRANTED:
                continue
            await asyncio.to_thread(
                logMessage,
                f"Granted verified role to {requester_id} ({handle}) in guild {grant.community_id}",
                component="verification",
                action="grant",
                user_id=requester_id,
                guild_id=grant.community_id,
            )
            record = VerificationRecord(
                requester_id=requester_id,
                requester_display_name=display_name,
                external_account_handle=handle,
                verified_at=self.clock(),
                community_id=grant.community_id,
            )
            try:
                await asyncio.to_thread(self.ledger.record, record)
            except Exception as e:
                await asyncio.to_thread(
                    logMessage,
                    f"Role granted but verification record not saved for {requester_id} in guild {grant.community_id}: {e}",
                    "error",
                    component="verification",
                    action="record",
                    user_id=requester_id,
                    guild_id=grant.community_id,
                )
                continue
            grant.recorded = True
            records.append(record)

        if records:
            return SubmitOutcome(
                status=SubmitStatus.VERIFIED, proof=proof, grants=grants, records=records
            )
        if any(grant.status == GrantStatus.GRANTED for grant in grants):
            return SubmitOutcome(
                status=SubmitStatus.TRANSIENT_ERROR, proof=proof, grants=grants
            )

        await asyncio.to_thread(
            logMessage,
            f"Proof accepted for {requester_id} ({handle}) but no role could be granted",
            "warn",
            component="verification",
            action="grant",
            user_id=requester_id,
        )
        return SubmitOutcome(
            status=SubmitStatus.PARTIAL_SUCCESS, proof=proof, grants=grants
        )
