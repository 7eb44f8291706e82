"""
Checks that an Instagram account proved ownership of a verification code.

The account must meet the eligibility criteria, follow the operator account and
have sent the code as the latest message of a direct conversation with the
operator, either in the primary inbox or in the message requests.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from constants.verification import (
    CRITERION_ACCOUNT_AGE,
    CRITERION_MIN_FOLLOWERS,
    CRITERION_MIN_FOLLOWING,
    MIN_FOLLOWERS,
    MIN_FOLLOWING,
)
from models.verification import (
    AccountProfile,
    InboxThread,
    ProofFailureReason,
    ProofOutcome,
)
from services.instagram import PlatformAuthError
from utils.log import logMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EligibilityCriterion:
    name: str
    predicate: Callable[[AccountProfile], bool]


ELIGIBILITY_CRITERIA: list[EligibilityCriterion] = [
    EligibilityCriterion(
        name=CRITERION_MIN_FOLLOWERS,
        predicate=lambda profile: profile.follower_count >= MIN_FOLLOWERS,
    ),
    EligibilityCriterion(
        name=CRITERION_MIN_FOLLOWING,
        predicate=lambda profile: profile.following_count >= MIN_FOLLOWING,
    ),
]

# Declared but not evaluated: the public profile carries no creation date.
DECLARED_UNEVALUATED_CRITERIA = {CRITERION_ACCOUNT_AGE}


def evaluate_criteria(
    profile: AccountProfile,
    criteria: list[EligibilityCriterion] = ELIGIBILITY_CRITERIA,
) -> list[str]:
    """Names of the failed criteria, in declaration order."""
    return [c.name for c in criteria if not c.predicate(profile)]


def thread_matches(thread: InboxThread, handle: str, token: str) -> bool:
    """
    The thread must be a one-to-one conversation with `handle` (case
    insensitive) whose latest message is exactly `token` (case sensitive).
    """
    if len(thread.usernames) != 1:
        return False
    if thread.usernames[0].lower() != handle.lower():
        return False
    return thread.latest_message_text == token


def find_matching_thread(
    threads: list[InboxThread], handle: str, token: str
) -> Optional[InboxThread]:
    return next((t for t in threads if thread_matches(t, handle, token)), None)


class SocialProofChecker:
    def __init__(
        self,
        sessions,
        criteria: list[EligibilityCriterion] = ELIGIBILITY_CRITERIA,
    ):
        """
        :param sessions: object with acquire() -> platform and invalidate(platform),
            usually an InstagramSessionManager.
        """
        self.sessions = sessions
        self.criteria = criteria

    def verify(self, handle: str, token: str) -> ProofOutcome:
        """Blocking. Never raises: every failure ends as TRANSIENT_ERROR."""
        try:
            try:
                return self._verify_once(handle, token)
            except PlatformAuthError as e:
                # The session may have been logged out server side; retry once
                # with a fresh login.
                logger.warning(f"Instagram session rejected, logging in again: {e}")
                return self._verify_once(handle, token)
        except Exception as e:
            # Also covers instagrapi failures that escape as other exception types
            logMessage(
                f"Instagram verification failed for {handle}: {e}",
                "error",
                component="proof_checker",
                action="verify",
                metadata={"handle": handle},
            )
            return ProofOutcome(
                success=False, reason=ProofFailureReason.TRANSIENT_ERROR
            )

    def _verify_once(self, handle: str, token: str) -> ProofOutcome:
        platform = self.sessions.acquire()
        try:
            return self._check(platform, handle, token)
        except PlatformAuthError:
            self.sessions.invalidate(platform)
            raise

    def _check(self, platform, handle: str, token: str) -> ProofOutcome:
        account_id = platform.resolve_account_by_handle(handle)
        if account_id is None:
            return ProofOutcome(
                success=False, reason=ProofFailureReason.ACCOUNT_NOT_FOUND
            )

        profile = platform.get_public_profile(account_id)
        failed = evaluate_criteria(profile, self.criteria)
        if failed:
            return ProofOutcome(
                success=False,
                reason=ProofFailureReason.CRITERIA_FAILED,
                failed_criteria=failed,
            )

        if not platform.is_followed_by(account_id):
            return ProofOutcome(success=False, reason=ProofFailureReason.NOT_FOLLOWING)

        if find_matching_thread(platform.list_primary_inbox_threads(), handle, token):
            return ProofOutcome(success=True)

        pending = find_matching_thread(
            platform.list_pending_inbox_threads(), handle, token
        )
        if pending:
            if not platform.accept_pending_thread(pending.thread_id):
                logMessage(
                    f"Could not accept the message request from {handle} (thread {pending.thread_id})",
                    "warn",
                    component="proof_checker",
                    action="accept_pending_thread",
                    metadata={"handle": handle, "thread_id": pending.thread_id},
                )
            return ProofOutcome(success=True, found_in_pending_inbox=True)

        return ProofOutcome(success=False, reason=ProofFailureReason.TOKEN_NOT_FOUND)
