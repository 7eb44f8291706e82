from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Challenge(BaseModel):
    """
    An outstanding verification challenge. Stored in the code store, keyed by
    the Discord id of the requester.
    """

    requester_id: str
    code: str
    issued_at: float  # epoch seconds


class ChallengeLookup(BaseModel):
    challenge: Optional[Challenge] = None
    expired: bool = False  # True if an entry existed but had expired


class VerificationRecord(BaseModel):
    requester_id: str
    requester_display_name: str
    external_account_handle: str
    verified_at: datetime
    community_id: str


class ChallengeState(str, Enum):
    NO_CHALLENGE = "no_challenge"
    PENDING = "pending"
    VERIFIED = "verified"
    EXPIRED = "expired"
    FAILED = "failed"


class ProofFailureReason(str, Enum):
    ACCOUNT_NOT_FOUND = "account_not_found"
    CRITERIA_FAILED = "criteria_failed"
    NOT_FOLLOWING = "not_following"
    TOKEN_NOT_FOUND = "token_not_found"
    TRANSIENT_ERROR = "transient_error"


class ProofOutcome(BaseModel):
    success: bool
    reason: Optional[ProofFailureReason] = None
    failed_criteria: list[str] = []
    found_in_pending_inbox: bool = False


class AccountProfile(BaseModel):
    """Public profile fields of an Instagram account used for eligibility."""

    account_id: str
    username: str
    follower_count: int = 0
    following_count: int = 0


class InboxThread(BaseModel):
    thread_id: str
    usernames: list[str] = []
    latest_message_text: Optional[str] = None


class StartStatus(str, Enum):
    STARTED = "started"
    ALREADY_VERIFIED = "already_verified"
    DELIVERY_BLOCKED = "delivery_blocked"


class StartOutcome(BaseModel):
    status: StartStatus
    code: Optional[str] = None


class GrantStatus(str, Enum):
    GRANTED = "granted"
    NOT_A_MEMBER = "not_a_member"
    PERMISSION_DENIED = "permission_denied"
    FAILED = "failed"


class GrantResult(BaseModel):
    community_id: str
    status: GrantStatus
    recorded: bool = False


class SubmitStatus(str, Enum):
    VERIFIED = "verified"
    NO_ACTIVE_CHALLENGE = "no_active_challenge"
    CHALLENGE_EXPIRED = "challenge_expired"
    PROOF_FAILED = "proof_failed"
    TRANSIENT_ERROR = "transient_error"
    PARTIAL_SUCCESS = "partial_success"


class SubmitOutcome(BaseModel):
    status: SubmitStatus
    proof: Optional[ProofOutcome] = None
    grants: list[GrantResult] = []
    records: list[VerificationRecord] = []

    @property
    def is_no_active_challenge(self) -> bool:
        return self.status in (
            SubmitStatus.NO_ACTIVE_CHALLENGE,
            SubmitStatus.CHALLENGE_EXPIRED,
        )


class VerifiedUsersApiResponse(BaseModel):
    community_id: str
    users: list[VerificationRecord] = []
