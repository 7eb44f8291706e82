from typing import Optional

import pytest

from business.code_store import InMemoryCodeStore
from business.identity_ledger import InMemoryIdentityLedger
from business.proof_checker import SocialProofChecker
from business.role_granter import RoleGranter
from business.verification import VerificationOrchestrator
from models.verification import AccountProfile, GrantStatus, InboxThread
from services.instagram import PlatformAuthError, PlatformError


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakePlatform:
    """In-memory stand-in for InstagramPlatform."""

    def __init__(self):
        self.accounts: dict[str, AccountProfile] = {}
        self.followers: set[str] = set()
        self.primary_threads: list[InboxThread] = []
        self.pending_threads: list[InboxThread] = []
        self.accepted_threads: list[str] = []
        self.calls: list[str] = []
        self.fail_on: Optional[str] = None
        self.auth_fail_on: Optional[str] = None
        self.accept_result = True

    def _record(self, name: str):
        self.calls.append(name)
        if self.auth_fail_on == name:
            raise PlatformAuthError(f"{name}: login required")
        if self.fail_on == name:
            raise PlatformError(f"{name}: connection reset")

    def add_account(
        self, handle: str, followers: int = 50, following: int = 20, follows: bool = True
    ) -> AccountProfile:
        profile = AccountProfile(
            account_id=f"id-{handle}",
            username=handle,
            follower_count=followers,
            following_count=following,
        )
        self.accounts[handle] = profile
        if follows:
            self.followers.add(profile.account_id)
        return profile

    def send_message(self, handle: str, text: str, pending: bool = False):
        thread = InboxThread(
            thread_id=f"thread-{len(self.primary_threads) + len(self.pending_threads)}",
            usernames=[handle],
            latest_message_text=text,
        )
        (self.pending_threads if pending else self.primary_threads).append(thread)
        return thread

    def resolve_account_by_handle(self, handle: str) -> Optional[str]:
        self._record("resolve_account_by_handle")
        profile = self.accounts.get(handle)
        return profile.account_id if profile else None

    def get_public_profile(self, account_id: str) -> AccountProfile:
        self._record("get_public_profile")
        return next(p for p in self.accounts.values() if p.account_id == account_id)

    def is_followed_by(self, account_id: str) -> bool:
        self._record("is_followed_by")
        return account_id in self.followers

    def list_primary_inbox_threads(self) -> list[InboxThread]:
        self._record("list_primary_inbox_threads")
        return list(self.primary_threads)

    def list_pending_inbox_threads(self) -> list[InboxThread]:
        self._record("list_pending_inbox_threads")
        return list(self.pending_threads)

    def accept_pending_thread(self, thread_id: str) -> bool:
        self._record("accept_pending_thread")
        self.accepted_threads.append(thread_id)
        return self.accept_result


class FakeSessions:
    def __init__(self, platform: FakePlatform):
        self.platform = platform
        self.acquired = 0
        self.invalidated = 0

    def acquire(self):
        self.acquired += 1
        return self.platform

    def invalidate(self, platform=None):
        self.invalidated += 1


class FakeRoleGranter(RoleGranter):
    def __init__(self, statuses: Optional[dict[str, GrantStatus]] = None):
        self.statuses = statuses if statuses is not None else {"guild-1": GrantStatus.GRANTED}
        self.granted: list[tuple[str, str]] = []

    def community_ids(self) -> list[str]:
        return list(self.statuses)

    async def grant(self, requester_id: str, community_id: str) -> GrantStatus:
        status = self.statuses[community_id]
        if status == GrantStatus.GRANTED:
            self.granted.append((requester_id, community_id))
        return status


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def sessions(platform):
    return FakeSessions(platform)


@pytest.fixture
def checker(sessions):
    return SocialProofChecker(sessions)


@pytest.fixture
def code_store(clock):
    return InMemoryCodeStore(clock=clock)


@pytest.fixture
def ledger():
    return InMemoryIdentityLedger()


@pytest.fixture
def granter():
    return FakeRoleGranter()


@pytest.fixture
def orchestrator(code_store, ledger, checker, granter):
    return VerificationOrchestrator(
        code_store=code_store,
        ledger=ledger,
        checker=checker,
        granter=granter,
        operator_handle="operator.account",
    )
