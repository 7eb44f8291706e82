"""
Outstanding verification challenges, keyed by the requester's Discord id.

A challenge is valid for CODE_TTL_SECONDS after it was issued. Expiry is lazy:
it is checked when the challenge is read and the expired entry is removed then.
"""

import secrets
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

import services.redis as redis_client
from constants.verification import CODE_ALPHABET, CODE_LENGTH, CODE_TTL_SECONDS
from models.verification import Challenge, ChallengeLookup


def generate_code() -> str:
    """Random 6-character uppercase base-36 code."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def is_expired(challenge: Challenge, now: float, ttl: int = CODE_TTL_SECONDS) -> bool:
    return now - challenge.issued_at > ttl


class CodeStore(ABC):
    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        ttl: int = CODE_TTL_SECONDS,
        code_generator: Callable[[], str] = generate_code,
    ):
        self.clock = clock
        self.ttl = ttl
        self.code_generator = code_generator

    @abstractmethod
    def _get(self, requester_id: str) -> Optional[Challenge]:
        pass

    @abstractmethod
    def _set(self, challenge: Challenge):
        pass

    @abstractmethod
    def _delete(self, requester_id: str):
        pass

    def issue(self, requester_id: str) -> str:
        """Issue a new code, replacing any earlier challenge of the requester."""
        challenge = Challenge(
            requester_id=requester_id,
            code=self.code_generator(),
            issued_at=self.clock(),
        )
        self._set(challenge)
        return challenge.code

    def lookup(self, requester_id: str) -> ChallengeLookup:
        challenge = self._get(requester_id)
        if challenge is None:
            return ChallengeLookup()
        if is_expired(challenge, self.clock(), self.ttl):
            self._delete(requester_id)
            return ChallengeLookup(expired=True)
        return ChallengeLookup(challenge=challenge)

    def peek(self, requester_id: str) -> Optional[Challenge]:
        return self.lookup(requester_id).challenge

    def consume(self, requester_id: str):
        self._delete(requester_id)


class InMemoryCodeStore(CodeStore):
    """Process-local store. Nothing survives a restart."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._challenges: dict[str, Challenge] = {}
        self._lock = threading.Lock()

    def _get(self, requester_id: str) -> Optional[Challenge]:
        with self._lock:
            return self._challenges.get(requester_id)

    def _set(self, challenge: Challenge):
        with self._lock:
            self._challenges[challenge.requester_id] = challenge

    def _delete(self, requester_id: str):
        with self._lock:
            self._challenges.pop(requester_id, None)


class RedisCodeStore(CodeStore):
    """Keeps challenges in Redis so several bot processes can share them."""

    def _get(self, requester_id: str) -> Optional[Challenge]:
        return redis_client.get_challenge_by_requester_id(requester_id)

    def _set(self, challenge: Challenge):
        redis_client.set_challenge(challenge)

    def _delete(self, requester_id: str):
        redis_client.delete_challenge_by_requester_id(requester_id)


def create_code_store(backend: str = "memory", **kwargs) -> CodeStore:
    if backend == "memory":
        return InMemoryCodeStore(**kwargs)
    if backend == "redis":
        return RedisCodeStore(**kwargs)
    raise ValueError(f"Unknown code store backend: {backend}")
