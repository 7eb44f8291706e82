"""
Append-only record of completed verifications.
"""

import threading
from abc import ABC, abstractmethod

import services.postgres as postgres_client
from models.verification import VerificationRecord


class IdentityLedger(ABC):
    @abstractmethod
    def is_verified(self, requester_id: str) -> bool:
        """True if the requester has a record in any guild."""

    @abstractmethod
    def record(self, record: VerificationRecord) -> bool:
        """Insert a record. Returns False if one already existed for the pair."""

    @abstractmethod
    def list_by_community(self, community_id: str) -> list[VerificationRecord]:
        pass


class PostgresIdentityLedger(IdentityLedger):
    def is_verified(self, requester_id: str) -> bool:
        return postgres_client.verified_user_exists(requester_id)

    def record(self, record: VerificationRecord) -> bool:
        return postgres_client.add_verified_user(record)

    def list_by_community(self, community_id: str) -> list[VerificationRecord]:
        return postgres_client.get_verified_users_by_guild_id(community_id)


class InMemoryIdentityLedger(IdentityLedger):
    def __init__(self):
        self._records: list[VerificationRecord] = []
        self._lock = threading.Lock()

    def is_verified(self, requester_id: str) -> bool:
        with self._lock:
            return any(r.requester_id == requester_id for r in self._records)

    def record(self, record: VerificationRecord) -> bool:
        with self._lock:
            for existing in self._records:
                if (
                    existing.requester_id == record.requester_id
                    and existing.community_id == record.community_id
                ):
                    return False
            self._records.append(record.model_copy())
            return True

    def list_by_community(self, community_id: str) -> list[VerificationRecord]:
        with self._lock:
            return [
                r.model_copy() for r in self._records if r.community_id == community_id
            ]
