"""
Service to interface with Instagram through the private API (instagrapi).

InstagramPlatform exposes the handful of calls the proof checker needs and
translates library errors into PlatformError / PlatformAuthError.
InstagramSessionManager owns the single logged-in operator session.
"""

import os
import logging
import threading
import time
from typing import Callable, Optional

import requests
from instagrapi import Client
from instagrapi.exceptions import ClientError, LoginRequired, UserNotFound

from constants.verification import (
    IG_SESSION_MAX_AGE_SECONDS,
    INBOX_THREAD_FETCH_AMOUNT,
)
from models.verification import AccountProfile, InboxThread

IG_USERNAME = os.getenv("IG_USERNAME")
IG_PASSWORD = os.getenv("IG_PASSWORD")
IG_SESSION_MAX_AGE = int(
    os.getenv("IG_SESSION_MAX_AGE", str(IG_SESSION_MAX_AGE_SECONDS))
)

logger = logging.getLogger(__name__)


class PlatformError(Exception):
    """A transport or API failure while talking to Instagram."""


class PlatformAuthError(PlatformError):
    """The operator session is not (or no longer) authenticated."""


def build_inbox_thread(thread) -> InboxThread:
    latest_text = thread.messages[0].text if thread.messages else None
    return InboxThread(
        thread_id=str(thread.id),
        usernames=[user.username for user in thread.users],
        latest_message_text=latest_text,
    )


class InstagramPlatform:
    """
    Thin wrapper over an authenticated instagrapi client.

    The client keeps per-request state (last_json, request headers) on itself;
    calls through one platform are serialized.
    """

    def __init__(self, client: Client):
        self.client = client
        self._request_lock = threading.Lock()

    def _call(self, name: str, func: Callable, *args, **kwargs):
        try:
            with self._request_lock:
                return func(*args, **kwargs)
        except LoginRequired as e:
            raise PlatformAuthError(f"{name}: login required") from e
        except (ClientError, UserNotFound, requests.exceptions.RequestException) as e:
            raise PlatformError(f"{name}: {e}") from e

    def resolve_account_by_handle(self, handle: str) -> Optional[str]:
        """Exact username match. Returns the account id or None."""
        try:
            return str(
                self._call(
                    "user_id_from_username", self.client.user_id_from_username, handle
                )
            )
        except PlatformError as e:
            if isinstance(e.__cause__, UserNotFound):
                return None
            raise

    def get_public_profile(self, account_id: str) -> AccountProfile:
        user = self._call("user_info", self.client.user_info, account_id)
        return AccountProfile(
            account_id=str(user.pk),
            username=user.username,
            follower_count=user.follower_count or 0,
            following_count=user.following_count or 0,
        )

    def is_followed_by(self, account_id: str) -> bool:
        """True if the given account follows the operator account."""
        relationship = self._call(
            "user_friendship_v1", self.client.user_friendship_v1, account_id
        )
        # instagrapi swallows request errors here and returns None
        if relationship is None:
            raise PlatformError("user_friendship_v1: no relationship returned")
        return bool(relationship.followed_by)

    def list_primary_inbox_threads(self) -> list[InboxThread]:
        threads = self._call(
            "direct_threads", self.client.direct_threads, INBOX_THREAD_FETCH_AMOUNT
        )
        return [build_inbox_thread(thread) for thread in threads]

    def list_pending_inbox_threads(self) -> list[InboxThread]:
        threads = self._call(
            "direct_pending_inbox",
            self.client.direct_pending_inbox,
            INBOX_THREAD_FETCH_AMOUNT,
        )
        return [build_inbox_thread(thread) for thread in threads]

    def accept_pending_thread(self, thread_id: str) -> bool:
        return bool(
            self._call(
                "direct_pending_approve", self.client.direct_pending_approve, thread_id
            )
        )


class InstagramSessionManager:
    """
    Hands out the shared operator session.

    Login is single flight: concurrent callers wait on the same lock and reuse
    the session the first one created. Once logged in, callers share the
    session and InstagramPlatform serializes their requests. The session is
    replaced after max_age seconds or when a caller reports it as invalid.
    """

    def __init__(
        self,
        username: Optional[str] = IG_USERNAME,
        password: Optional[str] = IG_PASSWORD,
        client_factory: Callable[[], Client] = Client,
        clock: Callable[[], float] = time.monotonic,
        max_age: int = IG_SESSION_MAX_AGE,
    ):
        self.username = username
        self.password = password
        self.client_factory = client_factory
        self.clock = clock
        self.max_age = max_age
        self.login_count = 0
        self._platform: Optional[InstagramPlatform] = None
        self._logged_in_at: float = 0
        self._login_lock = threading.Lock()

    def _is_stale(self) -> bool:
        return self.clock() - self._logged_in_at > self.max_age

    def _login(self) -> InstagramPlatform:
        if not self.username or not self.password:
            raise PlatformAuthError("Instagram credentials are not configured")

        logger.info(f"Logging in to Instagram as {self.username}")
        client = self.client_factory()
        try:
            client.login(self.username, self.password)
        except (ClientError, requests.exceptions.RequestException) as e:
            raise PlatformAuthError(f"login failed: {e}") from e

        self.login_count += 1
        self._logged_in_at = self.clock()
        return InstagramPlatform(client)

    def acquire(self) -> InstagramPlatform:
        with self._login_lock:
            if self._platform is None or self._is_stale():
                self._platform = None
                self._platform = self._login()
            return self._platform

    def invalidate(self, platform: Optional[InstagramPlatform] = None):
        """Drop the session so the next acquire logs in again.

        When a platform is passed, the session is only dropped if it is still
        the current one, so a stale report cannot discard a fresh login.
        """
        with self._login_lock:
            if platform is None or platform is self._platform:
                self._platform = None
