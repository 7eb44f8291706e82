"""
Service to interface with the Redis server.

Only used when verification challenges are kept in Redis
(CODE_STORE_BACKEND=redis); the default code store lives in process memory.
"""

import os
import logging
from contextlib import contextmanager
from typing import Generator, Optional

import redis
from redis.connection import ConnectionPool

from constants.verification import (
    CODE_STORE_KEY_PREFIX,
    CODE_STORE_REDIS_TTL_SECONDS,
)
from models.verification import Challenge

# Redis configuration with defaults
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
REDIS_MAX_CONNECTIONS = int(os.getenv("REDIS_MAX_CONNECTIONS", "20"))
REDIS_SOCKET_CONNECT_TIMEOUT = int(os.getenv("REDIS_SOCKET_CONNECT_TIMEOUT", "5"))
REDIS_SOCKET_TIMEOUT = int(os.getenv("REDIS_SOCKET_TIMEOUT", "5"))
REDIS_RETRY_ON_TIMEOUT = os.getenv("REDIS_RETRY_ON_TIMEOUT", "true").lower() == "true"
REDIS_HEALTH_CHECK_INTERVAL = int(os.getenv("REDIS_HEALTH_CHECK_INTERVAL", "30"))

# Setup logging
logger = logging.getLogger(__name__)


class RedisConnectionManager:
    """Manages Redis connections using connection pooling."""

    def __init__(self):
        self._sync_pool: Optional[ConnectionPool] = None
        self._is_initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    def initialize(self):
        """Initialize the Redis connection pool."""
        if self._is_initialized:
            logger.warning("Redis connection manager already initialized")
            return

        logger.info("Initializing Redis connection pool...")

        self._sync_pool = ConnectionPool(
            host=REDIS_HOST,
            port=REDIS_PORT,
            db=REDIS_DB,
            password=REDIS_PASSWORD,
            max_connections=REDIS_MAX_CONNECTIONS,
            socket_connect_timeout=REDIS_SOCKET_CONNECT_TIMEOUT,
            socket_timeout=REDIS_SOCKET_TIMEOUT,
            retry_on_timeout=REDIS_RETRY_ON_TIMEOUT,
            health_check_interval=REDIS_HEALTH_CHECK_INTERVAL,
            decode_responses=True,
        )

        self._is_initialized = True
        logger.info("Redis connection pool initialized successfully")

    @contextmanager
    def get_sync_client(self) -> Generator[redis.Redis, None, None]:
        """Get a synchronous Redis client from the connection pool."""
        if not self._is_initialized:
            raise RuntimeError("Redis connection manager not initialized")

        client = redis.Redis(connection_pool=self._sync_pool)
        try:
            yield client
        finally:
            # Connection is returned to the pool when the client goes out of scope
            pass

    def health_check(self) -> bool:
        """Perform a health check on the Redis connection."""
        try:
            with self.get_sync_client() as client:
                response = client.ping()
                return response is True
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    def close(self):
        """Close all Redis connections."""
        if not self._is_initialized:
            return

        logger.info("Closing Redis connections...")

        try:
            if self._sync_pool:
                self._sync_pool.disconnect()
        except Exception as e:
            logger.error(f"Error closing Redis connections: {e}")
        finally:
            self._is_initialized = False
            logger.info("Redis connections closed")


# Global connection manager instance
_redis_manager = RedisConnectionManager()


def get_redis_client():
    """Get a Redis client context manager for synchronous operations."""
    return _redis_manager.get_sync_client()


def initialize_redis():
    """Initialize the Redis connection pool."""
    _redis_manager.initialize()


def close_redis():
    """Close all Redis connections."""
    _redis_manager.close()


def redis_health_check() -> dict:
    """Check if Redis is healthy and responsive."""
    if not _redis_manager.is_initialized:
        return {"healthy": None}
    return {"healthy": _redis_manager.health_check()}


# === Verification challenges ====
def challenge_key(requester_id: str) -> str:
    return f"{CODE_STORE_KEY_PREFIX}{requester_id}"


def get_challenge_by_requester_id(requester_id: str) -> Challenge | None:
    with get_redis_client() as client:
        raw = client.get(challenge_key(requester_id))
    if not raw:
        return None
    return Challenge.model_validate_json(raw)


def set_challenge(challenge: Challenge):
    with get_redis_client() as client:
        client.set(
            challenge_key(challenge.requester_id),
            challenge.model_dump_json(),
            ex=CODE_STORE_REDIS_TTL_SECONDS,
        )


def delete_challenge_by_requester_id(requester_id: str):
    with get_redis_client() as client:
        client.delete(challenge_key(requester_id))


# === Verification challenges ====
