import json
import os
import logging
from contextlib import contextmanager
from typing import Optional, Generator

from models.service import LogRequest
from models.verification import VerificationRecord
from psycopg2 import pool  # type: ignore

# Setup logging
logger = logging.getLogger(__name__)

# PostgreSQL configuration with defaults
POSTGRES_HOST = os.getenv("POSTGRES_HOST", "localhost")
POSTGRES_PORT = int(os.getenv("POSTGRES_PORT", "5432"))
POSTGRES_DB = os.getenv("POSTGRES_DB", "ig_verification")
POSTGRES_USER = os.getenv("POSTGRES_USER", "postgres")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "")
POSTGRES_MIN_CONN = int(os.getenv("POSTGRES_MIN_CONN", "1"))
POSTGRES_MAX_CONN = int(os.getenv("POSTGRES_MAX_CONN", "10"))
POSTGRES_CONNECT_TIMEOUT = int(os.getenv("POSTGRES_CONNECT_TIMEOUT", "10"))
POSTGRES_COMMAND_TIMEOUT = int(os.getenv("POSTGRES_COMMAND_TIMEOUT", "30"))
POSTGRES_APPLICATION_NAME = os.getenv(
    "POSTGRES_APPLICATION_NAME", "ig-verification-bot"
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS public.verified_users (
    id BIGSERIAL PRIMARY KEY,
    discord_id TEXT NOT NULL,
    discord_username TEXT NOT NULL,
    ig_username TEXT NOT NULL,
    verified_at TIMESTAMPTZ NOT NULL,
    guild_id TEXT NOT NULL,
    UNIQUE (discord_id, guild_id)
);

CREATE INDEX IF NOT EXISTS verified_users_discord_id_idx
    ON public.verified_users (discord_id);

CREATE TABLE IF NOT EXISTS public.logs (
    id BIGSERIAL PRIMARY KEY,
    message TEXT NOT NULL,
    level TEXT NOT NULL,
    timestamp TIMESTAMPTZ,
    component TEXT,
    action TEXT,
    metadata JSONB,
    user_id TEXT,
    guild_id TEXT,
    is_internal BOOLEAN DEFAULT TRUE
);
"""

# Connection pool configuration
DB_CONFIG = {
    "dbname": POSTGRES_DB,
    "host": POSTGRES_HOST,
    "port": POSTGRES_PORT,
    "user": POSTGRES_USER,
    "password": POSTGRES_PASSWORD,
    "connect_timeout": POSTGRES_CONNECT_TIMEOUT,
    "application_name": POSTGRES_APPLICATION_NAME,
}


class PostgresConnectionManager:
    """Manages PostgreSQL connections using connection pooling."""

    def __init__(self):
        self._connection_pool: Optional[pool.ThreadedConnectionPool] = None
        self._is_initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    def initialize(self):
        """Initialize PostgreSQL connection pool."""
        if self._is_initialized:
            logger.warning("PostgreSQL connection manager already initialized")
            return

        logger.info("Initializing PostgreSQL connection pool...")

        try:
            # Handlers run in worker threads, so the pool must be thread safe
            self._connection_pool = pool.ThreadedConnectionPool(
                minconn=POSTGRES_MIN_CONN,
                maxconn=POSTGRES_MAX_CONN,
                **DB_CONFIG,
            )

            self._is_initialized = True
            logger.info(
                f"PostgreSQL connection pool initialized successfully "
                f"(min: {POSTGRES_MIN_CONN}, max: {POSTGRES_MAX_CONN})"
            )

            if self.health_check():
                logger.info("PostgreSQL initial health check passed")
            else:
                logger.warning(
                    "PostgreSQL initial health check failed, but continuing startup"
                )

        except Exception as e:
            logger.error(f"Failed to initialize PostgreSQL connection pool: {e}")
            self._is_initialized = False
            self._connection_pool = None
            raise

    @contextmanager
    def get_connection(self) -> Generator:
        """Get a database connection from the pool with proper error handling."""
        if not self._is_initialized or not self._connection_pool:
            raise RuntimeError("PostgreSQL connection manager not initialized")

        conn = None
        try:
            conn = self._connection_pool.getconn()

            if conn is None:
                raise ConnectionError("Failed to get connection from pool")

            conn.autocommit = False

            with conn.cursor() as cursor:
                cursor.execute(f"SET statement_timeout = '{POSTGRES_COMMAND_TIMEOUT}s'")

            yield conn

        except Exception as e:
            if conn:
                try:
                    conn.rollback()
                except Exception as rollback_error:
                    logger.error(f"Error during rollback: {rollback_error}")
            raise e
        finally:
            if conn:
                try:
                    self._connection_pool.putconn(conn)
                except Exception as putconn_error:
                    logger.error(f"Error returning connection to pool: {putconn_error}")

    @contextmanager
    def get_cursor(self, commit: bool = True) -> Generator:
        """Get a cursor with automatic transaction management."""
        with self.get_connection() as conn:
            with conn.cursor() as cursor:
                try:
                    yield cursor
                    if commit:
                        conn.commit()
                except Exception as e:
                    conn.rollback()
                    raise e

    def health_check(self) -> bool:
        """Perform a health check on the PostgreSQL connection."""
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute("SELECT 1")
                    result = cursor.fetchone()
                    return result is not None and result[0] == 1
        except Exception as e:
            logger.error(f"PostgreSQL health check failed: {e}")
            return False

    def close(self):
        """Close all PostgreSQL connections."""
        if not self._is_initialized:
            return

        logger.info("Closing PostgreSQL connections...")

        try:
            if self._connection_pool:
                self._connection_pool.closeall()
        except Exception as e:
            logger.error(f"Error closing PostgreSQL connections: {e}")
        finally:
            self._is_initialized = False
            self._connection_pool = None
            logger.info("PostgreSQL connections closed")


# Global connection manager instance
_postgres_manager = PostgresConnectionManager()


def initialize_postgres():
    """Initialize PostgreSQL connection pool and make sure the tables exist."""
    _postgres_manager.initialize()
    ensure_schema()


def close_postgres_client():
    """Close all PostgreSQL connections."""
    _postgres_manager.close()


def is_postgres_initialized() -> bool:
    return _postgres_manager.is_initialized


def postgres_health_check() -> dict:
    """Check if PostgreSQL is healthy and responsive."""
    if not _postgres_manager.is_initialized:
        return {"healthy": None}
    return {"healthy": _postgres_manager.health_check()}


@contextmanager
def get_db_connection():
    with _postgres_manager.get_connection() as conn:
        yield conn


@contextmanager
def get_db_cursor(commit: bool = True):
    """Get a database cursor with automatic transaction management."""
    with _postgres_manager.get_cursor(commit=commit) as cursor:
        yield cursor


def ensure_schema():
    """Create the bot's tables if they are missing."""
    with get_db_cursor() as cursor:
        cursor.execute(SCHEMA)


# === Verified users ====
def verified_user_exists(discord_id: str) -> bool:
    with get_db_cursor(commit=False) as cursor:
        cursor.execute(
            "SELECT 1 FROM public.verified_users WHERE discord_id = %s LIMIT 1",
            (discord_id,),
        )
        return cursor.fetchone() is not None


def add_verified_user(record: VerificationRecord) -> bool:
    """
    Insert a verification record. Records are never updated, so a second
    insert for the same (discord_id, guild_id) pair is a no-op.

    Returns True if a row was written.
    """
    with get_db_connection() as conn:
        with conn.cursor() as cursor:
            try:
                cursor.execute(
                    """
                    INSERT INTO public.verified_users (discord_id, discord_username, ig_username, verified_at, guild_id)
                    VALUES (%s, %s, %s, %s, %s)
                    ON CONFLICT (discord_id, guild_id) DO NOTHING
                    """,
                    (
                        record.requester_id,
                        record.requester_display_name,
                        record.external_account_handle,
                        record.verified_at,
                        record.community_id,
                    ),
                )
                written = cursor.rowcount == 1
                conn.commit()
                return written
            except Exception as e:
                logger.error(f"Failed to save verified user to the database: {e}")
                conn.rollback()
                raise e


def get_verified_users_by_guild_id(guild_id: str) -> list[VerificationRecord]:
    with get_db_cursor(commit=False) as cursor:
        cursor.execute(
            """
            SELECT discord_id, discord_username, ig_username, verified_at, guild_id
            FROM public.verified_users
            WHERE guild_id = %s
            """,
            (guild_id,),
        )
        rows = cursor.fetchall()
    return [build_verification_record_from_row(row) for row in rows]


def build_verification_record_from_row(row: tuple) -> VerificationRecord:
    return VerificationRecord(
        requester_id=row[0],
        requester_display_name=row[1],
        external_account_handle=row[2],
        verified_at=row[3],
        community_id=row[4],
    )


# === Logs ====
def persist_log(log: LogRequest):
    """Save log to the database."""
    with get_db_connection() as conn:
        with conn.cursor() as cursor:
            try:
                cursor.execute(
                    """
                    INSERT INTO public.logs (message, level, timestamp, component, action, metadata, user_id, guild_id, is_internal)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        log.message,
                        log.level,
                        log.timestamp,
                        log.component,
                        log.action,
                        json.dumps(log.metadata) if log.metadata else None,
                        log.user_id,
                        log.guild_id,
                        log.is_internal,
                    ),
                )
                conn.commit()
            except Exception as e:
                logger.error(f"Failed to save log to the database: {e}")
                conn.rollback()
                raise e
