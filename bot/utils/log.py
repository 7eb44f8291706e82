import logging

from models.service import LogRequest
import services.postgres as postgres_client
from datetime import datetime, timezone

logger = logging.getLogger("verification_bot")

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}


def logMessage(message: str, level: str = "info", **kwargs):
    """
    Log a message with the specified level and additional context.

    The message always goes to the process log. When the database is available
    it is also persisted to the logs table so operators can review it later.

    :param message: The core log message.
    :param level: The log level (e.g., "debug", "info", "warn", "error", "fatal").
    :param kwargs: Additional context to include in the log.
    """
    logger.log(LEVELS.get(level, logging.INFO), message)
    if not postgres_client.is_postgres_initialized():
        return
    try:
        log_request = LogRequest(
            message=message,
            level=level,
            timestamp=datetime.now(timezone.utc).isoformat(),
            is_internal=True,
            **kwargs,
        )
        postgres_client.persist_log(log_request)
    except Exception as e:
        logger.error(f"Failed to create log request: {e}")
        return
