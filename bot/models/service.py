from pydantic import BaseModel
from typing import Optional


class LogRequest(BaseModel):
    # Core message
    message: str
    level: str  # "debug", "info", "warn", "error", "fatal"

    # Context
    timestamp: Optional[str] = None  # ISO 8601 format
    user_id: Optional[str] = None
    guild_id: Optional[str] = None

    # Application Context
    component: Optional[str] = None
    action: Optional[str] = None
    metadata: Optional[dict] = None

    # Additional fields
    is_internal: Optional[bool] = (
        True  # Indicates if the log is from the bot itself or a user action
    )
