"""
Helpdesk Engine Configuration

Settings are read from the environment (and a local .env file).
"""

import logging
import os
from typing import List, Optional
from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_FROM_EMAIL = "noreply@helpdesk.com"


class Settings(BaseModel):
    # SMTP transport
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = DEFAULT_FROM_EMAIL

    notifications_enabled: bool = True
    log_level: str = "INFO"

    # Attempts at inserting a ticket before a number collision is surfaced
    ticket_number_max_attempts: int = 5

    # User ids granted admin the first time they are provisioned
    bootstrap_admins: List[str] = Field(default_factory=list)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build Settings from environment variables, loading .env first."""
    load_dotenv(env_file)

    smtp_user = os.getenv("SMTP_USER") or os.getenv("EMAIL_USER") or ""
    return Settings(
        smtp_host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
        smtp_port=int(os.getenv("SMTP_PORT", 587)),
        smtp_user=smtp_user,
        smtp_password=os.getenv("SMTP_PASS") or os.getenv("EMAIL_PASS") or "",
        from_email=os.getenv("FROM_EMAIL") or smtp_user or DEFAULT_FROM_EMAIL,
        notifications_enabled=_env_bool("NOTIFICATIONS_ENABLED", True),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        ticket_number_max_attempts=int(os.getenv("TICKET_NUMBER_MAX_ATTEMPTS", 5)),
        bootstrap_admins=[
            uid.strip() for uid in os.getenv("BOOTSTRAP_ADMINS", "").split(",") if uid.strip()
        ],
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
