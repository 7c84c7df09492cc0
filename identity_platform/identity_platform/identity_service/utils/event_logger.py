"""
Logging setup and credential lifecycle event lines.
"""
from datetime import datetime, timezone
from typing import Optional
import sys
import logging
import os

from ..models import Credential

logger = logging.getLogger(__name__)


ALLOWED_EVENT_TYPES = {
    "registered",
    "email_verified",
    "login_success",
    "login_failure",
    "password_reset_requested",
    "password_reset",
    "token_refreshed",
}


def configure_logging(level: str = "INFO", log_dir: Optional[str] = None) -> None:
    """
    Configure stdout logging, plus a file handler under ``log_dir`` when the
    directory can be created.
    """
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_dir:
        # Continue with stdout only if the directory is unusable
        try:
            os.makedirs(log_dir, exist_ok=True)
            handlers.append(logging.FileHandler(os.path.join(log_dir, "identity_events.log")))
        except OSError as e:
            print(f"WARNING: Could not set up file logging: {e}", file=sys.stderr)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers
    )


def log_credential_event(
    event_type: str,
    credential: Credential,
    metadata: dict = None
) -> None:
    """
    Write one line describing a credential lifecycle event.

    Args:
        event_type: One of ALLOWED_EVENT_TYPES
        credential: Credential the event concerns
        metadata: Optional extra key/value pairs appended to the line

    Raises:
        ValueError: If event_type is invalid
    """
    if event_type not in ALLOWED_EVENT_TYPES:
        raise ValueError(
            f"Invalid event_type '{event_type}'. Must be one of: {', '.join(sorted(ALLOWED_EVENT_TYPES))}"
        )

    extra = " ".join(f"{key}={value}" for key, value in sorted((metadata or {}).items()))
    logger.info(
        "AUTH %s credential_id=%s email=%s timestamp=%s%s",
        event_type,
        credential.id,
        credential.email,
        datetime.now(timezone.utc).isoformat(),
        f" {extra}" if extra else "",
    )
