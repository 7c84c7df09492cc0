"""
Queue message entry point.

Messages arrive as ``{"data": {"action": ..., "body": {...}}}`` and are
dispatched on ``action``. Malformed messages, unknown actions and handler
failures are logged and answered with None.
"""
from typing import Any, Callable, Dict, Optional
import logging

from sqlalchemy.orm import Session

from .errors import IdentityError
from .profiles import ProfileManager

logger = logging.getLogger(__name__)


def _get_profile_by_id(body: dict, db: Session) -> Optional[dict]:
    profile_id = body.get("profileId")
    if not profile_id:
        logger.warning("Missing profileId in message body")
        return None
    profile = ProfileManager(db).find_one(profile_id)
    logger.info("Profile found for queue request: profile_id=%s", profile.id)
    return profile.to_dict()


ACTIONS: Dict[str, Callable[[dict, Session], Optional[dict]]] = {
    "getProfileById": _get_profile_by_id,
}


def handle_message(message: Any, db: Session) -> Optional[dict]:
    data = message.get("data") if isinstance(message, dict) else None
    if not isinstance(data, dict) or not data.get("action") or not data.get("body"):
        logger.warning("Received message with invalid structure")
        return None

    action = data["action"]
    body = data["body"]
    handler = ACTIONS.get(action)
    if handler is None:
        logger.warning("Unrecognized action: %s", action)
        return None

    if not isinstance(body, dict):
        logger.warning("Message body for %s is not an object", action)
        return None

    try:
        return handler(body, db)
    except IdentityError as e:
        logger.error("Error handling queue message %s: %s", action, e.message)
        return None
