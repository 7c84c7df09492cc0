"""
Typed failures raised by the credential and profile managers.

Every failure carries a ``kind`` tag that the transport layer renders into the
``{"success": false, "message": ..., "error": kind}`` envelope.
"""
from contextlib import contextmanager
import logging

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class IdentityError(Exception):
    kind = "Internal"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message, "error": self.kind}


class AlreadyExistsError(IdentityError):
    kind = "AlreadyExists"
    status_code = 409


class UnauthorizedError(IdentityError):
    kind = "Unauthorized"
    status_code = 401


class NotFoundError(IdentityError):
    kind = "NotFound"
    status_code = 404


class ValidationFailedError(IdentityError):
    kind = "ValidationFailed"
    status_code = 400


class InternalError(IdentityError):
    kind = "Internal"
    status_code = 500

    def __init__(self, message: str, detail: str = None):
        super().__init__(message)
        # Original store message, kept for logs only
        self.detail = detail


class TokenMalformedError(UnauthorizedError):
    """Bearer token failed signature or structure checks."""

    reason = "malformed"


class TokenExpiredError(UnauthorizedError):
    """Bearer token signature is fine but exp has passed."""

    reason = "expired"


def validation_message(exc: ValidationError) -> str:
    """Join pydantic error messages into one human-readable line."""
    parts = []
    for err in exc.errors():
        field = ".".join(str(loc) for loc in err.get("loc", ()) if loc != "body")
        msg = err.get("msg", "invalid value")
        parts.append(f"{field}: {msg}" if field else msg)
    return f"Validation failed: {', '.join(parts)}"


@contextmanager
def reclassify(db: Session, action: str):
    """
    Map store failures raised inside the block onto the error kinds.

    IdentityError passes through untouched, unique-index conflicts become
    AlreadyExistsError, and any other SQLAlchemy failure rolls the session
    back and becomes InternalError.
    """
    try:
        yield
    except IdentityError:
        raise
    except ValidationError as e:
        raise ValidationFailedError(validation_message(e)) from e
    except IntegrityError as e:
        db.rollback()
        logger.info("Unique constraint conflict while %s: %s", action, e.orig)
        raise AlreadyExistsError(_conflict_message(e)) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Store failure while %s: %s", action, e)
        raise InternalError(f"Error {action}", detail=str(e)) from e


def _conflict_message(exc: IntegrityError) -> str:
    text = str(exc.orig).lower()
    if "auth_ref" in text:
        return "Profile for this credential already exists"
    if "email" in text:
        return "Email already exists"
    return "Record already exists"
