"""
Credential lifecycle: registration, email verification, login, password
reset and bearer token validation/refresh.
"""
from datetime import datetime, timedelta
from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session

from .auth import TokenCodec, dummy_verify, generate_one_time_token, hash_password, verify_password
from .config import Settings, get_settings
from .errors import AlreadyExistsError, UnauthorizedError, reclassify
from .models import Credential, utcnow
from .schemas import CredentialCreate, PasswordReset, TokenClaims
from .store import CredentialStore
from .utils.event_logger import log_credential_event

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
EMAIL_NOT_VERIFIED = "Email not verified"
FORGOT_PASSWORD_GENERIC = "If the email exists, a reset link has been sent"


class CredentialManager:
    """
    Orchestrates the credential state machine against the credentials table.

    A credential starts unverified. ``verify_email`` moves it to verified
    exactly once; ``forgot_password`` and ``reset_password`` never change the
    verified flag. Verification and reset tokens share one slot on the row,
    so requesting a reset replaces a pending verification token.
    """

    def __init__(
        self,
        db: Session,
        codec: TokenCodec,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.store = CredentialStore(db)
        self.codec = codec
        self.settings = settings or get_settings()
        self.clock = clock

    def register(self, email: str, password: str) -> dict:
        with reclassify(self.db, "creating auth credentials"):
            payload = CredentialCreate(email=email, password=password)

            # Advisory check; the unique index decides under concurrency
            if self.store.get_by_email(payload.email):
                raise AlreadyExistsError("Email already exists")

            verification_token = generate_one_time_token()
            credential = Credential(
                email=payload.email,
                password_hash=hash_password(payload.password),
                is_verified=False,
                reset_token=verification_token,
                reset_token_expiration=self.clock() + timedelta(hours=self.settings.VERIFICATION_TOKEN_TTL_HOURS),
            )
            credential = self.store.insert(credential)

        log_credential_event("registered", credential)
        return {
            "success": True,
            "message": "Auth credentials created successfully",
            "data": credential.to_dict(),
            "verification_token": verification_token,
        }

    def verify_email(self, token: str) -> dict:
        with reclassify(self.db, "verifying email"):
            credential = self.store.consume_token(token, self.clock(), is_verified=True)

        if credential is None:
            raise UnauthorizedError("Invalid or expired verification token")

        log_credential_event("email_verified", credential)
        return {
            "success": True,
            "message": "Email verified successfully",
            "data": {
                "id": credential.id,
                "email": credential.email,
                "is_verified": credential.is_verified,
            },
        }

    def login(self, email: str, password: str) -> dict:
        with reclassify(self.db, "logging in"):
            credential = self.store.get_by_email(email)

        if not credential:
            # Same hashing cost as a wrong password
            dummy_verify()
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not verify_password(password, credential.password_hash):
            log_credential_event("login_failure", credential, {"reason": "bad_password"})
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not credential.is_verified:
            log_credential_event("login_failure", credential, {"reason": "unverified"})
            raise UnauthorizedError(EMAIL_NOT_VERIFIED)

        log_credential_event("login_success", credential)
        return {
            "success": True,
            "message": "Login successful",
            "data": self._token_payload(credential),
        }

    def forgot_password(self, email: str) -> dict:
        with reclassify(self.db, "generating reset token"):
            credential = self.store.get_by_email(email)
            if not credential:
                return {"success": True, "message": FORGOT_PASSWORD_GENERIC}

            reset_token = generate_one_time_token()
            expires_at = self.clock() + timedelta(minutes=self.settings.RESET_TOKEN_TTL_MINUTES)
            self.store.set_token(credential, reset_token, expires_at)

        log_credential_event("password_reset_requested", credential, {"expires_at": expires_at.isoformat()})
        return {
            "success": True,
            "message": "Password reset token generated",
            "reset_token": reset_token,
        }

    def reset_password(self, token: str, new_password: str) -> dict:
        with reclassify(self.db, "resetting password"):
            payload = PasswordReset(token=token, new_password=new_password)
            credential = self.store.consume_token(
                payload.token,
                self.clock(),
                password_hash=hash_password(payload.new_password),
            )

        if credential is None:
            raise UnauthorizedError("Invalid or expired reset token")

        log_credential_event("password_reset", credential)
        return {"success": True, "message": "Password reset successfully"}

    def validate_user(self, email: str, password: str) -> Optional[dict]:
        """Return the credential summary when the password matches, else None."""
        with reclassify(self.db, "validating user"):
            credential = self.store.get_by_email(email)
        if not credential:
            dummy_verify()
            return None
        if verify_password(password, credential.password_hash):
            return credential.to_dict()
        return None

    def validate_token(self, token: str) -> dict:
        try:
            claims = self.codec.decode(token)
        except UnauthorizedError as exc:
            logger.info("Bearer token rejected: reason=%s", getattr(exc, "reason", "unknown"))
            raise

        with reclassify(self.db, "validating token"):
            credential = self.store.get_by_id(claims["sub"])
        if not credential or not credential.is_verified:
            logger.info("Bearer token rejected: reason=subject_unavailable")
            raise UnauthorizedError("Invalid token - user not found or not verified")

        return {
            "success": True,
            "message": "Token is valid",
            "data": TokenClaims(
                sub=claims["sub"],
                auth_id=claims.get("auth_id", claims["sub"]),
                email=claims.get("email", credential.email),
                iat=claims["iat"],
                exp=claims["exp"],
            ).model_dump(),
        }

    def refresh_token(self, old_token: str) -> dict:
        """
        Issue a fresh token for the subject of ``old_token``.

        The old token is not revoked and stays usable until its own expiry.
        """
        try:
            claims = self.codec.decode(old_token)
        except UnauthorizedError as exc:
            logger.info("Refresh rejected: reason=%s", getattr(exc, "reason", "unknown"))
            raise UnauthorizedError("Cannot refresh token") from exc

        with reclassify(self.db, "refreshing token"):
            credential = self.store.get_by_id(claims["sub"])
        if not credential or not credential.is_verified:
            raise UnauthorizedError("Cannot refresh token")

        log_credential_event("token_refreshed", credential)
        return {
            "success": True,
            "message": "Token refreshed successfully",
            "data": self._token_payload(credential),
        }

    def find_by_email(self, email: str) -> Optional[dict]:
        with reclassify(self.db, "finding credential by email"):
            credential = self.store.get_by_email(email)
        return credential.to_dict() if credential else None

    def find_by_id(self, credential_id: str) -> Optional[dict]:
        with reclassify(self.db, "finding credential by id"):
            credential = self.store.get_by_id(credential_id)
        return credential.to_dict() if credential else None

    def get_auth_id_from_token(self, token: str) -> str:
        return self.codec.decode(token)["sub"]

    def _token_payload(self, credential: Credential) -> dict:
        return {
            "access_token": self.codec.encode(credential.id, credential.email),
            "token_type": "bearer",
            "auth_user": {
                "id": credential.id,
                "email": credential.email,
                "is_verified": credential.is_verified,
            },
        }
