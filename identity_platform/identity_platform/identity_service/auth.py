from passlib.context import CryptContext
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
import secrets
import jwt

from .config import get_settings
from .errors import TokenExpiredError, TokenMalformedError

logger = logging.getLogger(__name__)

# 32 random bytes, hex encoded
ONE_TIME_TOKEN_BYTES = 32

# Use pbkdf2_sha256 to avoid external bcrypt backend issues in some environments
def build_password_context(rounds: int) -> CryptContext:
    return CryptContext(
        schemes=["pbkdf2_sha256"],
        deprecated="auto",
        pbkdf2_sha256__default_rounds=rounds,
    )


pwd_context = build_password_context(get_settings().PASSWORD_HASH_ROUNDS)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Stored value is not a recognised hash
        logger.warning("Password verification against an unrecognised hash format")
        return False


def dummy_verify() -> None:
    """Spend one hash verification when there is no stored hash to check."""
    pwd_context.dummy_verify()


def generate_one_time_token() -> str:
    """Random value for email verification and password reset links."""
    return secrets.token_hex(ONE_TIME_TOKEN_BYTES)


class TokenCodec:
    """
    Signs and verifies bearer tokens.

    Tokens carry ``sub`` and ``auth_id`` (both the credential id), ``email``,
    ``iat`` and ``exp``. There is no revocation list: a token stays valid
    until ``exp`` even after a refresh has issued a newer one.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 60):
        if not secret_key:
            raise ValueError("TokenCodec requires a signing secret")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    @classmethod
    def from_settings(cls, settings=None) -> "TokenCodec":
        settings = settings or get_settings()
        return cls(
            secret_key=settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
        )

    def encode(self, subject: str, email: str, expires_delta: Optional[timedelta] = None) -> str:
        issued_at = datetime.now(timezone.utc)
        expire = issued_at + (expires_delta if expires_delta is not None else timedelta(minutes=self.expire_minutes))
        payload = {
            "sub": subject,
            "auth_id": subject,
            "email": email,
            "iat": issued_at,
            "exp": expire,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: str) -> dict:
        """
        Verify signature and expiry and return the claims.

        Raises:
            TokenExpiredError: exp is at or before the current time
            TokenMalformedError: bad signature, bad structure or missing claims
        """
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpiredError("Invalid or expired token") from exc
        except jwt.InvalidTokenError as exc:
            raise TokenMalformedError("Invalid or expired token") from exc
