from pydantic import BaseModel, Field, field_validator

from typing import Any, Dict, List, Optional
import re

# Loose check for credentials and lookups; stored profile emails use the stricter pattern below
CREDENTIAL_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# Each repeated group must start with a separator
PROFILE_EMAIL_RE = re.compile(r"^\w+(?:[.-]\w+)*@\w+(?:[.-]\w+)*\.\w{2,3}$")

PASSWORD_MIN_LENGTH = 6
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50


def _check_credential_email(v: str) -> str:
    if not CREDENTIAL_EMAIL_RE.match(v):
        raise ValueError("email must be a valid email address")
    return v


def _check_profile_email(v: str) -> str:
    v = v.strip().lower()
    if not PROFILE_EMAIL_RE.match(v):
        raise ValueError("Please enter a valid email")
    return v


def _check_lookup_email(v: str) -> str:
    v = v.strip().lower()
    if not CREDENTIAL_EMAIL_RE.match(v):
        raise ValueError("Please enter a valid email")
    return v


def _check_name(v: str) -> str:
    v = v.strip()
    if not NAME_MIN_LENGTH <= len(v) <= NAME_MAX_LENGTH:
        raise ValueError(f"must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters")
    return v


# ---------------- Request bodies ----------------
# Shape only; field rules are applied by the managers and surface as ValidationFailed

class CredentialRequest(BaseModel):
    email: str
    password: str


class VerifyEmailRequest(BaseModel):
    token: str


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str


class TokenRequest(BaseModel):
    token: str


class ProfileCreateRequest(BaseModel):
    auth_ref: str
    first_name: str
    last_name: str


class ProfileUpdateRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    is_active: Optional[bool] = None


# ---------------- Credentials ----------------

class CredentialCreate(BaseModel):
    email: str
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _check_credential_email(v)


class PasswordReset(BaseModel):
    token: str
    new_password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)


class AuthUserSummary(BaseModel):
    id: str
    email: str
    is_verified: bool


class LoginData(BaseModel):
    access_token: str
    token_type: str = "bearer"
    auth_user: AuthUserSummary


class LoginResponse(BaseModel):
    success: bool = True
    message: str
    data: LoginData


class TokenClaims(BaseModel):
    sub: str
    auth_id: str
    email: str
    iat: int
    exp: int


# ---------------- Profiles ----------------

class ProfileCreate(BaseModel):
    auth_ref: str
    first_name: str
    last_name: str

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return _check_name(v) if v is not None else v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _check_profile_email(v) if v is not None else v


class ProfileEmail(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _check_profile_email(v)


class ProfileEmailLookup(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _check_lookup_email(v)


class ProfileOut(BaseModel):
    id: str
    auth_ref: str
    first_name: str
    last_name: str
    email: str
    is_active: bool
    last_login: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProfileListResponse(BaseModel):
    success: bool = True
    profiles: List[ProfileOut]
    total: int


class ProfileStats(BaseModel):
    total_profiles: int
    recent_profiles: int


# ---------------- Queue ----------------

class QueueEnvelope(BaseModel):
    data: Optional[Dict[str, Any]] = None
