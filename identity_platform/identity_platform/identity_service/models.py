from sqlalchemy import Column, String, Boolean, ForeignKey, DateTime
from datetime import datetime, timezone
from .db import Base
import uuid


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return uuid.uuid4().hex


class Credential(Base):
    __tablename__ = "credentials"
    id = Column(String(32), primary_key=True, default=new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    # Verification and reset share one slot; set and cleared together
    reset_token = Column(String, nullable=True, index=True)
    reset_token_expiration = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self) -> dict:
        """
        Serialize the credential for responses. The password hash and any
        pending one-time token are never included.
        """
        return {
            "id": self.id,
            "email": self.email,
            "is_verified": self.is_verified,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Credential(id={self.id}, email={self.email}, is_verified={self.is_verified})>"


class Profile(Base):
    __tablename__ = "profiles"
    id = Column(String(32), primary_key=True, default=new_id)
    # Non-owning reference; deleting a profile never touches the credential
    auth_ref = Column(String(32), ForeignKey("credentials.id"), unique=True, index=True, nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    # Copy of the credential email at creation time
    email = Column(String, unique=True, index=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, default=utcnow, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "auth_ref": self.auth_ref,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "is_active": self.is_active,
            "last_login": self.last_login.isoformat() if self.last_login else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Profile(id={self.id}, auth_ref={self.auth_ref}, email={self.email})>"
