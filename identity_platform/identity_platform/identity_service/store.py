"""
Query helpers for the credentials and profiles tables.

Uniqueness is enforced by the tables' unique indexes; callers treat the
resulting IntegrityError as the authoritative conflict signal. One-time
tokens are consumed with a single conditional UPDATE so two concurrent
consumers cannot both succeed.
"""
from datetime import datetime, timedelta
from typing import Optional
import uuid

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from .models import Credential, Profile


def is_valid_id(value: str) -> bool:
    """True for the 32-char hex ids assigned to credentials and profiles."""
    if not isinstance(value, str) or len(value) != 32:
        return False
    try:
        uuid.UUID(hex=value)
    except ValueError:
        return False
    return True


class CredentialStore:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, credential_id: str) -> Optional[Credential]:
        if not is_valid_id(credential_id):
            return None
        return self.db.query(Credential).filter(Credential.id == credential_id).first()

    def get_by_email(self, email: str) -> Optional[Credential]:
        # Exact match; emails are stored as given
        return self.db.query(Credential).filter(Credential.email == email).first()

    def insert(self, credential: Credential) -> Credential:
        self.db.add(credential)
        self.db.commit()
        self.db.refresh(credential)
        return credential

    def set_token(self, credential: Credential, token: str, expires_at: datetime) -> None:
        """Overwrite any pending token on the credential."""
        credential.reset_token = token
        credential.reset_token_expiration = expires_at
        self.db.add(credential)
        self.db.commit()

    def consume_token(self, token: str, now: datetime, **changes) -> Optional[Credential]:
        """
        Clear a live one-time token and apply ``changes`` in the same UPDATE.

        A token is live while ``now < reset_token_expiration``. Returns the
        updated credential, or None when no live token matched (unknown,
        expired, or already consumed by a concurrent request).
        """
        if not token:
            return None
        candidate = (
            self.db.query(Credential.id)
            .filter(Credential.reset_token == token, Credential.reset_token_expiration > now)
            .first()
        )
        if candidate is None:
            return None

        values = dict(changes)
        values.update(reset_token=None, reset_token_expiration=None, updated_at=now)
        updated = (
            self.db.query(Credential)
            .filter(
                Credential.id == candidate.id,
                Credential.reset_token == token,
                Credential.reset_token_expiration > now,
            )
            .update(values, synchronize_session=False)
        )
        self.db.commit()
        if updated != 1:
            return None
        return self.db.query(Credential).filter(Credential.id == candidate.id).first()


class ProfileStore:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, profile_id: str) -> Optional[Profile]:
        return self.db.query(Profile).filter(Profile.id == profile_id).first()

    def get_by_auth_ref(self, auth_ref: str) -> Optional[Profile]:
        return self.db.query(Profile).filter(Profile.auth_ref == auth_ref).first()

    def get_by_email(self, email: str) -> Optional[Profile]:
        return self.db.query(Profile).filter(Profile.email == email).first()

    def email_taken(self, email: str, exclude_id: str) -> bool:
        return (
            self.db.query(Profile.id)
            .filter(Profile.email == email, Profile.id != exclude_id)
            .first()
        ) is not None

    def save(self, profile: Profile) -> Profile:
        self.db.add(profile)
        self.db.commit()
        self.db.refresh(profile)
        return profile

    def delete(self, profile: Profile) -> None:
        self.db.delete(profile)
        self.db.commit()

    def find_all(self, limit: Optional[int] = None, offset: Optional[int] = None) -> tuple[list[Profile], int]:
        query = self.db.query(Profile).order_by(Profile.created_at.asc(), Profile.id.asc())
        if offset is not None:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        total = self.db.query(func.count(Profile.id)).scalar()
        return query.all(), total

    def search_by_name(self, name: str, limit: int) -> list[Profile]:
        escaped = name.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        return (
            self.db.query(Profile)
            .filter(or_(
                Profile.first_name.ilike(pattern, escape="\\"),
                Profile.last_name.ilike(pattern, escape="\\"),
            ))
            .order_by(Profile.last_name.asc(), Profile.first_name.asc())
            .limit(limit)
            .all()
        )

    def count(self, created_since: Optional[datetime] = None) -> int:
        query = self.db.query(func.count(Profile.id))
        if created_since is not None:
            query = query.filter(Profile.created_at >= created_since)
        return query.scalar()

    def count_recent(self, now: datetime, days: int = 7) -> int:
        return self.count(created_since=now - timedelta(days=days))
