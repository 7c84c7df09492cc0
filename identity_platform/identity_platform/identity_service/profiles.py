"""
Profile management. Profiles hold display fields and a non-owning reference
to the credential they belong to.
"""
from datetime import datetime
from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session

from .errors import AlreadyExistsError, NotFoundError, ValidationFailedError, reclassify
from .models import Profile, utcnow
from .schemas import ProfileCreate, ProfileEmail, ProfileEmailLookup, ProfileUpdate
from .store import CredentialStore, ProfileStore, is_valid_id

logger = logging.getLogger(__name__)

RECENT_PROFILE_DAYS = 7

PROFILE_NOT_FOUND = "Profile not found"
EMAIL_IN_USE = "Email is already in use"


class ProfileManager:
    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.store = ProfileStore(db)
        self.credentials = CredentialStore(db)
        self.clock = clock

    def create_profile(self, auth_ref: str, first_name: str, last_name: str) -> Profile:
        """
        Create the profile for an existing credential.

        The profile email is copied from the credential. The credential stays
        the owner of that value; later profile email edits are not pushed back.
        """
        with reclassify(self.db, "creating profile"):
            payload = ProfileCreate(auth_ref=auth_ref, first_name=first_name, last_name=last_name)
            self._require_id(payload.auth_ref, "auth ID")

            credential = self.credentials.get_by_id(payload.auth_ref)
            if not credential:
                logger.info("Profile rejected: no credential auth_ref=%s", payload.auth_ref)
                raise NotFoundError("Credential not found")

            if self.store.get_by_auth_ref(payload.auth_ref):
                logger.info("Profile rejected: duplicate for auth_ref=%s", payload.auth_ref)
                raise AlreadyExistsError("Profile for this credential already exists")

            email = ProfileEmail(email=credential.email).email
            if self.store.get_by_email(email):
                logger.info("Profile rejected: email in use auth_ref=%s", payload.auth_ref)
                raise AlreadyExistsError(EMAIL_IN_USE)

            profile = self.store.save(Profile(
                auth_ref=payload.auth_ref,
                first_name=payload.first_name,
                last_name=payload.last_name,
                email=email,
            ))

        logger.info("Profile created: profile_id=%s auth_ref=%s", profile.id, profile.auth_ref)
        return profile

    def find_all(self, limit: Optional[int] = None, offset: Optional[int] = None) -> dict:
        if (limit is not None and limit < 0) or (offset is not None and offset < 0):
            raise ValidationFailedError("limit and offset must be non-negative")
        with reclassify(self.db, "retrieving profiles"):
            profiles, total = self.store.find_all(limit=limit, offset=offset)
        return {"profiles": profiles, "total": total}

    def find_one(self, profile_id: str) -> Profile:
        self._require_id(profile_id, "user ID")
        with reclassify(self.db, "retrieving profile"):
            profile = self.store.get_by_id(profile_id)
        if not profile:
            logger.info("Profile lookup missed: profile_id=%s", profile_id)
            raise NotFoundError(PROFILE_NOT_FOUND)
        return profile

    def find_by_auth_ref(self, auth_ref: str) -> Optional[Profile]:
        self._require_id(auth_ref, "auth ID")
        with reclassify(self.db, "finding profile by auth ID"):
            return self.store.get_by_auth_ref(auth_ref)

    def find_by_email(self, email: str) -> Optional[Profile]:
        with reclassify(self.db, "finding profile by email"):
            lookup = ProfileEmailLookup(email=email or "")
            return self.store.get_by_email(lookup.email)

    def update(self, profile_id: str, **fields) -> Profile:
        self._require_id(profile_id, "user ID")
        with reclassify(self.db, "updating profile"):
            profile = self.store.get_by_id(profile_id)
            if not profile:
                logger.info("Profile lookup missed: profile_id=%s", profile_id)
                raise NotFoundError(PROFILE_NOT_FOUND)
            return self._apply_update(profile, fields)

    def update_by_auth_ref(self, auth_ref: str, **fields) -> Profile:
        self._require_id(auth_ref, "auth ID")
        with reclassify(self.db, "updating profile"):
            profile = self.store.get_by_auth_ref(auth_ref)
            if not profile:
                logger.info("Profile lookup missed: auth_ref=%s", auth_ref)
                raise NotFoundError(PROFILE_NOT_FOUND)
            return self._apply_update(profile, fields)

    def delete(self, profile_id: str) -> None:
        self._require_id(profile_id, "user ID")
        with reclassify(self.db, "deleting profile"):
            profile = self.store.get_by_id(profile_id)
            if not profile:
                logger.info("Profile lookup missed: profile_id=%s", profile_id)
                raise NotFoundError(PROFILE_NOT_FOUND)
            self.store.delete(profile)
        logger.info("Profile deleted: profile_id=%s", profile_id)

    def delete_by_auth_ref(self, auth_ref: str) -> None:
        self._require_id(auth_ref, "auth ID")
        with reclassify(self.db, "deleting profile"):
            profile = self.store.get_by_auth_ref(auth_ref)
            if not profile:
                logger.info("Profile lookup missed: auth_ref=%s", auth_ref)
                raise NotFoundError(PROFILE_NOT_FOUND)
            self.store.delete(profile)
        logger.info("Profile deleted: auth_ref=%s", auth_ref)

    def search_by_partial_name(self, name: str, limit: int = 10) -> list[Profile]:
        if not name or not name.strip():
            raise ValidationFailedError("name must not be empty")
        if limit <= 0:
            raise ValidationFailedError("limit must be positive")
        with reclassify(self.db, "searching profiles by name"):
            return self.store.search_by_name(name.strip(), limit)

    def get_stats(self) -> dict:
        with reclassify(self.db, "retrieving profile statistics"):
            return {
                "total_profiles": self.store.count(),
                "recent_profiles": self.store.count_recent(self.clock(), days=RECENT_PROFILE_DAYS),
            }

    def exists(self, profile_id: str) -> bool:
        if not is_valid_id(profile_id):
            return False
        with reclassify(self.db, "checking profile"):
            return self.store.get_by_id(profile_id) is not None

    def exists_by_auth_ref(self, auth_ref: str) -> bool:
        if not is_valid_id(auth_ref):
            return False
        with reclassify(self.db, "checking profile"):
            return self.store.get_by_auth_ref(auth_ref) is not None

    def _apply_update(self, profile: Profile, fields: dict) -> Profile:
        changes = ProfileUpdate(**fields).model_dump(exclude_unset=True, exclude_none=True)

        new_email = changes.get("email")
        if new_email and new_email != profile.email and self.store.email_taken(new_email, exclude_id=profile.id):
            logger.info("Profile update rejected: email in use profile_id=%s", profile.id)
            raise AlreadyExistsError(EMAIL_IN_USE)

        for key, value in changes.items():
            setattr(profile, key, value)
        return self.store.save(profile)

    @staticmethod
    def _require_id(value: str, label: str) -> None:
        if not is_valid_id(value):
            raise ValidationFailedError(f"Invalid {label} format")
