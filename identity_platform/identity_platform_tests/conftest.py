"""
Pytest configuration for Identity Service tests.

The service refuses to start without a signing secret, so the test
environment is set before any service module is imported.
"""
import os

os.environ.setdefault("JWT_SECRET_KEY", "identity-tests-signing-secret")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_identity.db")

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from identity_platform.identity_platform.identity_service import models  # noqa: F401
from identity_platform.identity_platform.identity_service.auth import TokenCodec
from identity_platform.identity_platform.identity_service.credentials import CredentialManager
from identity_platform.identity_platform.identity_service.db import Base, engine
from identity_platform.identity_platform.identity_service.main import app
from identity_platform.identity_platform.identity_service.models import utcnow
from identity_platform.identity_platform.identity_service.profiles import ProfileManager


class MutableClock:
    """Callable clock whose time only moves when a test moves it."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def reset_database():
    # Drop all tables and recreate them before each test
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db_session():
    """Create a database session for testing."""
    session = Session(bind=engine)
    yield session
    session.close()


@pytest.fixture
def clock():
    return MutableClock(utcnow())


@pytest.fixture
def codec():
    return TokenCodec.from_settings()


@pytest.fixture
def credential_manager(db_session, codec, clock):
    return CredentialManager(db_session, codec, clock=clock)


@pytest.fixture
def profile_manager(db_session, clock):
    return ProfileManager(db_session, clock=clock)


@pytest.fixture
def verified_credential(credential_manager):
    """Register and verify a@x.com / secret1; returns the credential id."""
    registered = credential_manager.register("a@x.com", "secret1")
    credential_manager.verify_email(registered["verification_token"])
    return registered["data"]["id"]
