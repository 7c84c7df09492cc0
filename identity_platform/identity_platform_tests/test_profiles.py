"""
Tests for profile management.
"""
from datetime import timedelta
import time

import pytest

from identity_platform.identity_platform.identity_service.errors import (
    AlreadyExistsError,
    NotFoundError,
    ValidationFailedError,
)
from identity_platform.identity_platform.identity_service.models import Credential, Profile
from identity_platform.identity_platform.identity_service.schemas import PROFILE_EMAIL_RE


@pytest.fixture
def credential_id(credential_manager):
    return credential_manager.register("Ana@Example.com", "secret1")["data"]["id"]


@pytest.fixture
def make_profile(credential_manager, profile_manager):
    """Register a credential and create its profile."""
    def _make(email, first_name="Ana", last_name="Lopez"):
        auth_ref = credential_manager.register(email, "secret1")["data"]["id"]
        return profile_manager.create_profile(auth_ref, first_name, last_name)
    return _make


# ---------------- create ----------------

def test_create_profile_copies_credential_email(profile_manager, credential_id):
    profile = profile_manager.create_profile(credential_id, "  Ana ", "Lopez")

    assert profile.auth_ref == credential_id
    assert profile.email == "ana@example.com"
    assert profile.first_name == "Ana"
    assert profile.is_active is True


def test_create_profile_twice_for_same_credential(profile_manager, credential_id):
    profile_manager.create_profile(credential_id, "Ana", "Lopez")

    with pytest.raises(AlreadyExistsError):
        profile_manager.create_profile(credential_id, "Ana", "Lopez")


def test_create_profile_unknown_credential(profile_manager):
    with pytest.raises(NotFoundError):
        profile_manager.create_profile("a" * 32, "Ana", "Lopez")


def test_create_profile_malformed_reference(profile_manager):
    with pytest.raises(ValidationFailedError):
        profile_manager.create_profile("not-an-id", "Ana", "Lopez")


@pytest.mark.parametrize("first_name,last_name", [
    ("A", "Lopez"),
    ("Ana", "L" * 51),
    ("   ", "Lopez"),
])
def test_create_profile_name_bounds(profile_manager, credential_id, first_name, last_name):
    with pytest.raises(ValidationFailedError) as exc_info:
        profile_manager.create_profile(credential_id, first_name, last_name)
    assert exc_info.value.message.startswith("Validation failed")


def test_create_profile_rejects_credential_email_profiles_cannot_hold(credential_manager, profile_manager):
    auth_ref = credential_manager.register("ana@example.info", "secret1")["data"]["id"]

    with pytest.raises(ValidationFailedError):
        profile_manager.create_profile(auth_ref, "Ana", "Lopez")


# ---------------- lookups ----------------

def test_find_all_paginates(make_profile, profile_manager):
    for i in range(5):
        make_profile(f"user{i}@example.com")

    page = profile_manager.find_all(limit=2, offset=1)

    assert page["total"] == 5
    assert len(page["profiles"]) == 2
    assert profile_manager.find_all()["total"] == 5
    assert len(profile_manager.find_all()["profiles"]) == 5


def test_find_all_rejects_negative_paging(profile_manager):
    with pytest.raises(ValidationFailedError):
        profile_manager.find_all(limit=-1)


def test_find_one(make_profile, profile_manager):
    profile = make_profile("ana@example.com")

    assert profile_manager.find_one(profile.id).email == "ana@example.com"

    with pytest.raises(NotFoundError):
        profile_manager.find_one("b" * 32)
    with pytest.raises(ValidationFailedError):
        profile_manager.find_one("123")


def test_find_by_auth_ref(make_profile, profile_manager):
    profile = make_profile("ana@example.com")

    assert profile_manager.find_by_auth_ref(profile.auth_ref).id == profile.id
    assert profile_manager.find_by_auth_ref("c" * 32) is None
    with pytest.raises(ValidationFailedError):
        profile_manager.find_by_auth_ref("nope")


def test_find_by_email_is_case_insensitive(make_profile, profile_manager):
    profile = make_profile("ana@example.com")

    assert profile_manager.find_by_email("ANA@Example.com").id == profile.id
    assert profile_manager.find_by_email("other@example.com") is None
    with pytest.raises(ValidationFailedError):
        profile_manager.find_by_email("bad email")


def test_find_by_email_uses_loose_format(profile_manager):
    assert profile_manager.find_by_email("ana@example.info") is None


@pytest.mark.parametrize("email,expected", [
    ("ana@example.com", True),
    ("ana.lopez-ruiz@mail.example.co.uk", True),
    ("ana@example.info", False),
    ("ana..lopez@example.com", False),
    ("ana@example", False),
])
def test_profile_email_pattern(email, expected):
    assert bool(PROFILE_EMAIL_RE.match(email)) is expected


def test_profile_email_pattern_fails_fast_on_long_input():
    started = time.perf_counter()
    for candidate in ("a" * 40 + "!", "a" * 40 + "@" + "b" * 40 + "!", "a" * 40 + "@" + "b" * 40 + ".c"):
        assert PROFILE_EMAIL_RE.match(candidate) is None
    assert time.perf_counter() - started < 0.5


def test_email_validation_fails_fast_through_the_manager(credential_manager, profile_manager):
    auth_ref = credential_manager.register("a" * 40 + "!@x.com", "secret1")["data"]["id"]

    started = time.perf_counter()
    with pytest.raises(ValidationFailedError):
        profile_manager.find_by_email("a" * 40 + "!")
    with pytest.raises(ValidationFailedError):
        profile_manager.create_profile(auth_ref, "Ana", "Lopez")
    assert time.perf_counter() - started < 0.5


# ---------------- update ----------------

def test_update_fields(make_profile, profile_manager):
    profile = make_profile("ana@example.com")

    updated = profile_manager.update(profile.id, first_name="Anabel", is_active=False)

    assert updated.first_name == "Anabel"
    assert updated.last_name == "Lopez"
    assert updated.is_active is False


def test_update_email_checks_other_profiles(make_profile, profile_manager):
    make_profile("ana@example.com")
    other = make_profile("bob@example.com", first_name="Bob")

    with pytest.raises(AlreadyExistsError) as exc_info:
        profile_manager.update(other.id, email="ANA@example.com")

    assert "already in use" in exc_info.value.message
    assert profile_manager.find_one(other.id).email == "bob@example.com"


def test_update_email_to_own_value(make_profile, profile_manager):
    profile = make_profile("ana@example.com")
    assert profile_manager.update(profile.id, email="ana@example.com").email == "ana@example.com"


def test_update_email_does_not_touch_credential(make_profile, profile_manager, db_session):
    profile = make_profile("ana@example.com")

    profile_manager.update(profile.id, email="ana.new@example.com")

    credential = db_session.query(Credential).filter(Credential.id == profile.auth_ref).first()
    assert credential.email == "ana@example.com"


def test_update_invalid_values(make_profile, profile_manager):
    profile = make_profile("ana@example.com")

    with pytest.raises(ValidationFailedError):
        profile_manager.update(profile.id, email="not-an-email")
    with pytest.raises(ValidationFailedError):
        profile_manager.update(profile.id, last_name="L")


def test_update_missing_profile(profile_manager):
    with pytest.raises(NotFoundError):
        profile_manager.update("d" * 32, first_name="Anabel")


def test_update_by_auth_ref(make_profile, profile_manager):
    profile = make_profile("ana@example.com")

    updated = profile_manager.update_by_auth_ref(profile.auth_ref, last_name="Garcia")

    assert updated.id == profile.id
    assert updated.last_name == "Garcia"
    with pytest.raises(NotFoundError):
        profile_manager.update_by_auth_ref("e" * 32, last_name="Garcia")


# ---------------- delete ----------------

def test_delete_does_not_cascade(make_profile, profile_manager, db_session):
    profile = make_profile("ana@example.com")
    auth_ref = profile.auth_ref

    profile_manager.delete(profile.id)

    assert profile_manager.exists(profile.id) is False
    assert db_session.query(Credential).filter(Credential.id == auth_ref).count() == 1
    with pytest.raises(NotFoundError):
        profile_manager.delete(profile.id)


def test_delete_by_auth_ref_allows_recreation(make_profile, profile_manager):
    profile = make_profile("ana@example.com")

    profile_manager.delete_by_auth_ref(profile.auth_ref)

    assert profile_manager.exists_by_auth_ref(profile.auth_ref) is False
    recreated = profile_manager.create_profile(profile.auth_ref, "Ana", "Lopez")
    assert recreated.id != profile.id


# ---------------- search / stats / exists ----------------

def test_search_by_partial_name(make_profile, profile_manager):
    make_profile("ana@example.com", "Ana", "Lopez")
    make_profile("bob@example.com", "Bob", "Lopezano")
    make_profile("carl@example.com", "Carl", "Smith")

    names = {p.first_name for p in profile_manager.search_by_partial_name("lOpEz")}
    assert names == {"Ana", "Bob"}

    assert len(profile_manager.search_by_partial_name("lopez", limit=1)) == 1
    assert profile_manager.search_by_partial_name("%") == []

    with pytest.raises(ValidationFailedError):
        profile_manager.search_by_partial_name("  ")


def test_get_stats_counts_recent(make_profile, profile_manager, db_session, clock):
    old = make_profile("old@example.com")
    make_profile("new@example.com")

    db_session.query(Profile).filter(Profile.id == old.id).update(
        {"created_at": clock.now - timedelta(days=30)}, synchronize_session=False
    )
    db_session.commit()

    assert profile_manager.get_stats() == {"total_profiles": 2, "recent_profiles": 1}


def test_exists_tolerates_malformed_ids(make_profile, profile_manager):
    profile = make_profile("ana@example.com")

    assert profile_manager.exists(profile.id) is True
    assert profile_manager.exists("f" * 32) is False
    assert profile_manager.exists("garbage") is False
    assert profile_manager.exists_by_auth_ref(profile.auth_ref) is True
    assert profile_manager.exists_by_auth_ref("garbage") is False


# ---------------- HTTP ----------------

def _register(client, email):
    response = client.post("/auth/register", json={"email": email, "password": "secret1"})
    return response.json()["data"]["id"]


def test_profile_endpoints(client):
    auth_ref = _register(client, "ana@example.com")

    created = client.post("/profiles", json={"auth_ref": auth_ref, "first_name": "Ana", "last_name": "Lopez"})
    assert created.status_code == 201
    profile_id = created.json()["data"]["id"]

    assert client.get(f"/profiles/{profile_id}").json()["data"]["email"] == "ana@example.com"
    assert client.get(f"/profiles/by-auth/{auth_ref}").json()["data"]["id"] == profile_id
    assert client.get("/profiles/by-email", params={"email": "ANA@example.com"}).json()["data"]["id"] == profile_id
    assert client.get(f"/profiles/{profile_id}/exists").json()["exists"] is True

    listing = client.get("/profiles", params={"limit": 10}).json()
    assert listing["total"] == 1
    assert listing["profiles"][0]["id"] == profile_id

    search = client.get("/profiles/search", params={"name": "lop"}).json()
    assert [p["id"] for p in search["data"]] == [profile_id]

    stats = client.get("/profiles/stats").json()
    assert stats["data"] == {"total_profiles": 1, "recent_profiles": 1}

    patched = client.patch(f"/profiles/{profile_id}", json={"first_name": "Anabel"})
    assert patched.status_code == 200
    assert patched.json()["data"]["first_name"] == "Anabel"

    deleted = client.delete(f"/profiles/{profile_id}")
    assert deleted.status_code == 200
    assert client.get(f"/profiles/{profile_id}").status_code == 404


def test_profile_endpoint_errors(client):
    auth_ref = _register(client, "ana@example.com")
    client.post("/profiles", json={"auth_ref": auth_ref, "first_name": "Ana", "last_name": "Lopez"})

    duplicate = client.post("/profiles", json={"auth_ref": auth_ref, "first_name": "Ana", "last_name": "Lopez"})
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "AlreadyExists"

    malformed = client.get("/profiles/not-an-id")
    assert malformed.status_code == 400
    assert malformed.json() == {"success": False, "message": "Invalid user ID format", "error": "ValidationFailed"}

    missing = client.get("/profiles/by-email", params={"email": "ghost@example.com"})
    assert missing.status_code == 404
    assert missing.json()["error"] == "NotFound"

    bad_name = client.post("/profiles", json={"auth_ref": auth_ref, "first_name": "A", "last_name": "Lopez"})
    assert bad_name.status_code == 400
    assert bad_name.json()["error"] == "ValidationFailed"

    missing_field = client.post("/profiles", json={"auth_ref": auth_ref, "first_name": "Ana"})
    assert missing_field.status_code == 422


def test_profile_email_conflict_over_http(client):
    ana = _register(client, "ana@example.com")
    bob = _register(client, "bob@example.com")
    client.post("/profiles", json={"auth_ref": ana, "first_name": "Ana", "last_name": "Lopez"})
    bob_profile = client.post("/profiles", json={"auth_ref": bob, "first_name": "Bob", "last_name": "Smith"}).json()

    conflict = client.patch(f"/profiles/{bob_profile['data']['id']}", json={"email": "ana@example.com"})

    assert conflict.status_code == 409
    assert conflict.json() == {"success": False, "message": "Email is already in use", "error": "AlreadyExists"}


def test_failure_bodies_do_not_echo_identifiers(client):
    auth_ref = _register(client, "ana@example.com")
    client.post("/profiles", json={"auth_ref": auth_ref, "first_name": "Ana", "last_name": "Lopez"})
    ghost = "e" * 32

    responses = [
        client.get(f"/profiles/{ghost}"),
        client.patch(f"/profiles/{ghost}", json={"first_name": "Anabel"}),
        client.delete(f"/profiles/{ghost}"),
        client.get(f"/profiles/by-auth/{ghost}"),
        client.post("/profiles", json={"auth_ref": ghost, "first_name": "Ana", "last_name": "Lopez"}),
    ]
    for response in responses:
        assert response.status_code == 404
        assert ghost not in response.text

    duplicate = client.post("/profiles", json={"auth_ref": auth_ref, "first_name": "Ana", "last_name": "Lopez"})
    assert duplicate.status_code == 409
    assert auth_ref not in duplicate.text

    by_email = client.get("/profiles/by-email", params={"email": "ghost@example.com"})
    assert by_email.status_code == 404
    assert "ghost" not in by_email.text
