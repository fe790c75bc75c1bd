import time

import pytest

from pickbook.utils.documents import DocumentStoreError, UserProfile
from pickbook.utils.identity import IdentityError, IdentityUser
from pickbook.utils.session import Session, SessionStore, session_from


class FakeRedis:
    def __init__(self):
        self.data = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value

    async def delete(self, key):
        self.data.pop(key, None)


def make_user(uid="uid-1", expires_in=3600, **kwargs) -> IdentityUser:
    return IdentityUser(
        uid=uid,
        email=kwargs.pop("email", "juan@example.com"),
        id_token=kwargs.pop("id_token", "tok"),
        refresh_token="ref",
        expires_at=time.time() + expires_in,
        **kwargs,
    )


class FakeIdentity:
    def __init__(self, refresh_error=None):
        self.refresh_error = refresh_error
        self.display_names = []

    async def sign_in(self, email, password):
        return make_user(display_name="Juan Dela Cruz")

    async def sign_up(self, email, password):
        return make_user(email=email)

    async def update_display_name(self, user, display_name):
        self.display_names.append(display_name)
        return user.model_copy(update={"display_name": display_name})

    async def refresh(self, user):
        if self.refresh_error:
            raise self.refresh_error
        return user.model_copy(update={"id_token": "fresh", "expires_at": time.time() + 3600})


class FakeProfiles:
    def __init__(self, profile=None, error=None):
        self.profile = profile
        self.error = error
        self.created = []
        self.updates = []

    async def get(self, uid, token):
        if self.error:
            raise self.error
        return self.profile

    async def create(self, profile, token):
        if self.error:
            raise self.error
        self.created.append(profile)
        return profile

    async def update(self, uid, token, **fields):
        self.updates.append(fields)
        return fields


@pytest.fixture
def events():
    return []


def store(events, identity=None, profiles=None) -> SessionStore:
    sessions = SessionStore(FakeRedis(), identity or FakeIdentity(), profiles or FakeProfiles(), ttl=60)

    async def listener(event, tg_id, session):
        events.append((event, tg_id))

    sessions.on_change(listener)
    return sessions


def test_session_from_prefers_profile():
    profile = UserProfile(uid="uid-1", first_name="Ana", last_name="Cruz", phone="+639171234567", role="manager")

    session = session_from(7, make_user(display_name="Someone Else"), profile)

    assert session.display_name == "Ana Cruz"
    assert session.phone == "9171234567"
    assert session.role == "manager"


def test_session_from_splits_display_name_without_profile():
    session = session_from(7, make_user(display_name="Juan Dela Cruz"), None)

    assert (session.first_name, session.last_name) == ("Juan", "Dela Cruz")


async def test_sign_in_starts_session_and_notifies(events):
    profile = UserProfile(uid="uid-1", first_name="Juan", last_name="Dela Cruz", phone="+639171234567")
    sessions = store(events, profiles=FakeProfiles(profile))

    session = await sessions.sign_in(7, "juan@example.com", "secret1")

    assert session.phone == "9171234567"
    assert (await sessions.get(7)).uid == "uid-1"
    assert events == [("sign_in", 7)]


async def test_sign_in_survives_unreadable_profile(events):
    sessions = store(events, profiles=FakeProfiles(error=DocumentStoreError(403, "denied")))

    session = await sessions.sign_in(7, "juan@example.com", "secret1")

    assert session.first_name == "Juan"


async def test_sign_up_validates_before_calling_the_provider(events):
    identity = FakeIdentity()
    sessions = store(events, identity=identity)

    with pytest.raises(IdentityError):
        await sessions.sign_up(7, "Juan", "Dela Cruz", "juan@example.com", "secret1", "secret2")

    assert identity.display_names == []
    assert events == []


async def test_sign_up_creates_profile_document(events):
    profiles = FakeProfiles()
    sessions = store(events, profiles=profiles)

    session = await sessions.sign_up(7, " Juan ", "Dela Cruz", "juan@example.com", "secret1", "secret1")

    assert profiles.created[0].first_name == "Juan"
    assert profiles.created[0].role == "user"
    assert session.display_name == "Juan Dela Cruz"


async def test_expired_token_is_refreshed(events):
    sessions = store(events)
    await sessions.start(Session(tg_id=7, user=make_user(expires_in=-10)))

    session = await sessions.get(7)

    assert session.token == "fresh"
    assert (await sessions.get(7)).token == "fresh"


async def test_rejected_refresh_ends_session(events):
    sessions = store(events, identity=FakeIdentity(refresh_error=IdentityError("TOKEN_EXPIRED")))
    await sessions.start(Session(tg_id=7, user=make_user(expires_in=-10)))

    assert await sessions.get(7) is None
    assert events == [("sign_in", 7), ("sign_out", 7)]


async def test_save_profile_stores_prefixed_phone(events):
    profiles = FakeProfiles()
    sessions = store(events, profiles=profiles)
    session = await sessions.start(Session(tg_id=7, user=make_user(), first_name="Juan"))

    updated = await sessions.save_profile(session, "Juan", "Dela Cruz", "9171234567")

    assert profiles.updates == [{"first_name": "Juan", "last_name": "Dela Cruz", "phone": "+639171234567"}]
    assert updated.phone == "9171234567"
    assert (await sessions.get(7)).last_name == "Dela Cruz"


async def test_end_removes_session(events):
    sessions = store(events)
    await sessions.start(Session(tg_id=7, user=make_user()))

    await sessions.end(7)

    assert await sessions.get(7) is None
    assert events[-1] == ("sign_out", 7)
