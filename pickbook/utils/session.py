"""
pickbook/utils/session.py

Explicit session context of a signed-in Telegram user.

Lifecycle:
    start()  after sign-in / sign-up: stored in Redis, listeners get "sign_in"
    get()    every update (SessionMiddleware); expired id tokens are refreshed
    end()    sign-out or a refresh the provider rejects; listeners get "sign_out"

Handlers receive ``session`` (Optional[Session]) and ``sessions`` (SessionStore)
as injected keyword arguments.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from aiogram import BaseMiddleware
from pydantic import BaseModel

from pickbook.utils.documents import DocumentStoreError, ProfileStore, UserProfile
from pickbook.utils.identity import IdentityClient, IdentityError, IdentityUser, validate_sign_up
from pickbook.utils.phone import strip_prefix, with_prefix

logger = logging.getLogger(__name__)

Listener = Callable[[str, int, Optional["Session"]], Awaitable[None]]


class Session(BaseModel):
    tg_id: int
    user: IdentityUser
    first_name: str = ""
    last_name: str = ""
    phone: str = ""      # local digits, no +63
    role: str = "user"

    @property
    def uid(self) -> str:
        return self.user.uid

    @property
    def email(self) -> str:
        return self.user.email

    @property
    def token(self) -> str:
        return self.user.id_token

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.user.display_name or self.email


def session_from(tg_id: int, user: IdentityUser, profile: Optional[UserProfile]) -> Session:
    """Profile document first, identity display name / e-mail as fallback."""
    if profile is not None:
        first, last = profile.first_name, profile.last_name
        phone, role = strip_prefix(profile.phone), profile.role or "user"
    else:
        first, last, phone, role = "", "", "", "user"

    if not first and not last and user.display_name:
        parts = user.display_name.split(" ", 1)
        first = parts[0]
        last = parts[1] if len(parts) > 1 else ""

    return Session(tg_id=tg_id, user=user, first_name=first, last_name=last, phone=phone, role=role)


class SessionStore:
    def __init__(self, redis, identity: IdentityClient, profiles: ProfileStore, ttl: int):
        self.redis = redis
        self.identity = identity
        self.profiles = profiles
        self.ttl = ttl
        self._listeners: list[Listener] = []

    def _key(self, tg_id: int) -> str:
        return f"pb:session:{tg_id}"

    def on_change(self, listener: Listener) -> None:
        self._listeners.append(listener)

    async def _notify(self, event: str, tg_id: int, session: Optional[Session]) -> None:
        for listener in self._listeners:
            await listener(event, tg_id, session)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    async def save(self, session: Session) -> None:
        await self.redis.set(self._key(session.tg_id), session.model_dump_json(), ex=self.ttl)

    async def get(self, tg_id: int) -> Optional[Session]:
        raw = await self.redis.get(self._key(tg_id))
        if not raw:
            return None
        session = Session.model_validate_json(raw)

        if session.user.expired:
            try:
                user = await self.identity.refresh(session.user)
            except IdentityError as e:
                logger.info(f"[AUTH] refresh failed for tg_id={tg_id}: {e.code}")
                await self.end(tg_id)
                return None
            session = session.model_copy(update={"user": user})
            await self.save(session)
        return session

    async def start(self, session: Session) -> Session:
        await self.save(session)
        logger.info(f"[AUTH] session started tg_id={session.tg_id} uid={session.uid} role={session.role}")
        await self._notify("sign_in", session.tg_id, session)
        return session

    async def end(self, tg_id: int) -> None:
        await self.redis.delete(self._key(tg_id))
        logger.info(f"[AUTH] session ended tg_id={tg_id}")
        await self._notify("sign_out", tg_id, None)

    # ------------------------------------------------------------------
    # Auth operations
    # ------------------------------------------------------------------

    async def _load_profile(self, user: IdentityUser) -> Optional[UserProfile]:
        try:
            return await self.profiles.get(user.uid, user.id_token)
        except DocumentStoreError as e:
            logger.warning(f"[AUTH] profile read failed uid={user.uid}: {e}")
            return None

    async def sign_in(self, tg_id: int, email: str, password: str) -> Session:
        user = await self.identity.sign_in(email, password)
        profile = await self._load_profile(user)
        return await self.start(session_from(tg_id, user, profile))

    async def sign_up(
        self,
        tg_id: int,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        confirm: str,
    ) -> Session:
        validate_sign_up(first_name, last_name, password, confirm)
        first_name, last_name = first_name.strip(), last_name.strip()

        user = await self.identity.sign_up(email, password)
        user = await self.identity.update_display_name(user, f"{first_name} {last_name}")

        profile = UserProfile(
            uid=user.uid,
            first_name=first_name,
            last_name=last_name,
            email=user.email or email.strip(),
            role="user",
        )
        try:
            profile = await self.profiles.create(profile, user.id_token)
        except DocumentStoreError as e:
            logger.warning(f"[AUTH] profile create failed uid={user.uid}: {e}")

        return await self.start(session_from(tg_id, user, profile))

    async def save_profile(
        self,
        session: Session,
        first_name: str,
        last_name: str,
        phone: str,
    ) -> Session:
        """
        Display name on the identity provider + profile document.

        Raises:
            IdentityError, DocumentStoreError
        """
        user = await self.identity.update_display_name(session.user, f"{first_name} {last_name}".strip())
        await self.profiles.update(
            session.uid,
            session.token,
            first_name=first_name,
            last_name=last_name,
            phone=with_prefix(phone),
        )
        session = session.model_copy(update={
            "user": user,
            "first_name": first_name,
            "last_name": last_name,
            "phone": phone,
        })
        await self.save(session)
        return session


class SessionMiddleware(BaseMiddleware):
    """Injects ``session`` and ``sessions`` into handler data."""

    def __init__(self, sessions: SessionStore):
        self.sessions = sessions

    async def __call__(
        self,
        handler: Callable[[Any, dict[str, Any]], Awaitable[Any]],
        event: Any,
        data: dict[str, Any],
    ) -> Any:
        user = data.get("event_from_user")
        data["sessions"] = self.sessions
        data["session"] = await self.sessions.get(user.id) if user else None
        return await handler(event, data)
