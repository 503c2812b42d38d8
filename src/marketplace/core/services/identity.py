"""Identity: accounts and sign-in sessions.

Credentials are out of scope; signing up creates the profile and hands back
an opaque session token that callers present on later requests.
"""

from __future__ import annotations

from loguru import logger

from src.marketplace.core.errors import AuthenticationRequired, ValidationFailed, require_text
from src.marketplace.core.models.session import (
    SESSION_KEY_PREFIX,
    CallerSession,
    UserSession,
)
from src.marketplace.core.services.store import MarketplaceStore
from src.marketplace.core.storage.session_storage import SessionStorage
from src.marketplace.entities.profile import Profile, Role

SIGN_UP_ROLES = (Role.SEEKER, Role.PROVIDER)


class IdentityService:
    def __init__(
        self,
        store: MarketplaceStore,
        storage: SessionStorage,
        session_ttl_seconds: int,
    ) -> None:
        self._store = store
        self._storage = storage
        self._ttl = session_ttl_seconds

    async def sign_up(
        self,
        name: str | None,
        email: str | None,
        role: Role | str = Role.SEEKER,
        phone: str | None = None,
    ) -> tuple[Profile, UserSession]:
        """Create a seeker or provider account and sign it in."""
        name = require_text(name, "name")
        email = require_text(email, "email").lower()
        if "@" not in email:
            raise ValidationFailed("A valid email address is required", {"field": "email"})
        try:
            role = Role(role)
        except ValueError:
            raise ValidationFailed("Unknown role", {"role": str(role)}) from None
        if role not in SIGN_UP_ROLES:
            raise ValidationFailed(
                "Sign-up is limited to seeker and provider accounts", {"role": role.value}
            )

        profile = await self._store.create_profile(
            Profile(name=name, email=email, role=role, phone=phone)
        )
        session = await self.create_session(profile.id)
        logger.info("Account created", actor=profile.id, role=role.value)
        return profile, session

    async def create_session(self, user_id: str) -> UserSession:
        session = UserSession.create(user_id, self._ttl)
        await self._storage.set(UserSession.storage_key(session.id), session, self._ttl)
        return session

    async def sign_in(self, email: str | None) -> UserSession:
        """Open a session for an existing account."""
        email = require_text(email, "email").lower()
        profile = await self._store.run(lambda uow: uow.profiles.get_by_email(email))
        if profile is None:
            raise AuthenticationRequired("Unknown account")
        return await self.create_session(profile.id)

    async def get_session(self, session_id: str | None) -> CallerSession | None:
        """Resolve a session token to the caller, or None if it is unknown or expired."""
        if not session_id:
            return None
        stored = await self._storage.get(UserSession.storage_key(session_id), UserSession)
        if stored is None:
            return None
        if stored.is_expired():
            await self._storage.delete(UserSession.storage_key(session_id))
            return None
        return CallerSession(user_id=stored.user_id, session_id=stored.id)

    async def require_session(self, session_id: str | None) -> CallerSession:
        caller = await self.get_session(session_id)
        if caller is None:
            raise AuthenticationRequired()
        return caller

    async def sign_out(self, session_id: str) -> None:
        await self._storage.delete(UserSession.storage_key(session_id))
        logger.info("Session closed")

    async def revoke_sessions_for(self, user_id: str) -> int:
        """Drop every session belonging to ``user_id``; used after account deletion."""
        revoked = 0
        for key in await self._storage.list_keys(f"{SESSION_KEY_PREFIX}*"):
            stored = await self._storage.get(key, UserSession)
            if stored is not None and stored.user_id == user_id:
                await self._storage.delete(key)
                revoked += 1
        return revoked
