from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from loguru import logger

from src.marketplace.core.errors import AuthenticationRequired, ValidationFailed
from src.marketplace.core.models.session import CallerSession
from src.marketplace.core.services.entitlement import can_access_contact
from src.marketplace.core.services.store import MarketplaceStore
from src.marketplace.entities._base import utc_now
from src.marketplace.entities.profile import OWNER_EDITABLE_FIELDS, Profile


class ProfileService:
    """The caller's own profile: reading it and the edits an owner may make."""

    def __init__(
        self, store: MarketplaceStore, clock: Callable[[], datetime] = utc_now
    ) -> None:
        self._store = store
        self._clock = clock

    async def me(self, session: CallerSession | None) -> tuple[Profile, bool]:
        """Return the caller's profile and a freshly evaluated entitlement."""
        if session is None or not session.is_authenticated:
            raise AuthenticationRequired()
        profile = await self._store.read_profile(session.user_id)
        return profile, can_access_contact(session, profile, self._clock())

    async def update_own_profile(
        self, session: CallerSession | None, fields: dict[str, Any]
    ) -> Profile:
        """Apply owner edits. Only contact and presentation fields are accepted."""
        if session is None or not session.is_authenticated:
            raise AuthenticationRequired()
        forbidden = sorted(set(fields) - OWNER_EDITABLE_FIELDS)
        if forbidden:
            raise ValidationFailed(
                "These fields cannot be changed here", {"fields": forbidden}
            )
        if not fields:
            raise ValidationFailed("Nothing to update")
        if "name" in fields and not (fields["name"] or "").strip():
            raise ValidationFailed("name is required", {"field": "name"})

        profile = await self._store.update_profile(session.user_id, fields)
        logger.info("Profile updated", actor=session.user_id, fields=sorted(fields))
        return profile
