"""Client-side views kept current by the change feed.

Each view re-fetches authoritative state when it is activated and whenever a
relevant change notice arrives. Notices may be duplicated or lost; a duplicate
only causes an extra re-fetch and a lost one is repaired by the next
activation. None of these views is an authorization boundary.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime

from cachetools import TTLCache
from loguru import logger

from src.marketplace.core.errors import NotFound
from src.marketplace.core.models.change_event import (
    ChangeEvent,
    ChangeOperation,
    ChangeTable,
)
from src.marketplace.core.models.session import CallerSession
from src.marketplace.core.services.admin import AdminService, AdminStats
from src.marketplace.core.services.change_feed import SubscriptionHandle
from src.marketplace.core.services.entitlement import can_access_contact
from src.marketplace.core.services.retry import retry_transient
from src.marketplace.core.services.store import MarketplaceStore
from src.marketplace.entities._base import utc_now
from src.marketplace.entities.profile import Profile
from src.marketplace.entities.verification_request import VerificationRequest


class ProfileCache:
    """Read-through TTL cache of profiles, invalidated by ``profiles`` notices.

    Suitable for display and routing decisions only. Disclosure checks must
    read the store directly.
    """

    def __init__(
        self,
        store: MarketplaceStore,
        maxsize: int = 1024,
        ttl: float = 60,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._cache: TTLCache[str, Profile] = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self._handle: SubscriptionHandle | None = None

    async def get(self, user_id: str) -> Profile:
        cached = self._cache.get(user_id)
        if cached is not None:
            return cached
        profile = await self._store.read_profile(user_id)
        self._cache[user_id] = profile
        return profile

    def invalidate(self, user_id: str) -> None:
        self._cache.pop(user_id, None)

    def clear(self) -> None:
        self._cache.clear()

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._cache

    async def _on_change(self, event: ChangeEvent) -> None:
        self.invalidate(event.record_id)

    def attach(self) -> None:
        if self._handle is None:
            self._handle = self._store.subscribe(ChangeTable.PROFILES, None, self._on_change)

    def detach(self) -> None:
        if self._handle is not None:
            self._store.unsubscribe(self._handle)
            self._handle = None


class EntitlementView:
    """One connected client's view of its own profile and contact entitlement."""

    def __init__(
        self,
        store: MarketplaceStore,
        session: CallerSession,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._session = session
        self._clock = clock
        self._handle: SubscriptionHandle | None = None
        self.profile: Profile | None = None
        self.signed_out = False
        self.refresh_count = 0

    @property
    def can_access_contact(self) -> bool:
        # Evaluated on every access so that expiry takes effect without a notice
        return can_access_contact(self._session, self.profile, self._clock())

    @property
    def active(self) -> bool:
        return self._handle is not None

    def _concerns_me(self, event: ChangeEvent) -> bool:
        return event.record_id == self._session.user_id

    async def activate(self) -> None:
        if self._handle is None:
            self._handle = self._store.subscribe(
                ChangeTable.PROFILES, self._concerns_me, self._on_change
            )
        await self.refresh()

    async def refresh(self) -> None:
        self.refresh_count += 1
        try:
            self.profile = await retry_transient(
                lambda: self._store.read_profile(self._session.user_id)
            )
        except NotFound:
            self._mark_signed_out()

    async def _on_change(self, event: ChangeEvent) -> None:
        if event.operation == ChangeOperation.DELETE:
            self._mark_signed_out()
            return
        await self.refresh()

    def _mark_signed_out(self) -> None:
        logger.info("Profile removed, signing client out", actor=self._session.user_id)
        self.profile = None
        self.signed_out = True
        self.deactivate()

    def deactivate(self) -> None:
        if self._handle is not None:
            self._store.unsubscribe(self._handle)
            self._handle = None


class AdminDashboardView:
    """Users, verification requests and stats for an admin screen."""

    WATCHED = (
        ChangeTable.PROFILES,
        ChangeTable.VERIFICATION_REQUESTS,
        ChangeTable.SERVICE_LISTINGS,
    )

    def __init__(self, store: MarketplaceStore, admin: AdminService, admin_id: str) -> None:
        self._store = store
        self._admin = admin
        self._admin_id = admin_id
        self._handles: list[SubscriptionHandle] = []
        self.users: list[Profile] = []
        self.requests: list[VerificationRequest] = []
        self.stats: AdminStats | None = None
        self.refresh_count = 0

    async def activate(self) -> None:
        if not self._handles:
            self._handles = [
                self._store.subscribe(table, None, self._on_change) for table in self.WATCHED
            ]
        await self.refresh()

    async def refresh(self) -> None:
        self.refresh_count += 1
        self.users = await self._admin.list_users(self._admin_id)
        self.requests = await self._admin.list_verification_requests(self._admin_id)
        self.stats = await self._admin.get_stats(self._admin_id)

    async def _on_change(self, event: ChangeEvent) -> None:
        await self.refresh()

    def deactivate(self) -> None:
        for handle in self._handles:
            self._store.unsubscribe(handle)
        self._handles = []
