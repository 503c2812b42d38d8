"""Service listings and contact disclosure.

Listing visibility follows the owner's verification status at read time.
Contact details are released only after the entitlement evaluator has been
run against the caller's freshly read profile; cached hints are ignored.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from loguru import logger
from pydantic import ValidationError

from src.marketplace.core.errors import (
    AuthenticationRequired,
    AuthorizationDenied,
    NotFound,
    ValidationFailed,
    require_text,
)
from src.marketplace.core.models.change_event import ChangeOperation, ChangeTable
from src.marketplace.core.models.session import CallerSession
from src.marketplace.core.services.entitlement import can_access_contact
from src.marketplace.core.services.store import MarketplaceStore, UnitOfWork
from src.marketplace.entities._base import utc_now
from src.marketplace.entities.profile import Role, VerificationStatus
from src.marketplace.entities.service_listing import ContactInfo, ServiceListing


class ListingService:
    def __init__(
        self, store: MarketplaceStore, clock: Callable[[], datetime] = utc_now
    ) -> None:
        self._store = store
        self._clock = clock

    async def _entitled(self, session: CallerSession | None) -> bool:
        if session is None or not session.is_authenticated:
            return False
        try:
            profile = await self._store.read_profile(session.user_id)
        except NotFound:
            return False
        return can_access_contact(session, profile, self._clock())

    async def create_listing(
        self, session: CallerSession | None, fields: dict[str, Any]
    ) -> ServiceListing:
        """Create a listing owned by the calling provider."""
        if session is None or not session.is_authenticated:
            raise AuthenticationRequired()
        owner = await self._store.read_profile(session.user_id)
        if owner.role != Role.PROVIDER:
            raise AuthorizationDenied("Only providers can list services")

        service_name = require_text(fields.get("service_name"), "service_name")
        try:
            contact = ContactInfo.model_validate(fields.get("contact_info") or {})
        except ValidationError as e:
            raise ValidationFailed(
                "contact_info must hold a phone and/or email as text",
                {"field": "contact_info"},
            ) from e
        try:
            listing = ServiceListing(
                user_id=owner.id,
                service_name=service_name,
                category=fields.get("category"),
                description=fields.get("description"),
                location=fields.get("location"),
                contact_info=contact,
                is_active=fields.get("is_active", True),
            )
        except ValidationError as e:
            raise ValidationFailed(
                "Listing fields are invalid",
                {"fields": sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})},
            ) from e

        def _create(uow: UnitOfWork) -> ServiceListing:
            uow.listings.create(listing)
            uow.changed(
                ChangeTable.SERVICE_LISTINGS, ChangeOperation.INSERT, listing.id, owner.id
            )
            return listing

        created = await self._store.run(_create)
        logger.info("Listing created", actor=owner.id, listing_id=created.id)
        return created

    async def list_public(self, session: CallerSession | None) -> list[ServiceListing]:
        """Active listings of verified providers, contact redacted unless entitled."""
        listings = await self._store.run(lambda uow: uow.listings.list_public())
        if await self._entitled(session):
            return listings
        return [listing.redacted() for listing in listings]

    async def list_own(self, session: CallerSession | None) -> list[ServiceListing]:
        if session is None or not session.is_authenticated:
            raise AuthenticationRequired()
        return await self._store.run(lambda uow: uow.listings.list_for_user(session.user_id))

    async def reveal_contact(
        self, session: CallerSession | None, listing_id: str
    ) -> ContactInfo:
        """Return a listing's contact details after a server-side entitlement check."""
        if session is None or not session.is_authenticated:
            raise AuthenticationRequired("Sign in to view contact details")

        def _load(uow: UnitOfWork):
            listing = uow.listings.get(listing_id)
            if listing is None:
                raise NotFound("Listing not found", {"listing_id": listing_id})
            owner = uow.profiles.get(listing.user_id)
            return listing, owner

        listing, owner = await self._store.run(_load)
        if not listing.is_active or owner is None or owner.verification_status != VerificationStatus.VERIFIED:
            raise NotFound("Listing not found", {"listing_id": listing_id})

        if not await self._entitled(session):
            logger.warning("Contact disclosure denied", actor=session.user_id, listing_id=listing_id)
            raise AuthorizationDenied(
                "A verified account with an active subscription is required to view contact details",
                {"requires": ["verified", "active_subscription"]},
            )
        return listing.contact_info or ContactInfo()
