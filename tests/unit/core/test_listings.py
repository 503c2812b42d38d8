"""Unit tests for listings and contact disclosure."""

from datetime import timedelta

import pytest

from src.marketplace.core.errors import (
    AuthenticationRequired,
    AuthorizationDenied,
    NotFound,
    ValidationFailed,
)
from src.marketplace.entities.profile import Role, SubscriptionPlan, VerificationStatus
from tests.fixtures.core import START
from tests.fixtures.services import seed_profile

CONTACT = {"phone": "555-0199", "email": "jobs@plumbing.example"}


@pytest.fixture
def verified_provider(db_service):
    return seed_profile(
        db_service,
        name="Val Provider",
        email="val@example.com",
        role=Role.PROVIDER,
        verification_status=VerificationStatus.VERIFIED,
    )


@pytest.fixture
def entitled_seeker(db_service):
    return seed_profile(
        db_service,
        name="Eli Entitled",
        email="eli@example.com",
        verification_status=VerificationStatus.VERIFIED,
        subscription_plan=SubscriptionPlan.MONTHLY,
        subscription_expiry=START + timedelta(days=30),
    )


@pytest.fixture
async def listing(listing_service, verified_provider, as_caller):
    return await listing_service.create_listing(
        as_caller(verified_provider),
        {"service_name": "Plumbing", "category": "home", "contact_info": CONTACT},
    )


class TestCreateListing:
    @pytest.mark.asyncio
    async def test_provider_creates_listing(self, listing_service, feed, provider, as_caller):
        created = await listing_service.create_listing(
            as_caller(provider), {"service_name": "Tiling", "contact_info": CONTACT}
        )

        assert created.user_id == provider.id
        assert created.contact_info.phone == CONTACT["phone"]
        assert feed.published[-1].record_id == created.id

    @pytest.mark.asyncio
    async def test_seekers_cannot_list(self, listing_service, seeker, as_caller):
        with pytest.raises(AuthorizationDenied):
            await listing_service.create_listing(as_caller(seeker), {"service_name": "Tiling"})

    @pytest.mark.asyncio
    async def test_name_required(self, listing_service, provider, as_caller):
        with pytest.raises(ValidationFailed):
            await listing_service.create_listing(as_caller(provider), {"service_name": "  "})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("contact", ["call me", ["555-0199"], {"phone": {"n": 1}}])
    async def test_malformed_contact_is_rejected(
        self, listing_service, feed, provider, as_caller, contact
    ):
        before = len(feed.published)
        with pytest.raises(ValidationFailed) as exc:
            await listing_service.create_listing(
                as_caller(provider), {"service_name": "Tiling", "contact_info": contact}
            )

        assert exc.value.status_code == 422
        assert exc.value.details == {"field": "contact_info"}
        assert len(feed.published) == before

    @pytest.mark.asyncio
    async def test_malformed_flag_is_rejected(self, listing_service, provider, as_caller):
        with pytest.raises(ValidationFailed) as exc:
            await listing_service.create_listing(
                as_caller(provider), {"service_name": "Tiling", "is_active": "sometimes"}
            )

        assert exc.value.details == {"fields": ["is_active"]}

    @pytest.mark.asyncio
    async def test_requires_session(self, listing_service):
        with pytest.raises(AuthenticationRequired):
            await listing_service.create_listing(None, {"service_name": "Tiling"})


class TestPublicListings:
    @pytest.mark.asyncio
    async def test_redacted_for_anonymous_and_unentitled(
        self, listing_service, listing, seeker, as_caller
    ):
        for session in (None, as_caller(seeker)):
            listings = await listing_service.list_public(session)
            assert [item.id for item in listings] == [listing.id]
            assert listings[0].contact_info is None

    @pytest.mark.asyncio
    async def test_visible_to_entitled_caller(
        self, listing_service, listing, entitled_seeker, as_caller
    ):
        listings = await listing_service.list_public(as_caller(entitled_seeker))
        assert listings[0].contact_info.email == CONTACT["email"]

    @pytest.mark.asyncio
    async def test_unverified_providers_are_hidden(self, listing_service, provider, as_caller):
        await listing_service.create_listing(as_caller(provider), {"service_name": "Tiling"})

        assert await listing_service.list_public(None) == []
        assert len(await listing_service.list_own(as_caller(provider))) == 1


class TestRevealContact:
    @pytest.mark.asyncio
    async def test_entitled_caller_sees_contact(
        self, listing_service, listing, entitled_seeker, as_caller
    ):
        contact = await listing_service.reveal_contact(as_caller(entitled_seeker), listing.id)
        assert contact.phone == CONTACT["phone"]

    @pytest.mark.asyncio
    async def test_denied_without_entitlement(self, listing_service, listing, seeker, as_caller):
        with pytest.raises(AuthorizationDenied):
            await listing_service.reveal_contact(as_caller(seeker), listing.id)

    @pytest.mark.asyncio
    async def test_denied_after_expiry(
        self, listing_service, listing, entitled_seeker, clock, as_caller
    ):
        clock.advance(days=30)
        with pytest.raises(AuthorizationDenied):
            await listing_service.reveal_contact(as_caller(entitled_seeker), listing.id)

    @pytest.mark.asyncio
    async def test_anonymous_must_sign_in(self, listing_service, listing):
        with pytest.raises(AuthenticationRequired):
            await listing_service.reveal_contact(None, listing.id)

    @pytest.mark.asyncio
    async def test_unknown_listing(self, listing_service, entitled_seeker, as_caller):
        with pytest.raises(NotFound):
            await listing_service.reveal_contact(as_caller(entitled_seeker), "missing")

    @pytest.mark.asyncio
    async def test_cached_hint_is_ignored(
        self, listing_service, listing, db_service, as_caller
    ):
        hinted = seed_profile(
            db_service,
            name="Hint Only",
            email="hint@example.com",
            can_access_contact=True,
        )
        with pytest.raises(AuthorizationDenied):
            await listing_service.reveal_contact(as_caller(hinted), listing.id)
