"""Unit tests for the subscription lifecycle."""

from datetime import UTC, datetime, timedelta

import pytest

from src.marketplace.core.errors import (
    AuthenticationRequired,
    AuthorizationDenied,
    ValidationFailed,
)
from src.marketplace.core.services.subscription import compute_expiry, time_remaining
from src.marketplace.entities.notification import NotificationType
from src.marketplace.entities.profile import (
    Profile,
    ProfileRepository,
    SubscriptionPlan,
    VerificationStatus,
)


class TestComputeExpiry:
    def test_plan_durations_use_calendar_arithmetic(self):
        start = datetime(2025, 1, 31, 8, 0, tzinfo=UTC)
        assert compute_expiry(SubscriptionPlan.MONTHLY, start) == datetime(
            2025, 2, 28, 8, 0, tzinfo=UTC
        )
        assert compute_expiry(SubscriptionPlan.SEMI_ANNUAL, start) == datetime(
            2025, 7, 31, 8, 0, tzinfo=UTC
        )
        assert compute_expiry(SubscriptionPlan.YEARLY, start) == datetime(
            2026, 1, 31, 8, 0, tzinfo=UTC
        )

    def test_free_plan_has_no_expiry(self):
        with pytest.raises(ValidationFailed):
            compute_expiry(SubscriptionPlan.FREE, datetime.now(UTC))


class TestTimeRemaining:
    def test_counts_down_with_thirty_day_months(self):
        now = datetime(2025, 1, 1, tzinfo=UTC)
        profile = Profile(
            name="T",
            email="t@example.com",
            subscription_plan=SubscriptionPlan.YEARLY,
            subscription_expiry=now + timedelta(days=45, hours=3, minutes=2, seconds=1),
        )

        remaining = time_remaining(profile, now)

        assert (remaining.months, remaining.days, remaining.hours) == (1, 15, 3)
        assert (remaining.minutes, remaining.seconds) == (2, 1)
        assert remaining.expired is False

    def test_free_and_lapsed_plans_are_expired(self):
        now = datetime(2025, 1, 1, tzinfo=UTC)
        free = Profile(name="F", email="f@example.com")
        lapsed = Profile(
            name="L",
            email="l@example.com",
            subscription_plan=SubscriptionPlan.MONTHLY,
            subscription_expiry=now,
        )
        assert time_remaining(free, now).expired is True
        assert time_remaining(lapsed, now).expired is True


class TestSubscribeToPlan:
    @pytest.mark.asyncio
    async def test_subscribing_sets_plan_expiry_and_notifies(
        self, subscription_service, store, clock, seeker, as_caller
    ):
        profile = await subscription_service.subscribe_to_plan(
            as_caller(seeker), seeker.id, "monthly"
        )

        assert profile.subscription_plan == SubscriptionPlan.MONTHLY
        assert profile.subscription_expiry == compute_expiry(SubscriptionPlan.MONTHLY, clock.now)
        # Not verified yet, so a paid plan alone does not entitle
        assert profile.can_access_contact is False

        notices = await store.run(lambda uow: uow.notifications.list_for_user(seeker.id))
        assert notices[0].title == "Subscription Activated!"
        assert notices[0].type == NotificationType.SUCCESS
        assert "February 15, 2025" in notices[0].message

    @pytest.mark.asyncio
    async def test_verified_subscriber_gets_contact_hint(
        self, subscription_service, db_service, seeker, as_caller
    ):
        with db_service.session_scope() as session:
            ProfileRepository(session).update_fields(
                seeker.id, {"verification_status": VerificationStatus.VERIFIED}
            )

        profile = await subscription_service.subscribe_to_plan(
            as_caller(seeker), seeker.id, SubscriptionPlan.YEARLY
        )

        assert profile.can_access_contact is True

    @pytest.mark.asyncio
    async def test_resubscribing_restarts_from_now(
        self, subscription_service, clock, seeker, as_caller
    ):
        await subscription_service.subscribe_to_plan(as_caller(seeker), seeker.id, "yearly")
        clock.advance(days=10)

        profile = await subscription_service.subscribe_to_plan(
            as_caller(seeker), seeker.id, "monthly"
        )

        assert profile.subscription_plan == SubscriptionPlan.MONTHLY
        assert profile.subscription_expiry == compute_expiry(SubscriptionPlan.MONTHLY, clock.now)

    @pytest.mark.asyncio
    async def test_only_the_owner_can_subscribe(
        self, subscription_service, seeker, provider, as_caller
    ):
        with pytest.raises(AuthenticationRequired):
            await subscription_service.subscribe_to_plan(None, seeker.id, "monthly")
        with pytest.raises(AuthorizationDenied):
            await subscription_service.subscribe_to_plan(as_caller(provider), seeker.id, "monthly")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("plan", ["free", "weekly"])
    async def test_invalid_plans_are_rejected(self, subscription_service, seeker, as_caller, plan):
        with pytest.raises(ValidationFailed):
            await subscription_service.subscribe_to_plan(as_caller(seeker), seeker.id, plan)

    @pytest.mark.asyncio
    async def test_status_reports_time_remaining(
        self, subscription_service, clock, seeker, as_caller
    ):
        await subscription_service.subscribe_to_plan(as_caller(seeker), seeker.id, "monthly")
        clock.advance(days=1)

        profile, remaining = await subscription_service.status(as_caller(seeker))

        assert profile.subscription_plan == SubscriptionPlan.MONTHLY
        assert remaining.expired is False
        assert (remaining.months, remaining.days) == (1, 0)
