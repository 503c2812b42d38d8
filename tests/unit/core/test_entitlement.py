"""Unit tests for the contact entitlement evaluator."""

from datetime import UTC, datetime, timedelta

import pytest

from src.marketplace.core.models.session import CallerSession
from src.marketplace.core.services.entitlement import (
    can_access_contact,
    profile_grants_contact,
)
from src.marketplace.entities.profile import Profile, SubscriptionPlan, VerificationStatus

NOW = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)


def _profile(status: VerificationStatus, plan: SubscriptionPlan, expiry: datetime | None):
    return Profile(
        id="user-1",
        name="Test",
        email="test@example.com",
        verification_status=status,
        subscription_plan=plan,
        subscription_expiry=expiry,
    )


SESSION = CallerSession(user_id="user-1", session_id="s")


class TestCanAccessContact:
    """The evaluator is true only for verified callers on an unexpired paid plan."""

    def test_verified_with_active_plan_is_entitled(self):
        profile = _profile(
            VerificationStatus.VERIFIED, SubscriptionPlan.MONTHLY, NOW + timedelta(days=3)
        )
        assert can_access_contact(SESSION, profile, NOW) is True

    @pytest.mark.parametrize(
        "status",
        [
            VerificationStatus.NOT_VERIFIED,
            VerificationStatus.PENDING,
            VerificationStatus.REJECTED,
        ],
    )
    def test_unverified_statuses_are_never_entitled(self, status):
        """Every non-verified status is denied even with a paid plan."""
        profile = _profile(status, SubscriptionPlan.YEARLY, NOW + timedelta(days=300))
        assert can_access_contact(SESSION, profile, NOW) is False

    def test_free_plan_is_not_entitled(self):
        profile = _profile(VerificationStatus.VERIFIED, SubscriptionPlan.FREE, None)
        assert can_access_contact(SESSION, profile, NOW) is False

    def test_expiry_boundary_is_exclusive(self):
        """At exactly the expiry instant access is already gone."""
        profile = _profile(VerificationStatus.VERIFIED, SubscriptionPlan.MONTHLY, NOW)
        assert can_access_contact(SESSION, profile, NOW - timedelta(seconds=1)) is True
        assert can_access_contact(SESSION, profile, NOW) is False
        assert can_access_contact(SESSION, profile, NOW + timedelta(seconds=1)) is False

    def test_no_session_is_never_entitled(self):
        profile = _profile(
            VerificationStatus.VERIFIED, SubscriptionPlan.MONTHLY, NOW + timedelta(days=3)
        )
        assert can_access_contact(None, profile, NOW) is False
        assert can_access_contact(CallerSession(), profile, NOW) is False

    def test_missing_profile_is_not_entitled(self):
        assert can_access_contact(SESSION, None, NOW) is False

    def test_someone_elses_profile_does_not_entitle_caller(self):
        profile = _profile(
            VerificationStatus.VERIFIED, SubscriptionPlan.MONTHLY, NOW + timedelta(days=3)
        )
        other = CallerSession(user_id="user-2", session_id="s2")
        assert can_access_contact(other, profile, NOW) is False

    def test_evaluator_ignores_stored_hint(self):
        """A stale stored hint does not change the answer."""
        profile = _profile(
            VerificationStatus.VERIFIED, SubscriptionPlan.MONTHLY, NOW - timedelta(days=1)
        ).model_copy(update={"can_access_contact": True})
        assert can_access_contact(SESSION, profile, NOW) is False

    def test_profile_half_matches_full_rule(self):
        profile = _profile(
            VerificationStatus.VERIFIED, SubscriptionPlan.SEMI_ANNUAL, NOW + timedelta(days=1)
        )
        assert profile_grants_contact(profile, NOW) == can_access_contact(SESSION, profile, NOW)
