"""Entitlement evaluator: may this caller see private contact fields?

The evaluator is pure. It never raises and answers ``False`` whenever the
inputs are missing or incomplete. Administrators get no exemption here; they
are treated like anyone else when browsing listings.
"""

from __future__ import annotations

from datetime import datetime

from src.marketplace.core.models.session import CallerSession
from src.marketplace.entities._base import utc_now
from src.marketplace.entities.profile import (
    Profile,
    SubscriptionPlan,
    VerificationStatus,
)


def profile_grants_contact(profile: Profile | None, now: datetime | None = None) -> bool:
    """The profile half of the rule: verified, on a paid plan that has not expired."""
    if profile is None:
        return False
    if profile.verification_status != VerificationStatus.VERIFIED:
        return False
    if profile.subscription_plan == SubscriptionPlan.FREE:
        return False
    expiry = profile.subscription_expiry
    if expiry is not None and expiry <= (now or utc_now()):
        return False
    return True


def can_access_contact(
    session: CallerSession | None,
    profile: Profile | None,
    now: datetime | None = None,
) -> bool:
    """Decide whether ``session`` may see private contact details.

    Args:
        session: The caller, or None when nobody is signed in.
        profile: The caller's freshly read profile.
        now: Evaluation instant; defaults to the current UTC time.
    """
    if session is None or not session.is_authenticated:
        return False
    if profile is not None and profile.id != session.user_id:
        # Someone else's record says nothing about this caller
        return False
    return profile_grants_contact(profile, now)
