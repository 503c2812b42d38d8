"""Subscription lifecycle: free -> monthly | semi_annual | yearly.

Payments are simulated; subscribing activates the plan immediately. Expiry is
never swept in the background. It is evaluated lazily whenever entitlement
is checked, and the stored ``can_access_contact`` hint is only refreshed on
plan changes.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from dateutil.relativedelta import relativedelta
from loguru import logger

from src.marketplace.core.errors import (
    AuthenticationRequired,
    AuthorizationDenied,
    ValidationFailed,
)
from src.marketplace.core.models.session import CallerSession
from src.marketplace.core.services.store import MarketplaceStore
from src.marketplace.entities._base import utc_now
from src.marketplace.entities.notification import Notification, NotificationType
from src.marketplace.entities.profile import Profile, SubscriptionPlan

PLAN_DURATIONS: dict[SubscriptionPlan, relativedelta] = {
    SubscriptionPlan.MONTHLY: relativedelta(months=1),
    SubscriptionPlan.SEMI_ANNUAL: relativedelta(months=6),
    SubscriptionPlan.YEARLY: relativedelta(years=1),
}

PLAN_LABELS = {
    SubscriptionPlan.MONTHLY: "Monthly",
    SubscriptionPlan.SEMI_ANNUAL: "Semi-Annual",
    SubscriptionPlan.YEARLY: "Yearly",
}


def compute_expiry(plan: SubscriptionPlan, start: datetime) -> datetime:
    """Calendar expiry of ``plan`` bought at ``start``."""
    try:
        return start + PLAN_DURATIONS[plan]
    except KeyError:
        raise ValidationFailed(
            "Choose a paid plan: monthly, semi_annual or yearly", {"plan": str(plan)}
        ) from None


@dataclass(frozen=True)
class TimeRemaining:
    months: int
    days: int
    hours: int
    minutes: int
    seconds: int
    expired: bool

    @classmethod
    def zero(cls) -> "TimeRemaining":
        return cls(0, 0, 0, 0, 0, True)


def time_remaining(profile: Profile, now: datetime | None = None) -> TimeRemaining:
    """Countdown to expiry, using 30-day months for display."""
    if profile.subscription_plan == SubscriptionPlan.FREE or profile.subscription_expiry is None:
        return TimeRemaining.zero()
    total = int((profile.subscription_expiry - (now or utc_now())).total_seconds())
    if total <= 0:
        return TimeRemaining.zero()

    months, rest = divmod(total, 30 * 24 * 3600)
    days, rest = divmod(rest, 24 * 3600)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    return TimeRemaining(months, days, hours, minutes, seconds, False)


class SubscriptionService:
    def __init__(
        self, store: MarketplaceStore, clock: Callable[[], datetime] = utc_now
    ) -> None:
        self._store = store
        self._clock = clock

    async def subscribe_to_plan(
        self,
        session: CallerSession | None,
        user_id: str,
        plan: SubscriptionPlan | str,
    ) -> Profile:
        """Activate ``plan`` for ``user_id`` starting now.

        Re-subscribing overwrites the current plan and recomputes the expiry
        from now; remaining time is not carried over.
        """
        if session is None or not session.is_authenticated:
            raise AuthenticationRequired()
        if session.user_id != user_id:
            raise AuthorizationDenied("You can only manage your own subscription")
        try:
            plan = SubscriptionPlan(plan)
        except ValueError:
            raise ValidationFailed("Unknown subscription plan", {"plan": str(plan)}) from None

        expiry = compute_expiry(plan, self._clock())
        notification = Notification(
            user_id=user_id,
            title="Subscription Activated!",
            message=(
                f"Your {PLAN_LABELS[plan]} subscription has been activated "
                f"and will expire on {expiry:%B %d, %Y}."
            ),
            type=NotificationType.SUCCESS,
        )
        profile = await self._store.apply_subscription(user_id, plan, expiry, notification)
        logger.info(
            "Subscription activated",
            actor=user_id,
            plan=plan.value,
            expiry=expiry.isoformat(),
        )
        return profile

    async def status(self, session: CallerSession | None) -> tuple[Profile, TimeRemaining]:
        if session is None or not session.is_authenticated:
            raise AuthenticationRequired()
        profile = await self._store.read_profile(session.user_id)
        return profile, time_remaining(profile, self._clock())
