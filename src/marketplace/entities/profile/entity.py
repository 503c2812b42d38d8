"""Profile domain entity: one record per account."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import Field, computed_field, model_validator

from src.marketplace.entities._base import Entity


class Role(StrEnum):
    SEEKER = "seeker"
    PROVIDER = "provider"
    ADMIN = "admin"


class VerificationStatus(StrEnum):
    NOT_VERIFIED = "not_verified"
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class SubscriptionPlan(StrEnum):
    FREE = "free"
    MONTHLY = "monthly"
    SEMI_ANNUAL = "semi_annual"
    YEARLY = "yearly"


# Fields the owning user may edit directly
OWNER_EDITABLE_FIELDS = frozenset({"name", "phone", "address", "profile_image_url"})


class Profile(Entity):
    """Profile entity carrying role, verification and subscription state.

    ``is_verified`` is a projection of ``verification_status`` and cannot be
    set on its own. ``can_access_contact`` is a stored hint; disclosure
    decisions always re-run the entitlement evaluator instead of trusting it.
    """

    name: str = Field(description="Display name")
    email: str = Field(description="Sign-in email address")
    phone: str | None = Field(default=None, description="Phone number")
    address: str | None = Field(default=None, description="Postal address")
    profile_image_url: str | None = Field(default=None, description="Avatar URL")

    role: Role = Field(default=Role.SEEKER)
    verification_status: VerificationStatus = Field(
        default=VerificationStatus.NOT_VERIFIED
    )
    subscription_plan: SubscriptionPlan = Field(default=SubscriptionPlan.FREE)
    subscription_expiry: datetime | None = Field(default=None)
    can_access_contact: bool = Field(
        default=False, description="Cached entitlement hint, never authoritative"
    )

    @computed_field
    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.VERIFIED

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @model_validator(mode="after")
    def _expiry_matches_plan(self) -> "Profile":
        if self.subscription_plan == SubscriptionPlan.FREE:
            if self.subscription_expiry is not None:
                raise ValueError("free plan cannot carry a subscription expiry")
        elif self.subscription_expiry is None:
            raise ValueError("paid plans require a subscription expiry")
        return self

    def __eq__(self, other: Any) -> bool:
        """Compare profiles by business attributes, ignoring timestamps."""
        if not isinstance(other, Profile):
            return False

        return (
            self.id == other.id
            and self.email == other.email
            and self.role == other.role
            and self.verification_status == other.verification_status
            and self.subscription_plan == other.subscription_plan
            and self.subscription_expiry == other.subscription_expiry
        )

    def __hash__(self) -> int:
        return hash((self.id, self.email, self.role, self.verification_status))
