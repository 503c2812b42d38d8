"""Entity package: Profile."""

from .entity import (
    OWNER_EDITABLE_FIELDS,
    Profile,
    Role,
    SubscriptionPlan,
    VerificationStatus,
)
from .repository import ProfileRepository
from .table import ProfileTable

__all__ = [
    "OWNER_EDITABLE_FIELDS",
    "Profile",
    "ProfileRepository",
    "ProfileTable",
    "Role",
    "SubscriptionPlan",
    "VerificationStatus",
]
