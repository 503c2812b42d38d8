from .admin import AdminService, AdminStats
from .change_feed import (
    ChangeFeed,
    InMemoryChangeFeed,
    RedisChangeFeed,
    SubscriptionHandle,
    create_change_feed,
)
from .database.db_session import DbSessionService
from .entitlement import can_access_contact, profile_grants_contact
from .identity import IdentityService
from .listings import ListingService
from .live_views import AdminDashboardView, EntitlementView, ProfileCache
from .notifications import NotificationService
from .profiles import ProfileService
from .redis_service import RedisService
from .retry import retry_on_conflict, retry_transient
from .store import MarketplaceStore, UnitOfWork
from .subscription import SubscriptionService, compute_expiry, time_remaining
from .verification import VerificationStateMachine, VerificationWorkflow

__all__ = [
    "AdminDashboardView",
    "AdminService",
    "AdminStats",
    "ChangeFeed",
    "DbSessionService",
    "EntitlementView",
    "IdentityService",
    "InMemoryChangeFeed",
    "ListingService",
    "MarketplaceStore",
    "NotificationService",
    "ProfileCache",
    "ProfileService",
    "RedisChangeFeed",
    "RedisService",
    "SubscriptionHandle",
    "SubscriptionService",
    "UnitOfWork",
    "VerificationStateMachine",
    "VerificationWorkflow",
    "can_access_contact",
    "compute_expiry",
    "create_change_feed",
    "profile_grants_contact",
    "retry_on_conflict",
    "retry_transient",
    "time_remaining",
]
