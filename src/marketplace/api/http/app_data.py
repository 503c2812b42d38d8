from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from src.marketplace.core.services import (
    AdminService,
    ChangeFeed,
    DbSessionService,
    IdentityService,
    ListingService,
    MarketplaceStore,
    NotificationService,
    ProfileCache,
    ProfileService,
    RedisService,
    SubscriptionService,
    VerificationWorkflow,
    create_change_feed,
)
from src.marketplace.core.storage.session_storage import (
    InMemorySessionStorage,
    SessionStorage,
    detect_session_storage,
)
from src.marketplace.entities._base import utc_now
from src.marketplace.runtime.config.config_data import ConfigData
from src.marketplace.runtime.settings import resolve_protected_account_id


@dataclass
class ApplicationDependencies:
    database_service: DbSessionService
    redis_service: RedisService
    change_feed: ChangeFeed
    session_storage: SessionStorage
    store: MarketplaceStore
    identity_service: IdentityService
    profile_service: ProfileService
    verification_workflow: VerificationWorkflow
    subscription_service: SubscriptionService
    admin_service: AdminService
    listing_service: ListingService
    notification_service: NotificationService
    profile_cache: ProfileCache


async def build_dependencies(
    config: ConfigData,
    database_service: DbSessionService | None = None,
    redis_service: RedisService | None = None,
    session_storage: SessionStorage | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> ApplicationDependencies:
    """Wire the services for one process."""
    database_service = database_service or DbSessionService()
    redis_service = redis_service or RedisService(config.redis)
    redis_client = redis_service.client

    if session_storage is None:
        session_storage = (
            await detect_session_storage(redis_client)
            if redis_client is not None
            else InMemorySessionStorage()
        )

    change_feed = create_change_feed(
        config.change_feed.backend, redis_client, config.change_feed.channel_prefix
    )
    store = MarketplaceStore(database_service, change_feed, clock)
    workflow = VerificationWorkflow(store)
    protected_id = resolve_protected_account_id(config)
    if protected_id is None:
        logger.warning("No protected super-account configured")

    profile_cache = ProfileCache(
        store,
        maxsize=config.entitlement.profile_cache_size,
        ttl=config.entitlement.profile_cache_ttl_seconds,
    )

    return ApplicationDependencies(
        database_service=database_service,
        redis_service=redis_service,
        change_feed=change_feed,
        session_storage=session_storage,
        store=store,
        identity_service=IdentityService(store, session_storage, config.session.ttl_seconds),
        profile_service=ProfileService(store, clock),
        verification_workflow=workflow,
        subscription_service=SubscriptionService(store, clock),
        admin_service=AdminService(store, workflow, protected_id, clock),
        listing_service=ListingService(store, clock),
        notification_service=NotificationService(store),
        profile_cache=profile_cache,
    )
