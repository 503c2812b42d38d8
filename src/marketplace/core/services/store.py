"""Persistence collaborator for the marketplace core.

Every public method runs in exactly one database transaction. Multi-record
transitions (review, unverify, role change, cascade delete, plan change) are
applied in a single transaction guarded by compare-and-set predicates, so an
observer never sees one record updated without the other.

The blocking session work runs on a worker thread. Change events are collected
while the transaction runs and published on the event loop only after it
commits.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any, TypeVar

from anyio import to_thread
from loguru import logger
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlmodel import Session

from src.marketplace.core.errors import (
    AuthenticationRequired,
    AuthorizationDenied,
    ConflictOrStale,
    MarketplaceError,
    NotFound,
    TransientStoreFailure,
)
from src.marketplace.core.models.change_event import (
    ChangeEvent,
    ChangeOperation,
    ChangeTable,
)
from src.marketplace.core.services.change_feed import (
    ChangeFeed,
    ChangeHandler,
    ChangePredicate,
    SubscriptionHandle,
)
from src.marketplace.core.services.database.db_session import DbSessionService
from src.marketplace.core.services.entitlement import profile_grants_contact
from src.marketplace.entities._base import utc_now
from src.marketplace.entities.audit_log import AuditEntry, AuditEntryRepository
from src.marketplace.entities.notification import Notification, NotificationRepository
from src.marketplace.entities.profile import (
    Profile,
    ProfileRepository,
    SubscriptionPlan,
    VerificationStatus,
)
from src.marketplace.entities.service_listing import ServiceListingRepository
from src.marketplace.entities.verification_request import (
    RequestStatus,
    VerificationRequest,
    VerificationRequestRepository,
)

T = TypeVar("T")

Clock = Callable[[], datetime]


class UnitOfWork:
    """Repositories sharing one session plus the events the work produced."""

    def __init__(self, session: Session, clock: Clock) -> None:
        self.session = session
        self.clock = clock
        self.profiles = ProfileRepository(session)
        self.requests = VerificationRequestRepository(session)
        self.listings = ServiceListingRepository(session)
        self.notifications = NotificationRepository(session)
        self.audit = AuditEntryRepository(session)
        self.events: list[ChangeEvent] = []

    def changed(
        self,
        table: ChangeTable,
        operation: ChangeOperation,
        record_id: str,
        owner_id: str | None,
    ) -> None:
        self.events.append(
            ChangeEvent(
                table=table,
                operation=operation,
                record_id=record_id,
                owner_id=owner_id,
                occurred_at=self.clock(),
            )
        )

    def require_profile(self, user_id: str) -> Profile:
        profile = self.profiles.get(user_id)
        if profile is None:
            raise NotFound("User not found", {"user_id": user_id})
        return profile

    def require_admin(self, admin_id: str | None) -> Profile:
        """Fail unless ``admin_id`` holds the admin role as of this transaction."""
        if not admin_id:
            raise AuthenticationRequired()
        caller = self.profiles.get(admin_id)
        if caller is None:
            raise AuthenticationRequired("Your account no longer exists")
        if not caller.is_admin:
            logger.warning("Admin action denied", actor=admin_id, role=str(caller.role))
            raise AuthorizationDenied(
                "Administrator role required", {"required_role": "admin"}
            )
        return caller

    def update_profile(self, user_id: str, fields: dict[str, Any]) -> Profile:
        if not self.profiles.update_fields(user_id, fields):
            raise NotFound("User not found", {"user_id": user_id})
        self.changed(ChangeTable.PROFILES, ChangeOperation.UPDATE, user_id, user_id)
        return self.require_profile(user_id)

    def refresh_contact_hint(self, user_id: str) -> Profile:
        """Bring the stored ``can_access_contact`` hint in line with the evaluator."""
        profile = self.require_profile(user_id)
        granted = profile_grants_contact(profile, self.clock())
        if granted != profile.can_access_contact:
            self.profiles.update_fields(user_id, {"can_access_contact": granted})
            profile = profile.model_copy(update={"can_access_contact": granted})
        return profile

    def notify(self, notification: Notification | None) -> None:
        if notification is None:
            return
        self.notifications.create(notification)
        self.changed(
            ChangeTable.NOTIFICATIONS,
            ChangeOperation.INSERT,
            notification.id,
            notification.user_id,
        )

    def record_audit(self, entry: AuditEntry | None) -> None:
        if entry is not None:
            self.audit.create(entry)


class MarketplaceStore:
    """Transactional access to profiles, requests, listings and notifications."""

    def __init__(
        self,
        db: DbSessionService,
        feed: ChangeFeed,
        clock: Clock = utc_now,
    ) -> None:
        self._db = db
        self._feed = feed
        self._clock = clock

    @property
    def feed(self) -> ChangeFeed:
        return self._feed

    def _execute(self, work: Callable[[UnitOfWork], T]) -> tuple[T, list[ChangeEvent]]:
        try:
            with self._db.session_scope() as session:
                uow = UnitOfWork(session, self._clock)
                result = work(uow)
        except IntegrityError as e:
            raise ConflictOrStale(
                "The record was modified concurrently; reload and try again",
                {"error_type": type(e).__name__},
            ) from e
        except (DBAPIError, PoolTimeoutError) as e:
            raise TransientStoreFailure(
                "The data store is temporarily unavailable",
                {"error_type": type(e).__name__},
            ) from e
        return result, uow.events

    async def run(self, work: Callable[[UnitOfWork], T]) -> T:
        """Run ``work`` as one transaction on a worker thread and return its result.

        ``work`` must not await; its change events are published once the
        transaction has committed.
        """
        result, events = await to_thread.run_sync(self._execute, work)
        await self._publish(events)
        return result

    async def _publish(self, events: Iterable[ChangeEvent]) -> None:
        for event in events:
            try:
                await self._feed.publish(event)
            except MarketplaceError as e:
                # The write is committed; subscribers recover by re-fetching
                logger.error(
                    "Change event not published",
                    extra={
                        "error_type": type(e).__name__,
                        "error_message": e.message,
                        "table": str(event.table),
                        "record_id": event.record_id,
                    },
                )

    # Change-feed primitives

    def subscribe(
        self,
        table: ChangeTable | str,
        predicate: ChangePredicate | None,
        on_change: ChangeHandler,
    ) -> SubscriptionHandle:
        return self._feed.subscribe(table, predicate, on_change)

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        return self._feed.unsubscribe(handle)

    # Profiles

    async def read_profile(self, user_id: str) -> Profile:
        """Read a profile with its contact hint re-evaluated at read time."""
        profile = await self.run(lambda uow: uow.require_profile(user_id))
        return profile.model_copy(
            update={"can_access_contact": profile_grants_contact(profile, self._clock())}
        )

    async def create_profile(self, profile: Profile) -> Profile:
        def _create(uow: UnitOfWork) -> Profile:
            if uow.profiles.get_by_email(profile.email) is not None:
                raise ConflictOrStale(
                    "An account with this email already exists", {"email": profile.email}
                )
            uow.profiles.create(profile)
            uow.changed(ChangeTable.PROFILES, ChangeOperation.INSERT, profile.id, profile.id)
            return profile

        return await self.run(_create)

    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> Profile:
        return await self.run(lambda uow: uow.update_profile(user_id, fields))

    # Verification requests

    async def insert_verification_request(
        self,
        request: VerificationRequest,
        notification: Notification | None = None,
    ) -> VerificationRequest:
        """Insert ``request`` and flip its owner to ``pending`` atomically.

        Raises ConflictOrStale unless the owner is ``not_verified`` or
        ``rejected`` at commit time.
        """

        def _insert(uow: UnitOfWork) -> VerificationRequest:
            flipped = uow.profiles.update_fields(
                request.user_id,
                {"verification_status": VerificationStatus.PENDING},
                expected_status=(VerificationStatus.NOT_VERIFIED, VerificationStatus.REJECTED),
            )
            if not flipped:
                current = uow.require_profile(request.user_id)
                raise ConflictOrStale(
                    "A verification request cannot be submitted in the current state",
                    {"verification_status": str(current.verification_status)},
                )
            uow.requests.create(request)
            uow.changed(
                ChangeTable.VERIFICATION_REQUESTS,
                ChangeOperation.INSERT,
                request.id,
                request.user_id,
            )
            uow.changed(
                ChangeTable.PROFILES, ChangeOperation.UPDATE, request.user_id, request.user_id
            )
            uow.notify(notification)
            return request

        return await self.run(_insert)

    async def update_verification_request(
        self,
        request_id: str,
        fields: dict[str, Any],
        expected_status: RequestStatus = RequestStatus.PENDING,
    ) -> VerificationRequest:
        return await self.run(
            lambda uow: self._update_request(uow, request_id, fields, expected_status)
        )

    def _update_request(
        self,
        uow: UnitOfWork,
        request_id: str,
        fields: dict[str, Any],
        expected_status: RequestStatus,
    ) -> VerificationRequest:
        existing = uow.requests.get(request_id)
        if existing is None:
            raise NotFound("Verification request not found", {"request_id": request_id})
        if not uow.requests.compare_and_set(request_id, expected_status, fields):
            current = uow.requests.get(request_id)
            raise ConflictOrStale(
                "The verification request was already reviewed; reload it",
                {"request_id": request_id, "status": str(current.status if current else None)},
            )
        uow.changed(
            ChangeTable.VERIFICATION_REQUESTS,
            ChangeOperation.UPDATE,
            request_id,
            existing.user_id,
        )
        updated = uow.requests.get(request_id)
        assert updated is not None
        return updated

    async def latest_verification_request(self, user_id: str) -> VerificationRequest | None:
        return await self.run(lambda uow: uow.requests.latest_for_user(user_id))

    async def pending_verification_request(self, user_id: str) -> VerificationRequest | None:
        return await self.run(lambda uow: uow.requests.pending_for_user(user_id))

    async def apply_review(
        self,
        request_id: str,
        reviewer_id: str,
        decision: RequestStatus,
        notes: str | None,
        profile_status: VerificationStatus,
        notification_factory: Callable[[VerificationRequest], Notification | None],
        audit_factory: Callable[[VerificationRequest], AuditEntry | None],
    ) -> VerificationRequest:
        """Close a pending request and mirror the outcome onto the owner's profile.

        ``reviewer_id`` must hold the admin role within the same transaction.
        """

        def _review(uow: UnitOfWork) -> VerificationRequest:
            uow.require_admin(reviewer_id)
            request = self._update_request(
                uow,
                request_id,
                {
                    "status": decision,
                    "reviewed_by": reviewer_id,
                    "reviewer_notes": notes,
                    "reviewed_at": uow.clock(),
                },
                RequestStatus.PENDING,
            )
            uow.update_profile(request.user_id, {"verification_status": profile_status})
            uow.refresh_contact_hint(request.user_id)
            uow.notify(notification_factory(request))
            uow.record_audit(audit_factory(request))
            return request

        return await self.run(_review)

    async def apply_unverify(
        self,
        user_id: str,
        notification: Notification,
        audit: AuditEntry | None = None,
        admin_id: str | None = None,
    ) -> Profile:
        """Force a verified profile back to ``not_verified`` with its notice.

        With ``admin_id`` the admin role is checked in the same transaction.
        """

        def _unverify(uow: UnitOfWork) -> Profile:
            if admin_id is not None:
                uow.require_admin(admin_id)
            flipped = uow.profiles.update_fields(
                user_id,
                {"verification_status": VerificationStatus.NOT_VERIFIED},
                expected_status=(VerificationStatus.VERIFIED,),
            )
            if not flipped:
                current = uow.require_profile(user_id)
                raise ConflictOrStale(
                    "Only verified users can be unverified",
                    {"verification_status": str(current.verification_status)},
                )
            uow.changed(ChangeTable.PROFILES, ChangeOperation.UPDATE, user_id, user_id)
            profile = uow.refresh_contact_hint(user_id)
            uow.notify(notification)
            uow.record_audit(audit)
            return profile

        return await self.run(_unverify)

    # Roles, subscriptions, deletion

    async def apply_role_change(
        self,
        user_id: str,
        role: str,
        audit: AuditEntry,
        admin_id: str | None = None,
    ) -> Profile:
        def _change(uow: UnitOfWork) -> Profile:
            if admin_id is not None:
                uow.require_admin(admin_id)
            profile = uow.update_profile(user_id, {"role": role})
            uow.record_audit(audit)
            return profile

        return await self.run(_change)

    async def apply_subscription(
        self,
        user_id: str,
        plan: SubscriptionPlan,
        expiry: datetime | None,
        notification: Notification | None = None,
    ) -> Profile:
        def _subscribe(uow: UnitOfWork) -> Profile:
            uow.update_profile(
                user_id, {"subscription_plan": plan, "subscription_expiry": expiry}
            )
            profile = uow.refresh_contact_hint(user_id)
            uow.notify(notification)
            return profile

        return await self.run(_subscribe)

    async def delete_user_cascade(
        self,
        user_id: str,
        audit: AuditEntry | None = None,
        admin_id: str | None = None,
    ) -> dict[str, int]:
        """Remove a profile and every row it owns, all or nothing.

        Returns the number of rows removed per table. Audit entries about the
        user are kept. With ``admin_id`` the admin role is checked in the same
        transaction.
        """

        def _delete(uow: UnitOfWork) -> dict[str, int]:
            if admin_id is not None:
                uow.require_admin(admin_id)
            uow.require_profile(user_id)

            listing_ids = uow.listings.ids_for_user(user_id)
            request_ids = uow.requests.ids_for_user(user_id)

            counts = {
                "service_listings": uow.listings.delete_for_user(user_id),
                "verification_requests": uow.requests.delete_for_user(user_id),
                "notifications": uow.notifications.delete_for_user(user_id),
            }
            if not uow.profiles.delete(user_id):
                raise ConflictOrStale("User was removed concurrently", {"user_id": user_id})
            counts["profiles"] = 1
            uow.record_audit(audit)

            for listing_id in listing_ids:
                uow.changed(
                    ChangeTable.SERVICE_LISTINGS, ChangeOperation.DELETE, listing_id, user_id
                )
            for request_id in request_ids:
                uow.changed(
                    ChangeTable.VERIFICATION_REQUESTS,
                    ChangeOperation.DELETE,
                    request_id,
                    user_id,
                )
            uow.changed(ChangeTable.PROFILES, ChangeOperation.DELETE, user_id, user_id)
            return counts

        return await self.run(_delete)
