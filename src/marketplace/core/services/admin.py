"""Admin action surface.

Every operation re-reads the caller's profile and requires the admin role at
the moment of the call. Mutations repeat the check inside the transaction
that writes, so an admin demoted in between changes nothing. The protected
super-account can never have its role changed or be deleted, whoever asks.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from src.marketplace.core.errors import (
    AuthorizationDenied,
    ValidationFailed,
    require_text,
)
from src.marketplace.core.services.store import MarketplaceStore, UnitOfWork
from src.marketplace.core.services.verification import VerificationWorkflow
from src.marketplace.entities._base import utc_now
from src.marketplace.entities.audit_log import AuditEntry
from src.marketplace.entities.notification import Notification, NotificationType
from src.marketplace.entities.profile import (
    Profile,
    ProfileTable,
    Role,
    SubscriptionPlan,
    VerificationStatus,
)
from src.marketplace.entities.verification_request import (
    RequestStatus,
    VerificationRequest,
)


@dataclass(frozen=True)
class AdminStats:
    total_users: int
    seekers: int
    providers: int
    admins: int
    pending_verifications: int
    verified_users: int
    active_listings: int
    active_subscriptions: int


class AdminService:
    def __init__(
        self,
        store: MarketplaceStore,
        workflow: VerificationWorkflow,
        protected_account_id: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._workflow = workflow
        self._protected_account_id = protected_account_id
        self._clock = clock

    def is_protected(self, user_id: str) -> bool:
        return self._protected_account_id is not None and user_id == self._protected_account_id

    def _guard_protected(self, admin_id: str | None, target_id: str, action: str) -> None:
        if self.is_protected(target_id):
            logger.warning(
                "Protected account mutation refused", actor=admin_id, target=target_id, action=action
            )
            raise AuthorizationDenied(
                "This account is protected and cannot be modified or deleted",
                {"target_id": target_id, "action": action},
            )

    async def change_role(
        self,
        admin_id: str | None,
        target_id: str,
        new_role: Role | str,
        reason: str | None,
    ) -> Profile:
        self._guard_protected(admin_id, target_id, "change_role")
        await self._workflow.require_admin(admin_id)
        reason = require_text(reason, "reason")
        try:
            role = Role(new_role)
        except ValueError:
            raise ValidationFailed(
                "Role must be seeker, provider or admin", {"role": str(new_role)}
            ) from None
        if target_id == admin_id and role != Role.ADMIN:
            raise AuthorizationDenied("Administrators cannot remove their own admin role")

        previous = await self._store.read_profile(target_id)
        audit = AuditEntry(
            admin_id=admin_id,
            action="user.change_role",
            target_id=target_id,
            reason=reason,
            details=f"{previous.role.value}->{role.value}",
        )
        profile = await self._store.apply_role_change(
            target_id, role, audit, admin_id=admin_id
        )
        logger.info(
            "Role changed",
            actor=admin_id,
            target=target_id,
            transition=f"{previous.role.value}->{role.value}",
        )
        return profile

    async def verify(self, admin_id: str | None, target_id: str) -> VerificationRequest:
        return await self._workflow.review_pending_for_user(admin_id, target_id, "approve")

    async def reject(
        self, admin_id: str | None, target_id: str, notes: str | None = None
    ) -> VerificationRequest:
        return await self._workflow.review_pending_for_user(
            admin_id, target_id, "reject", notes
        )

    async def unverify(
        self, admin_id: str | None, target_id: str, reason: str | None
    ) -> Profile:
        return await self._workflow.unverify_user(admin_id, target_id, reason)

    async def review_verification(
        self,
        admin_id: str | None,
        request_id: str,
        decision: str,
        notes: str | None = None,
    ) -> VerificationRequest:
        return await self._workflow.review_verification(admin_id, request_id, decision, notes)

    async def delete_user(
        self, admin_id: str | None, target_id: str, reason: str | None
    ) -> dict[str, int]:
        """Remove a user and everything they own in one transaction."""
        self._guard_protected(admin_id, target_id, "delete_user")
        await self._workflow.require_admin(admin_id)
        reason = require_text(reason, "reason")
        if target_id == admin_id:
            raise AuthorizationDenied("Administrators cannot delete their own account")

        audit = AuditEntry(
            admin_id=admin_id, action="user.delete", target_id=target_id, reason=reason
        )
        counts = await self._store.delete_user_cascade(target_id, audit, admin_id=admin_id)
        logger.info("User deleted", actor=admin_id, target=target_id, cascade=counts)
        return counts

    async def send_message(
        self,
        admin_id: str | None,
        target_id: str,
        message: str | None,
        title: str = "Message from Admin",
    ) -> Notification:
        await self._workflow.require_admin(admin_id)
        message = require_text(message, "message")
        notification = Notification(
            user_id=target_id,
            title=title,
            message=message,
            type=NotificationType.INFO,
        )

        def _send(uow: UnitOfWork) -> Notification:
            uow.require_admin(admin_id)
            uow.require_profile(target_id)
            uow.notify(notification)
            uow.record_audit(
                AuditEntry(admin_id=admin_id, action="user.message", target_id=target_id)
            )
            return notification

        sent = await self._store.run(_send)
        logger.info("Admin message sent", actor=admin_id, target=target_id)
        return sent

    async def get_stats(self, admin_id: str | None) -> AdminStats:
        await self._workflow.require_admin(admin_id)
        now = self._clock()

        def _stats(uow: UnitOfWork) -> AdminStats:
            by_role = uow.profiles.count_by_role()
            return AdminStats(
                total_users=sum(by_role.values()),
                seekers=by_role.get(Role.SEEKER.value, 0),
                providers=by_role.get(Role.PROVIDER.value, 0),
                admins=by_role.get(Role.ADMIN.value, 0),
                pending_verifications=uow.requests.count(RequestStatus.PENDING),
                verified_users=uow.profiles.count_where(
                    ProfileTable.verification_status == VerificationStatus.VERIFIED
                ),
                active_listings=uow.listings.count_active(),
                active_subscriptions=uow.profiles.count_where(
                    ProfileTable.subscription_plan != SubscriptionPlan.FREE,
                    ProfileTable.subscription_expiry > now,
                ),
            )

        return await self._store.run(_stats)

    async def list_users(self, admin_id: str | None, role: str | None = None) -> list[Profile]:
        await self._workflow.require_admin(admin_id)
        return await self._store.run(lambda uow: uow.profiles.list_all(role))

    async def list_verification_requests(
        self, admin_id: str | None, status: str | None = None
    ) -> list[VerificationRequest]:
        await self._workflow.require_admin(admin_id)
        if status is not None and status not in {s.value for s in RequestStatus}:
            raise ValidationFailed("Unknown request status", {"status": status})
        return await self._store.run(lambda uow: uow.requests.list_all(status))

    async def audit_log(
        self, admin_id: str | None, target_id: str | None = None
    ) -> list[AuditEntry]:
        await self._workflow.require_admin(admin_id)
        if target_id is None:
            return await self._store.run(lambda uow: uow.audit.list_all())
        return await self._store.run(lambda uow: uow.audit.list_for_target(target_id))

    async def get_user(self, admin_id: str | None, target_id: str) -> Profile:
        await self._workflow.require_admin(admin_id)
        return await self._store.read_profile(target_id)
