"""Verification workflow.

Profile verification status moves through::

    not_verified -> pending -> verified | rejected
    rejected     -> pending            (resubmission)
    verified     -> not_verified       (admin unverify, reason required)

A submission while a request is already pending is refused. Each transition
is applied to the request and the profile in one store transaction.
"""

from __future__ import annotations

from loguru import logger

from src.marketplace.core.errors import (
    AuthenticationRequired,
    AuthorizationDenied,
    ConflictOrStale,
    NotFound,
    ValidationFailed,
    require_text,
)
from src.marketplace.core.models.session import CallerSession
from src.marketplace.core.services.retry import retry_on_conflict
from src.marketplace.core.services.store import MarketplaceStore
from src.marketplace.entities.audit_log import AuditEntry
from src.marketplace.entities.notification import Notification, NotificationType
from src.marketplace.entities.profile import Profile, VerificationStatus
from src.marketplace.entities.verification_request import (
    RequestStatus,
    VerificationRequest,
)


class VerificationStateMachine:
    """Allowed profile verification transitions, keyed by (state, action)."""

    TRANSITIONS = {
        (VerificationStatus.NOT_VERIFIED, "submit"): VerificationStatus.PENDING,
        (VerificationStatus.REJECTED, "submit"): VerificationStatus.PENDING,
        (VerificationStatus.PENDING, "approve"): VerificationStatus.VERIFIED,
        (VerificationStatus.PENDING, "reject"): VerificationStatus.REJECTED,
        (VerificationStatus.VERIFIED, "unverify"): VerificationStatus.NOT_VERIFIED,
    }

    DECISIONS = {
        "approve": RequestStatus.VERIFIED,
        "reject": RequestStatus.REJECTED,
    }

    def can_transition(
        self, current: VerificationStatus, action: str
    ) -> tuple[bool, str | None]:
        if (current, action) not in self.TRANSITIONS:
            return False, f"Cannot {action} while verification is {current.value}"
        return True, None

    def transition(self, current: VerificationStatus, action: str) -> VerificationStatus:
        """Return the next state or raise ConflictOrStale for a disallowed move."""
        allowed, error = self.can_transition(current, action)
        if not allowed:
            raise ConflictOrStale(error, {"state": current.value, "action": action})
        return self.TRANSITIONS[(current, action)]

    def available_actions(self, current: VerificationStatus) -> list[str]:
        return [action for (state, action) in self.TRANSITIONS if state == current]

    def decision_for(self, action: str) -> RequestStatus:
        try:
            return self.DECISIONS[action]
        except KeyError:
            raise ValidationFailed(
                "Decision must be 'approve' or 'reject'", {"decision": action}
            ) from None


def _review_notification(request: VerificationRequest) -> Notification:
    if request.status == RequestStatus.VERIFIED:
        return Notification(
            user_id=request.user_id,
            title="Verification Approved",
            message="Your account has been verified. Your active services are now publicly listed.",
            type=NotificationType.SUCCESS,
        )
    message = "Your verification request was not approved."
    if request.reviewer_notes:
        message = f"{message} Reviewer notes: {request.reviewer_notes}"
    return Notification(
        user_id=request.user_id,
        title="Verification Rejected",
        message=message,
        type=NotificationType.WARNING,
    )


class VerificationWorkflow:
    """Submission, review and forced unverification of user identities."""

    def __init__(self, store: MarketplaceStore) -> None:
        self._store = store
        self._machine = VerificationStateMachine()

    @property
    def machine(self) -> VerificationStateMachine:
        return self._machine

    async def require_admin(self, admin_id: str | None) -> Profile:
        """Re-read the caller's profile and insist on the admin role."""
        if not admin_id:
            raise AuthenticationRequired()
        try:
            caller = await self._store.read_profile(admin_id)
        except NotFound:
            raise AuthenticationRequired("Your account no longer exists") from None
        if not caller.is_admin:
            logger.warning("Admin action denied", actor=admin_id, role=str(caller.role))
            raise AuthorizationDenied(
                "Administrator role required", {"required_role": "admin"}
            )
        return caller

    async def submit_verification(
        self,
        session: CallerSession | None,
        user_id: str,
        full_name: str | None,
        phone: str | None,
        additional_info: str | None = None,
        id_document_url: str | None = None,
    ) -> VerificationRequest:
        """Create a pending request for ``user_id`` (owner only)."""
        if session is None or not session.is_authenticated:
            raise AuthenticationRequired()
        if session.user_id != user_id:
            raise AuthorizationDenied("Only the account owner can submit verification")

        request = VerificationRequest(
            user_id=user_id,
            full_name=require_text(full_name, "full_name"),
            phone=require_text(phone, "phone"),
            additional_info=(additional_info or "").strip() or None,
            id_document_url=id_document_url,
        )

        profile = await self._store.read_profile(user_id)
        self._machine.transition(profile.verification_status, "submit")

        notification = Notification(
            user_id=user_id,
            title="Verification Submitted",
            message="Your verification request has been submitted and is under review.",
            type=NotificationType.INFO,
        )
        created = await self._store.insert_verification_request(request, notification)
        logger.info(
            "Verification submitted",
            actor=user_id,
            request_id=created.id,
            transition=f"{profile.verification_status.value}->pending",
        )
        return created

    async def review_verification(
        self,
        admin_id: str | None,
        request_id: str,
        decision: str,
        notes: str | None = None,
    ) -> VerificationRequest:
        """Approve or reject a pending request.

        A second review of the same request raises ConflictOrStale and leaves
        the recorded reviewer and notes untouched.
        """
        await self.require_admin(admin_id)
        outcome = self._machine.decision_for(decision)
        profile_status = self._machine.TRANSITIONS[(VerificationStatus.PENDING, decision)]
        notes = (notes or "").strip() or None

        request = await self._store.apply_review(
            request_id,
            admin_id,
            outcome,
            notes,
            profile_status,
            notification_factory=_review_notification,
            audit_factory=lambda req: AuditEntry(
                admin_id=admin_id,
                action=f"verification.{decision}",
                target_id=req.user_id,
                reason=notes,
                details=f"request={req.id}",
            ),
        )
        logger.info(
            "Verification reviewed",
            actor=admin_id,
            target=request.user_id,
            request_id=request.id,
            transition=f"pending->{profile_status.value}",
        )
        return request

    async def review_pending_for_user(
        self,
        admin_id: str | None,
        user_id: str,
        decision: str,
        notes: str | None = None,
    ) -> VerificationRequest:
        """Review whatever request ``user_id`` currently has pending.

        If that request is closed before the review lands (the user resubmitted
        after another admin rejected it), the pending request is looked up
        again and reviewed once more.
        """
        await self.require_admin(admin_id)
        self._machine.decision_for(decision)
        pending: VerificationRequest | None = None

        async def find_pending() -> None:
            nonlocal pending
            pending = await self._store.pending_verification_request(user_id)
            if pending is None:
                # Surface a missing user before a missing request
                await self._store.read_profile(user_id)
                raise ConflictOrStale(
                    "This user has no pending verification request", {"user_id": user_id}
                )

        async def review() -> VerificationRequest:
            return await self.review_verification(admin_id, pending.id, decision, notes)

        await find_pending()
        return await retry_on_conflict(review, find_pending)

    async def unverify_user(
        self, admin_id: str | None, user_id: str, reason: str | None
    ) -> Profile:
        """Force a verified user back to ``not_verified`` and tell them why."""
        await self.require_admin(admin_id)
        reason = require_text(reason, "reason")

        notification = Notification(
            user_id=user_id,
            title="Verification Revoked",
            message=f"Your verification has been removed by an administrator. Reason: {reason}",
            type=NotificationType.ERROR,
        )
        audit = AuditEntry(
            admin_id=admin_id, action="verification.unverify", target_id=user_id, reason=reason
        )
        profile = await self._store.apply_unverify(
            user_id, notification, audit, admin_id=admin_id
        )
        logger.info(
            "User unverified",
            actor=admin_id,
            target=user_id,
            transition="verified->not_verified",
        )
        return profile

    async def latest_request(
        self, session: CallerSession | None
    ) -> VerificationRequest | None:
        if session is None or not session.is_authenticated:
            raise AuthenticationRequired()
        return await self._store.latest_verification_request(session.user_id)
