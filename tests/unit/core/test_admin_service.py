"""Unit tests for the admin action surface."""

import pytest

from src.marketplace.core.errors import (
    AuthenticationRequired,
    AuthorizationDenied,
    ConflictOrStale,
    NotFound,
    ValidationFailed,
)
from src.marketplace.entities.notification import NotificationType
from src.marketplace.entities.profile import Role, VerificationStatus
from src.marketplace.entities.verification_request import RequestStatus


class TestProtectedAccount:
    """The protected super-account cannot be demoted or deleted by anyone."""

    @pytest.mark.asyncio
    async def test_role_change_refused_for_every_caller(
        self, admin_service, store, protected_admin, admin, seeker
    ):
        for caller in (admin.id, protected_admin.id, seeker.id, None):
            with pytest.raises(AuthorizationDenied):
                await admin_service.change_role(caller, protected_admin.id, "seeker", "test")

        profile = await store.read_profile(protected_admin.id)
        assert profile.role == Role.ADMIN

    @pytest.mark.asyncio
    async def test_deletion_refused_for_every_caller(
        self, admin_service, store, feed, protected_admin, admin
    ):
        for caller in (admin.id, protected_admin.id):
            with pytest.raises(AuthorizationDenied):
                await admin_service.delete_user(caller, protected_admin.id, "cleanup")

        assert (await store.read_profile(protected_admin.id)).id == protected_admin.id
        assert feed.published == []

    def test_is_protected(self, admin_service, protected_admin, admin):
        assert admin_service.is_protected(protected_admin.id) is True
        assert admin_service.is_protected(admin.id) is False


class TestChangeRole:
    @pytest.mark.asyncio
    async def test_admin_can_promote_with_reason(self, admin_service, store, admin, seeker):
        profile = await admin_service.change_role(admin.id, seeker.id, "provider", "Offers services")

        assert profile.role == Role.PROVIDER
        entries = await admin_service.audit_log(admin.id, seeker.id)
        assert entries[0].action == "user.change_role"
        assert entries[0].reason == "Offers services"
        assert entries[0].details == "seeker->provider"

    @pytest.mark.asyncio
    async def test_non_admin_is_denied_without_effect(
        self, admin_service, store, provider, seeker
    ):
        with pytest.raises(AuthorizationDenied):
            await admin_service.change_role(provider.id, seeker.id, "admin", "please")
        assert (await store.read_profile(seeker.id)).role == Role.SEEKER

    @pytest.mark.asyncio
    async def test_reason_and_role_are_validated(self, admin_service, admin, seeker):
        with pytest.raises(ValidationFailed):
            await admin_service.change_role(admin.id, seeker.id, "provider", "")
        with pytest.raises(ValidationFailed):
            await admin_service.change_role(admin.id, seeker.id, "superuser", "why not")

    @pytest.mark.asyncio
    async def test_admin_cannot_demote_self(self, admin_service, admin):
        with pytest.raises(AuthorizationDenied):
            await admin_service.change_role(admin.id, admin.id, "seeker", "stepping down")

    @pytest.mark.asyncio
    async def test_demoted_admin_loses_access_immediately(
        self, admin_service, protected_admin, admin, seeker
    ):
        """Authorization is re-read on every call, not cached from an earlier check."""
        await admin_service.get_stats(admin.id)
        await admin_service.change_role(protected_admin.id, admin.id, "seeker", "rotation")

        with pytest.raises(AuthorizationDenied):
            await admin_service.get_stats(admin.id)

    @pytest.mark.asyncio
    async def test_missing_target_is_not_found(self, admin_service, admin):
        with pytest.raises(NotFound):
            await admin_service.change_role(admin.id, "nobody", "seeker", "gone")


class TestDeleteUser:
    @pytest.mark.asyncio
    async def test_delete_requires_reason(self, admin_service, store, admin, seeker):
        with pytest.raises(ValidationFailed):
            await admin_service.delete_user(admin.id, seeker.id, " ")
        assert (await store.read_profile(seeker.id)).id == seeker.id

    @pytest.mark.asyncio
    async def test_delete_removes_user_and_audits(self, admin_service, store, admin, seeker):
        counts = await admin_service.delete_user(admin.id, seeker.id, "Spam account")

        assert counts["profiles"] == 1
        with pytest.raises(NotFound):
            await store.read_profile(seeker.id)
        entries = await admin_service.audit_log(admin.id, seeker.id)
        assert entries[0].action == "user.delete"

    @pytest.mark.asyncio
    async def test_admin_cannot_delete_self(self, admin_service, admin):
        with pytest.raises(AuthorizationDenied):
            await admin_service.delete_user(admin.id, admin.id, "bye")

    @pytest.mark.asyncio
    async def test_unauthenticated_caller(self, admin_service, seeker):
        with pytest.raises(AuthenticationRequired):
            await admin_service.delete_user(None, seeker.id, "reason")


class TestVerificationActions:
    @pytest.mark.asyncio
    async def test_verify_acts_on_pending_request(
        self, admin_service, workflow, store, admin, seeker, as_caller
    ):
        await workflow.submit_verification(as_caller(seeker), seeker.id, "Sam", "555")

        request = await admin_service.verify(admin.id, seeker.id)

        assert request.status == RequestStatus.VERIFIED
        assert (await store.read_profile(seeker.id)).verification_status == (
            VerificationStatus.VERIFIED
        )

    @pytest.mark.asyncio
    async def test_reject_with_notes(
        self, admin_service, workflow, store, admin, seeker, as_caller
    ):
        await workflow.submit_verification(as_caller(seeker), seeker.id, "Sam", "555")

        request = await admin_service.reject(admin.id, seeker.id, "Illegible")

        assert request.reviewer_notes == "Illegible"

    @pytest.mark.asyncio
    async def test_verify_follows_a_resubmitted_request(
        self, admin_service, workflow, store, admin, seeker, as_caller, monkeypatch
    ):
        """A stale pending lookup is refreshed once and the new request is reviewed."""
        first = await workflow.submit_verification(as_caller(seeker), seeker.id, "Sam", "555")
        await workflow.review_verification(admin.id, first.id, "reject", "Blurry")
        second = await workflow.submit_verification(as_caller(seeker), seeker.id, "Sam", "555")

        lookups = [first]
        current_pending = store.pending_verification_request

        async def stale_then_current(user_id):
            return lookups.pop() if lookups else await current_pending(user_id)

        monkeypatch.setattr(store, "pending_verification_request", stale_then_current)

        request = await admin_service.verify(admin.id, seeker.id)

        assert request.id == second.id
        assert request.status == RequestStatus.VERIFIED
        stale = await store.run(lambda uow: uow.requests.get(first.id))
        assert stale.status == RequestStatus.REJECTED

    @pytest.mark.asyncio
    async def test_verify_without_pending_request_conflicts(self, admin_service, admin, seeker):
        with pytest.raises(ConflictOrStale):
            await admin_service.verify(admin.id, seeker.id)

    @pytest.mark.asyncio
    async def test_verify_unknown_user_is_not_found(self, admin_service, admin):
        with pytest.raises(NotFound):
            await admin_service.verify(admin.id, "nobody")


class TestAdminReads:
    @pytest.mark.asyncio
    async def test_stats_count_roles_and_pending(
        self, admin_service, workflow, admin, provider, seeker, as_caller
    ):
        await workflow.submit_verification(as_caller(seeker), seeker.id, "Sam", "555")

        stats = await admin_service.get_stats(admin.id)

        assert stats.total_users == 3
        assert (stats.seekers, stats.providers, stats.admins) == (1, 1, 1)
        assert stats.pending_verifications == 1
        assert stats.verified_users == 0
        assert stats.active_subscriptions == 0

    @pytest.mark.asyncio
    async def test_list_filters(self, admin_service, workflow, admin, provider, seeker, as_caller):
        await workflow.submit_verification(as_caller(seeker), seeker.id, "Sam", "555")

        providers = await admin_service.list_users(admin.id, "provider")
        pending = await admin_service.list_verification_requests(admin.id, "pending")

        assert [p.id for p in providers] == [provider.id]
        assert [r.user_id for r in pending] == [seeker.id]
        with pytest.raises(ValidationFailed):
            await admin_service.list_verification_requests(admin.id, "archived")

    @pytest.mark.asyncio
    async def test_send_message_notifies_target(self, admin_service, store, admin, seeker):
        notification = await admin_service.send_message(admin.id, seeker.id, "Please update")

        assert notification.type == NotificationType.INFO
        notices = await store.run(lambda uow: uow.notifications.list_for_user(seeker.id))
        assert notices[0].message == "Please update"

    @pytest.mark.asyncio
    async def test_send_message_to_missing_user(self, admin_service, admin):
        with pytest.raises(NotFound):
            await admin_service.send_message(admin.id, "nobody", "hello")


@pytest.fixture
def demote_after_check(workflow, store, monkeypatch):
    """Arm a hook that demotes the caller right after the up-front admin check passes."""

    def _arm() -> None:
        passed_check = workflow.require_admin

        async def check_then_demote(admin_id):
            caller = await passed_check(admin_id)
            await store.update_profile(admin_id, {"role": Role.SEEKER})
            return caller

        monkeypatch.setattr(workflow, "require_admin", check_then_demote)

    return _arm


class TestAdminDemotedMidAction:
    """The role is checked again in the transaction that writes."""

    @pytest.mark.asyncio
    async def test_review_is_refused(
        self, workflow, store, admin, seeker, as_caller, demote_after_check
    ):
        request = await workflow.submit_verification(as_caller(seeker), seeker.id, "Sam", "555")
        demote_after_check()

        with pytest.raises(AuthorizationDenied):
            await workflow.review_verification(admin.id, request.id, "approve")

        stored = await store.run(lambda uow: uow.requests.get(request.id))
        assert stored.status == RequestStatus.PENDING
        assert (await store.read_profile(seeker.id)).verification_status == (
            VerificationStatus.PENDING
        )

    @pytest.mark.asyncio
    async def test_unverify_is_refused(
        self, workflow, store, admin, seeker, as_caller, demote_after_check
    ):
        request = await workflow.submit_verification(as_caller(seeker), seeker.id, "Sam", "555")
        await workflow.review_verification(admin.id, request.id, "approve")
        demote_after_check()

        with pytest.raises(AuthorizationDenied):
            await workflow.unverify_user(admin.id, seeker.id, "Fraud")

        assert (await store.read_profile(seeker.id)).verification_status == (
            VerificationStatus.VERIFIED
        )

    @pytest.mark.asyncio
    async def test_role_change_is_refused(
        self, admin_service, store, admin, seeker, demote_after_check
    ):
        demote_after_check()

        with pytest.raises(AuthorizationDenied):
            await admin_service.change_role(admin.id, seeker.id, "provider", "Offers services")

        assert (await store.read_profile(seeker.id)).role == Role.SEEKER
        assert await store.run(lambda uow: uow.audit.list_for_target(seeker.id)) == []

    @pytest.mark.asyncio
    async def test_delete_is_refused(
        self, admin_service, store, admin, seeker, demote_after_check
    ):
        demote_after_check()

        with pytest.raises(AuthorizationDenied):
            await admin_service.delete_user(admin.id, seeker.id, "spam")

        assert (await store.read_profile(seeker.id)).id == seeker.id

    @pytest.mark.asyncio
    async def test_message_is_refused(
        self, admin_service, store, admin, seeker, demote_after_check
    ):
        demote_after_check()

        with pytest.raises(AuthorizationDenied):
            await admin_service.send_message(admin.id, seeker.id, "hello")

        assert await store.run(lambda uow: uow.notifications.list_for_user(seeker.id)) == []
