"""Unit tests for the caller's notification inbox."""

import pytest

from src.marketplace.core.errors import AuthenticationRequired, NotFound, ValidationFailed
from src.marketplace.core.models.change_event import ChangeTable
from src.marketplace.entities.notification import NotificationType


@pytest.fixture
async def inbox(admin_service, admin, seeker):
    """Three admin messages addressed to the seeker."""
    for n in range(3):
        await admin_service.send_message(admin.id, seeker.id, f"Message {n}")
    return seeker


class TestListNotifications:
    @pytest.mark.asyncio
    async def test_pagination(self, notification_service, inbox, as_caller):
        session = as_caller(inbox)

        first = await notification_service.list_for_user(session, page=1, page_size=2)
        second = await notification_service.list_for_user(session, page=2, page_size=2)

        assert len(first) == 2
        assert len(second) == 1
        assert {n.id for n in first}.isdisjoint({n.id for n in second})

    @pytest.mark.asyncio
    async def test_filters(self, notification_service, inbox, as_caller):
        session = as_caller(inbox)

        assert len(await notification_service.list_for_user(session, type="info")) == 3
        assert await notification_service.list_for_user(session, type=NotificationType.ERROR) == []
        assert await notification_service.list_for_user(session, read=True) == []

    @pytest.mark.asyncio
    async def test_only_own_notifications(self, notification_service, inbox, provider, as_caller):
        assert await notification_service.list_for_user(as_caller(provider)) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [{"page": 0}, {"page_size": 0}, {"page_size": 101}, {"type": "urgent"}])
    async def test_invalid_arguments(self, notification_service, seeker, as_caller, kwargs):
        with pytest.raises(ValidationFailed):
            await notification_service.list_for_user(as_caller(seeker), **kwargs)

    @pytest.mark.asyncio
    async def test_requires_session(self, notification_service):
        with pytest.raises(AuthenticationRequired):
            await notification_service.list_for_user(None)


class TestMarkRead:
    @pytest.mark.asyncio
    async def test_mark_one_read(self, notification_service, feed, inbox, as_caller):
        session = as_caller(inbox)
        target = (await notification_service.list_for_user(session))[0]

        await notification_service.mark_read(session, target.id)

        assert await notification_service.unread_count(session) == 2
        assert feed.published[-1].table == ChangeTable.NOTIFICATIONS
        assert feed.published[-1].record_id == target.id

    @pytest.mark.asyncio
    async def test_someone_elses_notification_looks_missing(
        self, notification_service, inbox, provider, as_caller
    ):
        target = (await notification_service.list_for_user(as_caller(inbox)))[0]

        with pytest.raises(NotFound):
            await notification_service.mark_read(as_caller(provider), target.id)

        assert await notification_service.unread_count(as_caller(inbox)) == 3

    @pytest.mark.asyncio
    async def test_mark_all_read(self, notification_service, inbox, as_caller):
        session = as_caller(inbox)

        assert await notification_service.mark_all_read(session) == 3
        assert await notification_service.unread_count(session) == 0
        assert await notification_service.mark_all_read(session) == 0
