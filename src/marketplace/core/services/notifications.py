from __future__ import annotations

from loguru import logger

from src.marketplace.core.errors import AuthenticationRequired, NotFound, ValidationFailed
from src.marketplace.core.models.change_event import ChangeOperation, ChangeTable
from src.marketplace.core.models.session import CallerSession
from src.marketplace.core.services.store import MarketplaceStore, UnitOfWork
from src.marketplace.entities.notification import Notification, NotificationType

MAX_PAGE_SIZE = 100


def _caller_id(session: CallerSession | None) -> str:
    if session is None or not session.is_authenticated:
        raise AuthenticationRequired()
    return session.user_id


class NotificationService:
    """Read and acknowledge the caller's own notifications."""

    def __init__(self, store: MarketplaceStore) -> None:
        self._store = store

    async def list_for_user(
        self,
        session: CallerSession | None,
        type: NotificationType | str | None = None,
        read: bool | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> list[Notification]:
        user_id = _caller_id(session)
        if page < 1 or not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationFailed(
                f"page must be >= 1 and page_size between 1 and {MAX_PAGE_SIZE}",
                {"page": page, "page_size": page_size},
            )
        if type is not None:
            try:
                type = NotificationType(type)
            except ValueError:
                raise ValidationFailed("Unknown notification type", {"type": str(type)}) from None

        return await self._store.run(
            lambda uow: uow.notifications.list_for_user(
                user_id,
                type=type,
                read=read,
                offset=(page - 1) * page_size,
                limit=page_size,
            )
        )

    async def unread_count(self, session: CallerSession | None) -> int:
        user_id = _caller_id(session)
        return await self._store.run(lambda uow: uow.notifications.count_unread(user_id))

    async def mark_read(self, session: CallerSession | None, notification_id: str) -> None:
        user_id = _caller_id(session)

        def _mark(uow: UnitOfWork) -> None:
            notification = uow.notifications.get(notification_id)
            # Other users' notifications are indistinguishable from missing ones
            if notification is None or notification.user_id != user_id:
                raise NotFound("Notification not found", {"notification_id": notification_id})
            if uow.notifications.mark_read(notification_id):
                uow.changed(
                    ChangeTable.NOTIFICATIONS, ChangeOperation.UPDATE, notification_id, user_id
                )

        await self._store.run(_mark)

    async def mark_all_read(self, session: CallerSession | None) -> int:
        user_id = _caller_id(session)

        def _mark_all(uow: UnitOfWork) -> int:
            count = uow.notifications.mark_all_read(user_id)
            if count:
                uow.changed(ChangeTable.NOTIFICATIONS, ChangeOperation.UPDATE, user_id, user_id)
            return count

        count = await self._store.run(_mark_all)
        logger.debug("Marked {} notifications read", count, actor=user_id)
        return count
