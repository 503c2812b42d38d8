from sqlalchemy import delete, func, update
from sqlmodel import Session, select

from src.marketplace.entities.notification.entity import Notification
from src.marketplace.entities.notification.table import NotificationTable


class NotificationRepository:
    """Data-access layer for notifications."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, notification_id: str) -> Notification | None:
        row = self._session.get(NotificationTable, notification_id)
        if row is None:
            return None
        return Notification.model_validate(row, from_attributes=True)

    def create(self, notification: Notification) -> Notification:
        self._session.add(NotificationTable.model_validate(notification.model_dump()))
        self._session.flush()
        return notification

    def list_for_user(
        self,
        user_id: str,
        type: str | None = None,
        read: bool | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> list[Notification]:
        statement = select(NotificationTable).where(NotificationTable.user_id == user_id)
        if type is not None:
            statement = statement.where(NotificationTable.type == type)
        if read is not None:
            statement = statement.where(NotificationTable.read == read)
        statement = (
            statement.order_by(NotificationTable.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        rows = self._session.exec(statement).all()
        return [Notification.model_validate(row, from_attributes=True) for row in rows]

    def count_unread(self, user_id: str) -> int:
        statement = (
            select(func.count())
            .select_from(NotificationTable)
            .where(NotificationTable.user_id == user_id)
            .where(NotificationTable.read == False)  # noqa: E712
        )
        return self._session.exec(statement).one()

    def mark_read(self, notification_id: str) -> bool:
        statement = (
            update(NotificationTable)
            .where(NotificationTable.id == notification_id)
            .values(read=True)
        )
        return self._session.exec(statement).rowcount == 1

    def mark_all_read(self, user_id: str) -> int:
        statement = (
            update(NotificationTable)
            .where(NotificationTable.user_id == user_id)
            .where(NotificationTable.read == False)  # noqa: E712
            .values(read=True)
        )
        return self._session.exec(statement).rowcount

    def delete_for_user(self, user_id: str) -> int:
        statement = delete(NotificationTable).where(NotificationTable.user_id == user_id)
        return self._session.exec(statement).rowcount
