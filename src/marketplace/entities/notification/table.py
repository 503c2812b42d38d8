"""Notification database table model."""

from sqlmodel import Field

from src.marketplace.entities._base import EntityTable


class NotificationTable(EntityTable, table=True):
    __tablename__ = "notifications"

    user_id: str = Field(index=True)
    title: str
    message: str
    type: str = Field(default="info")
    read: bool = Field(default=False, index=True)
