"""Entity: Notification."""

from enum import StrEnum

from pydantic import Field

from src.marketplace.entities._base import Entity


class NotificationType(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notification(Entity):
    """A message addressed to one user."""

    user_id: str = Field(description="Recipient")
    title: str
    message: str
    type: NotificationType = Field(default=NotificationType.INFO)
    read: bool = Field(default=False)
