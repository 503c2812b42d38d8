"""Change feed event model."""

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from src.marketplace.entities._base import utc_now


class ChangeTable(StrEnum):
    PROFILES = "profiles"
    VERIFICATION_REQUESTS = "verification_requests"
    SERVICE_LISTINGS = "service_listings"
    NOTIFICATIONS = "notifications"


class ChangeOperation(StrEnum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class ChangeEvent(BaseModel):
    """Notice that a row changed. Carries no row contents; receivers re-fetch."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    table: ChangeTable
    operation: ChangeOperation
    record_id: str
    owner_id: str | None = Field(
        default=None, description="User the row belongs to, used for scoping"
    )
    occurred_at: datetime = Field(default_factory=utc_now)
