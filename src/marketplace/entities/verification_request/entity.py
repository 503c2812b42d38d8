"""Verification request domain entity."""

from datetime import datetime
from enum import StrEnum

from pydantic import Field, model_validator

from src.marketplace.entities._base import Entity, utc_now


class RequestStatus(StrEnum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING


class VerificationRequest(Entity):
    """A user's submission for identity review and its disposition.

    A terminal status and ``reviewed_by`` are always written together.
    """

    user_id: str = Field(description="Owner of the request")
    full_name: str = Field(description="Legal name as submitted")
    phone: str = Field(description="Phone number as submitted")
    additional_info: str | None = Field(default=None)
    id_document_url: str | None = Field(default=None)

    status: RequestStatus = Field(default=RequestStatus.PENDING)
    submitted_at: datetime = Field(default_factory=utc_now)
    reviewed_by: str | None = Field(default=None)
    reviewer_notes: str | None = Field(default=None)
    reviewed_at: datetime | None = Field(default=None)

    @model_validator(mode="after")
    def _review_fields_together(self) -> "VerificationRequest":
        if self.status.is_terminal and self.reviewed_by is None:
            raise ValueError("a reviewed request must name its reviewer")
        return self
