"""Verification request database table model."""

from datetime import datetime

from sqlmodel import Field

from src.marketplace.entities._base import EntityTable, UTCDateTime, utc_now


class VerificationRequestTable(EntityTable, table=True):
    __tablename__ = "verification_requests"

    user_id: str = Field(index=True)
    full_name: str
    phone: str
    additional_info: str | None = None
    id_document_url: str | None = None

    status: str = Field(default="pending", index=True)
    submitted_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    reviewed_by: str | None = None
    reviewer_notes: str | None = None
    reviewed_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
