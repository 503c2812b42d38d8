"""Profile database table model."""

from datetime import datetime

from sqlmodel import Field

from src.marketplace.entities._base import EntityTable, UTCDateTime


class ProfileTable(EntityTable, table=True):
    """Database persistence model for profiles.

    ``is_verified`` has no column: it is derived from ``verification_status``.
    """

    __tablename__ = "profiles"

    name: str
    email: str = Field(index=True, unique=True)
    phone: str | None = None
    address: str | None = None
    profile_image_url: str | None = None

    role: str = Field(default="seeker", index=True)
    verification_status: str = Field(default="not_verified", index=True)
    subscription_plan: str = Field(default="free")
    subscription_expiry: datetime | None = Field(default=None, sa_type=UTCDateTime)
    can_access_contact: bool = Field(default=False)
