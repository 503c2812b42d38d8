"""ServiceListing database table model."""

from sqlmodel import Field

from src.marketplace.entities._base import EntityTable


class ServiceListingTable(EntityTable, table=True):
    __tablename__ = "service_listings"

    user_id: str = Field(index=True)
    service_name: str
    category: str | None = None
    description: str | None = None
    location: str | None = None
    contact_phone: str | None = None
    contact_email: str | None = None
    is_active: bool = Field(default=True, index=True)
