"""Entity: ServiceListing."""

from pydantic import BaseModel, Field

from src.marketplace.entities._base import Entity


class ContactInfo(BaseModel):
    """Private contact details of a listing."""

    phone: str | None = None
    email: str | None = None


class ServiceListing(Entity):
    """A service offered by a provider.

    ``contact_info`` is private: it only leaves the service layer for callers
    that pass the entitlement check.
    """

    user_id: str = Field(description="Owning provider")
    service_name: str = Field(description="Name")
    category: str | None = Field(default=None)
    description: str | None = Field(default=None)
    location: str | None = Field(default=None)
    contact_info: ContactInfo | None = Field(default_factory=ContactInfo)
    is_active: bool = Field(default=True)

    def redacted(self) -> "ServiceListing":
        return self.model_copy(update={"contact_info": None})
