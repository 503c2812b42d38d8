"""Entity package: ServiceListing."""

from .entity import ContactInfo, ServiceListing
from .repository import ServiceListingRepository
from .table import ServiceListingTable

__all__ = [
    "ContactInfo",
    "ServiceListing",
    "ServiceListingRepository",
    "ServiceListingTable",
]
