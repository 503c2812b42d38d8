"""Service listings.

Public listings have their contact details stripped unless the caller is
currently entitled; the contact endpoint re-checks on every call.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.marketplace.api.http.deps import get_caller, get_listing_service, require_caller
from src.marketplace.core.models.session import CallerSession
from src.marketplace.core.services import ListingService
from src.marketplace.entities.service_listing import ContactInfo, ServiceListing

router = APIRouter(prefix="/listings", tags=["listings"])


class ListingCreate(BaseModel):
    service_name: str | None = None
    category: str | None = None
    description: str | None = None
    location: str | None = None
    contact_info: ContactInfo | None = None
    is_active: bool = True


@router.get("")
async def list_listings(
    caller: CallerSession | None = Depends(get_caller),
    listings: ListingService = Depends(get_listing_service),
) -> list[ServiceListing]:
    return await listings.list_public(caller)


@router.get("/mine")
async def list_my_listings(
    caller: CallerSession = Depends(require_caller),
    listings: ListingService = Depends(get_listing_service),
) -> list[ServiceListing]:
    return await listings.list_own(caller)


@router.post("", status_code=201)
async def create_listing(
    body: ListingCreate,
    caller: CallerSession = Depends(require_caller),
    listings: ListingService = Depends(get_listing_service),
) -> ServiceListing:
    fields = body.model_dump()
    return await listings.create_listing(caller, fields)


@router.get("/{listing_id}/contact")
async def reveal_contact(
    listing_id: str,
    caller: CallerSession | None = Depends(get_caller),
    listings: ListingService = Depends(get_listing_service),
) -> ContactInfo:
    return await listings.reveal_contact(caller, listing_id)
