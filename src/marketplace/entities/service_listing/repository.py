from sqlalchemy import delete, func
from sqlmodel import Session, select

from src.marketplace.entities.profile.table import ProfileTable
from src.marketplace.entities.service_listing.entity import ContactInfo, ServiceListing
from src.marketplace.entities.service_listing.table import ServiceListingTable


def _to_entity(row: ServiceListingTable) -> ServiceListing:
    return ServiceListing(
        id=row.id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        user_id=row.user_id,
        service_name=row.service_name,
        category=row.category,
        description=row.description,
        location=row.location,
        contact_info=ContactInfo(phone=row.contact_phone, email=row.contact_email),
        is_active=row.is_active,
    )


class ServiceListingRepository:
    """Data-access layer for service listings."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, listing_id: str) -> ServiceListing | None:
        row = self._session.get(ServiceListingTable, listing_id)
        if row is None:
            return None
        return _to_entity(row)

    def create(self, listing: ServiceListing) -> ServiceListing:
        contact = listing.contact_info or ContactInfo()
        row = ServiceListingTable(
            id=listing.id,
            created_at=listing.created_at,
            updated_at=listing.updated_at,
            user_id=listing.user_id,
            service_name=listing.service_name,
            category=listing.category,
            description=listing.description,
            location=listing.location,
            contact_phone=contact.phone,
            contact_email=contact.email,
            is_active=listing.is_active,
        )
        self._session.add(row)
        self._session.flush()
        return listing

    def list_for_user(self, user_id: str) -> list[ServiceListing]:
        statement = select(ServiceListingTable).where(
            ServiceListingTable.user_id == user_id
        )
        return [_to_entity(row) for row in self._session.exec(statement).all()]

    def list_public(self) -> list[ServiceListing]:
        """Active listings whose owner is currently verified."""
        statement = (
            select(ServiceListingTable)
            .join(ProfileTable, ProfileTable.id == ServiceListingTable.user_id)
            .where(ServiceListingTable.is_active == True)  # noqa: E712
            .where(ProfileTable.verification_status == "verified")
            .order_by(ServiceListingTable.created_at.desc())
        )
        return [_to_entity(row) for row in self._session.exec(statement).all()]

    def count_active(self) -> int:
        statement = (
            select(func.count())
            .select_from(ServiceListingTable)
            .where(ServiceListingTable.is_active == True)  # noqa: E712
        )
        return self._session.exec(statement).one()

    def ids_for_user(self, user_id: str) -> list[str]:
        statement = select(ServiceListingTable.id).where(
            ServiceListingTable.user_id == user_id
        )
        return list(self._session.exec(statement).all())

    def delete_for_user(self, user_id: str) -> int:
        statement = delete(ServiceListingTable).where(
            ServiceListingTable.user_id == user_id
        )
        return self._session.exec(statement).rowcount
