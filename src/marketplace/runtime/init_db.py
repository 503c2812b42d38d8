"""Database initialization script."""

from loguru import logger
from sqlmodel import SQLModel

from src.marketplace.core.services.database.db_session import DbSessionService


def register_tables() -> None:
    """Import every table model so that it is attached to the shared metadata."""
    from src.marketplace.entities.audit_log import AuditEntryTable  # noqa: F401
    from src.marketplace.entities.notification import NotificationTable  # noqa: F401
    from src.marketplace.entities.profile import ProfileTable  # noqa: F401
    from src.marketplace.entities.service_listing import ServiceListingTable  # noqa: F401
    from src.marketplace.entities.verification_request import (  # noqa: F401
        VerificationRequestTable,
    )


def init_db(db_service: DbSessionService | None = None) -> None:
    """Create all database tables."""
    register_tables()
    db_service = db_service or DbSessionService()
    SQLModel.metadata.create_all(db_service.engine)
    logger.info("Database initialized with tables.")


if __name__ == "__main__":
    init_db()
