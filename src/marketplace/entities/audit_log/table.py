"""AuditEntry database table model."""

from sqlmodel import Field

from src.marketplace.entities._base import EntityTable


class AuditEntryTable(EntityTable, table=True):
    """Audit rows outlive the users they mention: no foreign keys."""

    __tablename__ = "admin_audit_log"

    admin_id: str = Field(index=True)
    action: str
    target_id: str = Field(index=True)
    reason: str | None = None
    details: str | None = None
