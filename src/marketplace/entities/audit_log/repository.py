from sqlmodel import Session, select

from src.marketplace.entities.audit_log.entity import AuditEntry
from src.marketplace.entities.audit_log.table import AuditEntryTable


class AuditEntryRepository:
    """Append-only access to the admin audit log."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, entry: AuditEntry) -> AuditEntry:
        self._session.add(AuditEntryTable.model_validate(entry.model_dump()))
        self._session.flush()
        return entry

    def list_for_target(self, target_id: str) -> list[AuditEntry]:
        statement = (
            select(AuditEntryTable)
            .where(AuditEntryTable.target_id == target_id)
            .order_by(AuditEntryTable.created_at)
        )
        rows = self._session.exec(statement).all()
        return [AuditEntry.model_validate(row, from_attributes=True) for row in rows]

    def list_all(self, limit: int = 100) -> list[AuditEntry]:
        statement = (
            select(AuditEntryTable).order_by(AuditEntryTable.created_at.desc()).limit(limit)
        )
        rows = self._session.exec(statement).all()
        return [AuditEntry.model_validate(row, from_attributes=True) for row in rows]
