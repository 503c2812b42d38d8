from typing import Any

from sqlalchemy import delete, func, update
from sqlmodel import Session, select

from src.marketplace.entities.verification_request.entity import VerificationRequest
from src.marketplace.entities.verification_request.table import (
    VerificationRequestTable,
)


class VerificationRequestRepository:
    """Data-access layer for verification requests."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, request_id: str) -> VerificationRequest | None:
        row = self._session.get(VerificationRequestTable, request_id)
        if row is None:
            return None
        return VerificationRequest.model_validate(row, from_attributes=True)

    def create(self, request: VerificationRequest) -> VerificationRequest:
        self._session.add(VerificationRequestTable.model_validate(request.model_dump()))
        self._session.flush()
        return request

    def latest_for_user(self, user_id: str) -> VerificationRequest | None:
        statement = (
            select(VerificationRequestTable)
            .where(VerificationRequestTable.user_id == user_id)
            .order_by(VerificationRequestTable.submitted_at.desc())
        )
        row = self._session.exec(statement).first()
        if row is None:
            return None
        return VerificationRequest.model_validate(row, from_attributes=True)

    def pending_for_user(self, user_id: str) -> VerificationRequest | None:
        statement = (
            select(VerificationRequestTable)
            .where(VerificationRequestTable.user_id == user_id)
            .where(VerificationRequestTable.status == "pending")
            .order_by(VerificationRequestTable.submitted_at.desc())
        )
        row = self._session.exec(statement).first()
        if row is None:
            return None
        return VerificationRequest.model_validate(row, from_attributes=True)

    def compare_and_set(
        self, request_id: str, expected_status: str, fields: dict[str, Any]
    ) -> bool:
        """Apply ``fields`` only if the request is still in ``expected_status``."""
        statement = (
            update(VerificationRequestTable)
            .where(VerificationRequestTable.id == request_id)
            .where(VerificationRequestTable.status == expected_status)
            .values(**fields)
        )
        return self._session.exec(statement).rowcount == 1

    def list_all(self, status: str | None = None) -> list[VerificationRequest]:
        statement = select(VerificationRequestTable).order_by(
            VerificationRequestTable.submitted_at.desc()
        )
        if status is not None:
            statement = statement.where(VerificationRequestTable.status == status)
        rows = self._session.exec(statement).all()
        return [
            VerificationRequest.model_validate(row, from_attributes=True) for row in rows
        ]

    def count(self, status: str | None = None) -> int:
        statement = select(func.count()).select_from(VerificationRequestTable)
        if status is not None:
            statement = statement.where(VerificationRequestTable.status == status)
        return self._session.exec(statement).one()

    def ids_for_user(self, user_id: str) -> list[str]:
        statement = select(VerificationRequestTable.id).where(
            VerificationRequestTable.user_id == user_id
        )
        return list(self._session.exec(statement).all())

    def delete_for_user(self, user_id: str) -> int:
        statement = delete(VerificationRequestTable).where(
            VerificationRequestTable.user_id == user_id
        )
        return self._session.exec(statement).rowcount
