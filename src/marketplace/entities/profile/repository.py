from collections.abc import Iterable
from typing import Any

from sqlalchemy import func, update
from sqlmodel import Session, select

from src.marketplace.entities.profile.entity import Profile
from src.marketplace.entities.profile.table import ProfileTable


class ProfileRepository:
    """Data-access layer for profiles."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, profile_id: str) -> Profile | None:
        row = self._session.get(ProfileTable, profile_id)
        if row is None:
            return None
        return Profile.model_validate(row, from_attributes=True)

    def get_by_email(self, email: str) -> Profile | None:
        statement = select(ProfileTable).where(ProfileTable.email == email)
        row = self._session.exec(statement).first()
        if row is None:
            return None
        return Profile.model_validate(row, from_attributes=True)

    def create(self, profile: Profile) -> Profile:
        row = ProfileTable.model_validate(
            profile.model_dump(exclude={"is_verified"})
        )
        self._session.add(row)
        self._session.flush()
        return profile

    def update_fields(
        self,
        profile_id: str,
        fields: dict[str, Any],
        expected_status: Iterable[str] | None = None,
    ) -> bool:
        """Update columns in one statement.

        With ``expected_status`` the update only applies when the current
        verification status is one of the given values (compare-and-set).
        Returns whether a row was changed.
        """
        statement = update(ProfileTable).where(ProfileTable.id == profile_id)
        if expected_status is not None:
            statement = statement.where(
                ProfileTable.verification_status.in_(list(expected_status))
            )
        result = self._session.exec(statement.values(**fields))
        return result.rowcount == 1

    def delete(self, profile_id: str) -> bool:
        row = self._session.get(ProfileTable, profile_id)
        if row is None:
            return False
        self._session.delete(row)
        self._session.flush()
        return True

    def list_all(self, role: str | None = None) -> list[Profile]:
        statement = select(ProfileTable).order_by(ProfileTable.created_at.desc())
        if role is not None:
            statement = statement.where(ProfileTable.role == role)
        rows = self._session.exec(statement).all()
        return [Profile.model_validate(row, from_attributes=True) for row in rows]

    def count_by_role(self) -> dict[str, int]:
        statement = select(ProfileTable.role, func.count()).group_by(ProfileTable.role)
        return {role: count for role, count in self._session.exec(statement).all()}

    def count_where(self, *conditions) -> int:
        statement = select(func.count()).select_from(ProfileTable)
        for condition in conditions:
            statement = statement.where(condition)
        return self._session.exec(statement).one()
