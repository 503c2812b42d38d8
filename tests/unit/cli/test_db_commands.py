"""Unit tests for the admin bootstrap command."""

from src.marketplace.cli.db_commands import seed_admin_account
from src.marketplace.entities.profile import ProfileRepository, Role
from tests.fixtures.services import seed_profile


class TestSeedAdminAccount:
    def test_creates_admin(self, db_service):
        profile, changed = seed_admin_account(db_service, "Root", " Root@Example.com ")

        assert changed is True
        assert profile.role == Role.ADMIN
        assert profile.email == "root@example.com"

    def test_promotes_existing_account(self, db_service):
        existing = seed_profile(db_service, name="Sam", email="sam@example.com")

        profile, changed = seed_admin_account(db_service, "Ignored", "sam@example.com")

        assert changed is True
        assert profile.id == existing.id
        assert profile.name == "Sam"
        with db_service.session_scope() as session:
            assert ProfileRepository(session).get(existing.id).role == Role.ADMIN

    def test_is_idempotent(self, db_service):
        first, _ = seed_admin_account(db_service, "Root", "root@example.com")
        second, changed = seed_admin_account(db_service, "Root", "root@example.com")

        assert changed is False
        assert second.id == first.id
