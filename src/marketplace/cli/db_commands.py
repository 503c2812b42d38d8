"""Database setup, bootstrap and reporting commands."""

from pathlib import Path

import typer
from dotenv import set_key
from rich.console import Console
from rich.table import Table

from src.marketplace.core.services.database.db_session import DbSessionService
from src.marketplace.entities._base import utc_now
from src.marketplace.entities.profile import (
    Profile,
    ProfileRepository,
    ProfileTable,
    Role,
    SubscriptionPlan,
    VerificationStatus,
)
from src.marketplace.entities.service_listing import ServiceListingRepository
from src.marketplace.entities.verification_request import (
    RequestStatus,
    VerificationRequestRepository,
)
from src.marketplace.runtime.init_db import init_db

console = Console()


def init_db_command() -> None:
    """Create all tables in the configured database."""
    init_db()
    console.print("[green]✅ Database tables created[/green]")


def seed_admin_account(db: DbSessionService, name: str, email: str) -> tuple[Profile, bool]:
    """Create an admin account, or promote the existing account with this email.

    Returns the profile and whether anything changed.
    """
    email = email.strip().lower()
    with db.session_scope() as session:
        profiles = ProfileRepository(session)
        existing = profiles.get_by_email(email)
        if existing is None:
            created = profiles.create(Profile(name=name, email=email, role=Role.ADMIN))
            return created, True
        if existing.role == Role.ADMIN:
            return existing, False
        profiles.update_fields(existing.id, {"role": Role.ADMIN})
        return profiles.get(existing.id), True


def seed_admin(
    email: str = typer.Option(..., "--email", "-e", help="Email address of the admin account"),
    name: str = typer.Option("Administrator", "--name", "-n", help="Display name"),
    protected: bool = typer.Option(
        False, "--protected", help="Record the account as the protected super-account in .env"
    ),
    env_file: Path = typer.Option(Path(".env"), "--env-file", help="Env file for --protected"),
) -> None:
    """Create the first admin account, or promote an existing one."""
    init_db()
    profile, changed = seed_admin_account(DbSessionService(), name, email)
    if changed:
        console.print(f"[green]✅ Admin account ready: {profile.email}[/green]")
    else:
        console.print(f"[yellow]{profile.email} is already an admin[/yellow]")
    console.print(f"  id: [cyan]{profile.id}[/cyan]")

    if protected:
        env_file.touch(exist_ok=True)
        set_key(str(env_file), "PROTECTED_ACCOUNT_ID", profile.id)
        console.print(f"  PROTECTED_ACCOUNT_ID written to [cyan]{env_file}[/cyan]")


def stats() -> None:
    """Print user, verification, listing and subscription totals."""
    now = utc_now()
    with DbSessionService().session_scope() as session:
        profiles = ProfileRepository(session)
        by_role = profiles.count_by_role()
        rows = [
            ("Users", sum(by_role.values())),
            ("Seekers", by_role.get(Role.SEEKER.value, 0)),
            ("Providers", by_role.get(Role.PROVIDER.value, 0)),
            ("Admins", by_role.get(Role.ADMIN.value, 0)),
            (
                "Pending verifications",
                VerificationRequestRepository(session).count(RequestStatus.PENDING),
            ),
            (
                "Verified users",
                profiles.count_where(
                    ProfileTable.verification_status == VerificationStatus.VERIFIED
                ),
            ),
            ("Active listings", ServiceListingRepository(session).count_active()),
            (
                "Active subscriptions",
                profiles.count_where(
                    ProfileTable.subscription_plan != SubscriptionPlan.FREE,
                    ProfileTable.subscription_expiry > now,
                ),
            ),
        ]

    table = Table(title="Marketplace")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")
    for label, value in rows:
        table.add_row(label, str(value))
    console.print(table)
