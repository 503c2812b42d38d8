"""Read-only user inspection commands."""

import typer
from rich.console import Console
from rich.table import Table

from src.marketplace.core.services.database.db_session import DbSessionService
from src.marketplace.entities.profile import ProfileRepository, Role
from src.marketplace.runtime.context import get_config
from src.marketplace.runtime.settings import resolve_protected_account_id

console = Console()

users_app = typer.Typer(help="Inspect marketplace accounts")


@users_app.command("list")
def list_users(
    role: str | None = typer.Option(None, "--role", "-r", help="Only show this role"),
) -> None:
    """List accounts with their verification and subscription state."""
    if role is not None and role not in {r.value for r in Role}:
        console.print(f"[red]❌ Unknown role '{role}'[/red]")
        raise typer.Exit(code=1)

    with DbSessionService().session_scope() as session:
        profiles = ProfileRepository(session).list_all(role)

    if not profiles:
        console.print("[yellow]No users found[/yellow]")
        return

    protected_id = resolve_protected_account_id(get_config())
    table = Table(title="Users")
    table.add_column("ID", style="cyan")
    table.add_column("Email", style="blue")
    table.add_column("Role", style="magenta")
    table.add_column("Verification", style="green")
    table.add_column("Plan")
    table.add_column("Expires")

    for profile in profiles:
        expiry = profile.subscription_expiry
        table.add_row(
            profile.id + (" 🔒" if profile.id == protected_id else ""),
            profile.email,
            profile.role.value,
            profile.verification_status.value,
            profile.subscription_plan.value,
            f"{expiry:%Y-%m-%d}" if expiry else "-",
        )

    console.print(table)
    console.print(f"\n[green]Found {len(profiles)} users[/green]")
