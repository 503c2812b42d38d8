"""`marketplace` command line: schema, admin bootstrap, stats and user tools."""

import typer

from .db_commands import init_db_command, seed_admin, stats
from .user_commands import users_app

app = typer.Typer(
    help="Marketplace operations CLI",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("init-db")(init_db_command)
app.command("seed-admin")(seed_admin)
app.command("stats")(stats)
app.add_typer(users_app, name="users")


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address (defaults to config)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port (defaults to config)"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from src.marketplace.runtime.context import get_config

    config = get_config()
    uvicorn.run(
        "src.marketplace.api.http.app:get_app",
        factory=True,
        host=host or config.app.host,
        port=port or config.app.port,
        access_log=False,
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
