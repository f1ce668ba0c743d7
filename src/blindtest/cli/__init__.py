"""CLI commands using Typer."""

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as package_version

import typer

from blindtest.cli.db import app as db_app
from blindtest.cli.sessions import app as sessions_app
from blindtest.cli.users import app as users_app

app = typer.Typer(name="blindtest", help="Blindtest auth CLI")

# Register sub-apps
app.add_typer(db_app, name="db")
app.add_typer(users_app, name="users")
app.add_typer(sessions_app, name="sessions")


@app.command()
def version():
    """Show version information."""
    try:
        current = package_version("blindtest")
    except PackageNotFoundError:
        current = "unknown"
    typer.echo(f"Blindtest v{current}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
):
    """Run the API server."""
    import uvicorn

    from blindtest.logging import get_uvicorn_log_config

    uvicorn.run(
        "blindtest.main:app",
        host=host,
        port=port,
        reload=reload,
        log_config=get_uvicorn_log_config(),
    )


if __name__ == "__main__":
    app()
