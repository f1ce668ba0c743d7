"""Database management CLI commands (thin wrappers around Alembic)."""

import subprocess
import sys

import typer
from rich.console import Console

console = Console()
app = typer.Typer(help="Database management commands")


def run_alembic(*args: str) -> int:
    """Run an Alembic command in a subprocess and return its exit code."""
    result = subprocess.run(
        [sys.executable, "-m", "alembic", *args],
        check=False, capture_output=False,
    )
    return result.returncode


def run_or_exit(args: list[str], done: str, failed: str) -> None:
    if run_alembic(*args) == 0:
        console.print(f"[green]{done}[/green]")
    else:
        console.print(f"[red]{failed}[/red]")
        raise typer.Exit(1)


@app.command("migrate")
def migrate(
    revision: str = typer.Argument("head", help="Target revision (default: head)"),
):
    """Apply migrations up to the given revision."""
    console.print(f"[dim]Running migrations to {revision}...[/dim]")
    run_or_exit(["upgrade", revision], "Migrations complete!", "Migration failed!")


@app.command("rollback")
def rollback(
    revision: str = typer.Argument("-1", help="Target revision (default: -1 for one step back)"),
):
    """Revert migrations down to the given revision."""
    console.print(f"[dim]Rolling back to {revision}...[/dim]")
    run_or_exit(["downgrade", revision], "Rollback complete!", "Rollback failed!")


@app.command("current")
def current():
    """Show the revision the identity store is at."""
    run_alembic("current")


@app.command("history")
def history(
    limit: int = typer.Option(10, "--limit", "-l", help="Number of revisions to show"),
):
    """Show migration history."""
    run_alembic("history", f"-r-{limit}:")


@app.command("reset")
def reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Drop every auth table and migrate again.

    WARNING: This deletes all users, sessions and credentials!
    """
    if not force:
        console.print("[bold red]WARNING:[/bold red] This will delete ALL users and sessions!")
        if not typer.confirm("Are you sure you want to continue?"):
            console.print("[dim]Cancelled[/dim]")
            raise typer.Exit(0)

    console.print("[dim]Dropping all tables...[/dim]")
    if run_alembic("downgrade", "base") != 0:
        console.print("[red]Failed to drop tables![/red]")
        raise typer.Exit(1)

    console.print("[dim]Re-running migrations...[/dim]")
    run_or_exit(["upgrade", "head"], "Database reset complete!", "Migration failed!")


@app.command("create-migration")
def create_migration(
    message: str = typer.Argument(..., help="Migration message"),
    autogenerate: bool = typer.Option(True, "--autogenerate/--no-autogenerate", help="Auto-detect model changes"),
):
    """Create a new migration."""
    console.print(f"[dim]Creating migration: {message}[/dim]")
    args = ["revision", "-m", message]
    if autogenerate:
        args.append("--autogenerate")
    run_or_exit(args, "Migration created!", "Failed to create migration!")
