"""User management CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from blindtest.database import get_session_context
from blindtest.services.auth import AuthService
from blindtest.services.credentials import PasswordStrategy
from blindtest.services.errors import AuthError
from blindtest.services.sessions import SessionIssuer
from blindtest.services.store import IdentityStore

console = Console()
app = typer.Typer(help="User management commands")


@app.command("list")
def list_users():
    """List all users."""

    async def _list():
        async with get_session_context() as session:
            users = await IdentityStore(session).list_users()

            table = Table(title="Users")
            table.add_column("ID", style="cyan")
            table.add_column("Email", style="green")
            table.add_column("Name")
            table.add_column("Verified", style="magenta")
            table.add_column("Created", style="dim")

            for user in users:
                verified = "[green]Yes[/green]" if user.email_verified else "No"
                created = user.created_at.strftime("%Y-%m-%d") if user.created_at else "-"
                table.add_row(user.id, user.email, user.name, verified, created)

            console.print(table)

    asyncio.run(_list())


@app.command("create")
def create_user(
    email: str = typer.Argument(..., help="User email"),
    name: str = typer.Option(..., "--name", "-n", help="Display name"),
    password: str = typer.Option(
        ..., prompt=True, hide_input=True, confirmation_prompt=True, help="Password"
    ),
):
    """Create a user with a password account."""

    async def _create():
        async with get_session_context() as session:
            store = IdentityStore(session)
            try:
                PasswordStrategy.check_policy(password)
                user = await store.create_user(email, name)
                await PasswordStrategy(store, SessionIssuer(store)).register(user, password)
                await store.commit()
            except AuthError as e:
                await store.rollback()
                console.print(f"[red]Error:[/red] {e.public_message}")
                raise typer.Exit(1) from e
            console.print(f"[green]Created user:[/green] {user.email} ({user.id})")

    asyncio.run(_create())


@app.command("delete")
def delete_user(
    email: str = typer.Argument(..., help="User email"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Delete a user together with their sessions and credentials."""
    if not force and not typer.confirm(f"Delete {email} and all of their sessions?"):
        console.print("[dim]Cancelled[/dim]")
        raise typer.Exit(0)

    async def _delete():
        async with get_session_context() as session:
            auth = AuthService(session)
            user = await auth.store.get_user_by_email(email)
            if not user:
                console.print(f"[red]Error:[/red] User {email} not found")
                raise typer.Exit(1)

            await auth.delete_user(user.id)
            console.print(f"[green]Deleted user:[/green] {email}")

    asyncio.run(_delete())


@app.command("verify-email")
def verify_email(email: str = typer.Argument(..., help="User email")):
    """Mark a user's email address as verified."""

    async def _verify():
        async with get_session_context() as session:
            store = IdentityStore(session)
            user = await store.get_user_by_email(email)
            if not user:
                console.print(f"[red]Error:[/red] User {email} not found")
                raise typer.Exit(1)

            if user.email_verified:
                console.print(f"[yellow]Warning:[/yellow] {email} is already verified")
                return

            await store.mark_email_verified(user)
            await store.commit()
            console.print(f"[green]Verified:[/green] {email}")

    asyncio.run(_verify())
