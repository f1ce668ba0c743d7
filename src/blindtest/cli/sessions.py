"""Session management CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from blindtest.database import get_session_context
from blindtest.models import utcnow
from blindtest.services.sessions import SessionIssuer
from blindtest.services.store import IdentityStore

console = Console()
app = typer.Typer(help="Session management commands")


@app.command("list")
def list_sessions(email: str = typer.Argument(..., help="User email")):
    """List a user's unexpired sessions."""

    async def _list():
        async with get_session_context() as session:
            store = IdentityStore(session)
            user = await store.get_user_by_email(email)
            if not user:
                console.print(f"[red]Error:[/red] User {email} not found")
                raise typer.Exit(1)

            sessions = await SessionIssuer(store).list_for_user(user.id)

            table = Table(title=f"Sessions for {user.email}")
            table.add_column("ID", style="cyan")
            table.add_column("IP", style="green")
            table.add_column("User Agent")
            table.add_column("Expires", style="dim")

            for s in sessions:
                table.add_row(
                    s.id,
                    s.ip_address or "-",
                    (s.user_agent or "-")[:50],
                    s.expires_at.strftime("%Y-%m-%d %H:%M"),
                )

            console.print(table)

    asyncio.run(_list())


@app.command("revoke")
def revoke(
    email: str = typer.Argument(..., help="User email"),
):
    """Revoke every session of a user."""

    async def _revoke():
        async with get_session_context() as session:
            store = IdentityStore(session)
            user = await store.get_user_by_email(email)
            if not user:
                console.print(f"[red]Error:[/red] User {email} not found")
                raise typer.Exit(1)

            count = await SessionIssuer(store).revoke_all(user.id)
            await store.commit()
            console.print(f"[green]Revoked {count} session(s) for {email}[/green]")

    asyncio.run(_revoke())


@app.command("cleanup")
def cleanup():
    """Delete expired sessions and verification records."""

    async def _cleanup():
        async with get_session_context() as session:
            store = IdentityStore(session)
            sessions, verifications = await store.delete_expired(utcnow())
            await store.commit()
            console.print(
                f"[green]Removed {sessions} expired session(s) "
                f"and {verifications} verification record(s)[/green]"
            )

    asyncio.run(_cleanup())
