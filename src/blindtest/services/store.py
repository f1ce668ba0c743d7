"""Identity store: durable users, sessions, accounts and verifications."""

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import delete, select

from blindtest.models import Account, Session, User, Verification
from blindtest.services.errors import DuplicateEmail, StoreError, StoreUnavailable

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class IdentityStore:
    """Repository over an ``AsyncSession``.

    Writes are flushed immediately so constraint violations surface at the
    call site; callers decide when to ``commit``.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except (OperationalError, InterfaceError, OSError) as e:
            logger.error(f"Identity store unavailable during {operation}: {e!r}")
            raise StoreUnavailable(f"{operation} failed: {e}") from e

    async def _flush(self, operation: str) -> None:
        async with self._guard(operation):
            try:
                await self.db.flush()
            except IntegrityError as e:
                await self.db.rollback()
                raise StoreError(f"{operation} violated a constraint: {e.orig}") from e

    # Transactions

    async def commit(self) -> None:
        async with self._guard("commit"):
            await self.db.commit()

    async def rollback(self) -> None:
        async with self._guard("rollback"):
            await self.db.rollback()

    # Users

    async def get_user(self, user_id: str) -> User | None:
        async with self._guard("get_user"):
            result = await self.db.execute(select(User).where(User.id == user_id))
            return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> User | None:
        async with self._guard("get_user_by_email"):
            stmt = select(User).where(User.email == normalize_email(email))
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()

    async def list_users(self) -> Sequence[User]:
        async with self._guard("list_users"):
            result = await self.db.execute(select(User).order_by(User.email))
            return result.scalars().all()

    async def create_user(self, email: str, name: str, image: str | None = None) -> User:
        user = User(email=normalize_email(email), name=name, image=image)
        self.db.add(user)
        try:
            await self._flush("create_user")
        except StoreError as e:
            raise DuplicateEmail(f"Email already registered: {user.email}") from e
        return user

    async def mark_email_verified(self, user: User) -> User:
        user.email_verified = True
        await self._flush("mark_email_verified")
        return user

    async def delete_user(self, user_id: str) -> bool:
        """Delete a user; sessions and accounts go with it via ON DELETE CASCADE."""
        async with self._guard("delete_user"):
            result = await self.db.execute(delete(User).where(User.id == user_id))
        self.db.expunge_all()
        return bool(result.rowcount)

    # Sessions

    async def add_session(self, session: Session) -> Session:
        self.db.add(session)
        await self._flush("add_session")
        return session

    async def get_session_by_token(self, token: str) -> Session | None:
        async with self._guard("get_session_by_token"):
            result = await self.db.execute(select(Session).where(Session.token == token))
            return result.scalar_one_or_none()

    async def list_sessions(self, user_id: str) -> Sequence[Session]:
        async with self._guard("list_sessions"):
            stmt = (
                select(Session)
                .where(Session.user_id == user_id)
                .order_by(Session.created_at.desc())  # type: ignore[attr-defined]
            )
            result = await self.db.execute(stmt)
            return result.scalars().all()

    async def delete_session_by_token(self, token: str) -> bool:
        async with self._guard("delete_session_by_token"):
            result = await self.db.execute(delete(Session).where(Session.token == token))
        return bool(result.rowcount)

    async def delete_sessions_for_user(self, user_id: str, except_token: str | None = None) -> int:
        stmt = delete(Session).where(Session.user_id == user_id)
        if except_token is not None:
            stmt = stmt.where(Session.token != except_token)
        async with self._guard("delete_sessions_for_user"):
            result = await self.db.execute(stmt)
        return result.rowcount or 0

    # Accounts

    async def add_account(self, account: Account) -> Account:
        self.db.add(account)
        await self._flush("add_account")
        return account

    async def update_account(self, account: Account) -> Account:
        await self._flush("update_account")
        return account

    async def get_account(self, provider_id: str, account_id: str) -> Account | None:
        async with self._guard("get_account"):
            stmt = select(Account).where(
                Account.provider_id == provider_id,
                Account.account_id == account_id,
            )
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()

    async def get_user_account(self, user_id: str, provider_id: str) -> Account | None:
        """First account of a given provider kind for a user."""
        async with self._guard("get_user_account"):
            stmt = select(Account).where(
                Account.user_id == user_id,
                Account.provider_id == provider_id,
            )
            result = await self.db.execute(stmt)
            return result.scalars().first()

    async def list_accounts(self, user_id: str, provider_id: str | None = None) -> Sequence[Account]:
        stmt = select(Account).where(Account.user_id == user_id)
        if provider_id is not None:
            stmt = stmt.where(Account.provider_id == provider_id)
        async with self._guard("list_accounts"):
            result = await self.db.execute(stmt.order_by(Account.created_at))
            return result.scalars().all()

    async def delete_account(self, account: Account) -> None:
        async with self._guard("delete_account"):
            await self.db.delete(account)
        await self._flush("delete_account")

    # Verifications

    async def add_verification(self, identifier: str, value: str, expires_at: datetime) -> Verification:
        verification = Verification(identifier=identifier, value=value, expires_at=expires_at)
        self.db.add(verification)
        await self._flush("add_verification")
        return verification

    async def get_verification(self, identifier: str) -> Verification | None:
        """Most recent verification for an identifier."""
        async with self._guard("get_verification"):
            stmt = (
                select(Verification)
                .where(Verification.identifier == identifier)
                .order_by(Verification.created_at.desc())  # type: ignore[attr-defined]
            )
            result = await self.db.execute(stmt)
            return result.scalars().first()

    async def delete_verification(self, identifier: str) -> int:
        async with self._guard("delete_verification"):
            result = await self.db.execute(
                delete(Verification).where(Verification.identifier == identifier)
            )
        return result.rowcount or 0

    async def delete_expired(self, now: datetime) -> tuple[int, int]:
        """Remove lapsed sessions and verifications.

        Returns:
            Tuple of (sessions removed, verifications removed)
        """
        async with self._guard("delete_expired"):
            sessions = await self.db.execute(delete(Session).where(Session.expires_at <= now))
            verifications = await self.db.execute(
                delete(Verification).where(Verification.expires_at <= now)
            )
        return sessions.rowcount or 0, verifications.rowcount or 0
