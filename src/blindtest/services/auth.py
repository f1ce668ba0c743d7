"""Authentication service composing the identity store, sessions and credentials."""

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from blindtest.config import settings
from blindtest.models import Account, Session, User, utcnow
from blindtest.services.credentials import PasskeyStrategy, PasswordStrategy
from blindtest.services.email import EmailService, email_service
from blindtest.services.errors import (
    AuthError,
    DuplicateEmail,
    SessionInvalid,
    VerificationFailed,
)
from blindtest.services.passkeys import PasskeyCeremony, get_passkey_ceremony
from blindtest.services.sessions import SessionIssuer
from blindtest.services.store import IdentityStore

logger = logging.getLogger(__name__)

EMAIL_VERIFICATION_PREFIX = "email-verification:"


@dataclass
class AuthenticatedSession:
    """A validated session together with its owning user."""

    session: Session
    user: User


@dataclass
class ClientInfo:
    """Network metadata recorded on issued sessions."""

    ip_address: str | None = None
    user_agent: str | None = None


class AuthService:
    """Request-scoped entry point for every authentication operation.

    Each public method is one unit of work: it either commits all of its
    writes or rolls them back before re-raising.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        ceremony: PasskeyCeremony | None = None,
        emails: EmailService | None = None,
    ):
        self.store = IdentityStore(db)
        self.sessions = SessionIssuer(self.store)
        self.passwords = PasswordStrategy(self.store, self.sessions)
        self.passkeys = PasskeyStrategy(
            self.store, self.sessions, ceremony or get_passkey_ceremony()
        )
        self.emails = emails or email_service

    async def _rollback_on_error(self, error: Exception) -> None:
        if isinstance(error, AuthError):
            logger.info(f"{type(error).__name__}: {error}")
        else:
            logger.error(f"Unexpected error in auth flow: {error!r}", exc_info=True)
        await self.store.rollback()

    async def sign_up(
        self,
        email: str,
        name: str,
        password: str,
        *,
        image: str | None = None,
        client: ClientInfo | None = None,
    ) -> AuthenticatedSession:
        """Create a user with a password account and sign them in.

        Raises:
            WeakPassword: password outside the length bounds (nothing written)
            DuplicateEmail: email already registered (nothing written)
        """
        client = client or ClientInfo()
        PasswordStrategy.check_policy(password)
        if await self.store.get_user_by_email(email) is not None:
            raise DuplicateEmail(f"Sign-up with existing email {email!r}")

        try:
            user = await self.store.create_user(email, name, image=image)
            await self.passwords.register(user, password)
            session = await self.sessions.issue(
                user, ip_address=client.ip_address, user_agent=client.user_agent
            )
            await self.store.commit()
        except Exception as e:
            await self._rollback_on_error(e)
            raise

        logger.info(f"Signed up user {user.id}")
        return AuthenticatedSession(session=session, user=user)

    async def sign_in(
        self, email: str, password: str, *, client: ClientInfo | None = None
    ) -> AuthenticatedSession:
        """Sign in with email and password.

        Raises:
            InvalidCredentials: unknown email or wrong password (no session issued)
        """
        client = client or ClientInfo()
        try:
            session = await self.passwords.verify(
                email, password, ip_address=client.ip_address, user_agent=client.user_agent
            )
            user = await self._session_owner(session)
            await self.store.commit()
        except Exception as e:
            await self._rollback_on_error(e)
            raise
        return AuthenticatedSession(session=session, user=user)

    async def _session_owner(self, session: Session) -> User:
        user = await self.store.get_user(session.user_id)
        if user is None:
            raise SessionInvalid(f"Session {session.id} has no owning user")
        return user

    async def sign_out(self, token: str) -> None:
        await self.sessions.revoke(token)
        await self.store.commit()

    async def get_session(self, token: str | None) -> AuthenticatedSession:
        """Validate a bearer token.

        Raises:
            SessionInvalid: missing, unknown or expired token
        """
        session, user = await self.sessions.validate(token)
        return AuthenticatedSession(session=session, user=user)

    async def list_sessions(self, user: User) -> list[Session]:
        return await self.sessions.list_for_user(user.id)

    async def revoke_session(self, user: User, token: str) -> None:
        """Revoke one of ``user``'s own sessions; other users' tokens are ignored."""
        session = await self.store.get_session_by_token(token)
        if session is None or session.user_id != user.id:
            return
        await self.sessions.revoke(token)
        await self.store.commit()

    async def revoke_other_sessions(self, user: User, current_token: str) -> int:
        count = await self.sessions.revoke_all(user.id, except_token=current_token)
        await self.store.commit()
        return count

    async def delete_user(self, user_id: str) -> bool:
        """Delete a user along with all of their sessions and accounts."""
        deleted = await self.store.delete_user(user_id)
        await self.store.commit()
        if deleted:
            logger.info(f"Deleted user {user_id}")
        return deleted

    # Passkeys

    async def begin_passkey_registration(self, user: User) -> tuple[str, dict[str, Any]]:
        ceremony_id, options = await self.passkeys.begin_registration(user)
        await self.store.commit()
        return ceremony_id, options

    async def add_passkey(
        self,
        user: User,
        ceremony_id: str,
        credential: dict[str, Any],
        name: str | None = None,
    ) -> Account:
        """Finish a passkey registration for an already signed-in user.

        Raises:
            ChallengeExpired: the ceremony lapsed or was already used
            InvalidPasskey: attestation did not verify
        """
        try:
            account = await self.passkeys.register(user, ceremony_id, credential, name=name)
            await self.store.commit()
        except Exception as e:
            await self._rollback_on_error(e)
            raise
        return account

    async def begin_passkey_authentication(
        self, email: str | None = None
    ) -> tuple[str, dict[str, Any]]:
        user = await self.store.get_user_by_email(email) if email else None
        ceremony_id, options = await self.passkeys.begin_authentication(user)
        await self.store.commit()
        return ceremony_id, options

    async def sign_in_with_passkey(
        self,
        ceremony_id: str,
        assertion: dict[str, Any],
        *,
        client: ClientInfo | None = None,
    ) -> AuthenticatedSession:
        client = client or ClientInfo()
        try:
            session = await self.passkeys.verify(
                ceremony_id,
                assertion,
                ip_address=client.ip_address,
                user_agent=client.user_agent,
            )
            user = await self._session_owner(session)
            await self.store.commit()
        except Exception as e:
            await self._rollback_on_error(e)
            raise
        return AuthenticatedSession(session=session, user=user)

    async def list_passkeys(self, user: User) -> list[Account]:
        return await self.passkeys.list_passkeys(user)

    async def delete_passkey(self, user: User, passkey_id: str) -> bool:
        deleted = await self.passkeys.delete_passkey(user, passkey_id)
        await self.store.commit()
        return deleted

    # Email verification

    async def send_verification_email(self, user: User) -> bool:
        """Email ``user`` a single-use verification link."""
        token = secrets.token_urlsafe(32)
        expires_at = utcnow() + timedelta(minutes=settings.email_verification_expiration_minutes)
        await self.store.add_verification(
            identifier=f"{EMAIL_VERIFICATION_PREFIX}{token}",
            value=user.email,
            expires_at=expires_at,
        )
        await self.store.commit()

        url = f"{settings.app_url}/verify-email?token={token}"
        return await self.emails.send_verification_email(
            to=user.email, verification_url=url, name=user.name
        )

    async def verify_email(self, token: str) -> User:
        """Consume an email verification token and mark its user verified.

        Raises:
            VerificationFailed: unknown, used or expired token
        """
        identifier = f"{EMAIL_VERIFICATION_PREFIX}{token}"
        verification = await self.store.get_verification(identifier)
        if verification is None:
            raise VerificationFailed("Unknown email verification token")

        await self.store.delete_verification(identifier)
        if verification.is_expired(utcnow()):
            await self.store.commit()
            raise VerificationFailed("Email verification token expired")

        user = await self.store.get_user_by_email(verification.value)
        if user is None:
            await self.store.commit()
            raise VerificationFailed("Verified email no longer has a user")

        await self.store.mark_email_verified(user)
        await self.store.commit()
        return user


async def authenticate_token(db: AsyncSession, token: str | None) -> AuthenticatedSession:
    """Validate a bearer token without constructing the full service."""
    store = IdentityStore(db)
    session, user = await SessionIssuer(store).validate(token)
    return AuthenticatedSession(session=session, user=user)
