"""Session issuance and validation for opaque bearer tokens."""

import logging
import secrets
from collections.abc import Sequence
from datetime import timedelta

from blindtest.config import settings
from blindtest.models import Session, User, utcnow
from blindtest.services.errors import SessionInvalid
from blindtest.services.store import IdentityStore

logger = logging.getLogger(__name__)


def generate_session_token() -> str:
    """256 bits of randomness, URL-safe."""
    return secrets.token_urlsafe(32)


class SessionIssuer:
    """Turns authenticated users into sessions and tokens back into users.

    ``validate`` is read-only: expiry is never extended on use.
    """

    def __init__(self, store: IdentityStore, expires_in: timedelta | None = None):
        self.store = store
        self.expires_in = expires_in or timedelta(days=settings.session_expiration_days)

    async def issue(
        self,
        user: User,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Session:
        """Persist a new session for ``user`` and return it."""
        session = Session(
            user_id=user.id,
            token=generate_session_token(),
            expires_at=utcnow() + self.expires_in,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        await self.store.add_session(session)
        logger.info(f"Issued session {session.id} for user {user.id}")
        return session

    async def validate(self, token: str | None) -> tuple[Session, User]:
        """Resolve a token to its session and owning user.

        Raises:
            SessionInvalid: token missing, unknown or past its expiry
        """
        if not token:
            raise SessionInvalid("No session token provided")

        session = await self.store.get_session_by_token(token)
        if session is None:
            raise SessionInvalid("Unknown session token")

        if session.is_expired(utcnow()):
            raise SessionInvalid(f"Session {session.id} expired")

        user = await self.store.get_user(session.user_id)
        if user is None:
            raise SessionInvalid(f"Session {session.id} has no owning user")

        return session, user

    async def revoke(self, token: str) -> None:
        """Delete the session for ``token``. Revoking an unknown token is a no-op."""
        if await self.store.delete_session_by_token(token):
            logger.info("Revoked session")

    async def list_for_user(self, user_id: str) -> list[Session]:
        """Unexpired sessions belonging to ``user_id``, newest first."""
        now = utcnow()
        sessions: Sequence[Session] = await self.store.list_sessions(user_id)
        return [s for s in sessions if not s.is_expired(now)]

    async def revoke_all(self, user_id: str, except_token: str | None = None) -> int:
        """Delete every session of ``user_id`` except ``except_token``."""
        count = await self.store.delete_sessions_for_user(user_id, except_token=except_token)
        logger.info(f"Revoked {count} session(s) for user {user_id}")
        return count
