"""Credential strategies: ways a user proves who they are.

Each strategy can ``register`` a credential for a user (creating an Account
row) and ``verify`` a credential, issuing a Session on success.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any

from blindtest.config import settings
from blindtest.models import Account, ProviderKind, Session, User, generate_nanoid, utcnow
from blindtest.services.errors import (
    ChallengeExpired,
    InvalidCredentials,
    InvalidPasskey,
    WeakPassword,
)
from blindtest.services.passkeys import PasskeyCeremony, credential_id_of
from blindtest.services.passwords import hash_password, verify_password
from blindtest.services.sessions import SessionIssuer
from blindtest.services.store import IdentityStore

logger = logging.getLogger(__name__)

PASSKEY_CEREMONY_PREFIX = "passkey:"


class CredentialStrategy(ABC):
    """A pluggable authentication method."""

    provider: ProviderKind

    def __init__(self, store: IdentityStore, issuer: SessionIssuer):
        self.store = store
        self.issuer = issuer

    @abstractmethod
    async def register(self, user: User, *args: Any, **kwargs: Any) -> Account:
        """Bind a new credential to ``user``."""

    @abstractmethod
    async def verify(self, *args: Any, **kwargs: Any) -> Session:
        """Check a credential and issue a session for its owner."""


class PasswordStrategy(CredentialStrategy):
    """Email + password, stored as a bcrypt hash."""

    provider = ProviderKind.PASSWORD

    @staticmethod
    def check_policy(plaintext: str) -> None:
        """Raise WeakPassword if ``plaintext`` is outside the configured bounds."""
        if len(plaintext) < settings.password_min_length:
            raise WeakPassword(
                "Password too short",
                f"Password must be at least {settings.password_min_length} characters",
            )
        if len(plaintext) > settings.password_max_length:
            raise WeakPassword(
                "Password too long",
                f"Password must be at most {settings.password_max_length} characters",
            )

    async def register(self, user: User, plaintext: str) -> Account:  # type: ignore[override]
        self.check_policy(plaintext)
        account = Account(
            account_id=user.id,
            provider_id=self.provider.value,
            user_id=user.id,
            password=await hash_password(plaintext),
        )
        return await self.store.add_account(account)

    async def verify(  # type: ignore[override]
        self,
        email: str,
        plaintext: str,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Session:
        user = await self.store.get_user_by_email(email)
        account = None
        if user is not None:
            account = await self.store.get_user_account(user.id, self.provider.value)

        # Always run the hash comparison so unknown emails cost the same time
        matched = await verify_password(plaintext, account.password if account else None)
        if user is None or not matched:
            logger.info("Password sign-in rejected")
            raise InvalidCredentials("Email or password did not match")

        return await self.issuer.issue(user, ip_address=ip_address, user_agent=user_agent)


class PasskeyStrategy(CredentialStrategy):
    """WebAuthn public-key credentials.

    Outstanding challenges live in Verification rows keyed by
    ``passkey:<ceremony id>`` and are consumed on first use.
    """

    provider = ProviderKind.PASSKEY

    def __init__(self, store: IdentityStore, issuer: SessionIssuer, ceremony: PasskeyCeremony):
        super().__init__(store, issuer)
        self.ceremony = ceremony

    async def _save_challenge(self, kind: str, challenge: str, user_id: str | None = None) -> str:
        ceremony_id = generate_nanoid()
        expires_at = utcnow() + timedelta(seconds=settings.passkey_challenge_expiration_seconds)
        state = {"kind": kind, "challenge": challenge, "user_id": user_id}
        await self.store.add_verification(
            identifier=f"{PASSKEY_CEREMONY_PREFIX}{ceremony_id}",
            value=json.dumps(state),
            expires_at=expires_at,
        )
        return ceremony_id

    async def _consume_challenge(self, ceremony_id: str, kind: str, user_id: str | None = None) -> str:
        """Fetch and delete a ceremony's challenge.

        The deletion is committed before the ceremony is verified, so a
        challenge can never be replayed even if verification fails.

        Raises:
            ChallengeExpired: no such ceremony, or it lapsed
            InvalidPasskey: the ceremony belongs to another flow or user
        """
        identifier = f"{PASSKEY_CEREMONY_PREFIX}{ceremony_id}"
        verification = await self.store.get_verification(identifier)
        if verification is None:
            raise ChallengeExpired(f"No outstanding passkey challenge {ceremony_id}")

        await self.store.delete_verification(identifier)
        await self.store.commit()

        if verification.is_expired(utcnow()):
            raise ChallengeExpired(f"Passkey challenge {ceremony_id} expired")

        state = json.loads(verification.value)
        if state.get("kind") != kind:
            raise InvalidPasskey(f"Challenge {ceremony_id} is not a {kind} challenge")
        if user_id is not None and state.get("user_id") != user_id:
            raise InvalidPasskey(f"Challenge {ceremony_id} was issued to another user")
        return state["challenge"]

    async def begin_registration(self, user: User) -> tuple[str, dict[str, Any]]:
        """Start a registration ceremony.

        Returns:
            Tuple of (ceremony id, creation options for the authenticator)
        """
        existing = await self.store.list_accounts(user.id, self.provider.value)
        challenge = self.ceremony.create_registration_challenge(
            user_id=user.id,
            user_name=user.email,
            display_name=user.name,
            exclude_credential_ids=[account.account_id for account in existing],
        )
        ceremony_id = await self._save_challenge("registration", challenge.challenge, user.id)
        return ceremony_id, challenge.options

    async def register(  # type: ignore[override]
        self,
        user: User,
        ceremony_id: str,
        credential: dict[str, Any],
        name: str | None = None,
    ) -> Account:
        challenge = await self._consume_challenge(ceremony_id, "registration", user.id)
        verified = await asyncio.to_thread(self.ceremony.verify_registration, credential, challenge)

        if await self.store.get_account(self.provider.value, verified.credential_id):
            raise InvalidPasskey("Passkey is already registered")

        account = Account(
            account_id=verified.credential_id,
            provider_id=self.provider.value,
            user_id=user.id,
            public_key=verified.public_key,
            counter=verified.sign_count,
            name=name or f"{user.name}'s Passkey",
            device_type=verified.device_type,
            backed_up=verified.backed_up,
            transports=",".join(verified.transports) if verified.transports else None,
        )
        await self.store.add_account(account)
        logger.info(f"Registered passkey {account.id} for user {user.id}")
        return account

    async def begin_authentication(self, user: User | None = None) -> tuple[str, dict[str, Any]]:
        """Start a sign-in ceremony, optionally restricted to one user's passkeys."""
        allow: list[str] = []
        if user is not None:
            accounts = await self.store.list_accounts(user.id, self.provider.value)
            allow = [account.account_id for account in accounts]
        challenge = self.ceremony.create_authentication_challenge(allow)
        ceremony_id = await self._save_challenge("authentication", challenge.challenge)
        return ceremony_id, challenge.options

    async def verify(  # type: ignore[override]
        self,
        ceremony_id: str,
        assertion: dict[str, Any],
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Session:
        challenge = await self._consume_challenge(ceremony_id, "authentication")

        account = await self.store.get_account(self.provider.value, credential_id_of(assertion))
        if account is None or account.public_key is None:
            raise InvalidPasskey("Unknown passkey")

        verified = await asyncio.to_thread(
            self.ceremony.verify_assertion,
            assertion,
            challenge,
            public_key=account.public_key,
            sign_count=account.counter or 0,
        )
        account.counter = verified.new_sign_count
        await self.store.update_account(account)

        user = await self.store.get_user(account.user_id)
        if user is None:
            raise InvalidPasskey("Passkey has no owning user")
        return await self.issuer.issue(user, ip_address=ip_address, user_agent=user_agent)

    async def list_passkeys(self, user: User) -> list[Account]:
        return list(await self.store.list_accounts(user.id, self.provider.value))

    async def delete_passkey(self, user: User, passkey_id: str) -> bool:
        """Delete one of ``user``'s passkeys by its account id."""
        for account in await self.store.list_accounts(user.id, self.provider.value):
            if account.id == passkey_id:
                await self.store.delete_account(account)
                return True
        return False
