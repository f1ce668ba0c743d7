"""Test doubles for the WebAuthn ceremony, the device authenticator and email."""

import secrets
from typing import Any

from blindtest.services.email import EmailBackend
from blindtest.services.errors import InvalidPasskey
from blindtest.services.passkeys import (
    Challenge,
    PasskeyCeremony,
    VerifiedAssertion,
    VerifiedCredential,
    credential_id_of,
)


def public_key_for(credential_id: str) -> str:
    return f"pk-{credential_id}"


class StubCeremony(PasskeyCeremony):
    """Ceremony whose "signatures" are the credential's public key.

    Challenges, credential ids, counters and rejection paths behave like the
    real ceremony; only the cryptography is replaced.
    """

    def __init__(self) -> None:
        super().__init__(rp_id="localhost", rp_name="Blindtest", origin="http://localhost:3000")

    def create_registration_challenge(
        self,
        *,
        user_id: str,
        user_name: str,
        display_name: str,
        exclude_credential_ids: list[str] | None = None,
    ) -> Challenge:
        challenge = secrets.token_urlsafe(16)
        return Challenge(
            challenge=challenge,
            options={
                "challenge": challenge,
                "rp": {"id": self.rp_id, "name": self.rp_name},
                "user": {"id": user_id, "name": user_name, "displayName": display_name},
                "excludeCredentials": [{"id": cid} for cid in exclude_credential_ids or []],
            },
        )

    def verify_registration(
        self, credential: dict[str, Any], expected_challenge: str
    ) -> VerifiedCredential:
        credential_id = credential_id_of(credential)
        if credential.get("response", {}).get("challenge") != expected_challenge:
            raise InvalidPasskey("Challenge mismatch")
        return VerifiedCredential(
            credential_id=credential_id,
            public_key=public_key_for(credential_id),
            sign_count=0,
            device_type="multi_device",
            backed_up=True,
            transports=["internal"],
        )

    def create_authentication_challenge(
        self, allow_credential_ids: list[str] | None = None
    ) -> Challenge:
        challenge = secrets.token_urlsafe(16)
        return Challenge(
            challenge=challenge,
            options={
                "challenge": challenge,
                "allowCredentials": [{"id": cid} for cid in allow_credential_ids or []],
            },
        )

    def verify_assertion(
        self,
        credential: dict[str, Any],
        expected_challenge: str,
        *,
        public_key: str,
        sign_count: int,
    ) -> VerifiedAssertion:
        response = credential.get("response", {})
        if response.get("challenge") != expected_challenge:
            raise InvalidPasskey("Challenge mismatch")
        if response.get("signature") != public_key:
            raise InvalidPasskey("Bad signature")
        new_sign_count = response.get("signCount", 0)
        if new_sign_count <= sign_count:
            raise InvalidPasskey("Sign count did not increase")
        return VerifiedAssertion(
            credential_id=credential_id_of(credential), new_sign_count=new_sign_count
        )


class StubAuthenticator:
    """In-memory platform authenticator holding its own credentials."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.credentials: dict[str, int] = {}

    def create_credential(self, challenge: str) -> dict[str, Any]:
        credential_id = secrets.token_urlsafe(12)
        self.credentials[credential_id] = 0
        return {"id": credential_id, "type": "public-key", "response": {"challenge": challenge}}

    def sign(self, challenge: str, credential_id: str | None = None) -> dict[str, Any]:
        credential_id = credential_id or next(iter(self.credentials))
        self.credentials[credential_id] += 1
        return {
            "id": credential_id,
            "type": "public-key",
            "response": {
                "challenge": challenge,
                "signature": public_key_for(credential_id),
                "signCount": self.credentials[credential_id],
            },
        }

    async def create(self, options: dict[str, Any]) -> dict[str, Any]:
        if self.fail:
            raise RuntimeError("The operation either timed out or was not allowed")
        return self.create_credential(options["challenge"])

    async def get(self, options: dict[str, Any]) -> dict[str, Any]:
        if self.fail or not self.credentials:
            raise RuntimeError("No credentials available")
        return self.sign(options["challenge"])


class RecordingEmailBackend(EmailBackend):
    """Keeps sent messages in memory."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    async def send(self, to: str, subject: str, html: str, text: str | None = None) -> bool:
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return True
