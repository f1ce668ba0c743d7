"""WebAuthn ceremonies for passkeys.

Wraps the ``webauthn`` library behind four operations: create a registration
challenge, verify a registration (attestation), create an authentication
challenge, and verify an assertion. Everything else in the app talks to
``PasskeyCeremony`` rather than to the library directly.
"""

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    options_to_json,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import base64url_to_bytes, bytes_to_base64url
from webauthn.helpers.structs import (
    AuthenticatorSelectionCriteria,
    PublicKeyCredentialDescriptor,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from blindtest.config import settings
from blindtest.services.errors import InvalidPasskey

logger = logging.getLogger(__name__)


@dataclass
class Challenge:
    """Challenge bytes plus the JSON options handed to the browser."""

    challenge: str  # base64url
    options: dict[str, Any]


@dataclass
class VerifiedCredential:
    """Result of a successful registration ceremony."""

    credential_id: str  # base64url
    public_key: str  # base64url COSE key
    sign_count: int
    device_type: str | None = None
    backed_up: bool | None = None
    transports: list[str] | None = None


@dataclass
class VerifiedAssertion:
    """Result of a successful authentication ceremony."""

    credential_id: str
    new_sign_count: int


def credential_id_of(credential: dict[str, Any]) -> str:
    """Extract the base64url credential id from a WebAuthn JSON credential."""
    credential_id = credential.get("id") or credential.get("rawId")
    if not isinstance(credential_id, str) or not credential_id:
        raise InvalidPasskey("Credential is missing its id")
    return credential_id


class PasskeyCeremony:
    """Relying-party bound WebAuthn operations."""

    def __init__(self, rp_id: str, rp_name: str, origin: str):
        self.rp_id = rp_id
        self.rp_name = rp_name
        self.origin = origin

    @classmethod
    def from_settings(cls) -> "PasskeyCeremony":
        return cls(
            rp_id=settings.passkey_rp_id,
            rp_name=settings.passkey_rp_name,
            origin=settings.passkey_origin,
        )

    def create_registration_challenge(
        self,
        *,
        user_id: str,
        user_name: str,
        display_name: str,
        exclude_credential_ids: list[str] | None = None,
    ) -> Challenge:
        options = generate_registration_options(
            rp_id=self.rp_id,
            rp_name=self.rp_name,
            user_id=user_id.encode("utf-8"),
            user_name=user_name,
            user_display_name=display_name,
            exclude_credentials=[
                PublicKeyCredentialDescriptor(id=base64url_to_bytes(cid))
                for cid in exclude_credential_ids or []
            ],
            authenticator_selection=AuthenticatorSelectionCriteria(
                resident_key=ResidentKeyRequirement.PREFERRED,
                user_verification=UserVerificationRequirement.PREFERRED,
            ),
        )
        return Challenge(
            challenge=bytes_to_base64url(options.challenge),
            options=json.loads(options_to_json(options)),
        )

    def verify_registration(self, credential: dict[str, Any], expected_challenge: str) -> VerifiedCredential:
        """Verify an attestation response.

        Raises:
            InvalidPasskey: the response does not match the challenge, origin or RP
        """
        try:
            verified = verify_registration_response(
                credential=credential,
                expected_challenge=base64url_to_bytes(expected_challenge),
                expected_rp_id=self.rp_id,
                expected_origin=self.origin,
            )
        except Exception as e:
            logger.info(f"Passkey registration rejected: {e}")
            raise InvalidPasskey(f"Registration verification failed: {e}") from e

        response = credential.get("response") or {}
        transports = response.get("transports") if isinstance(response, dict) else None
        return VerifiedCredential(
            credential_id=bytes_to_base64url(verified.credential_id),
            public_key=bytes_to_base64url(verified.credential_public_key),
            sign_count=verified.sign_count,
            device_type=getattr(verified.credential_device_type, "value", None),
            backed_up=verified.credential_backed_up,
            transports=transports if isinstance(transports, list) else None,
        )

    def create_authentication_challenge(
        self, allow_credential_ids: list[str] | None = None
    ) -> Challenge:
        options = generate_authentication_options(
            rp_id=self.rp_id,
            allow_credentials=[
                PublicKeyCredentialDescriptor(id=base64url_to_bytes(cid))
                for cid in allow_credential_ids or []
            ],
            user_verification=UserVerificationRequirement.PREFERRED,
        )
        return Challenge(
            challenge=bytes_to_base64url(options.challenge),
            options=json.loads(options_to_json(options)),
        )

    def verify_assertion(
        self,
        credential: dict[str, Any],
        expected_challenge: str,
        *,
        public_key: str,
        sign_count: int,
    ) -> VerifiedAssertion:
        """Verify a signed assertion against a stored public key.

        Raises:
            InvalidPasskey: bad signature, challenge, origin or counter
        """
        try:
            verified = verify_authentication_response(
                credential=credential,
                expected_challenge=base64url_to_bytes(expected_challenge),
                expected_rp_id=self.rp_id,
                expected_origin=self.origin,
                credential_public_key=base64url_to_bytes(public_key),
                credential_current_sign_count=sign_count,
            )
        except Exception as e:
            logger.info(f"Passkey assertion rejected: {e}")
            raise InvalidPasskey(f"Assertion verification failed: {e}") from e

        return VerifiedAssertion(
            credential_id=bytes_to_base64url(verified.credential_id),
            new_sign_count=verified.new_sign_count,
        )


@lru_cache
def get_passkey_ceremony() -> PasskeyCeremony:
    """Get the ceremony configured from settings."""
    return PasskeyCeremony.from_settings()
