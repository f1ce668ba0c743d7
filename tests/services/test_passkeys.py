"""WebAuthn ceremony tests against the real webauthn library."""

import pytest
from webauthn.helpers import bytes_to_base64url

from blindtest.services.errors import InvalidPasskey
from blindtest.services.passkeys import PasskeyCeremony, credential_id_of


@pytest.fixture
def real_ceremony() -> PasskeyCeremony:
    return PasskeyCeremony(rp_id="localhost", rp_name="Blindtest", origin="http://localhost:3000")


def credential_ids(*raw: bytes) -> list[str]:
    return [bytes_to_base64url(value) for value in raw]


class TestRegistrationOptions:
    def test_options_carry_challenge_and_user(self, real_ceremony: PasskeyCeremony):
        challenge = real_ceremony.create_registration_challenge(
            user_id="user_123", user_name="ada@example.com", display_name="Ada"
        )

        options = challenge.options
        assert options["challenge"] == challenge.challenge
        assert options["rp"] == {"id": "localhost", "name": "Blindtest"}
        assert options["user"]["id"] == bytes_to_base64url(b"user_123")
        assert options["user"]["name"] == "ada@example.com"
        assert options["user"]["displayName"] == "Ada"
        assert options.get("excludeCredentials", []) == []

    def test_exclude_credentials_round_trip(self, real_ceremony: PasskeyCeremony):
        existing = credential_ids(b"laptop-key", b"phone-key")

        challenge = real_ceremony.create_registration_challenge(
            user_id="user_123",
            user_name="ada@example.com",
            display_name="Ada",
            exclude_credential_ids=existing,
        )

        assert [c["id"] for c in challenge.options["excludeCredentials"]] == existing

    def test_challenges_are_unique(self, real_ceremony: PasskeyCeremony):
        first = real_ceremony.create_registration_challenge(
            user_id="user_123", user_name="ada@example.com", display_name="Ada"
        )
        second = real_ceremony.create_registration_challenge(
            user_id="user_123", user_name="ada@example.com", display_name="Ada"
        )
        assert first.challenge != second.challenge


class TestAuthenticationOptions:
    def test_options_carry_challenge(self, real_ceremony: PasskeyCeremony):
        challenge = real_ceremony.create_authentication_challenge()

        assert challenge.options["challenge"] == challenge.challenge
        assert challenge.options["rpId"] == "localhost"
        assert challenge.options.get("allowCredentials", []) == []

    def test_allow_credentials_round_trip(self, real_ceremony: PasskeyCeremony):
        allowed = credential_ids(b"laptop-key")

        challenge = real_ceremony.create_authentication_challenge(allow_credential_ids=allowed)

        assert [c["id"] for c in challenge.options["allowCredentials"]] == allowed


class TestVerification:
    def test_malformed_attestation_is_rejected(self, real_ceremony: PasskeyCeremony):
        challenge = real_ceremony.create_registration_challenge(
            user_id="user_123", user_name="ada@example.com", display_name="Ada"
        )
        credential = {
            "id": bytes_to_base64url(b"cred"),
            "rawId": bytes_to_base64url(b"cred"),
            "type": "public-key",
            "response": {"clientDataJSON": "not-json", "attestationObject": "garbage"},
        }

        with pytest.raises(InvalidPasskey):
            real_ceremony.verify_registration(credential, challenge.challenge)

    def test_malformed_assertion_is_rejected(self, real_ceremony: PasskeyCeremony):
        challenge = real_ceremony.create_authentication_challenge()
        assertion = {
            "id": bytes_to_base64url(b"cred"),
            "rawId": bytes_to_base64url(b"cred"),
            "type": "public-key",
            "response": {
                "clientDataJSON": "not-json",
                "authenticatorData": "garbage",
                "signature": "garbage",
            },
        }

        with pytest.raises(InvalidPasskey):
            real_ceremony.verify_assertion(
                assertion,
                challenge.challenge,
                public_key=bytes_to_base64url(b"not-a-cose-key"),
                sign_count=0,
            )

    def test_empty_credential_is_rejected(self, real_ceremony: PasskeyCeremony):
        challenge = real_ceremony.create_registration_challenge(
            user_id="user_123", user_name="ada@example.com", display_name="Ada"
        )
        with pytest.raises(InvalidPasskey):
            real_ceremony.verify_registration({}, challenge.challenge)

    def test_credential_id_is_required(self):
        with pytest.raises(InvalidPasskey):
            credential_id_of({"type": "public-key"})
        assert credential_id_of({"rawId": "abc"}) == "abc"
