"""HTTP client for the authentication API.

This is the only surface UI code talks to. Every call returns an
``AuthResult``; failures carry a single presentable message and never raise.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from blindtest.client.state import CurrentSession, SessionStatus

logger = logging.getLogger(__name__)

GENERIC_ERROR = "An unexpected error occurred"
UNREACHABLE_ERROR = "Unable to reach the authentication server"
PASSKEY_REGISTRATION_ERROR = "Passkey registration failed. Please try again."
PASSKEY_SIGN_IN_ERROR = "Passkey sign-in failed. Please try again."
PASSKEY_WARNING = (
    "Failed to register passkey. You can add one later from your account settings."
)


@dataclass
class AuthResult:
    """Outcome of a client call: ``data`` on success, ``error`` otherwise.

    ``warning`` is set when the call succeeded but an optional step did not.
    """

    data: Any = None
    error: str | None = None
    warning: str | None = None
    code: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Authenticator(Protocol):
    """Performs the device side of a passkey ceremony (``navigator.credentials``)."""

    async def create(self, options: dict[str, Any]) -> dict[str, Any]:
        """Create a credential for the given creation options."""
        ...

    async def get(self, options: dict[str, Any]) -> dict[str, Any]:
        """Sign the challenge in the given request options."""
        ...


class AuthClient:
    """Client-side authentication façade.

    Usage:
        async with AuthClient("http://localhost:8000") as auth:
            result = await auth.sign_in("a@example.com", "password123")
            if not result.ok:
                print(result.error)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        token: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.token = token
        self.session = CurrentSession()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "AuthClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _request(self, method: str, path: str, json: Any = None) -> AuthResult:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            response = await self._client.request(method, f"/api/auth{path}", json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"Auth request {method} {path} failed: {e!r}")
            return AuthResult(error=UNREACHABLE_ERROR)

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            message = code = None
            if isinstance(payload, dict):
                message = payload.get("message")
                code = payload.get("code")
                if message is None and isinstance(payload.get("detail"), str):
                    message = payload["detail"]
            if code == "SESSION_INVALID":
                self._signed_out()
            return AuthResult(error=message or GENERIC_ERROR, code=code)

        return AuthResult(data=payload)

    def _signed_in(self, data: dict[str, Any]) -> None:
        self.token = data["token"]
        self.session.resolve({"session": data.get("session"), "user": data.get("user")})

    def _signed_out(self) -> None:
        self.token = None
        if self.session.status is SessionStatus.PENDING:
            self.session.resolve(None)
        else:
            self.session.clear()

    async def get_session(self) -> AuthResult:
        """Validate the current token and settle ``session`` accordingly."""
        if not self.token:
            self._signed_out()
            return AuthResult(data=None)

        result = await self._request("GET", "/get-session")
        if not result.ok:
            return result
        if result.data:
            self.session.resolve(result.data)
        else:
            self._signed_out()
        return result

    async def sign_up(
        self, email: str, name: str, password: str, image: str | None = None
    ) -> AuthResult:
        body = {"email": email, "name": name, "password": password, "image": image}
        result = await self._request("POST", "/sign-up/email", json=body)
        if result.ok:
            self._signed_in(result.data)
        return result

    async def sign_in(self, email: str, password: str) -> AuthResult:
        result = await self._request(
            "POST", "/sign-in/email", json={"email": email, "password": password}
        )
        if result.ok:
            self._signed_in(result.data)
        return result

    async def sign_out(self) -> AuthResult:
        """Revoke the current session. Local state is cleared even if the server is unreachable."""
        result = AuthResult(data={"success": True})
        if self.token:
            result = await self._request("POST", "/sign-out")
        self._signed_out()
        return result

    async def list_sessions(self) -> AuthResult:
        return await self._request("GET", "/list-sessions")

    async def revoke_other_sessions(self) -> AuthResult:
        return await self._request("POST", "/revoke-other-sessions")

    async def add_passkey(self, authenticator: Authenticator, name: str | None = None) -> AuthResult:
        """Register a passkey for the signed-in user."""
        begin = await self._request("POST", "/passkey/generate-register-options")
        if not begin.ok:
            return begin

        try:
            credential = await authenticator.create(begin.data["options"])
        except Exception as e:
            logger.info(f"Authenticator declined passkey creation: {e!r}")
            return AuthResult(error=PASSKEY_REGISTRATION_ERROR)

        return await self._request(
            "POST",
            "/passkey/verify-registration",
            json={"ceremony_id": begin.data["ceremony_id"], "response": credential, "name": name},
        )

    async def sign_in_with_passkey(
        self, authenticator: Authenticator, email: str | None = None
    ) -> AuthResult:
        begin = await self._request(
            "POST", "/passkey/generate-authenticate-options", json={"email": email}
        )
        if not begin.ok:
            return begin

        try:
            assertion = await authenticator.get(begin.data["options"])
        except Exception as e:
            logger.info(f"Authenticator declined passkey sign-in: {e!r}")
            return AuthResult(error=PASSKEY_SIGN_IN_ERROR)

        result = await self._request(
            "POST",
            "/passkey/verify-authentication",
            json={"ceremony_id": begin.data["ceremony_id"], "response": assertion},
        )
        if result.ok:
            self._signed_in(result.data)
        return result

    async def sign_up_with_passkey(
        self, email: str, name: str, authenticator: Authenticator
    ) -> AuthResult:
        """Sign up with a throwaway password, then attach a passkey.

        The account and its session survive a failed passkey step; the
        result then carries a ``warning`` instead of an ``error``.
        """
        signup = await self.sign_up(email, name, secrets.token_urlsafe(16))
        if not signup.ok:
            return signup

        passkey = await self.add_passkey(authenticator, name=f"{name}'s Passkey")
        if not passkey.ok:
            logger.warning(f"Passkey step of sign-up failed: {passkey.error}")
            return AuthResult(data=signup.data, warning=PASSKEY_WARNING, code=passkey.code)

        return AuthResult(data={**signup.data, "passkey": passkey.data})
