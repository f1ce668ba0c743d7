"""Request and response bodies for the auth API."""

from typing import Any

from pydantic import BaseModel, EmailStr, Field

from blindtest.models import PasskeyRead, SessionRead, UserRead


class SignUpRequest(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=255)
    # Length policy is enforced by the password strategy so the error is normalized
    password: str
    image: str | None = None


class SignInRequest(BaseModel):
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    """Issued bearer token with the session and user it belongs to."""

    token: str
    session: SessionRead
    user: UserRead


class SessionResponse(BaseModel):
    session: SessionRead
    user: UserRead


class RevokeSessionRequest(BaseModel):
    token: str


class RevokedResponse(BaseModel):
    revoked: int


class SendVerificationEmailRequest(BaseModel):
    email: EmailStr


class PasskeyOptionsResponse(BaseModel):
    """WebAuthn options plus the id that ties the follow-up call to its challenge."""

    ceremony_id: str
    options: dict[str, Any]


class AuthenticateOptionsRequest(BaseModel):
    email: EmailStr | None = None


class VerifyRegistrationRequest(BaseModel):
    ceremony_id: str
    response: dict[str, Any]
    name: str | None = Field(default=None, max_length=255)


class VerifyAuthenticationRequest(BaseModel):
    ceremony_id: str
    response: dict[str, Any]


class DeletePasskeyRequest(BaseModel):
    id: str


class PasskeyListResponse(BaseModel):
    passkeys: list[PasskeyRead]
