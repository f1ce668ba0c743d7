"""Authentication endpoints."""

import logging

from fastapi import APIRouter, Query

from blindtest.api.deps import (
    AuthRateLimit,
    AuthServiceDep,
    ClientInfoDep,
    CurrentAuth,
    CurrentAuthOptional,
    CurrentUser,
    VerificationRateLimit,
)
from blindtest.models import SessionRead, UserRead
from blindtest.schemas import SuccessResponse
from blindtest.schemas.auth import (
    AuthResponse,
    RevokedResponse,
    RevokeSessionRequest,
    SendVerificationEmailRequest,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
)
from blindtest.services.auth import AuthenticatedSession

logger = logging.getLogger(__name__)

router = APIRouter()


def auth_response(result: AuthenticatedSession) -> AuthResponse:
    return AuthResponse(
        token=result.session.token,
        session=SessionRead.model_validate(result.session),
        user=UserRead.model_validate(result.user),
    )


@router.post("/sign-up/email", response_model=AuthResponse)
async def sign_up_email(
    request: SignUpRequest,
    auth: AuthServiceDep,
    client: ClientInfoDep,
    _rate_limit: AuthRateLimit,
):
    """Create an account with a password and return a session for it."""
    result = await auth.sign_up(
        request.email,
        request.name,
        request.password,
        image=request.image,
        client=client,
    )
    return auth_response(result)


@router.post("/sign-in/email", response_model=AuthResponse)
async def sign_in_email(
    request: SignInRequest,
    auth: AuthServiceDep,
    client: ClientInfoDep,
    _rate_limit: AuthRateLimit,
):
    result = await auth.sign_in(request.email, request.password, client=client)
    return auth_response(result)


@router.post("/sign-out", response_model=SuccessResponse)
async def sign_out(current: CurrentAuth, auth: AuthServiceDep):
    """Revoke the session the request was authenticated with."""
    await auth.sign_out(current.session.token)
    logger.info(f"User {current.user.id} signed out")
    return SuccessResponse()


@router.get("/get-session", response_model=SessionResponse | None)
async def get_session(current: CurrentAuthOptional):
    """Return the caller's session, or null when the token is missing or invalid."""
    if current is None:
        return None
    return SessionResponse(
        session=SessionRead.model_validate(current.session),
        user=UserRead.model_validate(current.user),
    )


@router.get("/list-sessions", response_model=list[SessionRead])
async def list_sessions(user: CurrentUser, auth: AuthServiceDep):
    sessions = await auth.list_sessions(user)
    return [SessionRead.model_validate(s) for s in sessions]


@router.post("/revoke-session", response_model=SuccessResponse)
async def revoke_session(
    request: RevokeSessionRequest,
    user: CurrentUser,
    auth: AuthServiceDep,
):
    """Revoke one of the caller's sessions. Tokens of other users are ignored."""
    await auth.revoke_session(user, request.token)
    return SuccessResponse()


@router.post("/revoke-other-sessions", response_model=RevokedResponse)
async def revoke_other_sessions(current: CurrentAuth, auth: AuthServiceDep):
    count = await auth.revoke_other_sessions(current.user, current.session.token)
    logger.info(f"User {current.user.id} revoked {count} other session(s)")
    return RevokedResponse(revoked=count)


@router.post("/send-verification-email", response_model=SuccessResponse)
async def send_verification_email(
    request: SendVerificationEmailRequest,
    auth: AuthServiceDep,
    _rate_limit: VerificationRateLimit,
):
    """Email a verification link.

    Always succeeds so the response does not reveal which emails are registered.
    """
    user = await auth.store.get_user_by_email(request.email)
    if user is not None and not user.email_verified:
        sent = await auth.send_verification_email(user)
        if not sent:
            logger.warning(f"Verification email for user {user.id} was not delivered")
    return SuccessResponse()


@router.get("/verify-email", response_model=UserRead)
async def verify_email(
    auth: AuthServiceDep,
    _rate_limit: VerificationRateLimit,
    token: str = Query(..., min_length=1),
):
    user = await auth.verify_email(token)
    return UserRead.model_validate(user)
