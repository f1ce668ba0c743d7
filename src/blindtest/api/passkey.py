"""Passkey (WebAuthn) endpoints."""

import logging

from fastapi import APIRouter, HTTPException, status

from blindtest.api.auth import auth_response
from blindtest.api.deps import (
    AuthServiceDep,
    ClientInfoDep,
    CurrentUser,
    PasskeyRateLimit,
)
from blindtest.models import PasskeyRead
from blindtest.schemas import SuccessResponse
from blindtest.schemas.auth import (
    AuthenticateOptionsRequest,
    AuthResponse,
    DeletePasskeyRequest,
    PasskeyListResponse,
    PasskeyOptionsResponse,
    VerifyAuthenticationRequest,
    VerifyRegistrationRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate-register-options", response_model=PasskeyOptionsResponse)
async def generate_register_options(
    user: CurrentUser,
    auth: AuthServiceDep,
    _rate_limit: PasskeyRateLimit,
):
    """Start registering a passkey for the signed-in user."""
    ceremony_id, options = await auth.begin_passkey_registration(user)
    return PasskeyOptionsResponse(ceremony_id=ceremony_id, options=options)


@router.post("/verify-registration", response_model=PasskeyRead)
async def verify_registration(
    request: VerifyRegistrationRequest,
    user: CurrentUser,
    auth: AuthServiceDep,
    _rate_limit: PasskeyRateLimit,
):
    account = await auth.add_passkey(user, request.ceremony_id, request.response, name=request.name)
    logger.info(f"Registered passkey {account.id} for user {user.id}")
    return PasskeyRead.from_account(account)


@router.post("/generate-authenticate-options", response_model=PasskeyOptionsResponse)
async def generate_authenticate_options(
    request: AuthenticateOptionsRequest,
    auth: AuthServiceDep,
    _rate_limit: PasskeyRateLimit,
):
    """Start a passkey sign-in.

    With an email the options list that user's credentials; without one the
    authenticator offers any discoverable credential for this relying party.
    """
    ceremony_id, options = await auth.begin_passkey_authentication(request.email)
    return PasskeyOptionsResponse(ceremony_id=ceremony_id, options=options)


@router.post("/verify-authentication", response_model=AuthResponse)
async def verify_authentication(
    request: VerifyAuthenticationRequest,
    auth: AuthServiceDep,
    client: ClientInfoDep,
    _rate_limit: PasskeyRateLimit,
):
    result = await auth.sign_in_with_passkey(request.ceremony_id, request.response, client=client)
    return auth_response(result)


@router.get("/list-user-passkeys", response_model=PasskeyListResponse)
async def list_user_passkeys(user: CurrentUser, auth: AuthServiceDep):
    accounts = await auth.list_passkeys(user)
    return PasskeyListResponse(passkeys=[PasskeyRead.from_account(a) for a in accounts])


@router.post("/delete-passkey", response_model=SuccessResponse)
async def delete_passkey(
    request: DeletePasskeyRequest,
    user: CurrentUser,
    auth: AuthServiceDep,
):
    if not await auth.delete_passkey(user, request.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Passkey not found")
    logger.info(f"Deleted passkey {request.id} for user {user.id}")
    return SuccessResponse()
