"""FastAPI dependencies for dependency injection."""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from blindtest.database import get_session
from blindtest.models import User
from blindtest.services.auth import AuthenticatedSession, AuthService, ClientInfo
from blindtest.services.email import EmailService, email_service
from blindtest.services.errors import SessionInvalid
from blindtest.services.passkeys import PasskeyCeremony, get_passkey_ceremony
from blindtest.services.rate_limit import (
    RateLimitType,
    check_rate_limit,
    get_client_ip,
    rate_limit_headers,
)

logger = logging.getLogger(__name__)

# Type alias for database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]

# Security scheme
security = HTTPBearer(auto_error=False)
BearerCredentials = Annotated[HTTPAuthorizationCredentials | None, Depends(security)]


def get_email_service() -> EmailService:
    return email_service


async def get_auth_service(
    session: SessionDep,
    ceremony: Annotated[PasskeyCeremony, Depends(get_passkey_ceremony)],
    emails: Annotated[EmailService, Depends(get_email_service)],
) -> AuthService:
    """Build the request-scoped auth service."""
    return AuthService(session, ceremony=ceremony, emails=emails)


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


def get_client_info(request: Request) -> ClientInfo:
    """Network metadata recorded on sessions issued by this request."""
    return ClientInfo(
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


ClientInfoDep = Annotated[ClientInfo, Depends(get_client_info)]


async def get_current_session_optional(
    auth: AuthServiceDep,
    credentials: BearerCredentials,
) -> AuthenticatedSession | None:
    """Get the caller's session if the bearer token is valid, None otherwise."""
    if not credentials:
        return None

    try:
        return await auth.get_session(credentials.credentials)
    except SessionInvalid:
        # Expected for expired or revoked tokens
        logger.debug("Token verification failed for optional auth")
        return None


async def get_current_session(
    auth: AuthServiceDep,
    credentials: BearerCredentials,
) -> AuthenticatedSession:
    """Get the caller's session or raise SessionInvalid (rendered as 401)."""
    return await auth.get_session(credentials.credentials if credentials else None)


async def get_current_user(
    current: Annotated[AuthenticatedSession, Depends(get_current_session)],
) -> User:
    return current.user


# Type aliases for common dependencies
CurrentAuth = Annotated[AuthenticatedSession, Depends(get_current_session)]
CurrentAuthOptional = Annotated[
    AuthenticatedSession | None, Depends(get_current_session_optional)
]
CurrentUser = Annotated[User, Depends(get_current_user)]


class RateLimitDependency:
    """Dependency class for rate limiting endpoints.

    Usage:
        @router.post("/endpoint")
        async def endpoint(
            rate_limit: Annotated[None, Depends(RateLimitDependency(RateLimitType.AUTH))]
        ):
            ...
    """

    def __init__(self, limit_type: RateLimitType) -> None:
        self.limit_type = limit_type

    async def __call__(self, request: Request) -> None:
        """Check rate limit and raise 429 if exceeded."""
        result = await check_rate_limit(request, self.limit_type)

        if not result.success:
            headers = rate_limit_headers(result)
            retry_after = headers.get("Retry-After", "60")
            logger.warning(
                f"Rate limit exceeded for {self.limit_type.value} from {get_client_ip(request)}"
            )
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Rate limit exceeded. Please try again in {retry_after} seconds.",
                headers=headers,
            )


# Pre-configured rate limit dependencies
AuthRateLimit = Annotated[None, Depends(RateLimitDependency(RateLimitType.AUTH))]
PasskeyRateLimit = Annotated[None, Depends(RateLimitDependency(RateLimitType.PASSKEY))]
VerificationRateLimit = Annotated[
    None, Depends(RateLimitDependency(RateLimitType.VERIFICATION))
]
