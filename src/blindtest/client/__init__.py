"""Client-side authentication façade."""

from blindtest.client.auth import AuthClient, Authenticator, AuthResult
from blindtest.client.state import (
    CurrentSession,
    InvalidTransition,
    SessionSnapshot,
    SessionStatus,
)

__all__ = [
    "AuthClient",
    "AuthResult",
    "Authenticator",
    "CurrentSession",
    "InvalidTransition",
    "SessionSnapshot",
    "SessionStatus",
]
