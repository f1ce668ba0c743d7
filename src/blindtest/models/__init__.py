"""SQLModel database models."""

from blindtest.models.account import Account, PasskeyRead, ProviderKind
from blindtest.models.base import BaseModel, TimestampMixin, as_utc, generate_nanoid, utcnow
from blindtest.models.session import Session, SessionRead
from blindtest.models.user import User, UserRead
from blindtest.models.verification import Verification

__all__ = [
    "Account",
    "BaseModel",
    "PasskeyRead",
    "ProviderKind",
    "Session",
    "SessionRead",
    "TimestampMixin",
    "User",
    "UserRead",
    "Verification",
    "as_utc",
    "generate_nanoid",
    "utcnow",
]
