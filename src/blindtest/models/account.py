"""Account model: one credential binding between a user and an auth method."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from blindtest.models.base import BaseModel


class ProviderKind(str, Enum):
    """Kind of credential an account holds."""

    PASSWORD = "password"
    PASSKEY = "passkey"


class Account(BaseModel, table=True):
    """Credential binding (password hash, passkey public key, or delegated tokens)."""

    __tablename__ = "account"
    __table_args__ = (
        UniqueConstraint("provider_id", "account_id", name="uq_account_provider_account"),
    )

    account_id: str = Field(max_length=255, description="Provider-scoped account identifier")
    provider_id: str = Field(index=True, max_length=255)
    user_id: str = Field(foreign_key="user.id", index=True, ondelete="CASCADE", max_length=21)

    # Delegated providers
    access_token: str | None = Field(default=None)
    refresh_token: str | None = Field(default=None)
    access_token_expires_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    scope: str | None = Field(default=None)

    # Password provider
    password: str | None = Field(default=None, max_length=255, description="Password hash")

    # Passkey provider
    public_key: str | None = Field(default=None, description="Base64url COSE public key")
    counter: int | None = Field(default=None, description="Signature counter")
    name: str | None = Field(default=None, max_length=255)
    device_type: str | None = Field(default=None, max_length=32)
    backed_up: bool | None = Field(default=None)
    transports: str | None = Field(default=None, max_length=255)


class PasskeyRead(SQLModel):
    """Schema for reading a passkey binding."""

    id: str
    name: str | None
    credential_id: str
    device_type: str | None
    backed_up: bool | None
    created_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> "PasskeyRead":
        return cls(
            id=account.id,
            name=account.name,
            credential_id=account.account_id,
            device_type=account.device_type,
            backed_up=account.backed_up,
            created_at=account.created_at,
        )
