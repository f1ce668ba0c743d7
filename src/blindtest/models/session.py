"""Session model."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from blindtest.models.base import BaseModel, as_utc


class Session(BaseModel, table=True):
    """Authenticated client context, addressed by an opaque bearer token."""

    __tablename__ = "session"

    user_id: str = Field(foreign_key="user.id", index=True, ondelete="CASCADE", max_length=21)
    expires_at: datetime = Field(
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
        nullable=False,
    )
    token: str = Field(unique=True, index=True, max_length=255)
    ip_address: str | None = Field(default=None, max_length=255)
    user_agent: str | None = Field(default=None)

    def is_expired(self, now: datetime) -> bool:
        return as_utc(self.expires_at) <= now


class SessionRead(SQLModel):
    """Schema for reading a session. The token is included only for the owner."""

    id: str
    user_id: str
    token: str
    expires_at: datetime
    ip_address: str | None
    user_agent: str | None
    created_at: datetime
