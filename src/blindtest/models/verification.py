"""Verification model for short-lived, single-use challenges."""

from datetime import datetime

from sqlalchemy import DateTime, Text
from sqlmodel import Field

from blindtest.models.base import BaseModel, as_utc


class Verification(BaseModel, table=True):
    """Email verification token or passkey ceremony challenge."""

    __tablename__ = "verification"

    identifier: str = Field(
        index=True,
        max_length=255,
        description="Lookup key, e.g. 'email-verification:<token>' or 'passkey:<ceremony id>'",
    )
    value: str = Field(sa_type=Text, description="Token or serialized challenge state")  # type: ignore[call-overload]
    expires_at: datetime = Field(
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
        nullable=False,
    )

    def is_expired(self, now: datetime) -> bool:
        return as_utc(self.expires_at) <= now
