"""User model."""

from sqlmodel import Field, SQLModel

from blindtest.models.base import BaseModel


class User(BaseModel, table=True):
    """Identity anchor. Sessions and accounts hang off it."""

    __tablename__ = "user"

    name: str = Field(max_length=255)
    email: str = Field(unique=True, index=True, max_length=255)
    email_verified: bool = Field(default=False)
    image: str | None = Field(default=None)


class UserRead(SQLModel):
    """Schema for reading a user."""

    id: str
    name: str
    email: str
    email_verified: bool
    image: str | None
