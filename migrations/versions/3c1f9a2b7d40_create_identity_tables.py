"""create_identity_tables

Revision ID: 3c1f9a2b7d40
Revises:
Create Date: 2026-10-19 12:00:00.000000

Initial identity store schema:
- user: identity anchor, unique email
- session: bearer sessions, cascade-deleted with their user
- account: password and passkey credential bindings, unique per (provider, account)
- verification: email verification tokens and passkey ceremony challenges
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "3c1f9a2b7d40"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.String(length=21), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("image", sa.String(), nullable=True),
        *timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)

    op.create_table(
        "session",
        sa.Column("id", sa.String(length=21), nullable=False),
        sa.Column("user_id", sa.String(length=21), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("token", sa.String(length=255), nullable=False),
        sa.Column("ip_address", sa.String(length=255), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_session_token", "session", ["token"], unique=True)
    op.create_index("ix_session_user_id", "session", ["user_id"])

    op.create_table(
        "account",
        sa.Column("id", sa.String(length=21), nullable=False),
        sa.Column("account_id", sa.String(length=255), nullable=False),
        sa.Column("provider_id", sa.String(length=255), nullable=False),
        sa.Column("user_id", sa.String(length=21), nullable=False),
        sa.Column("access_token", sa.String(), nullable=True),
        sa.Column("refresh_token", sa.String(), nullable=True),
        sa.Column("access_token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scope", sa.String(), nullable=True),
        sa.Column("password", sa.String(length=255), nullable=True),
        sa.Column("public_key", sa.String(), nullable=True),
        sa.Column("counter", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("device_type", sa.String(length=32), nullable=True),
        sa.Column("backed_up", sa.Boolean(), nullable=True),
        sa.Column("transports", sa.String(length=255), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider_id", "account_id", name="uq_account_provider_account"),
    )
    op.create_index("ix_account_provider_id", "account", ["provider_id"])
    op.create_index("ix_account_user_id", "account", ["user_id"])

    op.create_table(
        "verification",
        sa.Column("id", sa.String(length=21), nullable=False),
        sa.Column("identifier", sa.String(length=255), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_verification_identifier", "verification", ["identifier"])


def downgrade() -> None:
    op.drop_index("ix_verification_identifier", table_name="verification")
    op.drop_table("verification")
    op.drop_index("ix_account_user_id", table_name="account")
    op.drop_index("ix_account_provider_id", table_name="account")
    op.drop_table("account")
    op.drop_index("ix_session_user_id", table_name="session")
    op.drop_index("ix_session_token", table_name="session")
    op.drop_table("session")
    op.drop_index("ix_user_email", table_name="user")
    op.drop_table("user")
