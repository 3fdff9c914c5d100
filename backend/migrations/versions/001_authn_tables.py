"""Create sign-in tables: sessions, users, user emails/credentials, identity index.

Revision ID: 001_authn_tables
Revises:
Create Date: 2026-10-19

Timestamps are BIGINT epoch milliseconds.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_authn_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Session actor state; a row past destroy_at is treated as gone
    op.create_table(
        "sessions",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("origin", sa.String(2048), nullable=False),
        sa.Column(
            "verify_state", sa.String(20), nullable=False, server_default="notyet"
        ),
        sa.Column(
            "email_verified", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column("pending_credential", sa.JSON(), nullable=True),
        sa.Column("authenticated_user_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("destroy_at", sa.BigInteger(), nullable=False),
        sa.CheckConstraint(
            "verify_state IN ('notyet', 'inprogress', 'unnecessary', 'success')",
            name="ck_sessions_verify_state",
        ),
    )
    op.create_index("ix_sessions_destroy_at", "sessions", ["destroy_at"])

    # User actor state
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
    )

    op.create_table(
        "user_emails",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("verified_at", sa.BigInteger(), nullable=True),
        sa.Column("primary", sa.Boolean(), nullable=False, server_default="false"),
        sa.UniqueConstraint("user_id", "email", name="uq_user_emails_user_email"),
    )
    op.create_index("ix_user_emails_user_id", "user_emails", ["user_id"])

    op.create_table(
        "user_credentials",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("origin", sa.String(2048), nullable=False),
        sa.Column("credential_id", sa.String(1024), nullable=False),
        sa.Column("public_key", sa.Text(), nullable=False),
        sa.Column("algorithm", sa.String(10), nullable=False),
        sa.Column("transports", sa.JSON(), nullable=True),
        sa.Column("sign_count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.UniqueConstraint(
            "user_id",
            "origin",
            "credential_id",
            name="uq_user_credentials_user_origin_credential",
        ),
    )
    op.create_index("ix_user_credentials_user_id", "user_credentials", ["user_id"])

    # Shared key/value index; NULL expires_at never expires
    op.create_table(
        "identity_index",
        sa.Column("key", sa.String(255), primary_key=True),
        sa.Column("value", sa.String(255), nullable=False),
        sa.Column("expires_at", sa.BigInteger(), nullable=True),
    )
    op.create_index("ix_identity_index_expires_at", "identity_index", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_identity_index_expires_at", table_name="identity_index")
    op.drop_table("identity_index")
    op.drop_index("ix_user_credentials_user_id", table_name="user_credentials")
    op.drop_table("user_credentials")
    op.drop_index("ix_user_emails_user_id", table_name="user_emails")
    op.drop_table("user_emails")
    op.drop_table("users")
    op.drop_index("ix_sessions_destroy_at", table_name="sessions")
    op.drop_table("sessions")
