"""User models - persisted state of the User actor.

A user owns an ordered list of email entries and, per origin, a list of
public-key credentials. Uniqueness invariants are enforced by constraints
as well as by the actor.
"""

from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from authn.models.base import Base

_USER_FK = "users.id"


class User(Base):
    """Durable identity.

    Attributes:
        id: Opaque user id (uuid4 hex).
        created_at: Creation time (epoch ms). Never null once the row exists.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
    )
    created_at: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )


class UserEmail(Base):
    """An email address attached to a user.

    Attributes:
        id: Surrogate key; insertion order of the user's emails.
        user_id: Owning user.
        email: Normalized email address (unique per user).
        verified_at: Verification time (epoch ms). NULL = unverified.
        primary: True for the first email ever added to the user.
    """

    __tablename__ = "user_emails"
    __table_args__ = (
        UniqueConstraint("user_id", "email", name="uq_user_emails_user_email"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey(_USER_FK, ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
    )
    verified_at: Mapped[int | None] = mapped_column(
        BigInteger,
        nullable=True,
    )
    primary: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )


class UserCredential(Base):
    """A public-key credential registered for one origin.

    Attributes:
        id: Surrogate key; insertion order within the user.
        user_id: Owning user.
        origin: Origin the credential is scoped to.
        credential_id: Authenticator-assigned credential id (unique per
            user and origin).
        public_key: Encoded public key (base64url SPKI).
        algorithm: Signature algorithm ("ES256" or "RS256").
        transports: Authenticator transport hints (JSON list).
        sign_count: Last signature counter seen for this credential.
    """

    __tablename__ = "user_credentials"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "origin",
            "credential_id",
            name="uq_user_credentials_user_origin_credential",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey(_USER_FK, ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    origin: Mapped[str] = mapped_column(
        String(2048),
        nullable=False,
    )
    credential_id: Mapped[str] = mapped_column(
        String(1024),
        nullable=False,
    )
    public_key: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
    )
    algorithm: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )
    transports: Mapped[list[Any]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )
    sign_count: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )
