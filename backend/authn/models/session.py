"""Sign-in session model - persisted state of the Session actor.

One row per in-flight authentication attempt. The primary key doubles as
the cryptographic challenge nonce. Deleting the row is how the actor
self-destructs.
"""

from typing import Any

from sqlalchemy import JSON, BigInteger, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from authn.models.base import Base


class SignInSession(Base):
    """Ephemeral per-challenge state.

    Attributes:
        id: Challenge nonce (URL-safe base64, 256 bits of entropy).
        email: Normalized email address the attempt is for.
        origin: Scheme+host of the site that requested the challenge.
        verify_state: One of notyet, inprogress, unnecessary, success.
        email_verified: Whether a verified user existed at challenge time.
        pending_credential: Credential awaiting email verification (JSON).
        authenticated_user_id: User the attempt resolved to, once known.
        created_at: Creation time (epoch ms).
        destroy_at: Self-destruct deadline (epoch ms). Rows past this
            deadline are treated as destroyed.
    """

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
    )
    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
    )
    origin: Mapped[str] = mapped_column(
        String(2048),
        nullable=False,
    )
    verify_state: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="notyet",
    )
    email_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    pending_credential: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
    )
    authenticated_user_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    created_at: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )
    destroy_at: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        index=True,
    )
