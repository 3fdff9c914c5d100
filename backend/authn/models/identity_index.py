"""Identity index model - durable key/value entries.

Two key families share the table:
- ``email:<hash>`` -> user id, no expiry
- ``verify:<token>`` -> session id, expires after the link TTL
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from authn.models.base import Base


class IdentityIndexEntry(Base):
    """One key/value pair.

    Attributes:
        key: Namespaced lookup key.
        value: Actor id the key resolves to.
        expires_at: Expiry (epoch ms). NULL = never expires.
    """

    __tablename__ = "identity_index"

    key: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )
    value: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    expires_at: Mapped[int | None] = mapped_column(
        BigInteger,
        nullable=True,
        index=True,
    )
