"""SQLAlchemy declarative base and time helpers.

Timestamps are stored as integer epoch milliseconds, the same unit the
wire protocol exposes (``createdAt``, ``verifiedAt``).
"""

import time

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models."""


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)
