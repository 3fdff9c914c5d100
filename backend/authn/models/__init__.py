"""SQLAlchemy ORM models.

All models are exported from this module for convenient imports:
    from authn.models import SignInSession, User, ...

Models are organized by actor:
- session.py: SignInSession (Session actor state)
- user.py: User, UserEmail, UserCredential (User actor state)
- identity_index.py: IdentityIndexEntry (email hash and verification token keys)
"""

from authn.models.base import Base, now_ms
from authn.models.identity_index import IdentityIndexEntry
from authn.models.session import SignInSession
from authn.models.user import User, UserCredential, UserEmail

__all__ = [
    "Base",
    "IdentityIndexEntry",
    "SignInSession",
    "User",
    "UserCredential",
    "UserEmail",
    "now_ms",
]
