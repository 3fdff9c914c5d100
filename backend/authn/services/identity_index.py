"""Identity index - durable key/value lookups shared by both actor kinds.

Keys:
- ``email:<base64(sha256(email))>`` -> user id (never expires)
- ``verify:<token>`` -> session id (expires with the verification link)

Writes to one key are serialized in-process through the shared KeyedLock;
``put_if_absent`` is additionally backed by the table's primary key, so the
first writer wins even across processes.
"""

import base64
import hashlib
import secrets

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authn.actors.runtime import KeyedLock
from authn.core.errors import InternalError
from authn.models.base import now_ms
from authn.repositories.identity_index_repository import IdentityIndexRepository

logger = structlog.get_logger()

EMAIL_KEY_PREFIX = "email:"
VERIFY_KEY_PREFIX = "verify:"
_LOCK_PREFIX = "index:"


def normalize_email(email: str) -> str:
    """Canonical form of an email address used for hashing and storage."""
    return email.strip().lower()


def email_to_user_key(email: str) -> str:
    """Index key for an email address.

    Only a one-way hash of the address is stored in the key.

    Args:
        email: Email address (normalized by the caller).

    Returns:
        Key of the form ``email:<base64 sha256>``.
    """
    digest = hashlib.sha256(email.encode()).digest()
    return f"{EMAIL_KEY_PREFIX}{base64.b64encode(digest).decode('ascii')}"


def verification_token_key(token: str) -> str:
    """Index key for a one-shot verification token."""
    return f"{VERIFY_KEY_PREFIX}{token}"


class IdentityIndex:
    """Key/value store over the identity_index table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        locks: KeyedLock,
    ) -> None:
        """Initialize the index.

        Args:
            session_factory: Factory for short-lived DB sessions.
            locks: Shared per-key lock map.
        """
        self._session_factory = session_factory
        self._locks = locks

    # -----------------------------------------------------------------
    # Generic key/value operations
    # -----------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        """Return the live value stored under ``key``, if any."""
        async with self._session_factory() as db:
            entry = await IdentityIndexRepository.get(db, key=key, now=now_ms())
            return entry.value if entry is not None else None

    async def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store ``value`` under ``key``, overwriting any previous value.

        Args:
            key: Namespaced key.
            value: Actor id.
            ttl_seconds: Lifetime; None = never expires.
        """
        async with self._locks.hold(_LOCK_PREFIX + key):
            async with self._session_factory() as db:
                await IdentityIndexRepository.upsert(
                    db, key=key, value=value, expires_at=_expiry(ttl_seconds)
                )
                await db.commit()

    async def put_if_absent(
        self, key: str, value: str, ttl_seconds: int | None = None
    ) -> str:
        """Store ``value`` only if ``key`` has no live value.

        Args:
            key: Namespaced key.
            value: Candidate actor id.
            ttl_seconds: Lifetime; None = never expires.

        Returns:
            The value that ends up stored: ``value`` if this call won,
            otherwise the value written by the earlier writer.
        """
        async with self._locks.hold(_LOCK_PREFIX + key):
            async with self._session_factory() as db:
                existing = await IdentityIndexRepository.get(db, key=key, now=now_ms())
                if existing is not None:
                    return existing.value
                try:
                    await IdentityIndexRepository.upsert(
                        db, key=key, value=value, expires_at=_expiry(ttl_seconds)
                    )
                    await db.commit()
                except IntegrityError:
                    # Another process inserted the key first
                    await db.rollback()
                    winner = await IdentityIndexRepository.get(
                        db, key=key, now=now_ms()
                    )
                    if winner is None:
                        raise InternalError("Identity index write conflict") from None
                    logger.info("Identity index key claimed concurrently", key=key)
                    return winner.value
                return value

    async def delete(self, key: str) -> None:
        """Delete ``key`` if present."""
        async with self._locks.hold(_LOCK_PREFIX + key):
            async with self._session_factory() as db:
                await IdentityIndexRepository.delete(db, key=key)
                await db.commit()

    async def take(self, key: str) -> str | None:
        """Delete ``key`` and return its live value, if any.

        Of any number of concurrent callers, at most one gets the value.
        """
        async with self._locks.hold(_LOCK_PREFIX + key):
            async with self._session_factory() as db:
                value = await IdentityIndexRepository.pop(db, key=key, now=now_ms())
                await db.commit()
                return value

    async def purge_expired(self) -> int:
        """Delete every expired entry.

        Returns:
            Number of entries removed.
        """
        async with self._session_factory() as db:
            removed = await IdentityIndexRepository.delete_expired(db, now=now_ms())
            await db.commit()
            return removed

    # -----------------------------------------------------------------
    # Email -> user
    # -----------------------------------------------------------------

    async def find_user_id(self, email: str) -> str | None:
        """Return the user id registered for ``email``, if any."""
        return await self.get(email_to_user_key(email))

    async def claim_user_id(self, email: str, candidate_user_id: str) -> str:
        """Bind ``email`` to ``candidate_user_id`` unless already bound.

        Returns:
            The user id that owns the email after this call.
        """
        return await self.put_if_absent(email_to_user_key(email), candidate_user_id)

    # -----------------------------------------------------------------
    # Verification token -> session
    # -----------------------------------------------------------------

    async def issue_verification_token(self, session_id: str, ttl_seconds: int) -> str:
        """Mint a one-shot verification token pointing at ``session_id``.

        Args:
            session_id: Session awaiting email verification.
            ttl_seconds: Token lifetime.

        Returns:
            The plain token to embed in the verification link.
        """
        token = secrets.token_urlsafe(32)
        await self.put(verification_token_key(token), session_id, ttl_seconds)
        return token

    async def resolve_verification_token(self, token: str) -> str | None:
        """Return the session id a live token points at, if any."""
        return await self.get(verification_token_key(token))

    async def redeem_verification_token(self, token: str) -> str | None:
        """Revoke a token and return the session id it pointed at.

        Returns None if the token is unknown, expired or already redeemed.
        """
        return await self.take(verification_token_key(token))


def _expiry(ttl_seconds: int | None) -> int | None:
    if ttl_seconds is None:
        return None
    return now_ms() + ttl_seconds * 1000
