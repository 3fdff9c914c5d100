"""Repository for IdentityIndexEntry key/value operations."""

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from authn.models.identity_index import IdentityIndexEntry


class IdentityIndexRepository:
    """Stateless repository for identity_index table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def get(
        db: AsyncSession, *, key: str, now: int
    ) -> IdentityIndexEntry | None:
        """Look up a live entry by key.

        Args:
            db: Async database session.
            key: Namespaced key.
            now: Current time (epoch ms); expired entries are not returned.

        Returns:
            IdentityIndexEntry if found and not expired, None otherwise.
        """
        stmt = select(IdentityIndexEntry).where(
            IdentityIndexEntry.key == key,
            or_(
                IdentityIndexEntry.expires_at.is_(None),
                IdentityIndexEntry.expires_at > now,
            ),
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def upsert(
        db: AsyncSession, *, key: str, value: str, expires_at: int | None
    ) -> IdentityIndexEntry:
        """Insert or overwrite an entry.

        Args:
            db: Async database session.
            key: Namespaced key.
            value: Actor id.
            expires_at: Expiry (epoch ms) or None.

        Returns:
            The stored entry.
        """
        entry = await db.get(IdentityIndexEntry, key)
        if entry is None:
            entry = IdentityIndexEntry(key=key, value=value, expires_at=expires_at)
            db.add(entry)
        else:
            entry.value = value
            entry.expires_at = expires_at
        await db.flush()
        return entry

    @staticmethod
    async def delete(db: AsyncSession, *, key: str) -> None:
        """Delete an entry by key.

        Args:
            db: Async database session.
            key: Namespaced key.
        """
        await db.execute(delete(IdentityIndexEntry).where(IdentityIndexEntry.key == key))

    @staticmethod
    async def pop(db: AsyncSession, *, key: str, now: int) -> str | None:
        """Delete an entry by key and return its value if it was live.

        A single DELETE ... RETURNING, so of two concurrent callers at most
        one receives the value.

        Args:
            db: Async database session.
            key: Namespaced key.
            now: Current time (epoch ms).

        Returns:
            The deleted entry's value, or None if it was missing or expired.
        """
        stmt = (
            delete(IdentityIndexEntry)
            .where(IdentityIndexEntry.key == key)
            .returning(IdentityIndexEntry.value, IdentityIndexEntry.expires_at)
        )
        row = (await db.execute(stmt)).one_or_none()
        if row is None:
            return None
        value, expires_at = row
        if expires_at is not None and expires_at <= now:
            return None
        return value

    @staticmethod
    async def delete_expired(db: AsyncSession, *, now: int) -> int:
        """Delete all expired entries (periodic cleanup).

        Args:
            db: Async database session.
            now: Current time (epoch ms).

        Returns:
            Number of deleted rows.
        """
        stmt = delete(IdentityIndexEntry).where(
            IdentityIndexEntry.expires_at.is_not(None),
            IdentityIndexEntry.expires_at <= now,
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
