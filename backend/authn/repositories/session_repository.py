"""Repository for SignInSession persistence.

Only the Session actor calls this repository, always while holding the
session id's lock.
"""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from authn.models.session import SignInSession


class SessionRepository:
    """Stateless repository for sessions table operations.

    All methods are static; no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get(db: AsyncSession, session_id: str) -> SignInSession | None:
        """Fetch a session row by id.

        Args:
            db: Async database session.
            session_id: Challenge nonce.

        Returns:
            SignInSession if found, None otherwise.
        """
        return await db.get(SignInSession, session_id)

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        session_id: str,
        email: str,
        origin: str,
        email_verified: bool,
        created_at: int,
        destroy_at: int,
    ) -> SignInSession:
        """Insert a new session in the ``notyet`` state.

        Args:
            db: Async database session.
            session_id: Challenge nonce.
            email: Normalized email address.
            origin: Requesting origin.
            email_verified: Whether a verified user already exists.
            created_at: Creation time (epoch ms).
            destroy_at: Self-destruct deadline (epoch ms).

        Returns:
            Created SignInSession.
        """
        row = SignInSession(
            id=session_id,
            email=email,
            origin=origin,
            verify_state="notyet",
            email_verified=email_verified,
            created_at=created_at,
            destroy_at=destroy_at,
        )
        db.add(row)
        await db.flush()
        return row

    @staticmethod
    async def delete(db: AsyncSession, session_id: str) -> bool:
        """Delete a session row (self-destruct).

        Args:
            db: Async database session.
            session_id: Challenge nonce.

        Returns:
            True if a row was deleted.
        """
        result = await db.execute(
            delete(SignInSession).where(SignInSession.id == session_id)
        )
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count > 0

    @staticmethod
    async def list_deadlines(db: AsyncSession) -> list[tuple[str, int]]:
        """List (id, destroy_at) for every persisted session.

        Used at startup to re-arm self-destruct alarms.

        Args:
            db: Async database session.

        Returns:
            List of (session id, deadline in epoch ms).
        """
        result = await db.execute(select(SignInSession.id, SignInSession.destroy_at))
        return [(row[0], row[1]) for row in result.all()]

    @staticmethod
    async def delete_overdue(db: AsyncSession, now: int) -> int:
        """Delete all sessions whose deadline has passed.

        Args:
            db: Async database session.
            now: Current time (epoch ms).

        Returns:
            Number of deleted rows.
        """
        result = await db.execute(
            delete(SignInSession).where(SignInSession.destroy_at <= now)
        )
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
