"""Actor system - shared runtime for Session and User actors.

Owns the per-id lock map, the alarm scheduler, the identity index and the
DB session factory. Actor handles are obtained from it by id.
"""

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authn.actors.runtime import AlarmScheduler, KeyedLock
from authn.actors.session_actor import SessionActor
from authn.actors.user_actor import UserActor
from authn.core.config import settings
from authn.models.base import now_ms
from authn.repositories.session_repository import SessionRepository
from authn.services.identity_index import IdentityIndex

logger = structlog.get_logger()


class ActorSystem:
    """Registry and runtime for all actors of one process."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        session_ttl_seconds: int | None = None,
    ) -> None:
        """Initialize the actor system.

        Args:
            session_factory: Factory for short-lived DB sessions.
            session_ttl_seconds: Self-destruct delay for new sessions.
                Defaults to settings.session_ttl_seconds.
        """
        self.session_factory = session_factory
        self.session_ttl_seconds = (
            session_ttl_seconds
            if session_ttl_seconds is not None
            else settings.session_ttl_seconds
        )
        self.locks = KeyedLock()
        self.alarms = AlarmScheduler()
        self.index = IdentityIndex(session_factory, self.locks)

    def session(self, session_id: str) -> SessionActor:
        """Handle to the Session actor with ``session_id``."""
        return SessionActor(self, session_id)

    def user(self, user_id: str) -> UserActor:
        """Handle to the User actor with ``user_id``."""
        return UserActor(self, user_id)

    @staticmethod
    def new_user_id() -> str:
        """Fresh, unguessable user id."""
        return uuid.uuid4().hex

    async def restore_alarms(self) -> int:
        """Re-arm self-destruct alarms for every persisted session.

        Returns:
            Number of alarms armed.
        """
        async with self.session_factory() as db:
            deadlines = await SessionRepository.list_deadlines(db)
        for session_id, destroy_at in deadlines:
            self.session(session_id).restore_alarm(destroy_at)
        if deadlines:
            logger.info("Session alarms restored", count=len(deadlines))
        return len(deadlines)

    async def purge_overdue_sessions(self) -> int:
        """Delete sessions whose deadline passed without their alarm firing.

        Returns:
            Number of sessions removed.
        """
        async with self.session_factory() as db:
            removed = await SessionRepository.delete_overdue(db, now_ms())
            await db.commit()
            return removed

    async def shutdown(self) -> None:
        """Cancel pending alarms; persisted deadlines survive a restart."""
        await self.alarms.shutdown()


_actor_system: ActorSystem | None = None


def get_actor_system() -> ActorSystem:
    """Get or create the process-wide actor system singleton.

    Returns:
        The ActorSystem singleton, bound to the application database.
    """
    global _actor_system
    if _actor_system is None:
        from authn.core.database import async_session_factory

        _actor_system = ActorSystem(async_session_factory)
    return _actor_system


def set_actor_system(system: ActorSystem | None) -> None:
    """Replace the singleton (tests inject a system bound to a test DB)."""
    global _actor_system
    _actor_system = system
