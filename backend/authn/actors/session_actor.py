"""Session actor - one in-flight sign-in attempt.

State machine:

    uninitialized -> notyet -> inprogress -> success
                           \\-> unnecessary
    (any) -> destroyed

All operations on one session id run under that id's lock. The
self-destruct alarm is armed once by ``init`` and can only be pulled
forward (``consume``/``destroy``); it acquires the same lock, so an
operation queued behind a firing alarm observes the session as gone.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from authn.core.errors import ConflictError, NotFoundError, ValidationError
from authn.models.base import now_ms
from authn.models.session import SignInSession
from authn.repositories.session_repository import SessionRepository
from authn.schemas.credential import CredentialKey
from authn.schemas.identity import SessionInfo, VerifyState

if TYPE_CHECKING:
    from authn.actors.system import ActorSystem

logger = structlog.get_logger()

_LOCK_PREFIX = "session:"
_RESOURCE = "Session"


class SessionActor:
    """Serialized access to one session's state.

    Instances are cheap handles; all state lives in the database.
    """

    def __init__(self, system: "ActorSystem", session_id: str) -> None:
        self._system = system
        self.id = session_id

    # -----------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------

    async def init(self, email: str, origin: str, verify_hint: bool) -> SessionInfo:
        """Bind the challenge to an email and origin.

        Args:
            email: Normalized email address.
            origin: Requesting origin.
            verify_hint: Whether a verified user already owns the email.

        Returns:
            Snapshot of the new session.

        Raises:
            ConflictError: If the session was already initialized.
        """
        ttl = self._system.session_ttl_seconds
        async with self._serialized():
            async with self._system.session_factory() as db:
                if await self._load(db) is not None:
                    raise ConflictError(
                        "SESSION_ALREADY_INITIALIZED",
                        "Session is already initialized",
                    )
                created_at = now_ms()
                row = await SessionRepository.create(
                    db,
                    session_id=self.id,
                    email=email,
                    origin=origin,
                    email_verified=verify_hint,
                    created_at=created_at,
                    destroy_at=created_at + ttl * 1000,
                )
                snapshot = _snapshot(row)
                await db.commit()
            self._system.alarms.set(self.id, ttl, self._self_destruct)
        return snapshot

    async def attach_credential(self, credential: CredentialKey) -> bool:
        """Store a credential awaiting email verification.

        Args:
            credential: Credential produced by the registration ceremony.

        Returns:
            True if this call moved the session into ``inprogress``;
            False if it was already there.

        Raises:
            NotFoundError: If the session does not exist.
            ValidationError: If the session is already authenticated.
        """
        async with self._serialized():
            async with self._system.session_factory() as db:
                row = await self._require(db)
                state = VerifyState(row.verify_state)
                if state.is_authenticated:
                    raise ValidationError("Session is already authenticated")
                row.pending_credential = credential.to_wire()
                row.verify_state = VerifyState.INPROGRESS.value
                await db.commit()
        return state is VerifyState.NOTYET

    async def verify(self) -> SessionInfo:
        """Commit the pending credential after the email link was visited.

        Resolves or creates the user that owns the session's email, adds the
        verified email and the pending credential to it, then marks the
        session ``success``. Safe to call again after partial completion.

        Returns:
            Snapshot of the verified session.

        Raises:
            NotFoundError: If the session does not exist.
            ValidationError: If verification is unnecessary or no credential
                is pending.
        """
        async with self._serialized():
            async with self._system.session_factory() as db:
                row = await self._require(db)
                if row.verify_state == VerifyState.UNNECESSARY.value:
                    raise ValidationError("Session does not need verification")
                if row.pending_credential is None:
                    raise ValidationError("Session has no pending credential")
                email = row.email
                origin = row.origin
                credential = CredentialKey.model_validate(row.pending_credential)
                user_id = row.authenticated_user_id

            if user_id is None:
                user_id = await self._system.index.claim_user_id(
                    email, self._system.new_user_id()
                )
            user = self._system.user(user_id)
            await user.verify_email(email)
            await user.add_credential(origin, credential)

            async with self._system.session_factory() as db:
                row = await self._require(db)
                row.verify_state = VerifyState.SUCCESS.value
                row.authenticated_user_id = user_id
                snapshot = _snapshot(row)
                await db.commit()

        logger.info("Session verified", session_id=self.id, user_id=user_id)
        return snapshot

    async def mark_authenticated(self, user_id: str) -> None:
        """Record a direct credential login; email gating is bypassed.

        Args:
            user_id: User whose credential produced a valid assertion.

        Raises:
            NotFoundError: If the session does not exist.
            ValidationError: If the session already completed email
                verification.
        """
        async with self._serialized():
            async with self._system.session_factory() as db:
                row = await self._require(db)
                if row.verify_state == VerifyState.SUCCESS.value:
                    raise ValidationError("Session is already verified")
                row.authenticated_user_id = user_id
                row.verify_state = VerifyState.UNNECESSARY.value
                await db.commit()

    async def info(self) -> SessionInfo:
        """Read-only snapshot.

        Raises:
            NotFoundError: If the session was never initialized or is gone.
        """
        async with self._serialized():
            async with self._system.session_factory() as db:
                row = await self._require(db)
                return _snapshot(row)

    async def consume(self) -> SessionInfo:
        """Return the snapshot and destroy the session immediately.

        At most one call per session succeeds; every later call raises
        NotFoundError.

        Raises:
            NotFoundError: If the session does not exist.
        """
        async with self._serialized():
            async with self._system.session_factory() as db:
                row = await self._require(db)
                snapshot = _snapshot(row)
                row.destroy_at = now_ms()
                await db.commit()
            self._system.alarms.set(self.id, 0, self._self_destruct)
        return snapshot

    async def destroy(self) -> None:
        """Destroy the session now, discarding any residual state."""
        async with self._serialized():
            async with self._system.session_factory() as db:
                row = await SessionRepository.get(db, self.id)
                if row is not None:
                    row.destroy_at = min(row.destroy_at, now_ms())
                    await db.commit()
            self._system.alarms.set(self.id, 0, self._self_destruct)

    # -----------------------------------------------------------------
    # Alarm
    # -----------------------------------------------------------------

    async def _self_destruct(self) -> None:
        async with self._serialized():
            async with self._system.session_factory() as db:
                deleted = await SessionRepository.delete(db, self.id)
                await db.commit()
        if deleted:
            logger.info("Session destroyed", session_id=self.id)

    def restore_alarm(self, destroy_at: int) -> None:
        """Re-arm the self-destruct alarm from a persisted deadline."""
        delay = max(destroy_at - now_ms(), 0) / 1000
        self._system.alarms.set(self.id, delay, self._self_destruct)

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    @asynccontextmanager
    async def _serialized(self) -> AsyncIterator[None]:
        async with self._system.locks.hold(_LOCK_PREFIX + self.id):
            yield

    async def _load(self, db: AsyncSession) -> SignInSession | None:
        """Load the live row; an overdue row is wiped and reported as gone."""
        row = await SessionRepository.get(db, self.id)
        if row is not None and row.destroy_at <= now_ms():
            await SessionRepository.delete(db, self.id)
            await db.commit()
            return None
        return row

    async def _require(self, db: AsyncSession) -> SignInSession:
        row = await self._load(db)
        if row is None:
            raise NotFoundError(_RESOURCE)
        return row


def _snapshot(row: SignInSession) -> SessionInfo:
    return SessionInfo(
        id=row.id,
        email=row.email,
        origin=row.origin,
        verify_state=VerifyState(row.verify_state),
        email_verified=row.email_verified,
        pending_credential=(
            CredentialKey.model_validate(row.pending_credential)
            if row.pending_credential is not None
            else None
        ),
        authenticated_user_id=row.authenticated_user_id,
        created_at=row.created_at,
        destroy_at=row.destroy_at,
    )
