"""User actor - durable source of truth for a person's identity.

Holds verified emails and origin-scoped credentials. Created lazily by the
first write; never destroyed. Every write is idempotent so a Session that
re-runs verification after a partial failure converges on the same state.
"""

from typing import TYPE_CHECKING

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from authn.core.errors import NotFoundError
from authn.models.base import now_ms
from authn.models.user import User, UserCredential
from authn.repositories.user_repository import UserRepository
from authn.schemas.credential import CredentialKey
from authn.schemas.identity import StoredCredential, UserEmailInfo, UserInfo

if TYPE_CHECKING:
    from authn.actors.system import ActorSystem

logger = structlog.get_logger()

_LOCK_PREFIX = "user:"


class UserActor:
    """Serialized access to one user's state.

    Instances are cheap handles; all state lives in the database.
    """

    def __init__(self, system: "ActorSystem", user_id: str) -> None:
        self._system = system
        self.id = user_id

    async def verify_email(self, email: str) -> None:
        """Add ``email`` if absent and mark it verified if not already.

        The first email ever added becomes primary. ``verified_at`` is only
        ever set once.

        Args:
            email: Normalized email address.
        """
        async with self._system.locks.hold(_LOCK_PREFIX + self.id):
            async with self._system.session_factory() as db:
                await self._ensure_created(db)
                emails = await UserRepository.list_emails(db, self.id)
                existing = next((e for e in emails if e.email == email), None)
                if existing is None:
                    await UserRepository.add_email(
                        db,
                        user_id=self.id,
                        email=email,
                        verified_at=now_ms(),
                        primary=not emails,
                    )
                elif existing.verified_at is None:
                    existing.verified_at = now_ms()
                else:
                    return
                await db.commit()
                logger.info(
                    "Email verified",
                    user_id=self.id,
                    new_entry=existing is None,
                )

    async def add_credential(self, origin: str, credential: CredentialKey) -> bool:
        """Append a credential to ``origin``'s list unless its id is present.

        Args:
            origin: Origin the credential is scoped to.
            credential: Credential reference.

        Returns:
            True if the credential was added, False if it already existed.
        """
        async with self._system.locks.hold(_LOCK_PREFIX + self.id):
            async with self._system.session_factory() as db:
                await self._ensure_created(db)
                existing = await UserRepository.get_credential(
                    db, user_id=self.id, origin=origin, credential_id=credential.id
                )
                if existing is not None:
                    return False
                await UserRepository.add_credential(
                    db,
                    user_id=self.id,
                    origin=origin,
                    credential_id=credential.id,
                    public_key=credential.public_key,
                    algorithm=credential.algorithm,
                    transports=credential.transports,
                )
                await db.commit()
                logger.info("Credential added", user_id=self.id, origin=origin)
                return True

    async def record_sign_count(
        self, origin: str, credential_id: str, sign_count: int
    ) -> None:
        """Store the authenticator's signature counter after a login.

        The stored counter never decreases.

        Args:
            origin: Origin the credential is scoped to.
            credential_id: Credential id.
            sign_count: Counter reported by the authenticator.

        Raises:
            NotFoundError: If the credential does not exist.
        """
        async with self._system.locks.hold(_LOCK_PREFIX + self.id):
            async with self._system.session_factory() as db:
                credential = await UserRepository.get_credential(
                    db, user_id=self.id, origin=origin, credential_id=credential_id
                )
                if credential is None:
                    raise NotFoundError("Credential")
                if sign_count > credential.sign_count:
                    credential.sign_count = sign_count
                    await db.commit()

    async def info(self, origin: str | None = None) -> UserInfo:
        """Snapshot of the user with credentials scoped to ``origin``.

        Args:
            origin: Origin to scope credentials to; None yields no credentials.

        Returns:
            UserInfo snapshot.

        Raises:
            NotFoundError: If the user was never created.
        """
        async with self._system.locks.hold(_LOCK_PREFIX + self.id):
            async with self._system.session_factory() as db:
                user = await UserRepository.get(db, self.id)
                if user is None:
                    raise NotFoundError("User", self.id)
                emails = await UserRepository.list_emails(db, self.id)
                credentials = (
                    await UserRepository.list_credentials(db, self.id, origin)
                    if origin
                    else []
                )
                return UserInfo(
                    id=user.id,
                    emails=[
                        UserEmailInfo(
                            email=e.email,
                            verified_at=e.verified_at,
                            primary=e.primary,
                        )
                        for e in emails
                    ],
                    credentials=[_to_stored(c) for c in credentials],
                    created_at=user.created_at,
                )

    async def _ensure_created(self, db: AsyncSession) -> User:
        user = await UserRepository.get(db, self.id)
        if user is None:
            user = await UserRepository.create(db, user_id=self.id, created_at=now_ms())
            logger.info("User created", user_id=self.id)
        return user


def _to_stored(credential: UserCredential) -> StoredCredential:
    return StoredCredential(
        key=CredentialKey(
            id=credential.credential_id,
            public_key=credential.public_key,
            algorithm=credential.algorithm,
            transports=credential.transports or [],
        ),
        sign_count=credential.sign_count,
    )
