"""Repository for User, UserEmail and UserCredential persistence.

Only the User actor calls this repository, always while holding the user
id's lock.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from authn.models.user import User, UserCredential, UserEmail


class UserRepository:
    """Stateless repository for the users tables.

    All methods are static; no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get(db: AsyncSession, user_id: str) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: User id.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id)

    @staticmethod
    async def create(db: AsyncSession, *, user_id: str, created_at: int) -> User:
        """Insert a user row.

        Args:
            db: Async database session.
            user_id: User id.
            created_at: Creation time (epoch ms).

        Returns:
            Created User.
        """
        user = User(id=user_id, created_at=created_at)
        db.add(user)
        await db.flush()
        return user

    @staticmethod
    async def list_emails(db: AsyncSession, user_id: str) -> list[UserEmail]:
        """List a user's emails in insertion order.

        Args:
            db: Async database session.
            user_id: User id.

        Returns:
            List of UserEmail rows (may be empty).
        """
        result = await db.execute(
            select(UserEmail)
            .where(UserEmail.user_id == user_id)
            .order_by(UserEmail.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def add_email(
        db: AsyncSession,
        *,
        user_id: str,
        email: str,
        verified_at: int | None,
        primary: bool,
    ) -> UserEmail:
        """Attach an email entry to a user.

        Args:
            db: Async database session.
            user_id: User id.
            email: Normalized email address.
            verified_at: Verification time (epoch ms) or None.
            primary: Whether this is the user's primary email.

        Returns:
            Created UserEmail.
        """
        entry = UserEmail(
            user_id=user_id,
            email=email,
            verified_at=verified_at,
            primary=primary,
        )
        db.add(entry)
        await db.flush()
        return entry

    @staticmethod
    async def list_credentials(
        db: AsyncSession, user_id: str, origin: str
    ) -> list[UserCredential]:
        """List a user's credentials for one origin in insertion order.

        Args:
            db: Async database session.
            user_id: User id.
            origin: Origin the credentials are scoped to.

        Returns:
            List of UserCredential rows (may be empty).
        """
        result = await db.execute(
            select(UserCredential)
            .where(
                UserCredential.user_id == user_id,
                UserCredential.origin == origin,
            )
            .order_by(UserCredential.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_credential(
        db: AsyncSession, *, user_id: str, origin: str, credential_id: str
    ) -> UserCredential | None:
        """Look up one credential by its (user, origin, credential id) key.

        Args:
            db: Async database session.
            user_id: User id.
            origin: Origin the credential is scoped to.
            credential_id: Authenticator-assigned credential id.

        Returns:
            UserCredential if found, None otherwise.
        """
        result = await db.execute(
            select(UserCredential).where(
                UserCredential.user_id == user_id,
                UserCredential.origin == origin,
                UserCredential.credential_id == credential_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def add_credential(
        db: AsyncSession,
        *,
        user_id: str,
        origin: str,
        credential_id: str,
        public_key: str,
        algorithm: str,
        transports: list[Any],
    ) -> UserCredential:
        """Store a credential for one origin.

        Args:
            db: Async database session.
            user_id: User id.
            origin: Origin the credential is scoped to.
            credential_id: Authenticator-assigned credential id.
            public_key: Encoded public key.
            algorithm: Signature algorithm.
            transports: Transport hints.

        Returns:
            Created UserCredential.
        """
        credential = UserCredential(
            user_id=user_id,
            origin=origin,
            credential_id=credential_id,
            public_key=public_key,
            algorithm=algorithm,
            transports=list(transports),
            sign_count=0,
        )
        db.add(credential)
        await db.flush()
        return credential
