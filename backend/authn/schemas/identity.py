"""Actor snapshot schemas.

Read-only views returned by the Session and User actors. Serialized with
camelCase aliases when they cross the HTTP boundary.
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from authn.schemas.credential import CredentialKey


class VerifyState(StrEnum):
    """Email-gating state of a sign-in session.

    Transitions only move forward:
    notyet -> inprogress -> success, or notyet/inprogress -> unnecessary.
    """

    NOTYET = "notyet"
    INPROGRESS = "inprogress"
    UNNECESSARY = "unnecessary"
    SUCCESS = "success"

    @property
    def is_authenticated(self) -> bool:
        """True once the session resolved to a user."""
        return self in (VerifyState.UNNECESSARY, VerifyState.SUCCESS)


class SessionInfo(BaseModel):
    """Snapshot of one sign-in session."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    origin: str
    verify_state: VerifyState = Field(alias="verifyState")
    email_verified: bool = Field(alias="emailVerified")
    pending_credential: CredentialKey | None = Field(
        default=None, alias="pendingCredential"
    )
    authenticated_user_id: str | None = Field(
        default=None, alias="authenticatedUserId"
    )
    created_at: int = Field(alias="createdAt")
    destroy_at: int = Field(alias="destroyAt")

    @property
    def authenticated(self) -> bool:
        """True once a user id is bound and the state is terminal-positive."""
        return (
            self.verify_state.is_authenticated
            and self.authenticated_user_id is not None
        )


class UserEmailInfo(BaseModel):
    """One email entry of a user."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    verified_at: int | None = Field(default=None, alias="verifiedAt")
    primary: bool = False


class StoredCredential(BaseModel):
    """A credential as stored for one origin, with its signature counter."""

    key: CredentialKey
    sign_count: int = 0


class UserInfo(BaseModel):
    """Snapshot of one user, with credentials scoped to a single origin."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    emails: list[UserEmailInfo]
    credentials: list[StoredCredential]
    created_at: int = Field(alias="createdAt")

    def is_verified(self, email: str) -> bool:
        """Whether ``email`` is attached to this user and verified."""
        return any(
            entry.email == email and entry.verified_at is not None
            for entry in self.emails
        )

    def find_credential(self, credential_id: str) -> StoredCredential | None:
        """Find an origin-scoped credential by id."""
        for stored in self.credentials:
            if stored.key.id == credential_id:
                return stored
        return None
