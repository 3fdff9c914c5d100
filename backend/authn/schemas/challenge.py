"""Request and response schemas for the sign-in protocol endpoints."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from authn.schemas.credential import AuthenticationProof, RegistrationProof

# secrets.token_urlsafe(32) yields 43 characters
_CHALLENGE_MAX_LENGTH = 64


class ChallengeRequest(BaseModel):
    """Request body for POST /challenge."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class ChallengeResponse(BaseModel):
    """Response body for POST /challenge."""

    model_config = ConfigDict(populate_by_name=True)

    challenge: str
    credential_ids: list[str] = Field(alias="credentialIDs")


class RegisterRequest(BaseModel):
    """Request body for POST /register."""

    model_config = ConfigDict(extra="forbid")

    challenge: str = Field(min_length=1, max_length=_CHALLENGE_MAX_LENGTH)
    registration: RegistrationProof


class AuthenticateRequest(BaseModel):
    """Request body for POST /authenticate."""

    model_config = ConfigDict(extra="forbid")

    challenge: str = Field(min_length=1, max_length=_CHALLENGE_MAX_LENGTH)
    authentication: AuthenticationProof


class CheckResult(BaseModel):
    """Result of polling or redeeming a challenge.

    ``origin``, ``email`` and ``user`` are only present on redemption of an
    authenticated session.
    """

    authenticated: bool
    origin: str | None = None
    email: str | None = None
    user: str | None = None

    def to_wire(self) -> dict:
        """Serialize without the identity fields that are unset."""
        return self.model_dump(exclude_none=True)
