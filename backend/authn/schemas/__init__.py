"""Pydantic schemas for the wire protocol and actor snapshots."""

from authn.schemas.challenge import (
    AuthenticateRequest,
    ChallengeRequest,
    ChallengeResponse,
    CheckResult,
    RegisterRequest,
)
from authn.schemas.credential import (
    AuthenticationProof,
    CredentialKey,
    RegistrationProof,
)
from authn.schemas.identity import (
    SessionInfo,
    StoredCredential,
    UserEmailInfo,
    UserInfo,
    VerifyState,
)

__all__ = [
    "AuthenticateRequest",
    "AuthenticationProof",
    "ChallengeRequest",
    "ChallengeResponse",
    "CheckResult",
    "CredentialKey",
    "RegisterRequest",
    "RegistrationProof",
    "SessionInfo",
    "StoredCredential",
    "UserEmailInfo",
    "UserInfo",
    "VerifyState",
]
