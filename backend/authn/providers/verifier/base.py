"""Abstract base class and types for credential verifiers.

A verifier checks a registration or authentication proof against
predicates supplied by the caller. The predicates are bound to the values
stored in the session, never to values taken from the request.
"""

import hashlib
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlparse

from authn.schemas.credential import (
    AuthenticationProof,
    CredentialKey,
    RegistrationProof,
)
from authn.schemas.identity import StoredCredential

Predicate = Callable[[str], bool]
DigestPredicate = Callable[[bytes], bool]


def rp_id_hash(origin: str) -> bytes:
    """SHA-256 of the relying party id (the origin's host) for ``origin``."""
    return hashlib.sha256((urlparse(origin).hostname or "").encode()).digest()


@dataclass(frozen=True)
class ExpectedRegistration:
    """Predicates a registration proof must satisfy.

    Attributes:
        challenge: Accepts the challenge found in the client data.
        origin: Accepts the origin found in the client data.
        rp_id_hash: Accepts the relying party id hash found in the
            authenticator data.
    """

    challenge: Predicate
    origin: Predicate
    rp_id_hash: DigestPredicate


@dataclass(frozen=True)
class ExpectedAuthentication:
    """Predicates an authentication proof must satisfy.

    Attributes:
        challenge: Accepts the challenge found in the client data.
        origin: Accepts the origin found in the client data.
        rp_id_hash: Accepts the relying party id hash found in the
            authenticator data.
        user_verified: Require the authenticator's user-verified flag.
        counter: Last signature counter seen for the credential. When it or
            the new counter is non-zero, the new counter must be greater.
    """

    challenge: Predicate
    origin: Predicate
    rp_id_hash: DigestPredicate
    user_verified: bool = True
    counter: int = 0


@dataclass(frozen=True)
class VerifiedRegistration:
    """Outcome of a successful registration check.

    Attributes:
        credential: The credential to store.
        user_verified: Whether the authenticator verified the user.
    """

    credential: CredentialKey
    user_verified: bool


@dataclass(frozen=True)
class VerifiedAuthentication:
    """Outcome of a successful authentication check.

    Attributes:
        credential_id: Credential that produced the assertion.
        sign_count: Counter reported by the authenticator.
        user_verified: Whether the authenticator verified the user.
    """

    credential_id: str
    sign_count: int
    user_verified: bool


class CredentialVerifier(ABC):
    """Abstract base class for credential verifiers.

    Implementations raise a VerifierError subclass on any failed check.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Short adapter name used in logs."""
        ...

    @abstractmethod
    async def verify_registration(
        self,
        proof: RegistrationProof,
        expected: ExpectedRegistration,
    ) -> VerifiedRegistration:
        """Check a registration proof.

        Args:
            proof: Encoded registration from the client.
            expected: Challenge and origin predicates.

        Returns:
            VerifiedRegistration with the credential to store.

        Raises:
            VerificationFailed: If any check fails.
        """
        ...

    @abstractmethod
    async def verify_authentication(
        self,
        proof: AuthenticationProof,
        credential: StoredCredential,
        expected: ExpectedAuthentication,
    ) -> VerifiedAuthentication:
        """Check an authentication proof against a stored credential.

        Args:
            proof: Encoded assertion from the client.
            credential: Stored credential matching ``proof.credential_id``.
            expected: Challenge/origin predicates, flag and counter rules.

        Returns:
            VerifiedAuthentication with the new signature counter.

        Raises:
            VerificationFailed: If any check fails.
        """
        ...
