"""Mock credential verifier for testing.

Checks the client data (type, challenge, origin) exactly like the passkey
verifier but skips flags, counters and signatures, so tests can drive the
sign-in flows without generating key pairs.
"""

import json
from typing import Any

from authn.providers.errors import VerificationFailed
from authn.providers.verifier.base import (
    CredentialVerifier,
    ExpectedAuthentication,
    ExpectedRegistration,
    VerifiedAuthentication,
    VerifiedRegistration,
)
from authn.providers.verifier.passkey_adapter import (
    b64url_encode,
    parse_client_data,
)
from authn.schemas.credential import AuthenticationProof, RegistrationProof
from authn.schemas.identity import StoredCredential


def make_client_data(type_: str, challenge: str, origin: str) -> str:
    """Encode client data the way the browser widget does."""
    payload = json.dumps({"type": type_, "challenge": challenge, "origin": origin})
    return b64url_encode(payload.encode())


class MockVerifier(CredentialVerifier):
    """Mock verifier for orchestrator and API tests.

    Attributes:
        calls: Record of all method invocations for test assertions.
        reject: When set, every proof is rejected with this message.
    """

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.reject: str | None = None

    @property
    def provider_name(self) -> str:
        return "mock"

    def _check(self, encoded: str, expected_type: str, challenge_ok, origin_ok) -> None:
        if self.reject is not None:
            raise VerificationFailed(self.reject)
        _raw, client = parse_client_data(encoded)
        if client.get("type") != expected_type:
            raise VerificationFailed("Unexpected client data type")
        if not challenge_ok(str(client.get("challenge", ""))):
            raise VerificationFailed("Challenge mismatch")
        if not origin_ok(str(client.get("origin", ""))):
            raise VerificationFailed("Origin mismatch")

    async def verify_registration(
        self,
        proof: RegistrationProof,
        expected: ExpectedRegistration,
    ) -> VerifiedRegistration:
        self.calls.append(
            {"method": "verify_registration", "proof": proof, "expected": expected}
        )
        self._check(
            proof.client_data, "webauthn.create", expected.challenge, expected.origin
        )
        return VerifiedRegistration(credential=proof.credential, user_verified=True)

    async def verify_authentication(
        self,
        proof: AuthenticationProof,
        credential: StoredCredential,
        expected: ExpectedAuthentication,
    ) -> VerifiedAuthentication:
        self.calls.append(
            {"method": "verify_authentication", "proof": proof, "expected": expected}
        )
        self._check(
            proof.client_data, "webauthn.get", expected.challenge, expected.origin
        )
        return VerifiedAuthentication(
            credential_id=credential.key.id,
            sign_count=expected.counter + 1,
            user_verified=True,
        )

    def assert_called(self, method: str) -> None:
        """Test helper to verify a method was invoked.

        Raises:
            AssertionError: If ``method`` was never called.
        """
        methods = [call["method"] for call in self.calls]
        assert method in methods, f"Expected {method} to be called, got {methods}"
