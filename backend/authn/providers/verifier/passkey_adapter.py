"""Passkey (WebAuthn) verifier built on the cryptography library.

Understands the encoded proofs produced by the client widget:
- clientData: base64url client data JSON {type, challenge, origin}
- authenticatorData: base64url bytes rpIdHash(32) | flags(1) | signCount(4)
- signature: base64url signature over authenticatorData | sha256(clientData)
- publicKey: base64url DER SubjectPublicKeyInfo

Supported algorithms: ES256 (ECDSA P-256 / SHA-256) and RS256
(RSASSA-PKCS1-v1_5 / SHA-256).
"""

import base64
import binascii
import hashlib
import json
from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from authn.providers.errors import (
    MalformedProof,
    UnsupportedAlgorithm,
    VerificationFailed,
)
from authn.providers.verifier.base import (
    CredentialVerifier,
    ExpectedAuthentication,
    ExpectedRegistration,
    VerifiedAuthentication,
    VerifiedRegistration,
)
from authn.schemas.credential import (
    AuthenticationProof,
    CredentialKey,
    RegistrationProof,
)
from authn.schemas.identity import StoredCredential

# Authenticator data flag bits
FLAG_USER_PRESENT = 0x01
FLAG_USER_VERIFIED = 0x04

_RP_ID_HASH_LENGTH = 32
_MIN_AUTHENTICATOR_DATA_LENGTH = _RP_ID_HASH_LENGTH + 1 + 4

_TYPE_CREATE = "webauthn.create"
_TYPE_GET = "webauthn.get"


@dataclass(frozen=True)
class AuthenticatorData:
    """Parsed fixed-size prefix of authenticator data.

    Attributes:
        rp_id_hash: SHA-256 of the relying party id.
        flags: Flag byte.
        sign_count: Signature counter (big-endian uint32).
    """

    rp_id_hash: bytes
    flags: int
    sign_count: int

    @property
    def user_present(self) -> bool:
        return bool(self.flags & FLAG_USER_PRESENT)

    @property
    def user_verified(self) -> bool:
        return bool(self.flags & FLAG_USER_VERIFIED)


def b64url_decode(value: str) -> bytes:
    """Decode base64url with or without padding.

    Raises:
        MalformedProof: If the value is not valid base64url.
    """
    try:
        return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))
    except (binascii.Error, ValueError) as exc:
        raise MalformedProof("Invalid base64url encoding") from exc


def b64url_encode(raw: bytes) -> str:
    """Encode bytes as unpadded base64url."""
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def parse_client_data(encoded: str) -> tuple[bytes, dict[str, Any]]:
    """Decode client data into its raw bytes and parsed JSON.

    Raises:
        MalformedProof: If the payload is not a JSON object.
    """
    raw = b64url_decode(encoded)
    try:
        parsed = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedProof("Client data is not valid JSON") from exc
    if not isinstance(parsed, dict):
        raise MalformedProof("Client data is not a JSON object")
    return raw, parsed


def parse_authenticator_data(encoded: str) -> tuple[bytes, AuthenticatorData]:
    """Decode authenticator data into its raw bytes and fixed fields.

    Raises:
        MalformedProof: If the payload is too short.
    """
    raw = b64url_decode(encoded)
    if len(raw) < _MIN_AUTHENTICATOR_DATA_LENGTH:
        raise MalformedProof("Authenticator data is too short")
    return raw, AuthenticatorData(
        rp_id_hash=raw[:_RP_ID_HASH_LENGTH],
        flags=raw[_RP_ID_HASH_LENGTH],
        sign_count=int.from_bytes(
            raw[_RP_ID_HASH_LENGTH + 1 : _RP_ID_HASH_LENGTH + 5], "big"
        ),
    )


def _check_client_data(
    client: dict[str, Any], expected_type: str, challenge_ok, origin_ok
) -> None:
    if client.get("type") != expected_type:
        raise VerificationFailed(f"Unexpected client data type: {client.get('type')!r}")
    challenge = client.get("challenge")
    if not isinstance(challenge, str) or not challenge_ok(challenge):
        raise VerificationFailed("Challenge mismatch")
    origin = client.get("origin")
    if not isinstance(origin, str) or not origin_ok(origin):
        raise VerificationFailed("Origin mismatch")


def _check_rp_id(auth: AuthenticatorData, rp_id_hash_ok) -> None:
    if not rp_id_hash_ok(auth.rp_id_hash):
        raise VerificationFailed("Relying party id mismatch")


def load_public_key(credential: CredentialKey):
    """Load a credential's public key and check it matches its algorithm.

    Raises:
        UnsupportedAlgorithm: If the algorithm is not ES256/RS256.
        MalformedProof: If the key cannot be parsed or has the wrong type.
    """
    try:
        key = serialization.load_der_public_key(b64url_decode(credential.public_key))
    except ValueError as exc:
        raise MalformedProof("Public key is not valid DER") from exc

    if credential.algorithm == "ES256":
        if not isinstance(key, ec.EllipticCurvePublicKey) or not isinstance(
            key.curve, ec.SECP256R1
        ):
            raise MalformedProof("ES256 credential must carry a P-256 key")
    elif credential.algorithm == "RS256":
        if not isinstance(key, rsa.RSAPublicKey):
            raise MalformedProof("RS256 credential must carry an RSA key")
    else:
        raise UnsupportedAlgorithm(credential.algorithm)
    return key


def verify_signature(credential: CredentialKey, signature: bytes, data: bytes) -> None:
    """Verify ``signature`` over ``data`` with the credential's key.

    Raises:
        VerificationFailed: If the signature does not match.
    """
    key = load_public_key(credential)
    try:
        if credential.algorithm == "ES256":
            key.verify(signature, data, ec.ECDSA(hashes.SHA256()))
        else:
            key.verify(signature, data, padding.PKCS1v15(), hashes.SHA256())
    except InvalidSignature as exc:
        raise VerificationFailed("Invalid signature") from exc


class PasskeyVerifier(CredentialVerifier):
    """Verifies passkey proofs locally; no network access."""

    @property
    def provider_name(self) -> str:
        return "passkey"

    async def verify_registration(
        self,
        proof: RegistrationProof,
        expected: ExpectedRegistration,
    ) -> VerifiedRegistration:
        _raw_client, client = parse_client_data(proof.client_data)
        _check_client_data(client, _TYPE_CREATE, expected.challenge, expected.origin)

        _raw_auth, auth = parse_authenticator_data(proof.authenticator_data)
        _check_rp_id(auth, expected.rp_id_hash)
        if not auth.user_present:
            raise VerificationFailed("User presence flag not set")

        # Rejects keys that do not match the declared algorithm
        load_public_key(proof.credential)

        return VerifiedRegistration(
            credential=proof.credential,
            user_verified=auth.user_verified,
        )

    async def verify_authentication(
        self,
        proof: AuthenticationProof,
        credential: StoredCredential,
        expected: ExpectedAuthentication,
    ) -> VerifiedAuthentication:
        if proof.credential_id != credential.key.id:
            raise VerificationFailed("Credential id mismatch")

        raw_client, client = parse_client_data(proof.client_data)
        _check_client_data(client, _TYPE_GET, expected.challenge, expected.origin)

        raw_auth, auth = parse_authenticator_data(proof.authenticator_data)
        _check_rp_id(auth, expected.rp_id_hash)
        if not auth.user_present:
            raise VerificationFailed("User presence flag not set")
        if expected.user_verified and not auth.user_verified:
            raise VerificationFailed("User verification flag not set")

        if (expected.counter > 0 or auth.sign_count > 0) and (
            auth.sign_count <= expected.counter
        ):
            raise VerificationFailed("Signature counter did not increase")

        signed = raw_auth + hashlib.sha256(raw_client).digest()
        verify_signature(credential.key, b64url_decode(proof.signature), signed)

        return VerifiedAuthentication(
            credential_id=credential.key.id,
            sign_count=auth.sign_count,
            user_verified=auth.user_verified,
        )
