"""Tests for the passkey verifier.

Proofs are produced with real ES256 and RS256 key pairs, the way an
authenticator would sign them.
"""

import hashlib
import json

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from authn.providers.errors import MalformedProof, VerificationFailed
from authn.providers.verifier.base import (
    ExpectedAuthentication,
    ExpectedRegistration,
    rp_id_hash,
)
from authn.providers.verifier.passkey_adapter import (
    FLAG_USER_PRESENT,
    FLAG_USER_VERIFIED,
    PasskeyVerifier,
    b64url_decode,
    b64url_encode,
    parse_authenticator_data,
)
from authn.schemas.credential import (
    AuthenticationProof,
    CredentialKey,
    RegistrationProof,
)
from authn.schemas.identity import StoredCredential
from tests.conftest import ORIGIN, OTHER_ORIGIN

_CHALLENGE = "challenge-123"
_RP_ID_HASH = rp_id_hash(ORIGIN)
_UP_UV = FLAG_USER_PRESENT | FLAG_USER_VERIFIED


class _Authenticator:
    """Signs assertions with a private key held in memory."""

    def __init__(self, algorithm: str = "ES256") -> None:
        self.algorithm = algorithm
        if algorithm == "ES256":
            self._key = ec.generate_private_key(ec.SECP256R1())
        else:
            self._key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    def credential(self, credential_id: str = "cred-1") -> CredentialKey:
        der = self._key.public_key().public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        return CredentialKey(
            id=credential_id, public_key=b64url_encode(der), algorithm=self.algorithm
        )

    def sign(self, data: bytes) -> bytes:
        if self.algorithm == "ES256":
            return self._key.sign(data, ec.ECDSA(hashes.SHA256()))
        return self._key.sign(data, padding.PKCS1v15(), hashes.SHA256())


def _client_data(type_: str, challenge: str = _CHALLENGE, origin: str = ORIGIN) -> bytes:
    return json.dumps({"type": type_, "challenge": challenge, "origin": origin}).encode()


def _auth_data(
    flags: int = _UP_UV, sign_count: int = 1, rp_hash: bytes = _RP_ID_HASH
) -> bytes:
    return rp_hash + bytes([flags]) + sign_count.to_bytes(4, "big")


def _expected_registration() -> ExpectedRegistration:
    return ExpectedRegistration(
        challenge=lambda value: value == _CHALLENGE,
        origin=lambda value: value == ORIGIN,
        rp_id_hash=lambda digest: digest == _RP_ID_HASH,
    )


def _expected_authentication(
    *, counter: int = 0, user_verified: bool = True
) -> ExpectedAuthentication:
    return ExpectedAuthentication(
        challenge=lambda value: value == _CHALLENGE,
        origin=lambda value: value == ORIGIN,
        rp_id_hash=lambda digest: digest == _RP_ID_HASH,
        user_verified=user_verified,
        counter=counter,
    )


def _registration(
    authenticator: _Authenticator,
    *,
    client_data: bytes | None = None,
    flags: int = _UP_UV,
    rp_hash: bytes = _RP_ID_HASH,
) -> RegistrationProof:
    return RegistrationProof(
        credential=authenticator.credential(),
        authenticator_data=b64url_encode(_auth_data(flags, 0, rp_hash)),
        client_data=b64url_encode(client_data or _client_data("webauthn.create")),
    )


def _assertion(
    authenticator: _Authenticator,
    *,
    client_data: bytes | None = None,
    flags: int = _UP_UV,
    sign_count: int = 1,
    credential_id: str = "cred-1",
    signer: _Authenticator | None = None,
    rp_hash: bytes = _RP_ID_HASH,
) -> AuthenticationProof:
    raw_client = client_data or _client_data("webauthn.get")
    raw_auth = _auth_data(flags, sign_count, rp_hash)
    signature = (signer or authenticator).sign(
        raw_auth + hashlib.sha256(raw_client).digest()
    )
    return AuthenticationProof(
        credential_id=credential_id,
        authenticator_data=b64url_encode(raw_auth),
        client_data=b64url_encode(raw_client),
        signature=b64url_encode(signature),
    )


@pytest.fixture(scope="module")
def es256() -> _Authenticator:
    return _Authenticator("ES256")


@pytest.fixture(scope="module")
def rs256() -> _Authenticator:
    return _Authenticator("RS256")


@pytest.fixture
def verifier() -> PasskeyVerifier:
    return PasskeyVerifier()


class TestEncoding:
    """base64url and authenticator data parsing."""

    def test_decode_accepts_unpadded_input(self):
        """Browsers send base64url without padding."""
        assert b64url_decode(b64url_encode(b"\x00\x01\x02\x03")) == b"\x00\x01\x02\x03"

    def test_decode_rejects_invalid_length(self):
        """A single leftover character cannot be valid base64."""
        with pytest.raises(MalformedProof):
            b64url_decode("a")

    def test_parse_authenticator_data(self):
        """Flags and the big-endian counter are extracted."""
        _raw, parsed = parse_authenticator_data(
            b64url_encode(_auth_data(FLAG_USER_PRESENT, 258))
        )

        assert parsed.rp_id_hash == _RP_ID_HASH
        assert parsed.user_present is True
        assert parsed.user_verified is False
        assert parsed.sign_count == 258

    def test_rp_id_hash_is_hash_of_origin_host(self):
        """The rp id is the origin's host; scheme and port are not part of it."""
        expected = hashlib.sha256(b"site.example").digest()

        assert rp_id_hash("https://site.example") == expected
        assert rp_id_hash("https://site.example:8443") == expected

    def test_short_authenticator_data_is_malformed(self):
        """Fewer than 37 bytes cannot hold the fixed fields."""
        with pytest.raises(MalformedProof):
            parse_authenticator_data(b64url_encode(b"\x00" * 36))


class TestVerifyRegistration:
    """Registration checks client data, flags and the public key."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("algorithm", ["ES256", "RS256"])
    async def test_valid_registration(self, verifier, es256, rs256, algorithm):
        """A well-formed registration returns the credential to store."""
        authenticator = es256 if algorithm == "ES256" else rs256

        result = await verifier.verify_registration(
            _registration(authenticator), _expected_registration()
        )

        assert result.credential.id == "cred-1"
        assert result.credential.algorithm == algorithm
        assert result.user_verified is True

    @pytest.mark.asyncio
    async def test_wrong_type_rejected(self, verifier, es256):
        """An assertion's client data cannot register a credential."""
        with pytest.raises(VerificationFailed, match="type"):
            await verifier.verify_registration(
                _registration(es256, client_data=_client_data("webauthn.get")),
                _expected_registration(),
            )

    @pytest.mark.asyncio
    async def test_wrong_challenge_rejected(self, verifier, es256):
        """Client data must carry the session's challenge."""
        with pytest.raises(VerificationFailed, match="Challenge"):
            await verifier.verify_registration(
                _registration(
                    es256, client_data=_client_data("webauthn.create", "other")
                ),
                _expected_registration(),
            )

    @pytest.mark.asyncio
    async def test_wrong_origin_rejected(self, verifier, es256):
        """Client data must carry the session's origin."""
        with pytest.raises(VerificationFailed, match="Origin"):
            await verifier.verify_registration(
                _registration(
                    es256,
                    client_data=_client_data(
                        "webauthn.create", _CHALLENGE, OTHER_ORIGIN
                    ),
                ),
                _expected_registration(),
            )

    @pytest.mark.asyncio
    async def test_missing_user_presence_rejected(self, verifier, es256):
        """The UP flag is mandatory."""
        with pytest.raises(VerificationFailed, match="presence"):
            await verifier.verify_registration(
                _registration(es256, flags=FLAG_USER_VERIFIED),
                _expected_registration(),
            )

    @pytest.mark.asyncio
    async def test_key_algorithm_mismatch_rejected(self, verifier, rs256):
        """An RSA key declared as ES256 is refused."""
        proof = _registration(rs256)
        proof.credential.algorithm = "ES256"

        with pytest.raises(MalformedProof):
            await verifier.verify_registration(proof, _expected_registration())

    @pytest.mark.asyncio
    async def test_garbage_public_key_rejected(self, verifier, es256):
        """A key that is not DER is malformed."""
        proof = _registration(es256)
        proof.credential.public_key = b64url_encode(b"not a key")

        with pytest.raises(MalformedProof):
            await verifier.verify_registration(proof, _expected_registration())

    @pytest.mark.asyncio
    async def test_other_relying_party_rejected(self, verifier, es256):
        """Authenticator data scoped to another site cannot register here."""
        with pytest.raises(VerificationFailed, match="Relying party"):
            await verifier.verify_registration(
                _registration(es256, rp_hash=rp_id_hash(OTHER_ORIGIN)),
                _expected_registration(),
            )

    @pytest.mark.asyncio
    async def test_non_json_client_data_rejected(self, verifier, es256):
        """Client data must decode to a JSON object."""
        with pytest.raises(MalformedProof):
            await verifier.verify_registration(
                _registration(es256, client_data=b"[1, 2]"),
                _expected_registration(),
            )


class TestVerifyAuthentication:
    """Authentication adds flag, counter and signature checks."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("algorithm", ["ES256", "RS256"])
    async def test_valid_assertion(self, verifier, es256, rs256, algorithm):
        """A correctly signed assertion returns the new counter."""
        authenticator = es256 if algorithm == "ES256" else rs256
        stored = StoredCredential(key=authenticator.credential(), sign_count=4)

        result = await verifier.verify_authentication(
            _assertion(authenticator, sign_count=5),
            stored,
            _expected_authentication(counter=4),
        )

        assert result.credential_id == "cred-1"
        assert result.sign_count == 5
        assert result.user_verified is True

    @pytest.mark.asyncio
    async def test_zero_counters_are_allowed(self, verifier, es256):
        """Authenticators without counters always report zero."""
        stored = StoredCredential(key=es256.credential())

        result = await verifier.verify_authentication(
            _assertion(es256, sign_count=0), stored, _expected_authentication()
        )

        assert result.sign_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("sign_count", [3, 4])
    async def test_counter_must_increase(self, verifier, es256, sign_count):
        """A counter at or below the stored value suggests a cloned key."""
        stored = StoredCredential(key=es256.credential(), sign_count=4)

        with pytest.raises(VerificationFailed, match="counter"):
            await verifier.verify_authentication(
                _assertion(es256, sign_count=sign_count),
                stored,
                _expected_authentication(counter=4),
            )

    @pytest.mark.asyncio
    async def test_signature_from_other_key_rejected(self, verifier, es256):
        """Only the registered key can sign."""
        stored = StoredCredential(key=es256.credential())

        with pytest.raises(VerificationFailed, match="signature"):
            await verifier.verify_authentication(
                _assertion(es256, signer=_Authenticator("ES256")),
                stored,
                _expected_authentication(),
            )

    @pytest.mark.asyncio
    async def test_tampered_client_data_rejected(self, verifier, es256):
        """The signature covers the client data hash."""
        stored = StoredCredential(key=es256.credential())
        proof = _assertion(es256)
        proof.client_data = b64url_encode(
            json.dumps(
                {"type": "webauthn.get", "challenge": _CHALLENGE, "origin": ORIGIN}
            ).encode()
            + b" "
        )

        with pytest.raises(VerificationFailed, match="signature"):
            await verifier.verify_authentication(
                proof, stored, _expected_authentication()
            )

    @pytest.mark.asyncio
    async def test_missing_user_verification_rejected(self, verifier, es256):
        """UV is required when the caller asks for it."""
        stored = StoredCredential(key=es256.credential())

        with pytest.raises(VerificationFailed, match="verification"):
            await verifier.verify_authentication(
                _assertion(es256, flags=FLAG_USER_PRESENT),
                stored,
                _expected_authentication(),
            )

    @pytest.mark.asyncio
    async def test_user_verification_optional(self, verifier, es256):
        """Without the requirement, presence alone is enough."""
        stored = StoredCredential(key=es256.credential())

        result = await verifier.verify_authentication(
            _assertion(es256, flags=FLAG_USER_PRESENT),
            stored,
            _expected_authentication(user_verified=False),
        )

        assert result.user_verified is False

    @pytest.mark.asyncio
    async def test_wrong_type_rejected(self, verifier, es256):
        """A creation ceremony's client data cannot sign in."""
        stored = StoredCredential(key=es256.credential())

        with pytest.raises(VerificationFailed, match="type"):
            await verifier.verify_authentication(
                _assertion(es256, client_data=_client_data("webauthn.create")),
                stored,
                _expected_authentication(),
            )

    @pytest.mark.asyncio
    async def test_wrong_challenge_rejected(self, verifier, es256):
        """A correctly signed assertion for another challenge fails."""
        stored = StoredCredential(key=es256.credential())

        with pytest.raises(VerificationFailed, match="Challenge"):
            await verifier.verify_authentication(
                _assertion(es256, client_data=_client_data("webauthn.get", "other")),
                stored,
                _expected_authentication(),
            )

    @pytest.mark.asyncio
    async def test_other_relying_party_rejected(self, verifier, es256):
        """A validly signed assertion for another site's rp id fails."""
        stored = StoredCredential(key=es256.credential())

        with pytest.raises(VerificationFailed, match="Relying party"):
            await verifier.verify_authentication(
                _assertion(es256, rp_hash=rp_id_hash(OTHER_ORIGIN)),
                stored,
                _expected_authentication(),
            )

    @pytest.mark.asyncio
    async def test_credential_id_mismatch_rejected(self, verifier, es256):
        """The proof must name the stored credential."""
        stored = StoredCredential(key=es256.credential())

        with pytest.raises(VerificationFailed, match="id mismatch"):
            await verifier.verify_authentication(
                _assertion(es256, credential_id="cred-2"),
                stored,
                _expected_authentication(),
            )

    @pytest.mark.asyncio
    async def test_malformed_signature_rejected(self, verifier, es256):
        """Undecodable signatures are malformed, not a crash."""
        stored = StoredCredential(key=es256.credential())
        proof = _assertion(es256)
        proof.signature = "a"

        with pytest.raises(MalformedProof):
            await verifier.verify_authentication(
                proof, stored, _expected_authentication()
            )

    def test_provider_name(self, verifier):
        assert verifier.provider_name == "passkey"
