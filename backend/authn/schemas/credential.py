"""Credential and proof schemas.

Wire shapes of the public-key credential reference and of the encoded
registration/authentication proofs produced by the client widget. Field
names follow the client library (camelCase on the wire).
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

_MAX_ENCODED_LENGTH = 16_384


class CredentialKey(BaseModel):
    """Opaque public-key credential reference.

    Its cryptographic meaning is owned by the verifier.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1, max_length=1024)
    public_key: str = Field(
        alias="publicKey", min_length=1, max_length=_MAX_ENCODED_LENGTH
    )
    algorithm: Literal["ES256", "RS256"]
    transports: list[Any] = Field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        """Serialize with wire (camelCase) field names."""
        return self.model_dump(by_alias=True)


class RegistrationProof(BaseModel):
    """Encoded result of the client's credential creation ceremony."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    username: str = ""
    credential: CredentialKey
    authenticator_data: str = Field(
        alias="authenticatorData", min_length=1, max_length=_MAX_ENCODED_LENGTH
    )
    client_data: str = Field(
        alias="clientData", min_length=1, max_length=_MAX_ENCODED_LENGTH
    )
    attestation_data: str | None = Field(
        default=None, alias="attestationData", max_length=_MAX_ENCODED_LENGTH
    )


class AuthenticationProof(BaseModel):
    """Encoded result of the client's assertion ceremony."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    credential_id: str = Field(alias="credentialId", min_length=1, max_length=1024)
    authenticator_data: str = Field(
        alias="authenticatorData", min_length=1, max_length=_MAX_ENCODED_LENGTH
    )
    client_data: str = Field(
        alias="clientData", min_length=1, max_length=_MAX_ENCODED_LENGTH
    )
    signature: str = Field(min_length=1, max_length=_MAX_ENCODED_LENGTH)
