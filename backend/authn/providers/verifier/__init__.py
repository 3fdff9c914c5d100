"""Credential verifier module.

Exports:
    CredentialVerifier: Abstract base class for verifiers
    PasskeyVerifier: cryptography-backed implementation
    MockVerifier: Test double
"""

from authn.providers.verifier.base import (
    CredentialVerifier,
    ExpectedAuthentication,
    ExpectedRegistration,
    VerifiedAuthentication,
    VerifiedRegistration,
)
from authn.providers.verifier.mock_adapter import MockVerifier
from authn.providers.verifier.passkey_adapter import PasskeyVerifier

__all__ = [
    "CredentialVerifier",
    "ExpectedAuthentication",
    "ExpectedRegistration",
    "MockVerifier",
    "PasskeyVerifier",
    "VerifiedAuthentication",
    "VerifiedRegistration",
]
