"""Verifier abstraction layer.

Exports:
    Error classes for verifier error handling
    Factory functions for the verifier instance
"""

from authn.providers.errors import (
    MalformedProof,
    UnsupportedAlgorithm,
    VerificationFailed,
    VerifierError,
)
from authn.providers.factory import get_verifier, reset_verifier

__all__ = [
    # Errors
    "VerifierError",
    "VerificationFailed",
    "MalformedProof",
    "UnsupportedAlgorithm",
    # Factory
    "get_verifier",
    "reset_verifier",
]
