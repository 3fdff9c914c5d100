"""Verifier error taxonomy.

Adapters raise these; the orchestrator maps them to API errors exactly
once. None of them is retryable: a rejected proof stays rejected.
"""

__all__ = [
    "VerifierError",
    "VerificationFailed",
    "MalformedProof",
    "UnsupportedAlgorithm",
]


class VerifierError(Exception):
    """Base class for all verifier errors.

    Callers can catch every verifier failure with a single handler.
    """

    pass


class VerificationFailed(VerifierError):
    """A predicate failed: type, challenge, origin, flags, counter or signature."""

    pass


class MalformedProof(VerificationFailed):
    """The encoded proof could not be decoded."""

    pass


class UnsupportedAlgorithm(VerificationFailed):
    """The credential uses a signature algorithm the verifier cannot check."""

    def __init__(self, algorithm: str) -> None:
        """Initialize UnsupportedAlgorithm.

        Args:
            algorithm: Algorithm name from the credential.
        """
        super().__init__(f"Unsupported algorithm: {algorithm}")
        self.algorithm = algorithm
