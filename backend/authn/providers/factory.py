"""Verifier factory.

Singleton pattern for the verifier instance.
"""

from authn.core.config import settings
from authn.providers.verifier.base import CredentialVerifier
from authn.providers.verifier.mock_adapter import MockVerifier
from authn.providers.verifier.passkey_adapter import PasskeyVerifier

_verifier: CredentialVerifier | None = None


def get_verifier(provider: str | None = None) -> CredentialVerifier:
    """Get or create the verifier singleton.

    Args:
        provider: Optional provider name. If None and no verifier exists,
            uses settings.verifier_provider.

    Returns:
        CredentialVerifier instance.

    Raises:
        ValueError: If the configured provider is unknown.
    """
    global _verifier

    if _verifier is None:
        name = provider or settings.verifier_provider
        if name == "passkey":
            _verifier = PasskeyVerifier()
        elif name == "mock":
            _verifier = MockVerifier()
        else:
            raise ValueError(f"Unknown verifier provider: {name}")

    return _verifier


def reset_verifier() -> None:
    """Reset the verifier singleton.

    Used in tests to ensure isolation between test cases.
    """
    global _verifier
    _verifier = None
