"""Shared dependencies for API endpoints.

The orchestrator is built per request from the process-wide actor system
and verifier singletons; tests override get_orchestrator().
"""

from typing import Annotated

from fastapi import Depends, Header

from authn.actors.system import get_actor_system
from authn.core.errors import ValidationError
from authn.providers.factory import get_verifier
from authn.services.challenge_orchestrator import ChallengeOrchestrator


def get_orchestrator() -> ChallengeOrchestrator:
    """Orchestrator bound to the application's actor system and verifier."""
    return ChallengeOrchestrator(get_actor_system(), get_verifier())


def get_request_origin(
    origin: Annotated[str | None, Header(max_length=2048)] = None,
) -> str:
    """Origin of the calling site, taken from the browser's Origin header.

    Raises:
        ValidationError: If the header is missing or empty.
    """
    if not origin:
        raise ValidationError("Origin header is required")
    return origin


Orchestrator = Annotated[ChallengeOrchestrator, Depends(get_orchestrator)]
RequestOrigin = Annotated[str, Depends(get_request_origin)]
