"""Polling and redemption endpoints.

Endpoints:
- GET /check/{challenge} - has the session been authenticated?
- POST /check/{challenge} - redeem the identity (at most once)
"""

from typing import Annotated

from fastapi import APIRouter, Path

from authn.api.deps import Orchestrator

router = APIRouter()

_Challenge = Annotated[str, Path(min_length=1, max_length=64)]


@router.get("/check/{challenge}")
async def check(challenge: _Challenge, orchestrator: Orchestrator) -> dict:
    """Non-destructive poll; unknown challenges report ``false``."""
    result = await orchestrator.check(challenge)
    return result.to_wire()


@router.post("/check/{challenge}")
async def redeem(challenge: _Challenge, orchestrator: Orchestrator) -> dict:
    """Return ``{authenticated, origin, email, user}`` once, then ``false``."""
    result = await orchestrator.redeem(challenge)
    return result.to_wire()
