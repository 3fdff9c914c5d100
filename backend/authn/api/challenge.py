"""Challenge, registration and authentication endpoints.

Endpoints:
- POST /challenge - mint a challenge for an email address
- POST /register - attach a new credential (may send a verification email)
- POST /authenticate - sign in with an existing credential
"""

from fastapi import APIRouter, BackgroundTasks, Request
from starlette.responses import Response

from authn.api.deps import Orchestrator, RequestOrigin
from authn.core.config import settings
from authn.core.email import send_verification_email
from authn.core.rate_limiting import limiter
from authn.schemas.challenge import (
    AuthenticateRequest,
    ChallengeRequest,
    RegisterRequest,
)

router = APIRouter()


@router.post("/challenge")
@limiter.limit(lambda: settings.rate_limit_challenge)
async def create_challenge(
    request: Request,  # noqa: ARG001
    body: ChallengeRequest,
    origin: RequestOrigin,
    orchestrator: Orchestrator,
) -> dict:
    """Issue a challenge bound to the email and the calling origin.

    Returns the ids of credentials the email's user holds for this origin,
    so the widget can offer sign-in instead of registration.
    """
    result = await orchestrator.challenge(str(body.email), origin)
    return result.model_dump(by_alias=True)


@router.post("/register", status_code=204)
@limiter.limit(lambda: settings.rate_limit_proof)
async def register(
    request: Request,  # noqa: ARG001
    body: RegisterRequest,
    origin: RequestOrigin,
    orchestrator: Orchestrator,
    background_tasks: BackgroundTasks,
) -> Response:
    """Register a credential for the challenge's session.

    Security: The verification email is sent as a background task, so a
    slow or failing mail provider never fails the request.
    """
    pending = await orchestrator.register(origin, body.challenge, body.registration)
    if pending is not None:
        background_tasks.add_task(
            send_verification_email,
            to_email=pending.email,
            verify_url=pending.verify_url,
        )
    return Response(status_code=204)


@router.post("/authenticate", status_code=204)
@limiter.limit(lambda: settings.rate_limit_proof)
async def authenticate(
    request: Request,  # noqa: ARG001
    body: AuthenticateRequest,
    origin: RequestOrigin,
    orchestrator: Orchestrator,
) -> Response:
    """Sign in with a registered credential."""
    await orchestrator.authenticate(origin, body.challenge, body.authentication)
    return Response(status_code=204)
