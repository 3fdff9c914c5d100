"""Rate limiting for the anonymous sign-in endpoints (slowapi).

Security: Limits how fast a single client can mint challenges, submit
proofs and probe verification links. Requests are keyed by remote address;
callers are anonymous until a sign-in completes.

Limits are read from settings on every request, so they can be tuned
without touching the routers:

    @router.post("/challenge")
    @limiter.limit(lambda: settings.rate_limit_challenge)
    async def create_challenge(request: Request, ...):
        ...
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from authn.core.config import settings
from authn.core.responses import ErrorDetail, ErrorResponse

# In-memory storage: counters are per process, like the actor locks
limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.rate_limit_enabled,
)

_DEFAULT_RETRY_AFTER_SECONDS = 60


def _retry_after_seconds(exc: RateLimitExceeded) -> int:
    """Length of the exceeded limit's window, or 60s if it is unknown."""
    try:
        seconds = int(exc.limit.limit.get_expiry())
    except (AttributeError, TypeError, ValueError):
        return _DEFAULT_RETRY_AFTER_SECONDS
    return seconds if seconds > 0 else _DEFAULT_RETRY_AFTER_SECONDS


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> JSONResponse:
    """Render 429 RATE_LIMITED with a Retry-After header.

    Args:
        request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse in the standard error envelope.
    """
    return JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="RATE_LIMITED",
                message=f"Rate limit exceeded: {exc.detail}",
            )
        ).model_dump(),
        headers={"Retry-After": str(_retry_after_seconds(exc))},
    )
