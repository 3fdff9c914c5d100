"""FastAPI application entry point.

This module creates and configures the FastAPI application, including:
- Security and CORS middleware
- Exception handlers for API errors
- Protocol router mounting
- Session alarm restoration on startup
- Health check endpoint
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from authn.actors.system import get_actor_system
from authn.api.router import router as api_router
from authn.core.config import settings
from authn.core.errors import APIError
from authn.core.rate_limiting import limiter, rate_limit_exceeded_handler
from authn.core.responses import ErrorDetail, ErrorResponse

logger = structlog.get_logger()

_CORS_ALLOW_METHODS = "OPTIONS, POST"
_CORS_ALLOW_HEADERS = "accept, accept-language, content-type, range"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    Headers added:
    - X-Frame-Options: Prevents clickjacking attacks
    - X-Content-Type-Options: Prevents MIME sniffing
    - Referrer-Policy: Verification links carry one-shot tokens; never leak them
    - Cache-Control: Challenge and identity responses must never be cached
    - Content-Security-Policy: Only the inline style of the verification page
    - Cross-Origin-Resource-Policy: The widget reads responses cross-origin
    - Strict-Transport-Security: Forces HTTPS (production only)
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Add security headers to response."""
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store, max-age=0"

        # default-src 'none': nothing is loaded except the page's own styles
        # frame-ancestors 'none': Modern replacement for X-Frame-Options
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; style-src 'unsafe-inline'; frame-ancestors 'none'"
        )

        response.headers["Cross-Origin-Resource-Policy"] = "cross-origin"

        # HSTS only in production (assumes HTTPS via reverse proxy)
        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


class WidgetCORSMiddleware(BaseHTTPMiddleware):
    """CORS for the embeddable widget.

    Any site may embed the widget, so every response allows origin ``*``.
    Preflight requests on any path are answered here with 204 and never
    reach the router. No credentials (cookies) are ever involved.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Answer preflights; tag every other response."""
        if request.method == "OPTIONS":
            response = Response(status_code=204)
            response.headers["Access-Control-Allow-Methods"] = _CORS_ALLOW_METHODS
            response.headers["Access-Control-Allow-Headers"] = _CORS_ALLOW_HEADERS
            response.headers["Access-Control-Max-Age"] = "86400"
        else:
            response = await call_next(request)

        response.headers["Access-Control-Allow-Origin"] = "*"
        return response


def _error_response(
    status_code: int,
    code: str,
    message: str,
    details: list[dict] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=ErrorDetail(code=code, message=message, details=details)
        ).model_dump(),
    )


def api_error_handler(_request: Request, exc: APIError) -> JSONResponse:
    """Render an APIError with its own status and code."""
    return _error_response(exc.status_code, exc.code, exc.message, exc.details)


def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures as 400 VALIDATION_ERROR.

    FastAPI's default is 422; the widget treats every malformed request as
    a plain client error.
    """
    return _error_response(
        400,
        "VALIDATION_ERROR",
        "Request validation failed",
        [
            {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
            for e in exc.errors()
        ],
    )


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log an unhandled exception and return a generic 500.

    The response never carries the exception text or a stack trace.
    """
    logger.exception("Unhandled exception", exc_info=exc, path=str(request.url.path))
    return _error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Restore session alarms on startup; cancel them on shutdown.

    Deadlines are persisted, so alarms cancelled here are re-armed by the
    next process.
    """
    system = get_actor_system()
    await system.purge_overdue_sessions()
    await system.restore_alarms()
    try:
        yield
    finally:
        await system.shutdown()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="Authn API",
        version="1.0.0",
        description="Drop-in passwordless sign-in with passkeys",
        lifespan=lifespan,
    )

    # Middleware order: Starlette uses LIFO, so the LAST added runs FIRST.
    # CORS must run first to handle preflight requests, so add it last.
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(WidgetCORSMiddleware)

    # Register exception handlers
    # Order matters: specific handlers first, then catch-all
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    # Rate limiting (Security)
    app.state.limiter = limiter

    app.include_router(api_router)

    # Health check endpoint
    @app.get("/health")
    def health_check() -> dict:
        """Health check endpoint for monitoring.

        Returns:
            {"status": "healthy"} if service is running.
        """
        return {"status": "healthy"}

    return app


# Create the application instance
# Used by uvicorn: uvicorn authn.main:app
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
