"""API error classes.

Every error raised by the actors and the orchestrator is an APIError
subclass. The exception handler in main.py maps them to HTTP status codes
and the standard error envelope.
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed or a precondition is unmet (400).

    Use for missing/malformed fields and for session operations called in
    the wrong state (e.g., verify without a pending credential).
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class OriginMismatchError(APIError):
    """Request origin differs from the origin bound to the session (400).

    Security: Raised before any proof is examined, so a valid proof
    replayed from another site is rejected regardless of its validity.
    """

    def __init__(self, message: str = "Origin does not match challenge") -> None:
        super().__init__(
            code="ORIGIN_MISMATCH",
            message=message,
            status_code=400,
        )


class VerificationFailedError(APIError):
    """Credential proof rejected by the verifier (400 or 401).

    Registration rejections are reported as 400, authentication
    rejections as 401. Never retried.
    """

    def __init__(
        self,
        message: str = "Credential verification failed",
        status_code: int = 401,
    ) -> None:
        super().__init__(
            code="VERIFICATION_FAILED",
            message=message,
            status_code=status_code,
        )


class UnauthorizedError(APIError):
    """Authentication failed (401).

    Use when a credential cannot be matched to the resolved user.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class NotFoundError(APIError):
    """Resource not found (404).

    Use for unknown, expired, or already-consumed sessions and for users
    that were never created.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class ConflictError(APIError):
    """Conflicting state (409).

    Accepts custom code for specific conflict types.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details,
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use for downstream actor or storage failures. Never expose stack traces
    to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )
