"""Error envelope returned by every failing JSON endpoint.

    {"error": {"code": "ORIGIN_MISMATCH", "message": "...", "details": null}}

Successful responses have endpoint-specific shapes and no envelope.
"""

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Body of the envelope.

    Attributes:
        code: Stable machine-readable code, e.g. "VERIFICATION_FAILED".
        message: Human-readable description.
        details: Field-level validation errors, when there are any.
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """The ``{"error": ...}`` wrapper."""

    error: ErrorDetail
