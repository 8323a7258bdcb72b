"""Common schemas used across the API."""

from typing import Any

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Structured error detail."""

    code: str
    message: str
    detail: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Standard error response format.

    Format: { "error": { "code": str, "message": str, "detail": object } }
    Produced for every ServiceError by the app-level exception handler.
    """

    error: ErrorDetail


class WarningsMixin(BaseModel):
    """Non-fatal side-effect failures (enrichment, payment link, ...)."""

    warnings: list[str] = []
