"""Error taxonomy shared by services and routes.

Every service error carries an HTTP status and a stable error code so the app
level handler can render the structured error format:

    { "error": { "code": str, "message": str, "detail": object } }

Platform errors additionally carry an ErrorKind, decided once in the Shopify
client where the raw response is parsed. Callers branch on the kind, never on
message text.
"""

from enum import Enum
from typing import Any


class ServiceError(Exception):
    """Base class for errors that map to a client-facing response."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        detail: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message, "detail": self.detail}}


class ValidationError(ServiceError):
    status_code = 400
    code = "VALIDATION_ERROR"


class InvalidPlan(ServiceError):
    status_code = 400
    code = "INVALID_PLAN"


class NotFound(ServiceError):
    status_code = 404
    code = "NOT_FOUND"


class SessionNotFound(NotFound):
    code = "SESSION_NOT_FOUND"


class InvalidState(ServiceError):
    status_code = 409
    code = "INVALID_STATE"


class InvalidSignature(ServiceError):
    status_code = 401
    code = "INVALID_SIGNATURE"


class NotConfigured(ServiceError):
    status_code = 503
    code = "NOT_CONFIGURED"


# ============================================================
# Platform (Shopify) errors
# ============================================================


class ErrorKind(str, Enum):
    """How a platform failure should be treated by callers."""

    NOT_YET_VISIBLE = "not_yet_visible"  # public read path lags the admin write
    CART_EXPIRED = "cart_expired"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"


class PlatformError(ServiceError):
    """A failed call against the host commerce platform."""

    status_code = 502
    code = "PLATFORM_ERROR"
    kind = ErrorKind.REJECTED

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        messages: list[str] | None = None,
        code: str | None = None,
        detail: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, detail=detail)
        if kind is not None:
            self.kind = kind
        self.messages = messages or [message]


class ExternalTransient(PlatformError):
    """Merchandise not yet visible on the storefront API; safe to retry."""

    status_code = 503
    code = "PLATFORM_NOT_YET_VISIBLE"
    kind = ErrorKind.NOT_YET_VISIBLE


class ExternalMutationError(PlatformError):
    """Platform user errors aggregated into one message."""

    status_code = 502
    code = "PLATFORM_REJECTED"
