"""Pydantic schemas for API request/response validation."""

from stonebridge.schemas.cart import (
    AddCartItemRequest,
    AddCartItemResponse,
    CartLineOut,
    CartOut,
    UpdateCartLineRequest,
)
from stonebridge.schemas.common import ErrorDetail, ErrorResponse
from stonebridge.schemas.deposit import (
    CompleteDepositResponse,
    CreateDepositSessionRequest,
    CreateDepositSessionResponse,
    DepositPlanListResponse,
    DepositPlanOut,
    DepositSessionOut,
    QuoteRequest,
    QuoteResponse,
    ScheduleOut,
    SessionLineIn,
)
from stonebridge.schemas.payments import (
    CompleteRemainingRequest,
    CompleteRemainingResponse,
    OrderPaymentStatusOut,
)

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "AddCartItemRequest",
    "AddCartItemResponse",
    "CartLineOut",
    "CartOut",
    "UpdateCartLineRequest",
    "CompleteDepositResponse",
    "CreateDepositSessionRequest",
    "CreateDepositSessionResponse",
    "DepositPlanListResponse",
    "DepositPlanOut",
    "DepositSessionOut",
    "QuoteRequest",
    "QuoteResponse",
    "ScheduleOut",
    "SessionLineIn",
    "CompleteRemainingRequest",
    "CompleteRemainingResponse",
    "OrderPaymentStatusOut",
]
