"""Schemas for order payment endpoints (/v1/payments)."""

from decimal import Decimal

from pydantic import BaseModel, Field

from stonebridge.schemas.common import WarningsMixin


class OrderPaymentStatusOut(BaseModel):
    order_id: str = Field(alias="orderId")
    payment_status: str = Field(alias="paymentStatus")
    deposit_paid: bool = Field(alias="depositPaid")
    remaining_paid: bool = Field(alias="remainingPaid")
    deposit_amount: Decimal | None = Field(alias="depositAmount", default=None)
    remaining_amount: Decimal | None = Field(alias="remainingAmount", default=None)
    captured_amount: Decimal = Field(alias="capturedAmount")
    payment_link: str | None = Field(alias="paymentLink", default=None)
    session_id: str | None = Field(alias="sessionId", default=None)

    model_config = {"populate_by_name": True}


class CompleteRemainingRequest(BaseModel):
    transaction_id: str | None = Field(alias="transactionId", default=None)

    model_config = {"populate_by_name": True}


class CompleteRemainingResponse(WarningsMixin):
    order_id: str = Field(alias="orderId")
    session_id: str = Field(alias="sessionId")
    amount: Decimal
    transaction_id: str = Field(alias="transactionId")

    model_config = {"populate_by_name": True}
