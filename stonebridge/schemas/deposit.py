"""Schemas for deposit plans and deposit sessions."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from stonebridge.schemas.common import WarningsMixin


# ============================================================
# Plans
# ============================================================


class DepositPlanOut(BaseModel):
    id: str
    name: str
    description: str | None = None
    type: str
    percentage: Decimal | None = None
    fixed_amount: Decimal | None = Field(alias="fixedAmount", default=None)
    total_installments: int = Field(alias="totalInstallments")
    min_deposit: Decimal | None = Field(alias="minDeposit", default=None)
    max_deposit: Decimal | None = Field(alias="maxDeposit", default=None)
    is_default: bool = Field(alias="isDefault")

    model_config = {"populate_by_name": True, "from_attributes": True}


class DepositPlanListResponse(BaseModel):
    plans: list[DepositPlanOut]


class QuoteRequest(BaseModel):
    total_amount: Decimal = Field(alias="totalAmount", gt=0)

    model_config = {"populate_by_name": True}


class QuoteResponse(BaseModel):
    """Instalment preview for a plan and total."""

    plan_id: str = Field(alias="planId")
    total_amount: Decimal = Field(alias="totalAmount")
    payment_amounts: list[Decimal] = Field(alias="paymentAmounts")

    model_config = {"populate_by_name": True}


# ============================================================
# Sessions
# ============================================================


class SessionLineIn(BaseModel):
    title: str = Field(min_length=1)
    price: Decimal = Field(ge=0)
    quantity: int = Field(default=1, ge=1)
    external_id: str | None = Field(alias="externalId", default=None)
    variant_id: str | None = Field(alias="variantId", default=None)

    model_config = {"populate_by_name": True}


class CreateDepositSessionRequest(BaseModel):
    """Body of POST /v1/deposit-sessions.

    lines/totalAmount default to the local cart's contents.
    """

    cart_id: str = Field(alias="cartId", min_length=1)
    customer_id: str | None = Field(alias="customerId", default=None)
    lines: list[SessionLineIn] | None = None
    total_amount: Decimal | None = Field(alias="totalAmount", default=None)
    plan_id: str | None = Field(alias="planId", default=None)

    model_config = {"populate_by_name": True}


class CreateDepositSessionResponse(WarningsMixin):
    session_id: str = Field(alias="sessionId")
    draft_order_id: str = Field(alias="draftOrderId")
    draft_order_ids: list[str] = Field(alias="draftOrderIds")
    checkout_url: str = Field(alias="checkoutUrl")
    payment_amounts: list[Decimal] = Field(alias="paymentAmounts")
    plan_id: str = Field(alias="planId")
    expires_at: datetime = Field(alias="expiresAt")

    model_config = {"populate_by_name": True}


class ScheduleOut(BaseModel):
    installment_number: int = Field(alias="installmentNumber")
    installment_type: str = Field(alias="installmentType")
    amount: Decimal
    status: str
    draft_order_id: str = Field(alias="draftOrderId")
    variant_id: str | None = Field(alias="variantId", default=None)
    order_id: str | None = Field(alias="orderId", default=None)
    checkout_url: str | None = Field(alias="checkoutUrl", default=None)
    paid_amount: Decimal | None = Field(alias="paidAmount", default=None)
    paid_at: datetime | None = Field(alias="paidAt", default=None)

    model_config = {"populate_by_name": True, "from_attributes": True}


class DepositSessionOut(BaseModel):
    session_id: str = Field(alias="sessionId")
    cart_id: str = Field(alias="cartId")
    customer_id: str | None = Field(alias="customerId", default=None)
    plan_id: str = Field(alias="planId")
    payment_status: str = Field(alias="paymentStatus")
    total_amount: Decimal = Field(alias="totalAmount")
    paid_amount: Decimal = Field(alias="paidAmount")
    remaining_amount: Decimal = Field(alias="remainingAmount")
    total_installments: int = Field(alias="totalInstallments")
    paid_installments: int = Field(alias="paidInstallments")
    checkout_url: str | None = Field(alias="checkoutUrl", default=None)
    expired: bool
    expires_at: datetime = Field(alias="expiresAt")
    cart_items: list[dict[str, Any]] = Field(alias="cartItems", default_factory=list)
    schedule: list[ScheduleOut]

    model_config = {"populate_by_name": True}


class CompleteDepositResponse(WarningsMixin):
    session_id: str = Field(alias="sessionId")
    order_id: str = Field(alias="orderId")
    deposit_amount: Decimal = Field(alias="depositAmount")
    remaining_amount: Decimal = Field(alias="remainingAmount")
    transaction_id: str = Field(alias="transactionId")
    payment_link: str | None = Field(alias="paymentLink", default=None)

    model_config = {"populate_by_name": True}
