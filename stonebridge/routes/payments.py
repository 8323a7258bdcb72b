"""Order payment endpoints.

GET  /v1/payments/orders/{order_id}                     - Payment status of an order
POST /v1/payments/orders/{order_id}/complete-remaining  - Capture the remaining balance
"""

from fastapi import APIRouter

from stonebridge.schemas import CompleteRemainingRequest, CompleteRemainingResponse, OrderPaymentStatusOut
from stonebridge.services.completion import get_completion_service
from stonebridge.services.shopify_client import to_gid

router = APIRouter()


@router.get("/orders/{order_id:path}", response_model=OrderPaymentStatusOut)
async def get_order_payment_status(order_id: str) -> OrderPaymentStatusOut:
    status = await get_completion_service().get_order_payment_status(to_gid("Order", order_id))
    return OrderPaymentStatusOut(
        order_id=status.order_id,
        payment_status=status.payment_status,
        deposit_paid=status.deposit_paid,
        remaining_paid=status.remaining_paid,
        deposit_amount=status.deposit_amount,
        remaining_amount=status.remaining_amount,
        captured_amount=status.captured_amount,
        payment_link=status.payment_link,
        session_id=status.session_id,
    )


@router.post("/orders/{order_id:path}/complete-remaining", response_model=CompleteRemainingResponse)
async def complete_remaining(
    order_id: str,
    request: CompleteRemainingRequest | None = None,
) -> CompleteRemainingResponse:
    """Capture the remaining balance of a deposit-paid order."""
    transaction_id = request.transaction_id if request else None
    result = await get_completion_service().complete_remaining_payment(
        to_gid("Order", order_id),
        transaction_id=transaction_id,
    )
    return CompleteRemainingResponse(
        order_id=result.order_id,
        session_id=result.session_id,
        amount=result.amount,
        transaction_id=result.transaction_id,
        warnings=result.warnings,
    )
