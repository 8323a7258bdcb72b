"""Deposit session endpoints.

POST /v1/deposit-sessions                        - Create a session (one draft order per instalment)
GET  /v1/deposit-sessions/{session_id}           - Session with its payment schedule
POST /v1/deposit-sessions/{session_id}/complete  - Complete the deposit (instalment #1)
"""

from fastapi import APIRouter

from stonebridge.schemas import (
    CompleteDepositResponse,
    CreateDepositSessionRequest,
    CreateDepositSessionResponse,
    DepositSessionOut,
    ScheduleOut,
)
from stonebridge.services.completion import get_completion_service
from stonebridge.services.deposit_sessions import (
    SessionLineItem,
    get_deposit_session,
    get_deposit_session_orchestrator,
)

router = APIRouter()


@router.post("", response_model=CreateDepositSessionResponse, status_code=201)
async def create_session(request: CreateDepositSessionRequest) -> CreateDepositSessionResponse:
    """Create a deposit session for a cart."""
    lines = None
    if request.lines is not None:
        lines = [
            SessionLineItem(
                title=line.title,
                price=line.price,
                quantity=line.quantity,
                external_id=line.external_id,
                variant_id=line.variant_id,
            )
            for line in request.lines
        ]

    result = await get_deposit_session_orchestrator().create(
        request.cart_id,
        customer_id=request.customer_id,
        lines=lines,
        total_amount=request.total_amount,
        plan_id=request.plan_id,
    )
    return CreateDepositSessionResponse(
        session_id=result.session_id,
        draft_order_id=result.first_draft_order_id,
        draft_order_ids=result.draft_order_ids,
        checkout_url=result.checkout_url,
        payment_amounts=result.payment_amounts,
        plan_id=result.plan_id,
        expires_at=result.expires_at,
        warnings=result.warnings,
    )


@router.get("/{session_id}", response_model=DepositSessionOut)
async def get_session_detail(session_id: str) -> DepositSessionOut:
    view = await get_deposit_session(session_id)
    return DepositSessionOut(
        session_id=view.session_id,
        cart_id=view.cart_id,
        customer_id=view.customer_id,
        plan_id=view.plan_id,
        payment_status=view.payment_status,
        total_amount=view.total_amount,
        paid_amount=view.paid_amount,
        remaining_amount=view.remaining_amount,
        total_installments=view.total_installments,
        paid_installments=view.paid_installments,
        checkout_url=view.checkout_url,
        expired=view.expired,
        expires_at=view.expires_at,
        cart_items=view.cart_items,
        schedule=[ScheduleOut.model_validate(s) for s in view.schedules],
    )


@router.post("/{session_id}/complete", response_model=CompleteDepositResponse)
async def complete_session_deposit(session_id: str) -> CompleteDepositResponse:
    """Turn instalment #1 into a deposit-paid order."""
    result = await get_completion_service().complete_deposit_order(session_id)
    return CompleteDepositResponse(
        session_id=result.session_id,
        order_id=result.order_id,
        deposit_amount=result.deposit_amount,
        remaining_amount=result.remaining_amount,
        transaction_id=result.transaction_id,
        payment_link=result.payment_link,
        warnings=result.warnings,
    )
