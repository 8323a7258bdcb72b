"""Deposit plan endpoints.

GET  /v1/deposit-plans                  - Active plans (default first)
GET  /v1/deposit-plans/default          - Default plan
GET  /v1/deposit-plans/{plan_id}        - One plan
POST /v1/deposit-plans/{plan_id}/quote  - Instalment preview for a total
"""

from fastapi import APIRouter

from stonebridge.schemas import DepositPlanListResponse, DepositPlanOut, QuoteRequest, QuoteResponse
from stonebridge.services import deposit_plans
from stonebridge.services.instalments import calculate_payment_amounts, quantize_amounts

router = APIRouter()


@router.get("", response_model=DepositPlanListResponse)
async def list_plans() -> DepositPlanListResponse:
    plans = await deposit_plans.list_active_plans()
    return DepositPlanListResponse(plans=[DepositPlanOut.model_validate(p) for p in plans])


@router.get("/default", response_model=DepositPlanOut)
async def get_default_plan() -> DepositPlanOut:
    return DepositPlanOut.model_validate(await deposit_plans.get_default_plan())


@router.get("/{plan_id}", response_model=DepositPlanOut)
async def get_plan(plan_id: str) -> DepositPlanOut:
    return DepositPlanOut.model_validate(await deposit_plans.get_plan(plan_id))


@router.post("/{plan_id}/quote", response_model=QuoteResponse)
async def quote_plan(plan_id: str, request: QuoteRequest) -> QuoteResponse:
    """Preview the amounts a session would charge for this plan.

    Raises InvalidPlan (400) for plans without a splitting rule.
    """
    plan = await deposit_plans.get_plan(plan_id)
    amounts = quantize_amounts(calculate_payment_amounts(plan, request.total_amount))
    return QuoteResponse(plan_id=plan.id, total_amount=request.total_amount, payment_amounts=amounts)
