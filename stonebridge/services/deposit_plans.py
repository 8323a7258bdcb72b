"""Deposit plan repository.

Read-only access to deposit_plans. Ordering for listings: default plan first,
then by name.
"""

import logging

from sqlalchemy import select

from stonebridge.models import DepositPlan
from stonebridge.services.errors import NotFound
from stonebridge.stores.postgres import get_session

logger = logging.getLogger("uvicorn.error")


async def list_active_plans() -> list[DepositPlan]:
    """All active plans, default first."""
    async with get_session() as session:
        result = await session.execute(
            select(DepositPlan)
            .where(DepositPlan.active.is_(True))
            .order_by(DepositPlan.is_default.desc(), DepositPlan.name.asc())
        )
        return list(result.scalars().all())


async def get_plan(plan_id: str) -> DepositPlan:
    """Plan by id (inactive plans are not selectable).

    Raises:
        NotFound: PLAN_NOT_FOUND.
    """
    async with get_session() as session:
        result = await session.execute(
            select(DepositPlan).where(DepositPlan.id == plan_id, DepositPlan.active.is_(True))
        )
        plan = result.scalar_one_or_none()

    if plan is None:
        raise NotFound(f"Deposit plan {plan_id} not found", code="PLAN_NOT_FOUND", detail={"plan_id": plan_id})
    return plan


async def get_default_plan() -> DepositPlan:
    """The active default plan, else the first active plan.

    Raises:
        NotFound: NO_PLANS_AVAILABLE when no plan is active.
    """
    async with get_session() as session:
        result = await session.execute(
            select(DepositPlan)
            .where(DepositPlan.is_default.is_(True), DepositPlan.active.is_(True))
            .limit(1)
        )
        plan = result.scalar_one_or_none()

        if plan is None:
            result = await session.execute(
                select(DepositPlan)
                .where(DepositPlan.active.is_(True))
                .order_by(DepositPlan.name.asc())
                .limit(1)
            )
            plan = result.scalar_one_or_none()
            if plan is not None:
                logger.warning(f"No default deposit plan flagged, falling back to {plan.id}")

    if plan is None:
        raise NotFound("No active deposit plans", code="NO_PLANS_AVAILABLE")
    return plan
