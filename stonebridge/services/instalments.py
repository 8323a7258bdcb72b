"""Instalment calculator.

Pure functions: plan + total -> ordered instalment amounts.

Rules:
- PERCENTAGE: first = total * percentage / 100
- FIXED: first = fixed_amount
- HYBRID has no defined splitting rule and is rejected
- first is clipped to total; the remainder is split evenly across the other
  instalments
- a plan with one instalment (or none configured) collapses to [first]

Math is exact Decimal; quantize_amounts() is the only rounding step and is
applied right before amounts are persisted or sent to the platform.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Protocol

from stonebridge.models.deposit_plan import PlanType
from stonebridge.services.errors import InvalidPlan

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


class PlanLike(Protocol):
    """The plan fields the calculator reads (ORM row or PlanSnapshot)."""

    type: str
    percentage: Decimal | None
    fixed_amount: Decimal | None
    total_installments: int | None


@dataclass(frozen=True)
class PlanSnapshot:
    """Detached plan values (used for previews and tests)."""

    type: str
    percentage: Decimal | None = None
    fixed_amount: Decimal | None = None
    total_installments: int | None = 1


def to_decimal(value: object) -> Decimal:
    """Convert user/DB input to Decimal without going through binary float."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InvalidPlan(f"Not a decimal amount: {value!r}") from e


def _plan_type(plan: PlanLike) -> PlanType:
    raw = getattr(plan.type, "value", plan.type)
    try:
        return PlanType(str(raw).upper())
    except ValueError as e:
        raise InvalidPlan(f"Unsupported plan type: {raw}") from e


def first_payment_amount(plan: PlanLike, total_amount: Decimal) -> Decimal:
    """Amount of instalment #1 before clipping."""
    plan_type = _plan_type(plan)

    if plan_type is PlanType.PERCENTAGE:
        if plan.percentage is None:
            raise InvalidPlan("Percentage plan is missing a percentage")
        percentage = to_decimal(plan.percentage)
        if percentage < 0:
            raise InvalidPlan("Percentage must not be negative")
        return total_amount * percentage / HUNDRED

    if plan_type is PlanType.FIXED:
        if plan.fixed_amount is None:
            raise InvalidPlan("Fixed plan is missing a fixed amount")
        fixed = to_decimal(plan.fixed_amount)
        if fixed < 0:
            raise InvalidPlan("Fixed amount must not be negative")
        return fixed

    raise InvalidPlan(
        f"Plan type {plan_type.value} has no splitting rule",
        detail={"type": plan_type.value},
    )


def calculate_payment_amounts(plan: PlanLike, total_amount: Decimal | int | str) -> list[Decimal]:
    """Split total_amount into instalment amounts according to plan.

    Args:
        plan: Deposit plan (type, percentage / fixed_amount, total_installments).
        total_amount: Order total.

    Returns:
        Unrounded amounts, first instalment first.

    Raises:
        InvalidPlan: Plan misconfigured or of an unsupported type.
    """
    total = to_decimal(total_amount)
    if total < 0:
        raise InvalidPlan("Total amount must not be negative")

    first = min(first_payment_amount(plan, total), total)
    remaining = total - first
    remaining_count = (plan.total_installments or 1) - 1

    if remaining_count <= 0:
        return [first]

    per_installment = remaining / Decimal(remaining_count)
    return [first] + [per_installment] * remaining_count


def quantize_amounts(amounts: list[Decimal]) -> list[Decimal]:
    """Round amounts to cents without losing or inventing a cent.

    Each amount is rounded half-up; the residual drift against the rounded
    exact sum (at most one cent per instalment) is absorbed by the last
    instalment.
    """
    if not amounts:
        return []

    exact_total = sum((to_decimal(a) for a in amounts), Decimal("0"))
    target = exact_total.quantize(CENT, rounding=ROUND_HALF_UP)
    rounded = [to_decimal(a).quantize(CENT, rounding=ROUND_HALF_UP) for a in amounts]
    rounded[-1] += target - sum(rounded, Decimal("0"))
    return rounded
