from decimal import Decimal

import pytest

from stonebridge.models import PlanType
from stonebridge.services.errors import InvalidPlan
from stonebridge.services.instalments import (
    PlanSnapshot,
    calculate_payment_amounts,
    quantize_amounts,
    to_decimal,
)


def test_percentage_plan_splits_remainder_evenly():
    plan = PlanSnapshot(type=PlanType.PERCENTAGE.value, percentage=Decimal("30"), total_installments=3)
    assert calculate_payment_amounts(plan, Decimal("1000")) == [Decimal("300"), Decimal("350"), Decimal("350")]


def test_fixed_plan_first_payment_is_clipped_to_total():
    plan = PlanSnapshot(type=PlanType.FIXED.value, fixed_amount=Decimal("1500"), total_installments=3)
    assert calculate_payment_amounts(plan, 1000) == [Decimal("1000"), Decimal("0"), Decimal("0")]


@pytest.mark.parametrize("installments", [1, 0, None])
def test_single_instalment_collapses_to_first_amount(installments):
    plan = PlanSnapshot(type="PERCENTAGE", percentage=Decimal("40"), total_installments=installments)
    assert calculate_payment_amounts(plan, "250") == [Decimal("100")]


@pytest.mark.parametrize(
    "plan,total",
    [
        (PlanSnapshot(type="PERCENTAGE", percentage=Decimal("33.33"), total_installments=4), Decimal("999.99")),
        (PlanSnapshot(type="FIXED", fixed_amount=Decimal("100"), total_installments=7), Decimal("1234.56")),
        (PlanSnapshot(type="PERCENTAGE", percentage=Decimal("10"), total_installments=3), Decimal("0.05")),
    ],
)
def test_rounded_amounts_sum_to_total(plan, total):
    amounts = quantize_amounts(calculate_payment_amounts(plan, total))
    assert len(amounts) == plan.total_installments
    assert sum(amounts) == total
    assert all(a == a.quantize(Decimal("0.01")) for a in amounts)


def test_quantize_moves_residual_cent_to_last_instalment():
    plan = PlanSnapshot(type="PERCENTAGE", percentage=Decimal("0"), total_installments=4)
    # 100 / 3 per remaining instalment
    assert quantize_amounts(calculate_payment_amounts(plan, 100)) == [
        Decimal("0.00"),
        Decimal("33.33"),
        Decimal("33.33"),
        Decimal("33.34"),
    ]


def test_hybrid_plan_is_rejected():
    plan = PlanSnapshot(type="HYBRID", percentage=Decimal("20"), fixed_amount=Decimal("50"), total_installments=2)
    with pytest.raises(InvalidPlan):
        calculate_payment_amounts(plan, 500)


def test_percentage_plan_without_percentage_is_invalid():
    with pytest.raises(InvalidPlan):
        calculate_payment_amounts(PlanSnapshot(type="PERCENTAGE", total_installments=2), 500)


def test_fixed_plan_without_amount_is_invalid():
    with pytest.raises(InvalidPlan):
        calculate_payment_amounts(PlanSnapshot(type="FIXED", total_installments=2), 500)


def test_to_decimal_avoids_binary_float_noise():
    assert to_decimal(0.1) == Decimal("0.1")
    with pytest.raises(InvalidPlan):
        to_decimal("twelve")
