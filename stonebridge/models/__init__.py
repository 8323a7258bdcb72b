"""SQLAlchemy ORM models.

Models represent database tables:
- deposit_plans: Instalment plan configuration
- deposit_sessions / payment_schedules: Instalment payment sessions and their rows
- carts / cart_items: Local mirror of storefront carts
- payments: Ledger of recorded captures
- product / diamond: Attribute mirror of materialized external stones
"""

from stonebridge.models.deposit_plan import DepositPlan, PlanType
from stonebridge.models.deposit_session import (
    DepositSession,
    InstallmentType,
    PaymentSchedule,
    ScheduleStatus,
    SessionStatus,
)
from stonebridge.models.cart import Cart, CartItem
from stonebridge.models.payment import Payment
from stonebridge.models.catalog import Diamond, Product

__all__ = [
    "Cart",
    "CartItem",
    "DepositPlan",
    "DepositSession",
    "Diamond",
    "InstallmentType",
    "Payment",
    "PaymentSchedule",
    "PlanType",
    "Product",
    "ScheduleStatus",
    "SessionStatus",
]
