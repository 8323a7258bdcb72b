"""Deposit session orchestrator.

Creates instalment payment sessions:
1. Load lines/total (from the local cart when not supplied)
2. Resolve the plan (explicit or default) and compute instalment amounts
3. For each instalment, in order: payment variant -> draft order; instalment
   #1 also gets a storefront cart for its checkout URL
4. Persist the session and all schedule rows in one transaction

Nothing is written to the database until every platform call has succeeded,
so a failed creation never leaves a partial session behind. Draft orders
already created on the platform for a failed attempt are left for the
platform's abandoned-draft cleanup.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import json
import logging
import secrets
import string
import time
from typing import Any

from sqlalchemy import select

from stonebridge.models import (
    DepositPlan,
    DepositSession,
    InstallmentType,
    PaymentSchedule,
    ScheduleStatus,
    SessionStatus,
)
from stonebridge.services import carts, deposit_plans
from stonebridge.services.cart_bridge import CartBridge, get_cart_bridge, strip_cart_key
from stonebridge.services.errors import NotConfigured, SessionNotFound, ValidationError
from stonebridge.services.instalments import calculate_payment_amounts, quantize_amounts, to_decimal
from stonebridge.services.materializer import VariantMaterializer, get_variant_materializer
from stonebridge.services.shopify_client import ShopifyClient, get_shopify_client
from stonebridge.settings import get_settings
from stonebridge.stores.postgres import get_session, is_db_configured

logger = logging.getLogger("uvicorn.error")

_SESSION_ALPHABET = string.ascii_lowercase + string.digits


def generate_session_id() -> str:
    """deposit_{epoch_ms}_{9 random chars}"""
    suffix = "".join(secrets.choice(_SESSION_ALPHABET) for _ in range(9))
    return f"deposit_{int(time.time() * 1000)}_{suffix}"


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================================
# Result / view types
# ============================================================


@dataclass
class SessionLineItem:
    """One cart line as snapshotted on the session."""

    title: str
    price: Decimal
    quantity: int = 1
    external_id: str | None = None
    variant_id: str | None = None

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def snapshot(self) -> dict[str, Any]:
        return {
            "external_id": self.external_id,
            "variant_id": self.variant_id,
            "title": self.title,
            "price": f"{self.price:.2f}",
            "quantity": self.quantity,
        }


@dataclass
class DepositSessionResult:
    session_id: str
    draft_order_ids: list[str]
    checkout_url: str
    payment_amounts: list[Decimal]
    expires_at: datetime
    plan_id: str
    warnings: list[str] = field(default_factory=list)

    @property
    def first_draft_order_id(self) -> str:
        return self.draft_order_ids[0]


@dataclass
class ScheduleView:
    installment_number: int
    installment_type: str
    amount: Decimal
    status: str
    draft_order_id: str
    variant_id: str | None = None
    order_id: str | None = None
    checkout_url: str | None = None
    paid_amount: Decimal | None = None
    paid_at: datetime | None = None


@dataclass
class DepositSessionView:
    session_id: str
    cart_id: str
    customer_id: str | None
    plan_id: str
    payment_status: str
    total_amount: Decimal
    total_installments: int
    paid_installments: int
    checkout_url: str | None
    cart_items: list[dict[str, Any]]
    created_at: datetime | None
    expires_at: datetime
    schedules: list[ScheduleView]

    @property
    def expired(self) -> bool:
        return as_utc(self.expires_at) <= datetime.now(timezone.utc)

    @property
    def paid_amount(self) -> Decimal:
        return sum((s.paid_amount or Decimal("0") for s in self.schedules), Decimal("0"))

    @property
    def remaining_amount(self) -> Decimal:
        return self.total_amount - self.paid_amount


def _schedule_view(row: PaymentSchedule) -> ScheduleView:
    return ScheduleView(
        installment_number=row.installment_number,
        installment_type=row.installment_type,
        amount=Decimal(row.amount),
        status=row.status,
        draft_order_id=row.draft_order_id,
        variant_id=row.variant_id,
        order_id=row.order_id,
        checkout_url=row.checkout_url,
        paid_amount=Decimal(row.paid_amount) if row.paid_amount is not None else None,
        paid_at=row.paid_at,
    )


async def get_deposit_session(session_id: str) -> DepositSessionView:
    """Session with its schedule ordered by instalment number.

    Expired sessions are returned (check `.expired`); they are never deleted.

    Raises:
        SessionNotFound: Unknown session id.
    """
    async with get_session() as session:
        row = (
            await session.execute(select(DepositSession).where(DepositSession.session_id == session_id))
        ).scalar_one_or_none()
        if row is None:
            raise SessionNotFound(f"Deposit session {session_id} not found", detail={"session_id": session_id})

        schedules = (
            await session.execute(
                select(PaymentSchedule)
                .where(PaymentSchedule.session_id == session_id)
                .order_by(PaymentSchedule.installment_number.asc())
            )
        ).scalars().all()

    return DepositSessionView(
        session_id=row.session_id,
        cart_id=row.cart_id,
        customer_id=row.customer_id,
        plan_id=row.plan_id,
        payment_status=row.payment_status,
        total_amount=Decimal(row.total_amount),
        total_installments=row.total_installments,
        paid_installments=row.paid_installments,
        checkout_url=row.checkout_url,
        cart_items=json.loads(row.cart_snapshot_json or "[]"),
        created_at=row.created_at,
        expires_at=row.expires_at,
        schedules=[_schedule_view(s) for s in schedules],
    )


# ============================================================
# Orchestrator
# ============================================================


class DepositSessionOrchestrator:
    """Creates deposit sessions (dependencies injected)."""

    def __init__(
        self,
        client: ShopifyClient,
        materializer: VariantMaterializer,
        bridge: CartBridge,
        *,
        deposit_product_id: str,
        session_ttl_hours: int = 24,
    ):
        self.client = client
        self.materializer = materializer
        self.bridge = bridge
        self.deposit_product_id = deposit_product_id
        self.session_ttl_hours = session_ttl_hours

    async def _load_lines(
        self,
        cart_id: str,
        lines: list[SessionLineItem] | None,
        total_amount: Decimal | None,
    ) -> tuple[list[SessionLineItem], Decimal]:
        if lines is None:
            cart = await carts.get_cart(cart_id)
            lines = [
                SessionLineItem(
                    title=line.title,
                    price=line.price,
                    quantity=line.quantity,
                    external_id=line.external_id,
                    variant_id=line.variant_id,
                )
                for line in cart.lines
            ]
            if not lines:
                raise ValidationError("Cart is empty", code="EMPTY_CART", detail={"cart_id": cart_id})

        if total_amount is None:
            total_amount = sum((line.line_total for line in lines), Decimal("0"))
        total = to_decimal(total_amount)
        if total <= 0:
            raise ValidationError("Total amount must be greater than zero", detail={"total_amount": str(total)})
        return lines, total

    async def create(
        self,
        cart_id: str,
        *,
        customer_id: str | None = None,
        lines: list[SessionLineItem] | None = None,
        total_amount: Decimal | None = None,
        plan_id: str | None = None,
    ) -> DepositSessionResult:
        """Create a deposit session for a cart.

        Args:
            cart_id: Storefront cart id (`?key=` suffix tolerated).
            customer_id: Optional platform customer id.
            lines: Line items; loaded from the local cart when omitted.
            total_amount: Order total; sum of lines when omitted.
            plan_id: Deposit plan; the default plan when omitted.

        Returns:
            Session id, draft order ids, first checkout URL and amounts.

        Raises:
            NotConfigured: Database or deposit product missing.
            ValidationError / NotFound / InvalidPlan: Bad input.
            PlatformError: A platform call failed (nothing persisted).
        """
        if not is_db_configured():
            raise NotConfigured("Database is not configured", code="DATABASE_NOT_CONFIGURED")
        if not self.deposit_product_id:
            raise NotConfigured(
                "SHOPIFY_DEPOSIT_PRODUCT_ID is not configured",
                code="DEPOSIT_PRODUCT_NOT_CONFIGURED",
            )
        if not cart_id:
            raise ValidationError("cartId is required", detail={"field": "cartId"})
        cart_id = strip_cart_key(cart_id)

        lines, total = await self._load_lines(cart_id, lines, total_amount)
        plan: DepositPlan = (
            await deposit_plans.get_plan(plan_id) if plan_id else await deposit_plans.get_default_plan()
        )

        amounts = quantize_amounts(calculate_payment_amounts(plan, total))
        if len(amounts) != (plan.total_installments or 1):
            logger.warning(
                f"Plan {plan.id} configures {plan.total_installments} instalments "
                f"but produced {len(amounts)} amounts for total {total}"
            )

        session_id = generate_session_id()
        token = session_id.removeprefix("deposit_")
        expires_at = datetime.now(timezone.utc) + timedelta(hours=self.session_ttl_hours)
        cart_items = [line.snapshot() for line in lines]
        count = len(amounts)
        logger.info(f"Creating deposit session {session_id}: plan={plan.id} total={total} amounts={amounts}")

        draft_order_ids: list[str] = []
        variant_ids: list[str] = []
        checkout_url = ""
        warnings: list[str] = []

        for number, amount in enumerate(amounts, start=1):
            summary = {
                "session_id": session_id,
                "plan_id": plan.id,
                "plan_name": plan.name,
                "plan_type": plan.type,
                "payment_number": number,
                "total_payments": count,
                "payment_amount": f"{amount:.2f}",
                "total_amount": f"{total:.2f}",
                "cart_items": cart_items,
            }

            variant = await self.materializer.materialize_payment_variant(
                self.deposit_product_id,
                sku=f"DEP-{token}-{number}",
                option_value=f"P{number}-{token}",
                price=amount,
            )
            warnings.extend(f"payment {number} {w}" for w in variant.warnings)
            variant_ids.append(variant.variant_id)

            draft = await self.client.create_draft_order(
                line_items=[{"variantId": variant.variant_id, "quantity": 1}],
                customer_id=customer_id,
                tags=["deposit", f"session:{session_id}"],
                custom_attributes=[
                    {"key": "session_id", "value": session_id},
                    {"key": "payment_number", "value": str(number)},
                ],
                metafields=[
                    {
                        "namespace": "custom",
                        "key": "deposit",
                        "type": "json",
                        "value": json.dumps(summary),
                    }
                ],
                note=f"Payment {number} of {count} for deposit session {session_id}",
            )
            draft_order_ids.append(draft.id)

            if number == 1:
                cart = await self.bridge.add_variant_to_cart(
                    variant.variant_id,
                    cart_attributes=[
                        {"key": "deposit_session_id", "value": session_id},
                        {"key": "payment_number", "value": "1"},
                        {"key": "total_payments", "value": str(count)},
                    ],
                )
                checkout_url = cart.checkout_url

        async with get_session() as session:
            session.add(
                DepositSession(
                    session_id=session_id,
                    cart_id=cart_id,
                    customer_id=customer_id,
                    plan_id=plan.id,
                    cart_snapshot_json=json.dumps(cart_items),
                    total_amount=total,
                    payment_status=SessionStatus.PENDING_DEPOSIT.value,
                    total_installments=count,
                    paid_installments=0,
                    checkout_url=checkout_url,
                    expires_at=expires_at,
                )
            )
            await session.flush()
            session.add_all(
                [
                    PaymentSchedule(
                        session_id=session_id,
                        installment_number=number,
                        installment_type=(
                            InstallmentType.DEPOSIT.value if number == 1 else InstallmentType.INSTALLMENT.value
                        ),
                        amount=amount,
                        variant_id=variant_ids[number - 1],
                        draft_order_id=draft_order_ids[number - 1],
                        checkout_url=checkout_url if number == 1 else None,
                        status=ScheduleStatus.PENDING.value,
                    )
                    for number, amount in enumerate(amounts, start=1)
                ]
            )

        logger.info(f"Deposit session {session_id} created with {count} instalment(s)")
        return DepositSessionResult(
            session_id=session_id,
            draft_order_ids=draft_order_ids,
            checkout_url=checkout_url,
            payment_amounts=amounts,
            expires_at=expires_at,
            plan_id=plan.id,
            warnings=warnings,
        )


_orchestrator: DepositSessionOrchestrator | None = None


def get_deposit_session_orchestrator() -> DepositSessionOrchestrator:
    """Get orchestrator wired to the shared client, materializer and bridge."""
    global _orchestrator
    if _orchestrator is None:
        settings = get_settings()
        _orchestrator = DepositSessionOrchestrator(
            get_shopify_client(),
            get_variant_materializer(),
            get_cart_bridge(),
            deposit_product_id=settings.shopify_deposit_product_id,
            session_ttl_hours=settings.deposit_session_ttl_hours,
        )
    return _orchestrator


async def create_deposit_session(
    cart_id: str,
    *,
    customer_id: str | None = None,
    lines: list[SessionLineItem] | None = None,
    total_amount: Decimal | None = None,
    plan_id: str | None = None,
) -> DepositSessionResult:
    """Create a deposit session with the shared orchestrator."""
    return await get_deposit_session_orchestrator().create(
        cart_id,
        customer_id=customer_id,
        lines=lines,
        total_amount=total_amount,
        plan_id=plan_id,
    )

