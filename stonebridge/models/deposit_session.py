"""DepositSession and PaymentSchedule models.

A deposit session is one customer's instance of paying a cart in instalments.
It is written together with its schedule rows in a single transaction, so a
session is never visible with fewer rows than total_installments.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from stonebridge.stores.postgres import Base


class SessionStatus(str, Enum):
    PENDING_DEPOSIT = "pending_deposit"
    PARTIAL_PAID = "partial_paid"
    FULLY_PAID = "fully_paid"


class ScheduleStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class InstallmentType(str, Enum):
    DEPOSIT = "deposit"
    INSTALLMENT = "installment"


class DepositSession(Base):
    """Instalment payment session for one cart."""

    __tablename__ = "deposit_sessions"

    id: Mapped[int] = mapped_column(primary_key=True)
    session_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)

    cart_id: Mapped[str] = mapped_column(String(255), index=True)
    customer_id: Mapped[str | None] = mapped_column(String(255), index=True)
    plan_id: Mapped[str] = mapped_column(String(64))

    # Snapshot of the cart line items (JSON-serialized text to keep migrations simple)
    cart_snapshot_json: Mapped[str] = mapped_column(Text, default="[]")

    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    payment_status: Mapped[str] = mapped_column(
        String(20),
        default=SessionStatus.PENDING_DEPOSIT.value,
        index=True,
    )
    total_installments: Mapped[int] = mapped_column()
    paid_installments: Mapped[int] = mapped_column(default=0)
    checkout_url: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class PaymentSchedule(Base):
    """One instalment of a deposit session."""

    __tablename__ = "payment_schedules"
    __table_args__ = (
        UniqueConstraint("session_id", "installment_number", name="uq_payment_schedules_session_number"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("deposit_sessions.session_id", ondelete="CASCADE"),
        index=True,
    )

    installment_number: Mapped[int] = mapped_column()  # 1-based
    installment_type: Mapped[str] = mapped_column(String(20))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))

    # Platform references
    variant_id: Mapped[str | None] = mapped_column(String(255))
    draft_order_id: Mapped[str] = mapped_column(String(255))
    order_id: Mapped[str | None] = mapped_column(String(255), index=True)
    checkout_url: Mapped[str | None] = mapped_column(Text)  # instalment #1 only

    status: Mapped[str] = mapped_column(String(20), default=ScheduleStatus.PENDING.value)
    paid_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
