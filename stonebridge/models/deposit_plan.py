"""DepositPlan model.

A deposit plan describes how an order total is split into instalments.
Plans are configuration: created out of band (seed script / SQL), read-only here.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, DateTime, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from stonebridge.stores.postgres import Base


class PlanType(str, Enum):
    """How the first instalment is derived."""

    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"
    HYBRID = "HYBRID"


class DepositPlan(Base):
    """Instalment plan definition."""

    __tablename__ = "deposit_plans"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(20))  # PlanType value

    # Split configuration
    percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))
    fixed_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    total_installments: Mapped[int] = mapped_column(default=1)

    # Bounds shown to the customer
    min_deposit: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    max_deposit: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))

    is_default: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
