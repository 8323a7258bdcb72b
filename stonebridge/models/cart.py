"""Cart and CartItem models.

Local mirror of the storefront cart. The storefront cart id (without the
`?key=` suffix) is the public key; totals are recomputed from items inside the
same transaction that changes them.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from stonebridge.stores.postgres import Base


class Cart(Base):
    """Customer cart."""

    __tablename__ = "carts"

    id: Mapped[int] = mapped_column(primary_key=True)
    cart_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    customer_id: Mapped[str | None] = mapped_column(String(255), index=True)

    status: Mapped[str] = mapped_column(String(20), default="active")  # active, empty
    checkout_url: Mapped[str | None] = mapped_column(Text)
    currency: Mapped[str] = mapped_column(String(3), default="USD")

    total_quantity: Mapped[int] = mapped_column(default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class CartItem(Base):
    """One line of a cart, keyed by the external catalog id."""

    __tablename__ = "cart_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    cart_id: Mapped[str] = mapped_column(
        ForeignKey("carts.cart_id", ondelete="CASCADE"),
        index=True,
    )

    external_id: Mapped[str] = mapped_column(String(200), index=True)
    source_type: Mapped[str] = mapped_column(String(50))
    variant_id: Mapped[str] = mapped_column(String(255))
    title: Mapped[str] = mapped_column(Text)
    image_url: Mapped[str | None] = mapped_column(Text)

    price_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    quantity: Mapped[int] = mapped_column(default=1)

    # Line attributes sent to the storefront (JSON-serialized text)
    attributes_json: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
