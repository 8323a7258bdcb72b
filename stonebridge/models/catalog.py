"""Product and Diamond models.

Attribute mirror of externally sourced stones that were materialized on the
platform. Product holds the sellable row (SKU = EXT-{external_id}); Diamond
holds the grading attributes in canonical form.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from stonebridge.stores.postgres import Base


class Product(Base):
    """Local product row for a materialized external item."""

    __tablename__ = "product"

    id: Mapped[int] = mapped_column(primary_key=True)
    sku: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str] = mapped_column(Text)
    product_type: Mapped[str] = mapped_column(String(50), default="external_diamond")
    source_type: Mapped[str | None] = mapped_column(String(50))
    retail_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default="active")

    # Numeric platform id (the trailing part of gid://shopify/Product/123)
    shopify_product_id: Mapped[str | None] = mapped_column(String(50))
    shopify_variant_id: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class Diamond(Base):
    """Grading attributes for a Product."""

    __tablename__ = "diamond"

    id: Mapped[int] = mapped_column(primary_key=True)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("product.id", ondelete="CASCADE"),
        unique=True,
        index=True,
    )

    shape: Mapped[str | None] = mapped_column(String(50))
    carat: Mapped[str | None] = mapped_column(String(20))
    color: Mapped[str | None] = mapped_column(String(20))
    clarity: Mapped[str | None] = mapped_column(String(20))
    cut_grade: Mapped[str | None] = mapped_column(String(50))
    grading_lab: Mapped[str | None] = mapped_column(String(50))
    certificate_type: Mapped[str | None] = mapped_column(String(50))
    certificate_number: Mapped[str | None] = mapped_column(String(100))
    image_url: Mapped[str | None] = mapped_column(Text)

    # Raw upstream payload (JSON-serialized text)
    payload_json: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
