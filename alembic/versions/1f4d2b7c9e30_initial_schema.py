"""initial_schema

Revision ID: 1f4d2b7c9e30
Revises:
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "1f4d2b7c9e30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]
    if updated:
        columns.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)
        )
    return columns


def upgrade() -> None:
    op.create_table(
        "deposit_plans",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("percentage", sa.Numeric(5, 2), nullable=True),
        sa.Column("fixed_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("total_installments", sa.Integer(), server_default="1", nullable=False),
        sa.Column("min_deposit", sa.Numeric(12, 2), nullable=True),
        sa.Column("max_deposit", sa.Numeric(12, 2), nullable=True),
        sa.Column("is_default", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deposit_plans_is_default", "deposit_plans", ["is_default"])
    op.create_index("ix_deposit_plans_active", "deposit_plans", ["active"])

    op.create_table(
        "deposit_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("cart_id", sa.String(length=255), nullable=False),
        sa.Column("customer_id", sa.String(length=255), nullable=True),
        sa.Column("plan_id", sa.String(length=64), nullable=False),
        sa.Column("cart_snapshot_json", sa.Text(), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_status", sa.String(length=20), nullable=False),
        sa.Column("total_installments", sa.Integer(), nullable=False),
        sa.Column("paid_installments", sa.Integer(), server_default="0", nullable=False),
        sa.Column("checkout_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deposit_sessions_session_id", "deposit_sessions", ["session_id"], unique=True)
    op.create_index("ix_deposit_sessions_cart_id", "deposit_sessions", ["cart_id"])
    op.create_index("ix_deposit_sessions_customer_id", "deposit_sessions", ["customer_id"])
    op.create_index("ix_deposit_sessions_payment_status", "deposit_sessions", ["payment_status"])

    op.create_table(
        "payment_schedules",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("installment_number", sa.Integer(), nullable=False),
        sa.Column("installment_type", sa.String(length=20), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("variant_id", sa.String(length=255), nullable=True),
        sa.Column("draft_order_id", sa.String(length=255), nullable=False),
        sa.Column("order_id", sa.String(length=255), nullable=True),
        sa.Column("checkout_url", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("paid_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["session_id"], ["deposit_sessions.session_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "installment_number", name="uq_payment_schedules_session_number"),
    )
    op.create_index("ix_payment_schedules_session_id", "payment_schedules", ["session_id"])
    op.create_index("ix_payment_schedules_order_id", "payment_schedules", ["order_id"])

    op.create_table(
        "carts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("cart_id", sa.String(length=255), nullable=False),
        sa.Column("customer_id", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("checkout_url", sa.Text(), nullable=True),
        sa.Column("currency", sa.String(length=3), server_default="USD", nullable=False),
        sa.Column("total_quantity", sa.Integer(), server_default="0", nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), server_default="0", nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_carts_cart_id", "carts", ["cart_id"], unique=True)
    op.create_index("ix_carts_customer_id", "carts", ["customer_id"])

    op.create_table(
        "cart_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("cart_id", sa.String(length=255), nullable=False),
        sa.Column("external_id", sa.String(length=200), nullable=False),
        sa.Column("source_type", sa.String(length=50), nullable=False),
        sa.Column("variant_id", sa.String(length=255), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("price_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("quantity", sa.Integer(), server_default="1", nullable=False),
        sa.Column("attributes_json", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["cart_id"], ["carts.cart_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cart_items_cart_id", "cart_items", ["cart_id"])
    op.create_index("ix_cart_items_external_id", "cart_items", ["external_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.String(length=255), nullable=False),
        sa.Column("session_id", sa.String(length=64), nullable=True),
        sa.Column("payment_type", sa.String(length=20), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), server_default="USD", nullable=False),
        sa.Column("transaction_id", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="captured", nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_payments_order_id", "payments", ["order_id"])
    op.create_index("ix_payments_session_id", "payments", ["session_id"])

    op.create_table(
        "product",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(length=255), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("product_type", sa.String(length=50), server_default="external_diamond", nullable=False),
        sa.Column("source_type", sa.String(length=50), nullable=True),
        sa.Column("retail_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="active", nullable=False),
        sa.Column("shopify_product_id", sa.String(length=50), nullable=True),
        sa.Column("shopify_variant_id", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_product_sku", "product", ["sku"], unique=True)

    op.create_table(
        "diamond",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("shape", sa.String(length=50), nullable=True),
        sa.Column("carat", sa.String(length=20), nullable=True),
        sa.Column("color", sa.String(length=20), nullable=True),
        sa.Column("clarity", sa.String(length=20), nullable=True),
        sa.Column("cut_grade", sa.String(length=50), nullable=True),
        sa.Column("grading_lab", sa.String(length=50), nullable=True),
        sa.Column("certificate_type", sa.String(length=50), nullable=True),
        sa.Column("certificate_number", sa.String(length=100), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("payload_json", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["product_id"], ["product.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_diamond_product_id", "diamond", ["product_id"], unique=True)


def downgrade() -> None:
    op.drop_table("diamond")
    op.drop_table("product")
    op.drop_table("payments")
    op.drop_table("cart_items")
    op.drop_table("carts")
    op.drop_table("payment_schedules")
    op.drop_table("deposit_sessions")
    op.drop_table("deposit_plans")
