"""create stock tables

Revision ID: 202610010002
Revises: 202610010001
Create Date: 2026-10-01 09:30:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610010002"
down_revision: str | None = "202610010001"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("unit", sa.String(length=16), nullable=False, server_default="pcs"),
        sa.Column("cost_price", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("sale_price", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("current_stock", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sku"),
        sa.CheckConstraint("cost_price >= 0", name="ck_products_cost_price_nonnegative"),
        sa.CheckConstraint("sale_price >= 0", name="ck_products_sale_price_nonnegative"),
    )

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("movement_type", sa.String(length=16), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 6), nullable=False),
        sa.Column("unit_cost", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("remaining_qty", sa.Numeric(18, 6), nullable=True),
        sa.Column("reference_type", sa.String(length=32), nullable=True),
        sa.Column("reference_id", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "movement_type IN ('IN', 'OUT', 'ADJUSTMENT', 'DAMAGE', 'RETURN')",
            name="ck_stock_movements_type",
        ),
        sa.CheckConstraint("quantity <> 0", name="ck_stock_movements_quantity_nonzero"),
        sa.CheckConstraint("unit_cost >= 0", name="ck_stock_movements_unit_cost_nonnegative"),
        sa.CheckConstraint(
            "remaining_qty IS NULL OR (remaining_qty >= 0 AND remaining_qty <= quantity)",
            name="ck_stock_movements_remaining_bounds",
        ),
    )
    op.create_index("ix_stock_movements_fifo", "stock_movements", ["product_id", "created_at", "id"])
    op.create_index("ix_stock_movements_reference", "stock_movements", ["reference_type", "reference_id"])


def downgrade() -> None:
    op.drop_index("ix_stock_movements_reference", table_name="stock_movements")
    op.drop_index("ix_stock_movements_fifo", table_name="stock_movements")
    op.drop_table("stock_movements")
    op.drop_table("products")
