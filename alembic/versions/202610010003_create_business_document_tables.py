"""create business document tables

Revision ID: 202610010003
Revises: 202610010002
Create Date: 2026-10-01 10:00:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610010003"
down_revision: str | None = "202610010002"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _money(name: str, *, default: bool = False) -> sa.Column:
    if default:
        return sa.Column(name, sa.Numeric(18, 6), nullable=False, server_default="0")
    return sa.Column(name, sa.Numeric(18, 6), nullable=False)


def _party_table(name: str, *extra: sa.Column | sa.CheckConstraint) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        *extra,
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name=f"uq_{name}_code"),
    )


def upgrade() -> None:
    _party_table(
        "customers",
        _money("credit_limit", default=True),
        sa.CheckConstraint("credit_limit >= 0", name="ck_customers_credit_limit_nonnegative"),
    )
    _party_table("suppliers")

    op.create_table(
        "sales",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("invoice_number", sa.String(length=32), nullable=False),
        sa.Column("sale_date", sa.Date(), nullable=False),
        sa.Column("customer_id", sa.Uuid(), nullable=True),
        _money("subtotal"),
        _money("line_discount_total", default=True),
        _money("discount_amount", default=True),
        _money("tax_amount", default=True),
        _money("total_amount"),
        _money("amount_paid", default=True),
        _money("amount_due", default=True),
        _money("change_amount", default=True),
        _money("advance_amount", default=True),
        _money("total_cost", default=True),
        sa.Column("payment_method", sa.String(length=16), nullable=False, server_default="cash"),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("journal_id", sa.Uuid(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["journal_id"], ["journals.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_number", name="uq_sales_invoice_number"),
        sa.CheckConstraint("payment_method IN ('cash', 'bank')", name="ck_sales_payment_method"),
        sa.CheckConstraint("status IN ('completed', 'confirmed')", name="ck_sales_status"),
        sa.CheckConstraint("amount_due >= 0", name="ck_sales_amount_due_nonnegative"),
        sa.CheckConstraint("change_amount >= 0", name="ck_sales_change_nonnegative"),
    )

    op.create_table(
        "sale_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sale_id", sa.Uuid(), nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        _money("quantity"),
        _money("unit_price"),
        _money("line_discount", default=True),
        _money("line_total"),
        _money("cost_price"),
        _money("total_cost"),
        _money("returned_quantity", default=True),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        sa.CheckConstraint(
            "returned_quantity >= 0 AND returned_quantity <= quantity",
            name="ck_sale_items_returned_bounds",
        ),
    )

    op.create_table(
        "sale_returns",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("return_number", sa.String(length=32), nullable=False),
        sa.Column("sale_id", sa.Uuid(), nullable=False),
        sa.Column("return_date", sa.Date(), nullable=False),
        _money("subtotal"),
        _money("discount_amount"),
        _money("tax_amount"),
        _money("refund_amount"),
        _money("total_cost"),
        sa.Column("refund_method", sa.String(length=16), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("journal_id", sa.Uuid(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["journal_id"], ["journals.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("return_number", name="uq_sale_returns_return_number"),
        sa.CheckConstraint("refund_method IN ('cash', 'bank', 'account')", name="ck_sale_returns_refund_method"),
    )

    op.create_table(
        "sale_return_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sale_return_id", sa.Uuid(), nullable=False),
        sa.Column("sale_item_id", sa.Uuid(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        _money("quantity"),
        _money("unit_price"),
        _money("line_total"),
        _money("cost_price"),
        _money("total_cost"),
        sa.ForeignKeyConstraint(["sale_return_id"], ["sale_returns.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sale_item_id"], ["sale_items.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity > 0", name="ck_sale_return_items_quantity_positive"),
    )

    op.create_table(
        "purchases",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("bill_number", sa.String(length=32), nullable=False),
        sa.Column("bill_date", sa.Date(), nullable=False),
        sa.Column("supplier_id", sa.Uuid(), nullable=True),
        sa.Column("reference_number", sa.String(length=64), nullable=True),
        sa.Column("is_return", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("original_purchase_id", sa.Uuid(), nullable=True),
        _money("subtotal"),
        _money("discount_amount", default=True),
        _money("tax_amount", default=True),
        _money("total_amount"),
        _money("paid_amount", default=True),
        sa.Column("payment_method", sa.String(length=16), nullable=False, server_default="cash"),
        sa.Column("payment_status", sa.String(length=16), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("journal_id", sa.Uuid(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["original_purchase_id"], ["purchases.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["journal_id"], ["journals.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("bill_number", name="uq_purchases_bill_number"),
        sa.CheckConstraint("payment_method IN ('cash', 'bank', 'account')", name="ck_purchases_payment_method"),
        sa.CheckConstraint(
            "payment_status IN ('paid', 'partial', 'unpaid', 'returned')",
            name="ck_purchases_payment_status",
        ),
        sa.CheckConstraint("paid_amount <= total_amount", name="ck_purchases_paid_within_total"),
    )

    op.create_table(
        "purchase_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("purchase_id", sa.Uuid(), nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        _money("quantity"),
        _money("unit_cost"),
        _money("line_total"),
        sa.Column("stock_movement_id", sa.BigInteger(), nullable=True),
        sa.ForeignKeyConstraint(["purchase_id"], ["purchases.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["stock_movement_id"], ["stock_movements.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity > 0", name="ck_purchase_items_quantity_positive"),
    )

    op.create_table(
        "expenses",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("expense_number", sa.String(length=32), nullable=False),
        sa.Column("expense_date", sa.Date(), nullable=False),
        sa.Column("expense_account_id", sa.Uuid(), nullable=False),
        sa.Column("payment_account_id", sa.Uuid(), nullable=False),
        _money("amount"),
        _money("tax_amount", default=True),
        _money("total_amount"),
        sa.Column("payee", sa.String(length=255), nullable=True),
        sa.Column("reference_number", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("journal_id", sa.Uuid(), nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["expense_account_id"], ["accounts.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["payment_account_id"], ["accounts.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["journal_id"], ["journals.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("expense_number", name="uq_expenses_expense_number"),
        sa.CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        sa.CheckConstraint("tax_amount >= 0", name="ck_expenses_tax_nonnegative"),
    )

    op.create_table(
        "quotations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("quotation_number", sa.String(length=32), nullable=False),
        sa.Column("quotation_date", sa.Date(), nullable=False),
        sa.Column("valid_until", sa.Date(), nullable=True),
        sa.Column("customer_id", sa.Uuid(), nullable=True),
        _money("subtotal"),
        _money("discount_amount", default=True),
        _money("tax_amount", default=True),
        _money("total_amount"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("converted_sale_id", sa.Uuid(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["converted_sale_id"], ["sales.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("quotation_number", name="uq_quotations_quotation_number"),
        sa.CheckConstraint("status IN ('draft', 'converted')", name="ck_quotations_status"),
    )

    op.create_table(
        "quotation_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("quotation_id", sa.Uuid(), nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        _money("quantity"),
        _money("unit_price"),
        _money("line_discount", default=True),
        _money("line_total"),
        sa.ForeignKeyConstraint(["quotation_id"], ["quotations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity > 0", name="ck_quotation_items_quantity_positive"),
    )

    op.create_table(
        "stock_adjustments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("adjustment_number", sa.String(length=32), nullable=False),
        sa.Column("adjustment_date", sa.Date(), nullable=False),
        sa.Column("adjustment_type", sa.String(length=16), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        _money("total_value"),
        sa.Column("journal_id", sa.Uuid(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["journal_id"], ["journals.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("adjustment_number", name="uq_stock_adjustments_adjustment_number"),
        sa.CheckConstraint("adjustment_type IN ('add', 'remove', 'damage')", name="ck_stock_adjustments_type"),
    )

    op.create_table(
        "stock_adjustment_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("adjustment_id", sa.Uuid(), nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        _money("quantity"),
        _money("unit_cost"),
        _money("total_cost"),
        sa.Column("stock_movement_id", sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(["adjustment_id"], ["stock_adjustments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["stock_movement_id"], ["stock_movements.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity > 0", name="ck_stock_adjustment_items_quantity_positive"),
    )


def downgrade() -> None:
    for table in (
        "stock_adjustment_items",
        "stock_adjustments",
        "quotation_items",
        "quotations",
        "expenses",
        "purchase_items",
        "purchases",
        "sale_return_items",
        "sale_returns",
        "sale_items",
        "sales",
        "suppliers",
        "customers",
    ):
        op.drop_table(table)
