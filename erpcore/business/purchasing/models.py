from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erpcore.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Purchase(Base):
    """A supplier bill, or a debit note when ``is_return`` is set."""

    __tablename__ = "purchases"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    bill_number: Mapped[str] = mapped_column(String(32), nullable=False)
    bill_date: Mapped[date] = mapped_column(Date(), nullable=False)
    supplier_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("suppliers.id", ondelete="RESTRICT"),
        nullable=True,
    )
    reference_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_return: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    original_purchase_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("purchases.id", ondelete="RESTRICT"),
        nullable=True,
    )
    subtotal: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False, default=Decimal("0"), server_default="0")
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False, default=Decimal("0"), server_default="0")
    total_amount: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False, default=Decimal("0"), server_default="0")
    payment_method: Mapped[str] = mapped_column(String(16), nullable=False, default="cash", server_default="cash")
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    journal_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("journals.id", ondelete="RESTRICT"),
        nullable=True,
    )
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    items: Mapped[list[PurchaseItem]] = relationship(
        "PurchaseItem",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseItem.line_no",
    )

    __table_args__ = (
        UniqueConstraint("bill_number", name="uq_purchases_bill_number"),
        CheckConstraint("payment_method IN ('cash', 'bank', 'account')", name="ck_purchases_payment_method"),
        CheckConstraint(
            "payment_status IN ('paid', 'partial', 'unpaid', 'returned')",
            name="ck_purchases_payment_status",
        ),
        CheckConstraint("paid_amount <= total_amount", name="ck_purchases_paid_within_total"),
    )


class PurchaseItem(Base):
    __tablename__ = "purchase_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    purchase_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("purchases.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    stock_movement_id: Mapped[int | None] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("stock_movements.id", ondelete="RESTRICT"),
        nullable=True,
    )

    purchase: Mapped[Purchase] = relationship("Purchase", back_populates="items")

    __table_args__ = (CheckConstraint("quantity > 0", name="ck_purchase_items_quantity_positive"),)
