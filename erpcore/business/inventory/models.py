from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
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


class StockAdjustment(Base):
    __tablename__ = "stock_adjustments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    adjustment_number: Mapped[str] = mapped_column(String(32), nullable=False)
    adjustment_date: Mapped[date] = mapped_column(Date(), nullable=False)
    adjustment_type: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_value: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    journal_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("journals.id", ondelete="RESTRICT"),
        nullable=True,
    )
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    items: Mapped[list[StockAdjustmentItem]] = relationship(
        "StockAdjustmentItem",
        back_populates="adjustment",
        cascade="all, delete-orphan",
        order_by="StockAdjustmentItem.line_no",
    )

    __table_args__ = (
        UniqueConstraint("adjustment_number", name="uq_stock_adjustments_adjustment_number"),
        CheckConstraint("adjustment_type IN ('add', 'remove', 'damage')", name="ck_stock_adjustments_type"),
    )


class StockAdjustmentItem(Base):
    __tablename__ = "stock_adjustment_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    adjustment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("stock_adjustments.id", ondelete="CASCADE"),
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
    total_cost: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    stock_movement_id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("stock_movements.id", ondelete="RESTRICT"),
        nullable=False,
    )

    adjustment: Mapped[StockAdjustment] = relationship("StockAdjustment", back_populates="items")

    __table_args__ = (CheckConstraint("quantity > 0", name="ck_stock_adjustment_items_quantity_positive"),)
