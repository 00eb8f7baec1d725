from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

PaymentMethod = Literal["cash", "bank"]
ReturnSettlement = Literal["account", "cash", "bank"]


class PurchaseLineCreate(BaseModel):
    product_id: UUID
    quantity: Decimal = Field(gt=Decimal("0"))
    unit_cost: Decimal = Field(ge=Decimal("0"))


class PurchaseCreate(BaseModel):
    bill_date: date | None = None
    supplier_id: UUID | None = None
    reference_number: str | None = None
    items: list[PurchaseLineCreate] = Field(min_length=1)
    discount_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    tax_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    paid_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    payment_method: PaymentMethod = "cash"
    notes: str | None = None
    created_by: str | None = None


class PurchaseReturnLineCreate(BaseModel):
    product_id: UUID
    quantity: Decimal = Field(gt=Decimal("0"))


class PurchaseReturnCreate(BaseModel):
    original_purchase_id: UUID
    return_date: date | None = None
    items: list[PurchaseReturnLineCreate] = Field(min_length=1)
    settlement: ReturnSettlement = "account"
    notes: str | None = None
    created_by: str | None = None


class PurchaseItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    line_no: int
    product_id: UUID
    quantity: Decimal
    unit_cost: Decimal
    line_total: Decimal
    stock_movement_id: int | None


class PurchaseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    bill_number: str
    bill_date: date
    supplier_id: UUID | None
    reference_number: str | None
    is_return: bool
    original_purchase_id: UUID | None
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    payment_method: str
    payment_status: str
    notes: str | None
    journal_id: UUID | None
    created_by: str | None
    created_at: datetime
    items: list[PurchaseItemRead] = Field(default_factory=list)
