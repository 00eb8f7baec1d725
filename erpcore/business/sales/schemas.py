from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

PaymentMethod = Literal["cash", "bank"]
RefundMethod = Literal["cash", "bank", "account"]


class SaleLineCreate(BaseModel):
    product_id: UUID
    quantity: Decimal = Field(gt=Decimal("0"))
    unit_price: Decimal = Field(ge=Decimal("0"))
    line_discount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))


class SaleCreate(BaseModel):
    sale_date: date | None = None
    customer_id: UUID | None = None
    items: list[SaleLineCreate] = Field(min_length=1)
    discount_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    tax_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    amount_paid: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    payment_method: PaymentMethod = "cash"
    notes: str | None = None
    created_by: str | None = None


class SaleItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    line_no: int
    product_id: UUID
    quantity: Decimal
    unit_price: Decimal
    line_discount: Decimal
    line_total: Decimal
    cost_price: Decimal
    total_cost: Decimal
    returned_quantity: Decimal


class SaleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_number: str
    sale_date: date
    customer_id: UUID | None
    subtotal: Decimal
    line_discount_total: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    change_amount: Decimal
    advance_amount: Decimal
    total_cost: Decimal
    payment_method: PaymentMethod
    status: str
    notes: str | None
    journal_id: UUID | None
    created_by: str | None
    created_at: datetime
    items: list[SaleItemRead] = Field(default_factory=list)


class SaleReturnLineCreate(BaseModel):
    sale_item_id: UUID
    quantity: Decimal = Field(gt=Decimal("0"))


class SaleReturnCreate(BaseModel):
    sale_id: UUID
    return_date: date | None = None
    items: list[SaleReturnLineCreate] = Field(min_length=1)
    refund_method: RefundMethod = "cash"
    reason: str | None = None
    created_by: str | None = None


class SaleReturnItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sale_item_id: UUID
    product_id: UUID
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    cost_price: Decimal
    total_cost: Decimal


class SaleReturnRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    return_number: str
    sale_id: UUID
    return_date: date
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    refund_amount: Decimal
    total_cost: Decimal
    refund_method: RefundMethod
    reason: str | None
    journal_id: UUID | None
    created_by: str | None
    created_at: datetime
    items: list[SaleReturnItemRead] = Field(default_factory=list)
