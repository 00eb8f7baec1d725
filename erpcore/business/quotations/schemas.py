from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class QuotationLineCreate(BaseModel):
    product_id: UUID
    quantity: Decimal = Field(gt=Decimal("0"))
    unit_price: Decimal = Field(ge=Decimal("0"))
    line_discount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))


class QuotationCreate(BaseModel):
    quotation_date: date | None = None
    valid_until: date | None = None
    customer_id: UUID | None = None
    items: list[QuotationLineCreate] = Field(min_length=1)
    discount_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    tax_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    notes: str | None = None
    created_by: str | None = None


class QuotationConvertRequest(BaseModel):
    sale_date: date | None = None
    amount_paid: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    payment_method: Literal["cash", "bank"] = "cash"
    created_by: str | None = None


class QuotationItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    line_no: int
    product_id: UUID
    quantity: Decimal
    unit_price: Decimal
    line_discount: Decimal
    line_total: Decimal


class QuotationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    quotation_number: str
    quotation_date: date
    valid_until: date | None
    customer_id: UUID | None
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    status: Literal["draft", "converted"]
    converted_sale_id: UUID | None
    notes: str | None
    created_by: str | None
    created_at: datetime
    items: list[QuotationItemRead] = Field(default_factory=list)
