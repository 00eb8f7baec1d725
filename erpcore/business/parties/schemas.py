from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CustomerCreate(BaseModel):
    name: str = Field(min_length=1)
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    credit_limit: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    opening_balance: Decimal = Decimal("0")
    opening_date: date | None = None
    created_by: str | None = None


class CustomerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str
    phone: str | None
    email: str | None
    address: str | None
    credit_limit: Decimal
    account_id: UUID
    is_active: bool
    created_at: datetime


class SupplierCreate(BaseModel):
    name: str = Field(min_length=1)
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    opening_balance: Decimal = Decimal("0")
    opening_date: date | None = None
    created_by: str | None = None


class SupplierRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str
    phone: str | None
    email: str | None
    address: str | None
    account_id: UUID
    is_active: bool
    created_at: datetime


class CustomerCreditRead(BaseModel):
    customer_id: UUID
    credit_limit: Decimal
    credit_used: Decimal
    credit_available: Decimal
