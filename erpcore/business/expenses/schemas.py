from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ExpenseCreate(BaseModel):
    expense_date: date | None = None
    expense_account_id: UUID
    payment_method: Literal["cash", "bank"] = "cash"
    payment_account_id: UUID | None = None
    amount: Decimal = Field(gt=Decimal("0"))
    tax_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    payee: str | None = None
    reference_number: str | None = None
    notes: str | None = None
    created_by: str | None = None


class ExpenseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    expense_number: str
    expense_date: date
    expense_account_id: UUID
    payment_account_id: UUID
    amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    payee: str | None
    reference_number: str | None
    notes: str | None
    journal_id: UUID
    created_by: str | None
    created_at: datetime
