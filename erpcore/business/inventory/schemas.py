from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from erpcore.platform.stock.schemas import StockLotRead

AdjustmentType = Literal["add", "remove", "damage"]


class OpeningStockCreate(BaseModel):
    product_id: UUID
    quantity: Decimal = Field(gt=Decimal("0"))
    unit_cost: Decimal = Field(ge=Decimal("0"))
    as_of_date: date | None = None
    created_by: str | None = None


class OpeningStockRead(BaseModel):
    lot: StockLotRead
    value: Decimal
    journal_id: UUID | None


class StockAdjustmentLineCreate(BaseModel):
    product_id: UUID
    quantity: Decimal = Field(gt=Decimal("0"))
    unit_cost: Decimal | None = Field(default=None, ge=Decimal("0"))


class StockAdjustmentCreate(BaseModel):
    adjustment_date: date | None = None
    adjustment_type: AdjustmentType
    reason: str | None = None
    items: list[StockAdjustmentLineCreate] = Field(min_length=1)
    created_by: str | None = None


class StockAdjustmentItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    line_no: int
    product_id: UUID
    quantity: Decimal
    unit_cost: Decimal
    total_cost: Decimal
    stock_movement_id: int


class StockAdjustmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    adjustment_number: str
    adjustment_date: date
    adjustment_type: AdjustmentType
    reason: str | None
    total_value: Decimal
    journal_id: UUID | None
    created_by: str | None
    created_at: datetime
    items: list[StockAdjustmentItemRead] = Field(default_factory=list)
