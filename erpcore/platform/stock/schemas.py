from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MovementType = Literal["IN", "OUT", "ADJUSTMENT", "DAMAGE", "RETURN"]


class ProductCreate(BaseModel):
    sku: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1)
    unit: str = Field(default="pcs", min_length=1)
    cost_price: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    sale_price: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))


class ProductRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    sku: str
    name: str
    unit: str
    cost_price: Decimal
    sale_price: Decimal
    current_stock: Decimal
    is_active: bool
    created_at: datetime


class StockLotRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: uuid.UUID
    movement_type: MovementType
    quantity: Decimal
    unit_cost: Decimal
    remaining_qty: Decimal | None
    reference_type: str | None
    reference_id: str | None
    notes: str | None
    created_at: datetime


class LotConsumption(BaseModel):
    lot_id: int
    quantity: Decimal
    unit_cost: Decimal
    total_cost: Decimal


class ConsumptionResult(BaseModel):
    product_id: uuid.UUID
    movement_id: int
    requested_quantity: Decimal
    quantity_satisfied: Decimal
    shortage: Decimal
    breakdown: list[LotConsumption] = Field(default_factory=list)
    lot_cost: Decimal
    shortage_cost: Decimal
    total_cost: Decimal
    average_cost: Decimal


class StockValuationRead(BaseModel):
    product_id: uuid.UUID
    current_stock: Decimal
    lot_quantity: Decimal
    stock_value: Decimal
    average_cost: Decimal
