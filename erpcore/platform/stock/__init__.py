from erpcore.platform.stock.models import INBOUND_TYPES, MOVEMENT_TYPES, OUTBOUND_TYPES, Product, StockMovement
from erpcore.platform.stock.schemas import (
    ConsumptionResult,
    LotConsumption,
    ProductCreate,
    ProductRead,
    StockLotRead,
    StockValuationRead,
)
from erpcore.platform.stock.service import StockService, stock_service

__all__ = [
    "ConsumptionResult",
    "INBOUND_TYPES",
    "LotConsumption",
    "MOVEMENT_TYPES",
    "OUTBOUND_TYPES",
    "Product",
    "ProductCreate",
    "ProductRead",
    "StockLotRead",
    "StockMovement",
    "StockService",
    "StockValuationRead",
    "stock_service",
]
