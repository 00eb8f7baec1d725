from erpcore.business.inventory.models import StockAdjustment, StockAdjustmentItem
from erpcore.business.inventory.schemas import (
    OpeningStockCreate,
    OpeningStockRead,
    StockAdjustmentCreate,
    StockAdjustmentItemRead,
    StockAdjustmentLineCreate,
    StockAdjustmentRead,
)
from erpcore.business.inventory.service import InventoryService, inventory_service

__all__ = [
    "InventoryService",
    "OpeningStockCreate",
    "OpeningStockRead",
    "StockAdjustment",
    "StockAdjustmentCreate",
    "StockAdjustmentItem",
    "StockAdjustmentItemRead",
    "StockAdjustmentLineCreate",
    "StockAdjustmentRead",
    "inventory_service",
]
