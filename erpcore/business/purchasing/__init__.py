from erpcore.business.purchasing.models import Purchase, PurchaseItem
from erpcore.business.purchasing.schemas import (
    PurchaseCreate,
    PurchaseItemRead,
    PurchaseLineCreate,
    PurchaseRead,
    PurchaseReturnCreate,
    PurchaseReturnLineCreate,
)
from erpcore.business.purchasing.service import PurchaseService, purchase_service

__all__ = [
    "Purchase",
    "PurchaseCreate",
    "PurchaseItem",
    "PurchaseItemRead",
    "PurchaseLineCreate",
    "PurchaseRead",
    "PurchaseReturnCreate",
    "PurchaseReturnLineCreate",
    "PurchaseService",
    "purchase_service",
]
