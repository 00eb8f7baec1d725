from erpcore.business.sales.models import Sale, SaleItem, SaleReturn, SaleReturnItem
from erpcore.business.sales.schemas import (
    SaleCreate,
    SaleItemRead,
    SaleLineCreate,
    SaleRead,
    SaleReturnCreate,
    SaleReturnLineCreate,
    SaleReturnRead,
)
from erpcore.business.sales.service import SalesService, sales_service

__all__ = [
    "Sale",
    "SaleCreate",
    "SaleItem",
    "SaleItemRead",
    "SaleLineCreate",
    "SaleRead",
    "SaleReturn",
    "SaleReturnCreate",
    "SaleReturnItem",
    "SaleReturnLineCreate",
    "SaleReturnRead",
    "SalesService",
    "sales_service",
]
