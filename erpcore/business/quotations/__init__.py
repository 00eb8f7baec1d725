from erpcore.business.quotations.models import Quotation, QuotationItem
from erpcore.business.quotations.schemas import (
    QuotationConvertRequest,
    QuotationCreate,
    QuotationItemRead,
    QuotationLineCreate,
    QuotationRead,
)
from erpcore.business.quotations.service import QuotationService, quotation_service

__all__ = [
    "Quotation",
    "QuotationConvertRequest",
    "QuotationCreate",
    "QuotationItem",
    "QuotationItemRead",
    "QuotationLineCreate",
    "QuotationRead",
    "QuotationService",
    "quotation_service",
]
