from erpcore.business.parties.models import Customer, Supplier
from erpcore.business.parties.schemas import (
    CustomerCreate,
    CustomerCreditRead,
    CustomerRead,
    SupplierCreate,
    SupplierRead,
)
from erpcore.business.parties.service import PartyService, party_service

__all__ = [
    "Customer",
    "CustomerCreate",
    "CustomerCreditRead",
    "CustomerRead",
    "PartyService",
    "Supplier",
    "SupplierCreate",
    "SupplierRead",
    "party_service",
]
