from erpcore.business.journals.schemas import ManualJournalCreate
from erpcore.business.journals.service import JournalVoucherService, journal_voucher_service

__all__ = ["JournalVoucherService", "ManualJournalCreate", "journal_voucher_service"]
