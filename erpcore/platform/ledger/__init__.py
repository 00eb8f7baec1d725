from erpcore.platform.ledger.models import Account, AccountGroup, Journal, LedgerEntry
from erpcore.platform.ledger.schemas import (
    AccountBalanceRead,
    AccountCreate,
    AccountGroupCreate,
    AccountGroupRead,
    AccountLedgerLine,
    AccountLedgerRead,
    AccountRead,
    JournalEntryInput,
    JournalPostRequest,
    JournalRead,
    JournalReverseRequest,
    LedgerEntryRead,
    TrialBalanceLine,
    TrialBalanceRead,
)
from erpcore.platform.ledger.service import LedgerService, ledger_service

__all__ = [
    "Account",
    "AccountBalanceRead",
    "AccountCreate",
    "AccountGroup",
    "AccountGroupCreate",
    "AccountGroupRead",
    "AccountLedgerLine",
    "AccountLedgerRead",
    "AccountRead",
    "Journal",
    "JournalEntryInput",
    "JournalPostRequest",
    "JournalRead",
    "JournalReverseRequest",
    "LedgerEntry",
    "LedgerEntryRead",
    "LedgerService",
    "TrialBalanceLine",
    "TrialBalanceRead",
    "ledger_service",
]
