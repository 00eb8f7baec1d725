from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


AccountType = Literal["asset", "liability", "equity", "income", "expense"]
EntryType = Literal["debit", "credit"]
JournalType = Literal[
    "sale",
    "sale_return",
    "purchase",
    "purchase_return",
    "expense",
    "adjustment",
    "opening_stock",
    "opening_balance",
    "manual",
    "reversal",
]


class AccountGroupCreate(BaseModel):
    code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    account_type: AccountType
    sequence_order: int = 0


class AccountGroupRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str
    account_type: AccountType
    sequence_order: int


class AccountCreate(BaseModel):
    code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    account_type: AccountType
    group_id: UUID | None = None
    opening_balance: Decimal = Decimal("0")
    description: str | None = None
    is_system: bool = False


class AccountRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str
    account_type: AccountType
    group_id: UUID | None
    opening_balance: Decimal
    current_balance: Decimal
    description: str | None
    is_active: bool
    is_system: bool
    created_at: datetime


class JournalEntryInput(BaseModel):
    """One side of a journal. ``entry_type`` is the closed debit/credit union."""

    model_config = ConfigDict(extra="forbid")

    account_id: UUID
    entry_type: EntryType
    amount: Decimal
    narration: str | None = None


class JournalPostRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    journal_date: date
    journal_type: JournalType = "manual"
    narration: str | None = None
    reference_type: str | None = None
    reference_id: str | None = None
    created_by: str | None = None
    entries: list[JournalEntryInput] = Field(min_length=1)


class JournalReverseRequest(BaseModel):
    reason: str = Field(min_length=1)
    created_by: str | None = None
    reversal_date: date | None = None


class LedgerEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    journal_id: UUID
    account_id: UUID
    line_no: int
    entry_date: date
    entry_type: EntryType
    amount: Decimal
    reference_type: str | None
    reference_id: str | None
    narration: str | None
    created_at: datetime


class JournalRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    number: str
    journal_date: date
    journal_type: JournalType
    reference_type: str | None
    reference_id: str | None
    narration: str | None
    total_debit: Decimal
    total_credit: Decimal
    is_balanced: bool
    reverses_journal_id: UUID | None
    created_by: str | None
    created_at: datetime
    entries: list[LedgerEntryRead] = Field(default_factory=list)


class AccountLedgerLine(BaseModel):
    entry_id: UUID
    journal_id: UUID
    journal_number: str
    line_no: int
    entry_date: date
    entry_type: EntryType
    amount: Decimal
    narration: str | None
    running_balance: Decimal


class AccountLedgerRead(BaseModel):
    account: AccountRead
    from_date: date | None
    to_date: date | None
    opening_balance: Decimal
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal
    entries: list[AccountLedgerLine] = Field(default_factory=list)


class AccountBalanceRead(BaseModel):
    account_id: UUID
    code: str
    account_type: AccountType
    as_of_date: date | None
    opening_balance: Decimal
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal


class TrialBalanceLine(BaseModel):
    account_id: UUID
    code: str
    name: str
    account_type: AccountType
    group_name: str | None
    opening_balance: Decimal
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal
    debit_balance: Decimal
    credit_balance: Decimal


class TrialBalanceTotals(BaseModel):
    debit: Decimal
    credit: Decimal


class TrialBalanceRead(BaseModel):
    as_of_date: date | None
    accounts: list[TrialBalanceLine] = Field(default_factory=list)
    totals: TrialBalanceTotals
    difference: Decimal
    is_balanced: bool
