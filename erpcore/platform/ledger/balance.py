"""Sign conventions and pre-write validation shared by every journal poster.

Asset and expense accounts carry a debit-positive balance. Liability, equity
and income accounts carry a credit-positive balance. The helpers here are
pure; nothing in this module touches a session.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from erpcore.core.config import get_settings
from erpcore.core.numbers import ZERO, quantize
from erpcore.errors import InvalidAmountError, UnbalancedJournalError
from erpcore.platform.ledger.schemas import JournalEntryInput

__all__ = [
    "DEBIT_NORMAL_TYPES",
    "EntryTotals",
    "JournalLines",
    "apply_entry",
    "closing_balance",
    "normal_sign",
    "quantize",
    "signed_amount",
    "validate_entries",
]

DEBIT_NORMAL_TYPES = frozenset({"asset", "expense"})


def normal_sign(account_type: str) -> int:
    return 1 if account_type in DEBIT_NORMAL_TYPES else -1


def signed_amount(account_type: str, entry_type: str, amount: Decimal) -> Decimal:
    """Effect of one entry on a balance kept in the account's normal direction."""
    value = quantize(amount)
    if entry_type == "credit":
        value = -value
    return value * normal_sign(account_type)


def apply_entry(balance: Decimal, account_type: str, entry_type: str, amount: Decimal) -> Decimal:
    return quantize(balance + signed_amount(account_type, entry_type, amount))


def closing_balance(account_type: str, opening: Decimal, total_debit: Decimal, total_credit: Decimal) -> Decimal:
    return quantize(opening + (total_debit - total_credit) * normal_sign(account_type))


@dataclass(slots=True, frozen=True)
class EntryTotals:
    total_debit: Decimal
    total_credit: Decimal

    @property
    def difference(self) -> Decimal:
        return quantize(self.total_debit - self.total_credit)


def validate_entries(entries: Iterable[JournalEntryInput], tolerance: Decimal | None = None) -> EntryTotals:
    """Check amounts and balance before anything is written.

    Raises ``InvalidAmountError`` for a missing or non-positive amount and
    ``UnbalancedJournalError`` when debits and credits differ by more than
    ``tolerance`` (``balance_tolerance`` from settings by default).
    """
    if tolerance is None:
        tolerance = get_settings().balance_tolerance

    total_debit = ZERO
    total_credit = ZERO
    count = 0
    for entry in entries:
        count += 1
        amount = quantize(entry.amount)
        if amount <= 0:
            raise InvalidAmountError(f"Entry amount must be greater than zero, got {amount}")
        if entry.entry_type == "debit":
            total_debit += amount
        else:
            total_credit += amount

    if count == 0:
        raise InvalidAmountError("A journal needs at least one entry")

    totals = EntryTotals(total_debit=quantize(total_debit), total_credit=quantize(total_credit))
    if abs(totals.difference) > tolerance:
        raise UnbalancedJournalError(totals.total_debit, totals.total_credit)
    return totals


@dataclass(slots=True)
class JournalLines:
    """Collects debit and credit lines for an orchestrator's journal.

    Zero amounts are dropped so that optional components (discount, tax,
    amount paid) can be added unconditionally.
    """

    entries: list[JournalEntryInput] = field(default_factory=list)

    def debit(self, account_id: uuid.UUID, amount: Decimal, narration: str | None = None) -> JournalLines:
        return self._add(account_id, "debit", amount, narration)

    def credit(self, account_id: uuid.UUID, amount: Decimal, narration: str | None = None) -> JournalLines:
        return self._add(account_id, "credit", amount, narration)

    def build(self) -> list[JournalEntryInput]:
        return list(self.entries)

    def totals(self) -> EntryTotals:
        debit = sum((item.amount for item in self.entries if item.entry_type == "debit"), ZERO)
        credit = sum((item.amount for item in self.entries if item.entry_type == "credit"), ZERO)
        return EntryTotals(total_debit=quantize(debit), total_credit=quantize(credit))

    def __len__(self) -> int:
        return len(self.entries)

    def _add(self, account_id: uuid.UUID, entry_type: str, amount: Decimal, narration: str | None) -> JournalLines:
        value = quantize(amount)
        if value == 0:
            return self
        if value < 0:
            raise InvalidAmountError(f"Journal line amount cannot be negative, got {value}")
        self.entries.append(
            JournalEntryInput(account_id=account_id, entry_type=entry_type, amount=value, narration=narration)
        )
        return self
