from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from erpcore.errors import InvalidAmountError, UnbalancedJournalError
from erpcore.platform.ledger.balance import JournalLines, apply_entry, closing_balance, signed_amount, validate_entries
from erpcore.platform.ledger.schemas import JournalEntryInput


def _entry(entry_type: str, amount: str) -> JournalEntryInput:
    return JournalEntryInput(account_id=uuid.uuid4(), entry_type=entry_type, amount=Decimal(amount))


def test_sign_conventions_follow_account_type() -> None:
    assert signed_amount("asset", "debit", Decimal("10")) == Decimal("10")
    assert signed_amount("expense", "credit", Decimal("10")) == Decimal("-10")
    assert signed_amount("liability", "credit", Decimal("10")) == Decimal("10")
    assert signed_amount("income", "debit", Decimal("10")) == Decimal("-10")
    assert apply_entry(Decimal("5"), "equity", "credit", Decimal("2.5")) == Decimal("7.5")
    assert closing_balance("asset", Decimal("100"), Decimal("30"), Decimal("50")) == Decimal("80")
    assert closing_balance("income", Decimal("100"), Decimal("30"), Decimal("50")) == Decimal("120")


def test_validate_entries_accepts_differences_within_tolerance() -> None:
    totals = validate_entries([_entry("debit", "100.005"), _entry("credit", "100")])
    assert totals.difference == Decimal("0.005")

    with pytest.raises(UnbalancedJournalError):
        validate_entries([_entry("debit", "100.02"), _entry("credit", "100")])
    with pytest.raises(UnbalancedJournalError):
        validate_entries([_entry("debit", "100.005"), _entry("credit", "100")], tolerance=Decimal("0"))


def test_validate_entries_rejects_empty_and_non_positive() -> None:
    with pytest.raises(InvalidAmountError):
        validate_entries([])
    with pytest.raises(InvalidAmountError):
        validate_entries([_entry("debit", "0"), _entry("credit", "0")])


def test_journal_lines_drop_zero_amounts_and_reject_negatives() -> None:
    account = uuid.uuid4()
    lines = JournalLines().debit(account, Decimal("10")).credit(account, Decimal("0")).credit(account, Decimal("10"))

    assert len(lines) == 2
    assert lines.totals().difference == Decimal("0")
    with pytest.raises(InvalidAmountError):
        lines.debit(account, Decimal("-1"))
