from __future__ import annotations

from collections.abc import Generator
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from erpcore.business.expenses.schemas import ExpenseCreate
from erpcore.business.expenses.service import ExpenseService
from erpcore.core.database import Base
from erpcore.errors import BusinessRuleError, InvalidAmountError
from erpcore.platform.ledger.seed import BANK_ACCOUNT, CASH_ACCOUNT, INPUT_TAX_ACCOUNT, SALES_ACCOUNT, seed_reference_data
from erpcore.platform.ledger.service import ledger_service


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    seed_reference_data(session)
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _balance(session: Session, code: str) -> Decimal:
    return ledger_service.get_account_by_code(session, code).current_balance


def test_bank_expense_with_tax(db_session: Session) -> None:
    rent = ledger_service.get_account_by_code(db_session, "6002")

    expense = ExpenseService().create_expense(
        db_session,
        ExpenseCreate(
            expense_date=date(2026, 6, 1),
            expense_account_id=rent.id,
            payment_method="bank",
            amount=Decimal("1000"),
            tax_amount=Decimal("50"),
            payee="Landlord",
        ),
    )

    assert expense.expense_number == "EXP-000001"
    assert expense.total_amount == Decimal("1050")
    assert _balance(db_session, "6002") == Decimal("1000")
    assert _balance(db_session, INPUT_TAX_ACCOUNT) == Decimal("50")
    assert _balance(db_session, BANK_ACCOUNT) == Decimal("-1050")
    journal = ledger_service.get_journal(db_session, expense.journal_id)
    assert journal.journal_type == "expense"
    assert journal.reference_id == str(expense.id)
    assert ExpenseService().get_expense(db_session, expense.id).payee == "Landlord"


def test_cash_is_the_default_payment_account(db_session: Session) -> None:
    salaries = ledger_service.get_account_by_code(db_session, "6001")

    expense = ExpenseService().create_expense(
        db_session,
        ExpenseCreate(expense_account_id=salaries.id, amount=Decimal("300")),
    )

    assert expense.payment_account_id == ledger_service.get_account_by_code(db_session, CASH_ACCOUNT).id
    assert _balance(db_session, CASH_ACCOUNT) == Decimal("-300")


def test_expense_account_types_are_enforced(db_session: Session) -> None:
    service = ExpenseService()
    sales = ledger_service.get_account_by_code(db_session, SALES_ACCOUNT)
    marketing = ledger_service.get_account_by_code(db_session, "6003")

    with pytest.raises(BusinessRuleError):
        service.create_expense(db_session, ExpenseCreate(expense_account_id=sales.id, amount=Decimal("10")))
    with pytest.raises(BusinessRuleError):
        service.create_expense(
            db_session,
            ExpenseCreate(expense_account_id=marketing.id, payment_account_id=sales.id, amount=Decimal("10")),
        )
    assert service.list_expenses(db_session) == []


def test_amount_that_rounds_to_zero_is_rejected(db_session: Session) -> None:
    service = ExpenseService()
    salaries = ledger_service.get_account_by_code(db_session, "6001")

    with pytest.raises(InvalidAmountError):
        service.create_expense(db_session, ExpenseCreate(expense_account_id=salaries.id, amount=Decimal("0.0000001")))

    assert service.list_expenses(db_session) == []
    assert ledger_service.list_journals(db_session) == []
    expense = service.create_expense(db_session, ExpenseCreate(expense_account_id=salaries.id, amount=Decimal("0.000001")))
    assert expense.expense_number == "EXP-000001"
    assert expense.amount == Decimal("0.000001")
