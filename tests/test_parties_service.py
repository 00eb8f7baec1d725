from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, update
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from erpcore import events
from erpcore.business.parties.schemas import CustomerCreate, SupplierCreate
from erpcore.business.parties.service import PartyService
from erpcore.core.database import Base
from erpcore.errors import NotFoundError
from erpcore.platform.ledger.seed import OPENING_EQUITY_ACCOUNT, seed_reference_data
from erpcore.platform.ledger.service import ledger_service
from erpcore.platform.sequence.models import Sequence


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


def test_customer_gets_numbered_code_and_receivable_account(db_session: Session) -> None:
    service = PartyService()
    events.published_events.clear()

    customer = service.create_customer(db_session, CustomerCreate(name="Acme Traders", credit_limit=Decimal("5000")))

    assert customer.code == "CUST-000001"
    account = ledger_service.get_account(db_session, customer.account_id)
    assert account.code == "1201-CUST-000001"
    assert account.account_type == "asset"
    assert account.is_system is False
    assert service.list_customers(db_session)[0].id == customer.id
    assert any(item["event_type"] == "party.customer.created" for item in events.published_events)


def test_customer_opening_balance_is_posted_against_opening_equity(db_session: Session) -> None:
    service = PartyService()

    customer = service.create_customer(
        db_session,
        CustomerCreate(name="Old Debtor", opening_balance=Decimal("750"), opening_date=date(2026, 1, 1)),
    )

    account = ledger_service.get_account(db_session, customer.account_id)
    equity = ledger_service.get_account_by_code(db_session, OPENING_EQUITY_ACCOUNT)
    journals = ledger_service.list_journals(db_session, journal_type="opening_balance")
    assert account.current_balance == Decimal("750")
    assert account.opening_balance == Decimal("0")
    assert equity.current_balance == Decimal("750")
    assert len(journals) == 1
    assert journals[0].reference_id == str(customer.id)
    assert ledger_service.get_trial_balance(db_session).is_balanced is True


def test_supplier_opening_balance_credits_payable(db_session: Session) -> None:
    service = PartyService()

    supplier = service.create_supplier(db_session, SupplierCreate(name="Widget Works", opening_balance=Decimal("300")))

    account = ledger_service.get_account(db_session, supplier.account_id)
    equity = ledger_service.get_account_by_code(db_session, OPENING_EQUITY_ACCOUNT)
    assert supplier.code == "SUPP-000001"
    assert account.code == "2001-SUPP-000001"
    assert account.account_type == "liability"
    assert account.current_balance == Decimal("300")
    assert equity.current_balance == Decimal("-300")
    assert [item.code for item in service.list_suppliers(db_session)] == ["SUPP-000001"]


def test_credit_read_reports_used_and_available(db_session: Session) -> None:
    service = PartyService()
    customer = service.create_customer(
        db_session,
        CustomerCreate(name="Regular", credit_limit=Decimal("1000"), opening_balance=Decimal("400")),
    )

    credit = service.get_customer_credit(db_session, customer.id)

    assert credit.credit_limit == Decimal("1000")
    assert credit.credit_used == Decimal("400")
    assert credit.credit_available == Decimal("600")


def test_lagging_customer_sequence_is_recovered(db_session: Session) -> None:
    service = PartyService()
    first = service.create_customer(db_session, CustomerCreate(name="First"))
    db_session.execute(update(Sequence).where(Sequence.name == "customer").values(current_value=0))
    db_session.commit()

    second = service.create_customer(db_session, CustomerCreate(name="Second"))

    assert first.code == "CUST-000001"
    assert second.code == "CUST-000002"
    assert ledger_service.get_account(db_session, second.account_id).code == "1201-CUST-000002"


def test_unknown_party_raises(db_session: Session) -> None:
    with pytest.raises(NotFoundError):
        PartyService().get_customer(db_session, uuid.uuid4())
    with pytest.raises(NotFoundError):
        PartyService().get_supplier(db_session, uuid.uuid4())
