from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from erpcore.business.parties.schemas import SupplierCreate
from erpcore.business.parties.service import party_service
from erpcore.business.purchasing.schemas import (
    PurchaseCreate,
    PurchaseLineCreate,
    PurchaseReturnCreate,
    PurchaseReturnLineCreate,
)
from erpcore.business.purchasing.service import PurchaseService
from erpcore.core.database import Base
from erpcore.errors import BusinessRuleError, InsufficientStockError
from erpcore.platform.ledger.seed import (
    CASH_ACCOUNT,
    DISCOUNT_RECEIVED_ACCOUNT,
    INPUT_TAX_ACCOUNT,
    INVENTORY_ACCOUNT,
    PAYABLES_ACCOUNT,
    seed_reference_data,
)
from erpcore.platform.ledger.service import ledger_service
from erpcore.platform.stock.schemas import ProductCreate
from erpcore.platform.stock.service import stock_service


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


@pytest.fixture()
def product_id(db_session: Session) -> uuid.UUID:
    product = stock_service.create_product(db_session, ProductCreate(sku="BOLT", name="Hex Bolt", cost_price=Decimal("90")))
    db_session.commit()
    return product.id


def _entries(session: Session, journal_id: uuid.UUID) -> set[tuple[str, str, Decimal]]:
    journal = ledger_service.get_journal(session, journal_id)
    codes = {item.id: item.code for item in ledger_service.list_accounts(session, include_inactive=True)}
    return {(codes[entry.account_id], entry.entry_type, entry.amount) for entry in journal.entries}


def _purchase(product_id: uuid.UUID, **overrides: object) -> PurchaseCreate:
    payload: dict[str, object] = {
        "bill_date": date(2026, 4, 2),
        "items": [PurchaseLineCreate(product_id=product_id, quantity=Decimal("5"), unit_cost=Decimal("120"))],
        "created_by": "buyer-1",
    }
    payload.update(overrides)
    return PurchaseCreate(**payload)


def test_partial_payment_splits_cash_and_supplier_payable(db_session: Session, product_id: uuid.UUID) -> None:
    supplier = party_service.create_supplier(db_session, SupplierCreate(name="Fasteners Ltd"))

    purchase = PurchaseService().create_purchase(
        db_session,
        _purchase(
            product_id,
            supplier_id=supplier.id,
            discount_amount=Decimal("10"),
            tax_amount=Decimal("60"),
            paid_amount=Decimal("200"),
        ),
    )

    assert purchase.bill_number == "PUR-000001"
    assert purchase.total_amount == Decimal("650")
    assert purchase.payment_status == "partial"
    assert _entries(db_session, purchase.journal_id) == {
        (INVENTORY_ACCOUNT, "debit", Decimal("600")),
        (INPUT_TAX_ACCOUNT, "debit", Decimal("60")),
        (DISCOUNT_RECEIVED_ACCOUNT, "credit", Decimal("10")),
        (CASH_ACCOUNT, "credit", Decimal("200")),
        ("2001-SUPP-000001", "credit", Decimal("450")),
    }
    product = stock_service.get_product(db_session, product_id)
    assert product.current_stock == Decimal("5")
    assert product.cost_price == Decimal("120")
    assert purchase.items[0].stock_movement_id is not None


def test_unpaid_bill_without_supplier_credits_general_payables(db_session: Session, product_id: uuid.UUID) -> None:
    purchase = PurchaseService().create_purchase(db_session, _purchase(product_id))

    assert purchase.payment_status == "unpaid"
    assert (PAYABLES_ACCOUNT, "credit", Decimal("600")) in _entries(db_session, purchase.journal_id)


def test_overpaid_bill_is_rejected_without_writes(db_session: Session, product_id: uuid.UUID) -> None:
    service = PurchaseService()

    with pytest.raises(BusinessRuleError):
        service.create_purchase(db_session, _purchase(product_id, paid_amount=Decimal("601")))

    assert service.list_purchases(db_session) == []
    assert stock_service.get_product(db_session, product_id).current_stock == Decimal("0")


def test_purchase_return_consumes_only_the_bills_lots(db_session: Session, product_id: uuid.UUID) -> None:
    supplier = party_service.create_supplier(db_session, SupplierCreate(name="Fasteners Ltd"))
    stock_service.receive(db_session, product_id, Decimal("10"), Decimal("90"), "opening", "seed")
    db_session.commit()
    service = PurchaseService()
    purchase = service.create_purchase(db_session, _purchase(product_id, supplier_id=supplier.id))

    debit_note = service.create_purchase_return(
        db_session,
        PurchaseReturnCreate(
            original_purchase_id=purchase.id,
            items=[PurchaseReturnLineCreate(product_id=product_id, quantity=Decimal("2"))],
        ),
    )

    assert debit_note.bill_number == "DN-000001"
    assert debit_note.is_return is True
    assert debit_note.payment_status == "returned"
    assert debit_note.total_amount == Decimal("240")
    assert _entries(db_session, debit_note.journal_id) == {
        ("2001-SUPP-000001", "debit", Decimal("240")),
        (INVENTORY_ACCOUNT, "credit", Decimal("240")),
    }
    assert ledger_service.get_account(db_session, supplier.account_id).current_balance == Decimal("360")
    assert stock_service.get_product(db_session, product_id).current_stock == Decimal("13")
    assert service.get_purchase(db_session, debit_note.id).bill_number == "DN-000001"

    with pytest.raises(InsufficientStockError):
        service.create_purchase_return(
            db_session,
            PurchaseReturnCreate(
                original_purchase_id=purchase.id,
                items=[PurchaseReturnLineCreate(product_id=product_id, quantity=Decimal("4"))],
            ),
        )


def test_cash_refund_and_return_guards(db_session: Session, product_id: uuid.UUID) -> None:
    service = PurchaseService()
    other = stock_service.create_product(db_session, ProductCreate(sku="NUT", name="Nut"))
    db_session.commit()
    purchase = service.create_purchase(db_session, _purchase(product_id, paid_amount=Decimal("600")))

    refund = service.create_purchase_return(
        db_session,
        PurchaseReturnCreate(
            original_purchase_id=purchase.id,
            items=[PurchaseReturnLineCreate(product_id=product_id, quantity=Decimal("1"))],
            settlement="cash",
        ),
    )
    assert (CASH_ACCOUNT, "debit", Decimal("120")) in _entries(db_session, refund.journal_id)

    with pytest.raises(BusinessRuleError):
        service.create_purchase_return(
            db_session,
            PurchaseReturnCreate(
                original_purchase_id=purchase.id,
                items=[PurchaseReturnLineCreate(product_id=other.id, quantity=Decimal("1"))],
            ),
        )
    with pytest.raises(BusinessRuleError):
        service.create_purchase_return(
            db_session,
            PurchaseReturnCreate(
                original_purchase_id=refund.id,
                items=[PurchaseReturnLineCreate(product_id=product_id, quantity=Decimal("1"))],
            ),
        )
