from __future__ import annotations

from collections.abc import Generator
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from erpcore.business.inventory.schemas import OpeningStockCreate
from erpcore.business.inventory.service import inventory_service
from erpcore.business.purchasing.schemas import PurchaseCreate, PurchaseLineCreate
from erpcore.business.purchasing.service import purchase_service
from erpcore.business.sales.schemas import SaleCreate, SaleLineCreate
from erpcore.business.sales.service import sales_service
from erpcore.core.database import Base
from erpcore.platform.ledger.seed import (
    CASH_ACCOUNT,
    COGS_ACCOUNT,
    INVENTORY_ACCOUNT,
    OPENING_EQUITY_ACCOUNT,
    SALES_ACCOUNT,
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


def _balance(session: Session, code: str) -> Decimal:
    return ledger_service.get_account_by_code(session, code).current_balance


def test_opening_purchase_and_sale_keep_books_consistent(db_session: Session) -> None:
    product = stock_service.create_product(db_session, ProductCreate(sku="KETTLE", name="Electric Kettle"))
    db_session.commit()

    inventory_service.record_opening_stock(
        db_session,
        OpeningStockCreate(product_id=product.id, quantity=Decimal("10"), unit_cost=Decimal("100"), as_of_date=date(2026, 1, 1)),
    )
    purchase = purchase_service.create_purchase(
        db_session,
        PurchaseCreate(
            bill_date=date(2026, 1, 5),
            items=[PurchaseLineCreate(product_id=product.id, quantity=Decimal("5"), unit_cost=Decimal("120"))],
            paid_amount=Decimal("600"),
        ),
    )
    sale = sales_service.create_sale(
        db_session,
        SaleCreate(
            sale_date=date(2026, 1, 9),
            items=[SaleLineCreate(product_id=product.id, quantity=Decimal("12"), unit_price=Decimal("200"))],
            amount_paid=Decimal("2400"),
        ),
    )

    assert purchase.bill_number == "PUR-000001"
    assert sale.invoice_number == "SINV-000001"
    assert sale.total_cost == Decimal("1240")
    assert sale.items[0].cost_price == Decimal("103.333333")

    valuation = stock_service.get_valuation(db_session, product.id)
    assert valuation.current_stock == Decimal("3")
    assert valuation.stock_value == Decimal("360")

    assert _balance(db_session, COGS_ACCOUNT) == Decimal("1240")
    assert _balance(db_session, SALES_ACCOUNT) == Decimal("2400")
    assert _balance(db_session, INVENTORY_ACCOUNT) == Decimal("360")
    assert _balance(db_session, CASH_ACCOUNT) == Decimal("1800")
    assert _balance(db_session, OPENING_EQUITY_ACCOUNT) == Decimal("1000")

    trial = ledger_service.get_trial_balance(db_session)
    assert trial.is_balanced
    assert trial.totals.debit == Decimal("3400")
    assert trial.totals.credit == Decimal("3400")
    assert [journal.number for journal in ledger_service.list_journals(db_session)] == [
        "JV-000003",
        "JV-000002",
        "JV-000001",
    ]
