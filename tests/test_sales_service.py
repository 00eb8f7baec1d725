from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from erpcore import events
from erpcore.business.parties.schemas import CustomerCreate
from erpcore.business.parties.service import party_service
from erpcore.business.sales.schemas import SaleCreate, SaleLineCreate, SaleReturnCreate, SaleReturnLineCreate
from erpcore.business.sales.service import SalesService
from erpcore.core.config import get_settings
from erpcore.core.database import Base
from erpcore.errors import BusinessRuleError, InsufficientStockError
from erpcore.platform.ledger.seed import (
    CASH_ACCOUNT,
    COGS_ACCOUNT,
    CUSTOMER_ADVANCES_ACCOUNT,
    DISCOUNT_ALLOWED_ACCOUNT,
    INVENTORY_ACCOUNT,
    SALES_ACCOUNT,
    SALES_RETURNS_ACCOUNT,
    SALES_TAX_ACCOUNT,
    seed_reference_data,
)
from erpcore.platform.ledger.service import ledger_service
from erpcore.platform.sequence.service import sequence_service
from erpcore.platform.stock.schemas import ProductCreate
from erpcore.platform.stock.service import StockService, stock_service


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


@pytest.fixture(autouse=True)
def reset_settings() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def product_id(db_session: Session) -> uuid.UUID:
    product = stock_service.create_product(db_session, ProductCreate(sku="LAMP", name="Desk Lamp", sale_price=Decimal("200")))
    stock_service.receive(db_session, product.id, Decimal("10"), Decimal("80"), "opening", "seed")
    db_session.commit()
    return product.id


def _balance(session: Session, code: str) -> Decimal:
    return ledger_service.get_account_by_code(session, code).current_balance


def _entries(session: Session, journal_id: uuid.UUID) -> set[tuple[str, str, Decimal]]:
    journal = ledger_service.get_journal(session, journal_id)
    codes = {item.id: item.code for item in ledger_service.list_accounts(session, include_inactive=True)}
    return {(codes[entry.account_id], entry.entry_type, entry.amount) for entry in journal.entries}


def _sale(product_id: uuid.UUID, quantity: str = "2", **overrides: object) -> SaleCreate:
    payload: dict[str, object] = {
        "sale_date": date(2026, 5, 1),
        "items": [SaleLineCreate(product_id=product_id, quantity=Decimal(quantity), unit_price=Decimal("200"))],
        "amount_paid": Decimal(quantity) * Decimal("200"),
        "created_by": "cashier-1",
    }
    payload.update(overrides)
    return SaleCreate(**payload)


def test_cash_sale_posts_revenue_cogs_and_consumes_stock(db_session: Session, product_id: uuid.UUID) -> None:
    events.published_events.clear()

    sale = SalesService().create_sale(db_session, _sale(product_id))

    assert sale.invoice_number == "SINV-000001"
    assert sale.status == "completed"
    assert sale.total_amount == Decimal("400")
    assert sale.total_cost == Decimal("160")
    assert sale.items[0].cost_price == Decimal("80")
    assert _entries(db_session, sale.journal_id) == {
        (SALES_ACCOUNT, "credit", Decimal("400")),
        (CASH_ACCOUNT, "debit", Decimal("400")),
        (COGS_ACCOUNT, "debit", Decimal("160")),
        (INVENTORY_ACCOUNT, "credit", Decimal("160")),
    }
    assert stock_service.get_product(db_session, product_id).current_stock == Decimal("8")
    assert any(item["event_type"] == "sale.created" for item in events.published_events)


def test_discounts_and_tax_are_split_into_their_accounts(db_session: Session, product_id: uuid.UUID) -> None:
    dto = _sale(
        product_id,
        items=[
            SaleLineCreate(
                product_id=product_id,
                quantity=Decimal("2"),
                unit_price=Decimal("200"),
                line_discount=Decimal("20"),
            )
        ],
        discount_amount=Decimal("30"),
        tax_amount=Decimal("35"),
        amount_paid=Decimal("385"),
    )

    sale = SalesService().create_sale(db_session, dto)

    assert sale.subtotal == Decimal("400")
    assert sale.line_discount_total == Decimal("20")
    assert sale.total_amount == Decimal("385")
    entries = _entries(db_session, sale.journal_id)
    assert (DISCOUNT_ALLOWED_ACCOUNT, "debit", Decimal("50")) in entries
    assert (SALES_TAX_ACCOUNT, "credit", Decimal("35")) in entries
    assert (CASH_ACCOUNT, "debit", Decimal("385")) in entries


def test_credit_sale_books_receivable_within_limit(db_session: Session, product_id: uuid.UUID) -> None:
    customer = party_service.create_customer(db_session, CustomerCreate(name="Shop", credit_limit=Decimal("500")))

    sale = SalesService().create_sale(
        db_session,
        _sale(product_id, customer_id=customer.id, amount_paid=Decimal("100")),
    )

    assert sale.status == "confirmed"
    assert sale.amount_due == Decimal("300")
    assert ledger_service.get_account(db_session, customer.account_id).current_balance == Decimal("300")
    assert party_service.get_customer_credit(db_session, customer.id).credit_available == Decimal("200")


def test_credit_limit_breach_rolls_back_everything(db_session: Session, product_id: uuid.UUID) -> None:
    customer = party_service.create_customer(db_session, CustomerCreate(name="Tight", credit_limit=Decimal("250")))

    with pytest.raises(BusinessRuleError):
        SalesService().create_sale(db_session, _sale(product_id, customer_id=customer.id, amount_paid=Decimal("100")))

    assert SalesService().list_sales(db_session) == []
    assert stock_service.get_product(db_session, product_id).current_stock == Decimal("10")
    assert sequence_service.get_sequence(db_session, "invoice").current_value == 0


def test_unpaid_sale_requires_customer(db_session: Session, product_id: uuid.UUID) -> None:
    with pytest.raises(BusinessRuleError):
        SalesService().create_sale(db_session, _sale(product_id, amount_paid=Decimal("0")))


def test_insufficient_stock_blocks_sale(db_session: Session, product_id: uuid.UUID) -> None:
    with pytest.raises(InsufficientStockError):
        SalesService().create_sale(db_session, _sale(product_id, quantity="11"))

    assert stock_service.get_product(db_session, product_id).current_stock == Decimal("10")
    assert ledger_service.list_journals(db_session) == []


def test_overpayment_returns_change_by_default(db_session: Session, product_id: uuid.UUID) -> None:
    sale = SalesService().create_sale(db_session, _sale(product_id, amount_paid=Decimal("500")))

    assert sale.change_amount == Decimal("100")
    assert sale.advance_amount == Decimal("0")
    assert (CASH_ACCOUNT, "debit", Decimal("400")) in _entries(db_session, sale.journal_id)


def test_overpayment_can_be_kept_as_customer_advance(
    db_session: Session,
    product_id: uuid.UUID,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("SALE_OVERPAYMENT_POLICY", "advance")
    get_settings.cache_clear()
    customer = party_service.create_customer(db_session, CustomerCreate(name="Prepaid"))

    sale = SalesService().create_sale(db_session, _sale(product_id, customer_id=customer.id, amount_paid=Decimal("500")))

    assert sale.advance_amount == Decimal("100")
    assert sale.change_amount == Decimal("0")
    entries = _entries(db_session, sale.journal_id)
    assert (CASH_ACCOUNT, "debit", Decimal("500")) in entries
    assert (CUSTOMER_ADVANCES_ACCOUNT, "credit", Decimal("100")) in entries


def test_sale_return_restores_stock_and_reverses_revenue(db_session: Session, product_id: uuid.UUID) -> None:
    service = SalesService()
    sale = service.create_sale(db_session, _sale(product_id, quantity="3", amount_paid=Decimal("600")))

    sale_return = service.create_sale_return(
        db_session,
        SaleReturnCreate(
            sale_id=sale.id,
            items=[SaleReturnLineCreate(sale_item_id=sale.items[0].id, quantity=Decimal("1"))],
            refund_method="cash",
            reason="damaged box",
        ),
    )

    assert sale_return.return_number == "SRET-000001"
    assert sale_return.subtotal == Decimal("200")
    assert sale_return.total_cost == Decimal("80")
    assert _entries(db_session, sale_return.journal_id) == {
        (SALES_RETURNS_ACCOUNT, "debit", Decimal("200")),
        (CASH_ACCOUNT, "credit", Decimal("200")),
        (INVENTORY_ACCOUNT, "debit", Decimal("80")),
        (COGS_ACCOUNT, "credit", Decimal("80")),
    }
    assert stock_service.get_product(db_session, product_id).current_stock == Decimal("8")
    assert service.get_sale(db_session, sale.id).items[0].returned_quantity == Decimal("1")
    assert _balance(db_session, INVENTORY_ACCOUNT) == Decimal("-160")
    stored_return = service.get_sale_return(db_session, sale_return.id)
    assert stored_return.refund_method == "cash"
    assert stored_return.items[0].quantity == Decimal("1")


def test_sale_locks_every_product_in_id_order_before_consuming(
    db_session: Session,
    product_id: uuid.UUID,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    bulb = stock_service.create_product(db_session, ProductCreate(sku="BULB", name="Bulb", sale_price=Decimal("200")))
    stock_service.receive(db_session, bulb.id, Decimal("5"), Decimal("40"), "opening", "seed")
    db_session.commit()
    locked: list[uuid.UUID] = []
    get_product = StockService._get_product

    def recording_get_product(
        self: StockService, session: Session, target: uuid.UUID, *, for_update: bool = False
    ) -> object:
        if for_update:
            locked.append(target)
        return get_product(self, session, target, for_update=for_update)

    monkeypatch.setattr(StockService, "_get_product", recording_get_product)
    first, second = sorted([product_id, bulb.id], key=str)

    SalesService().create_sale(
        db_session,
        _sale(
            product_id,
            items=[
                SaleLineCreate(product_id=second, quantity=Decimal("1"), unit_price=Decimal("200")),
                SaleLineCreate(product_id=first, quantity=Decimal("1"), unit_price=Decimal("200")),
            ],
            amount_paid=Decimal("400"),
        ),
    )

    assert locked == [first, second, second, first]

def test_full_return_reverses_header_discount_and_tax(db_session: Session, product_id: uuid.UUID) -> None:
    service = SalesService()
    sale = service.create_sale(
        db_session,
        _sale(product_id, discount_amount=Decimal("40"), tax_amount=Decimal("18"), amount_paid=Decimal("378")),
    )

    sale_return = service.create_sale_return(
        db_session,
        SaleReturnCreate(
            sale_id=sale.id,
            items=[SaleReturnLineCreate(sale_item_id=sale.items[0].id, quantity=Decimal("2"))],
            refund_method="cash",
        ),
    )

    assert sale_return.subtotal == Decimal("400")
    assert sale_return.discount_amount == Decimal("40")
    assert sale_return.tax_amount == Decimal("18")
    assert sale_return.refund_amount == Decimal("378")
    assert _entries(db_session, sale_return.journal_id) == {
        (SALES_RETURNS_ACCOUNT, "debit", Decimal("400")),
        (SALES_TAX_ACCOUNT, "debit", Decimal("18")),
        (DISCOUNT_ALLOWED_ACCOUNT, "credit", Decimal("40")),
        (CASH_ACCOUNT, "credit", Decimal("378")),
        (INVENTORY_ACCOUNT, "debit", Decimal("160")),
        (COGS_ACCOUNT, "credit", Decimal("160")),
    }
    assert _balance(db_session, CASH_ACCOUNT) == Decimal("0")
    assert _balance(db_session, SALES_TAX_ACCOUNT) == Decimal("0")
    assert _balance(db_session, DISCOUNT_ALLOWED_ACCOUNT) == Decimal("0")


def test_partial_returns_add_up_to_the_sale_discount_and_tax(db_session: Session, product_id: uuid.UUID) -> None:
    service = SalesService()
    sale = service.create_sale(
        db_session,
        _sale(product_id, quantity="3", discount_amount=Decimal("10"), tax_amount=Decimal("10"), amount_paid=Decimal("600")),
    )
    line_id = sale.items[0].id

    first = service.create_sale_return(
        db_session,
        SaleReturnCreate(sale_id=sale.id, items=[SaleReturnLineCreate(sale_item_id=line_id, quantity=Decimal("1"))]),
    )
    second = service.create_sale_return(
        db_session,
        SaleReturnCreate(sale_id=sale.id, items=[SaleReturnLineCreate(sale_item_id=line_id, quantity=Decimal("2"))]),
    )

    assert first.discount_amount == Decimal("3.333333")
    assert first.tax_amount == Decimal("3.333333")
    assert first.refund_amount == Decimal("200")
    assert second.discount_amount == Decimal("6.666667")
    assert second.tax_amount == Decimal("6.666667")
    assert first.refund_amount + second.refund_amount == Decimal("600")
    assert _balance(db_session, CASH_ACCOUNT) == Decimal("0")
    assert _balance(db_session, SALES_TAX_ACCOUNT) == Decimal("0")
    assert _balance(db_session, DISCOUNT_ALLOWED_ACCOUNT) == Decimal("0")

def test_sale_return_cannot_exceed_sold_quantity(db_session: Session, product_id: uuid.UUID) -> None:
    service = SalesService()
    sale = service.create_sale(db_session, _sale(product_id, quantity="2", amount_paid=Decimal("400")))
    line_id = sale.items[0].id
    service.create_sale_return(
        db_session,
        SaleReturnCreate(sale_id=sale.id, items=[SaleReturnLineCreate(sale_item_id=line_id, quantity=Decimal("1"))]),
    )

    with pytest.raises(BusinessRuleError):
        service.create_sale_return(
            db_session,
            SaleReturnCreate(sale_id=sale.id, items=[SaleReturnLineCreate(sale_item_id=line_id, quantity=Decimal("2"))]),
        )
    with pytest.raises(BusinessRuleError):
        service.create_sale_return(
            db_session,
            SaleReturnCreate(
                sale_id=sale.id,
                items=[SaleReturnLineCreate(sale_item_id=line_id, quantity=Decimal("1"))],
                refund_method="account",
            ),
        )
