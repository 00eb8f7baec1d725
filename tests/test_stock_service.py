from __future__ import annotations

import uuid
from collections.abc import Generator
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from erpcore.core.database import Base
from erpcore.errors import ConflictError, InsufficientStockError, InvalidAmountError, NotFoundError
from erpcore.platform.stock.schemas import ProductCreate
from erpcore.platform.stock.service import StockService


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
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _product(session: Session, sku: str = "WIDGET", cost_price: str = "0") -> uuid.UUID:
    product = StockService().create_product(
        session,
        ProductCreate(sku=sku, name=sku.title(), cost_price=Decimal(cost_price), sale_price=Decimal("200")),
    )
    session.commit()
    return product.id


def test_fifo_consumption_drains_oldest_lots_first(db_session: Session) -> None:
    service = StockService()
    product_id = _product(db_session)
    first = service.receive(db_session, product_id, Decimal("10"), Decimal("100"), "opening", "open-1")
    second = service.receive(db_session, product_id, Decimal("5"), Decimal("120"), "purchase", "bill-1")
    db_session.commit()

    result = service.consume(db_session, product_id, Decimal("12"), reference_type="sale", reference_id="sale-1")
    db_session.commit()

    assert [(item.lot_id, item.quantity, item.unit_cost) for item in result.breakdown] == [
        (first.id, Decimal("10"), Decimal("100")),
        (second.id, Decimal("2"), Decimal("120")),
    ]
    assert result.total_cost == Decimal("1240")
    assert result.average_cost == Decimal("103.333333")
    assert result.shortage == Decimal("0")

    lots = service.list_lots(db_session, product_id)
    assert [(lot.id, lot.remaining_qty) for lot in lots] == [(second.id, Decimal("3"))]
    assert service.get_product(db_session, product_id).current_stock == Decimal("3")
    assert service.get_available_quantity(db_session, product_id) == Decimal("3")


def test_blocked_shortage_writes_nothing(db_session: Session) -> None:
    service = StockService()
    product_id = _product(db_session)
    service.receive(db_session, product_id, Decimal("4"), Decimal("50"), "purchase", "bill-1")
    db_session.commit()
    movements_before = len(service.list_movements(db_session, product_id))

    with pytest.raises(InsufficientStockError) as exc_info:
        service.consume(db_session, product_id, Decimal("6"), block_on_shortage=True)

    assert exc_info.value.shortage == Decimal("2")
    assert len(service.list_movements(db_session, product_id)) == movements_before
    assert service.get_product(db_session, product_id).current_stock == Decimal("4")
    assert [lot.remaining_qty for lot in service.list_lots(db_session, product_id)] == [Decimal("4")]


def test_allowed_shortage_is_costed_at_cost_price(db_session: Session) -> None:
    service = StockService()
    product_id = _product(db_session)
    service.receive(db_session, product_id, Decimal("3"), Decimal("100"), "purchase", "bill-1")
    db_session.commit()

    result = service.consume(db_session, product_id, Decimal("5"), block_on_shortage=False)
    db_session.commit()

    assert result.quantity_satisfied == Decimal("3")
    assert result.shortage == Decimal("2")
    assert result.lot_cost == Decimal("300")
    assert result.shortage_cost == Decimal("200")
    assert result.total_cost == Decimal("500")
    assert result.average_cost == Decimal("100")
    assert service.get_product(db_session, product_id).current_stock == Decimal("-2")


def test_consume_without_lots_falls_back_to_cost_price(db_session: Session) -> None:
    service = StockService()
    product_id = _product(db_session, cost_price="40")

    result = service.consume(db_session, product_id, Decimal("2"), block_on_shortage=False)

    assert result.breakdown == []
    assert result.total_cost == Decimal("80")
    assert result.average_cost == Decimal("40")


def test_source_reference_limits_consumption_to_one_document(db_session: Session) -> None:
    service = StockService()
    product_id = _product(db_session)
    service.receive(db_session, product_id, Decimal("10"), Decimal("90"), "opening", "open-1")
    bill_lot = service.receive(db_session, product_id, Decimal("5"), Decimal("120"), "purchase", "bill-2")
    db_session.commit()

    result = service.consume(
        db_session,
        product_id,
        Decimal("2"),
        reference_type="purchase_return",
        reference_id="dn-1",
        source_reference=("purchase", "bill-2"),
    )
    db_session.commit()

    assert [item.lot_id for item in result.breakdown] == [bill_lot.id]
    assert result.total_cost == Decimal("240")
    with pytest.raises(InsufficientStockError):
        service.consume(db_session, product_id, Decimal("4"), source_reference=("purchase", "bill-2"), block_on_shortage=True)


def test_purchase_receipt_refreshes_cost_price_but_returns_do_not(db_session: Session) -> None:
    service = StockService()
    product_id = _product(db_session, cost_price="10")

    service.receive(db_session, product_id, Decimal("1"), Decimal("25"), "purchase", "bill-1")
    assert service.get_product(db_session, product_id).cost_price == Decimal("25")

    returned = service.restore(db_session, product_id, Decimal("1"), Decimal("30"), "sale_return", "ret-1")
    db_session.commit()

    assert returned.movement_type == "RETURN"
    assert returned.remaining_qty == Decimal("1")
    assert service.get_product(db_session, product_id).cost_price == Decimal("25")
    assert service.get_product(db_session, product_id).current_stock == Decimal("2")


def test_valuation_sums_open_lots(db_session: Session) -> None:
    service = StockService()
    product_id = _product(db_session)
    service.receive(db_session, product_id, Decimal("2"), Decimal("10"), "purchase", "bill-1")
    service.receive(db_session, product_id, Decimal("2"), Decimal("20"), "purchase", "bill-2")
    service.consume(db_session, product_id, Decimal("1"))
    db_session.commit()

    valuation = service.get_valuation(db_session, product_id)

    assert valuation.lot_quantity == Decimal("3")
    assert valuation.current_stock == Decimal("3")
    assert valuation.stock_value == Decimal("50")
    assert valuation.average_cost == Decimal("16.666667")


def test_invalid_quantities_and_movement_types_are_rejected(db_session: Session) -> None:
    service = StockService()
    product_id = _product(db_session)

    with pytest.raises(InvalidAmountError):
        service.receive(db_session, product_id, Decimal("0"), Decimal("1"), "purchase", "bill-1")
    with pytest.raises(InvalidAmountError):
        service.receive(db_session, product_id, Decimal("1"), Decimal("-1"), "purchase", "bill-1")
    with pytest.raises(InvalidAmountError):
        service.consume(db_session, product_id, Decimal("-3"))
    with pytest.raises(ValueError):
        service.receive(db_session, product_id, Decimal("1"), Decimal("1"), None, None, movement_type="OUT")
    with pytest.raises(ValueError):
        service.consume(db_session, product_id, Decimal("1"), movement_type="RETURN")
    with pytest.raises(NotFoundError):
        service.consume(db_session, uuid.uuid4(), Decimal("1"))


def test_duplicate_sku_conflicts(db_session: Session) -> None:
    existing = _product(db_session, sku="DUP")

    with pytest.raises(ConflictError):
        StockService().create_product(db_session, ProductCreate(sku="DUP", name="Again"))

    assert StockService().get_product(db_session, existing).name == "Dup"
    assert _product(db_session, sku="OTHER") != existing
