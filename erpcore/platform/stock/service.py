from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from erpcore.core.config import get_settings
from erpcore.core.numbers import ZERO, quantize
from erpcore.errors import ConflictError, InsufficientStockError, InvalidAmountError, NotFoundError
from erpcore.metrics import observe_consumption, observe_lot_received, observe_shortage
from erpcore.platform.stock.models import INBOUND_TYPES, OUTBOUND_TYPES, Product, StockMovement, utcnow
from erpcore.platform.stock.schemas import (
    ConsumptionResult,
    LotConsumption,
    ProductCreate,
    ProductRead,
    StockLotRead,
    StockValuationRead,
)

logger = logging.getLogger("erpcore.stock")

# Inbound references whose unit cost becomes the product's last known cost.
COST_REFRESH_REFERENCES = frozenset({"purchase", "opening"})


@dataclass(slots=True)
class StockService:
    def create_product(self, session: Session, dto: ProductCreate) -> ProductRead:
        payload = dto.model_dump(mode="python")
        payload["cost_price"] = quantize(payload["cost_price"])
        payload["sale_price"] = quantize(payload["sale_price"])
        product = Product(**payload)
        session.add(product)
        try:
            session.flush()
        except IntegrityError as exc:
            session.rollback()
            raise ConflictError(f"product '{dto.sku}' already exists") from exc
        return ProductRead.model_validate(product)

    def get_product(self, session: Session, product_id: uuid.UUID) -> ProductRead:
        return ProductRead.model_validate(self._get_product(session, product_id))

    def lock_products(self, session: Session, product_ids: Iterable[uuid.UUID]) -> None:
        """Lock every product a multi-line document touches before any line moves stock.

        Rows are locked in id order so two documents sharing products queue
        up behind each other instead of deadlocking.
        """
        for product_id in sorted(set(product_ids), key=str):
            self._get_product(session, product_id, for_update=True)

    def receive(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: Decimal,
        unit_cost: Decimal,
        reference_type: str | None,
        reference_id: object | None,
        *,
        movement_type: str = "IN",
        notes: str | None = None,
        created_by: str | None = None,
    ) -> StockLotRead:
        qty = quantize(quantity)
        cost = quantize(unit_cost)
        if qty <= 0:
            raise InvalidAmountError(f"Quantity must be greater than zero, got {qty}")
        if cost < 0:
            raise InvalidAmountError(f"Unit cost cannot be negative, got {cost}")
        if movement_type not in INBOUND_TYPES:
            raise ValueError(f"movement type '{movement_type}' does not create a lot")

        product = self._get_product(session, product_id, for_update=True)

        lot = StockMovement(
            product_id=product.id,
            movement_type=movement_type,
            quantity=qty,
            unit_cost=cost,
            remaining_qty=qty,
            reference_type=reference_type,
            reference_id=_reference_key(reference_id),
            notes=notes,
            created_by=created_by,
        )
        session.add(lot)

        values: dict[str, object] = {"current_stock": Product.current_stock + qty, "updated_at": utcnow()}
        if movement_type == "IN" and reference_type in COST_REFRESH_REFERENCES:
            values["cost_price"] = cost
        session.execute(
            update(Product).where(Product.id == product.id).values(**values),
            execution_options={"synchronize_session": "fetch"},
        )
        session.flush()

        observe_lot_received(movement_type)
        logger.info(
            "stock.lot_received",
            extra={"product_id": str(product.id), "quantity": str(qty), "total_cost": str(quantize(qty * cost))},
        )
        return StockLotRead.model_validate(lot)

    def restore(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: Decimal,
        unit_cost: Decimal,
        reference_type: str | None,
        reference_id: object | None,
        *,
        notes: str | None = None,
        created_by: str | None = None,
    ) -> StockLotRead:
        return self.receive(
            session,
            product_id,
            quantity,
            unit_cost,
            reference_type,
            reference_id,
            movement_type="RETURN",
            notes=notes,
            created_by=created_by,
        )

    def consume(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: Decimal,
        *,
        reference_type: str | None = None,
        reference_id: object | None = None,
        movement_type: str = "OUT",
        block_on_shortage: bool | None = None,
        source_reference: tuple[str, object] | None = None,
        notes: str | None = None,
        created_by: str | None = None,
    ) -> ConsumptionResult:
        """Take ``quantity`` from the oldest open lots of ``product_id``.

        Lots are drained in ``created_at`` order with the movement id as the
        tie-breaker. Any quantity the lots cannot cover is reported as
        ``shortage`` and costed at the product's ``cost_price``; when blocking
        is in effect the shortage raises ``InsufficientStockError`` before a
        single row is written.
        """
        qty = quantize(quantity)
        if qty <= 0:
            raise InvalidAmountError(f"Quantity must be greater than zero, got {qty}")
        if movement_type not in OUTBOUND_TYPES:
            raise ValueError(f"movement type '{movement_type}' cannot consume lots")
        if block_on_shortage is None:
            block_on_shortage = get_settings().block_on_stock_shortage

        product = self._get_product(session, product_id, for_update=True)

        stmt = (
            select(StockMovement)
            .where(StockMovement.product_id == product.id, StockMovement.remaining_qty > 0)
            .order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if source_reference is not None:
            source_type, source_id = source_reference
            stmt = stmt.where(
                StockMovement.reference_type == source_type,
                StockMovement.reference_id == _reference_key(source_id),
            )
        lots = session.scalars(stmt).all()

        available = quantize(sum((lot.remaining_qty or ZERO for lot in lots), ZERO))
        shortage = max(qty - available, ZERO)
        if shortage > 0:
            observe_shortage(block_on_shortage)
            logger.warning(
                "stock.shortage",
                extra={
                    "product_id": str(product.id),
                    "quantity": str(qty),
                    "shortage": str(shortage),
                    "status": "blocked" if block_on_shortage else "allowed",
                },
            )
            if block_on_shortage:
                raise InsufficientStockError(product.id, qty, available)

        needed = qty
        lot_cost = ZERO
        breakdown: list[LotConsumption] = []
        for lot in lots:
            if needed <= 0:
                break
            remaining = lot.remaining_qty or ZERO
            take = min(needed, remaining)
            lot.remaining_qty = quantize(remaining - take)
            line_cost = quantize(take * lot.unit_cost)
            lot_cost += line_cost
            breakdown.append(
                LotConsumption(lot_id=lot.id, quantity=take, unit_cost=lot.unit_cost, total_cost=line_cost)
            )
            needed -= take

        satisfied = qty - shortage
        fallback_cost = quantize(product.cost_price)
        lot_cost = quantize(lot_cost)
        shortage_cost = quantize(shortage * fallback_cost)
        total_cost = quantize(lot_cost + shortage_cost)
        average_cost = quantize(lot_cost / satisfied) if satisfied > 0 else fallback_cost

        movement = StockMovement(
            product_id=product.id,
            movement_type=movement_type,
            quantity=-qty,
            unit_cost=quantize(total_cost / qty),
            remaining_qty=None,
            reference_type=reference_type,
            reference_id=_reference_key(reference_id),
            notes=notes,
            created_by=created_by,
        )
        session.add(movement)
        session.execute(
            update(Product)
            .where(Product.id == product.id)
            .values(current_stock=Product.current_stock - qty, updated_at=utcnow()),
            execution_options={"synchronize_session": "fetch"},
        )
        session.flush()

        observe_consumption(movement_type)
        logger.info(
            "stock.consumed",
            extra={
                "product_id": str(product.id),
                "quantity": str(qty),
                "shortage": str(shortage),
                "total_cost": str(total_cost),
            },
        )
        return ConsumptionResult(
            product_id=product.id,
            movement_id=movement.id,
            requested_quantity=qty,
            quantity_satisfied=satisfied,
            shortage=shortage,
            breakdown=breakdown,
            lot_cost=lot_cost,
            shortage_cost=shortage_cost,
            total_cost=total_cost,
            average_cost=average_cost,
        )

    def get_available_quantity(self, session: Session, product_id: uuid.UUID) -> Decimal:
        total = session.scalar(
            select(func.coalesce(func.sum(StockMovement.remaining_qty), 0)).where(
                StockMovement.product_id == product_id,
                StockMovement.remaining_qty > 0,
            )
        )
        return quantize(total or ZERO)

    def get_valuation(self, session: Session, product_id: uuid.UUID) -> StockValuationRead:
        product = self._get_product(session, product_id)
        lots = self._open_lots(session, product.id)
        lot_quantity = quantize(sum((lot.remaining_qty or ZERO for lot in lots), ZERO))
        stock_value = quantize(sum(((lot.remaining_qty or ZERO) * lot.unit_cost for lot in lots), ZERO))
        average_cost = quantize(stock_value / lot_quantity) if lot_quantity > 0 else quantize(product.cost_price)
        return StockValuationRead(
            product_id=product.id,
            current_stock=quantize(product.current_stock),
            lot_quantity=lot_quantity,
            stock_value=stock_value,
            average_cost=average_cost,
        )

    def list_lots(self, session: Session, product_id: uuid.UUID, *, open_only: bool = True) -> list[StockLotRead]:
        if open_only:
            rows = self._open_lots(session, product_id)
        else:
            rows = session.scalars(
                select(StockMovement)
                .where(StockMovement.product_id == product_id, StockMovement.remaining_qty.is_not(None))
                .order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
                .execution_options(populate_existing=True)
            ).all()
        return [StockLotRead.model_validate(item) for item in rows]

    def list_movements(
        self,
        session: Session,
        product_id: uuid.UUID,
        *,
        reference_type: str | None = None,
        reference_id: object | None = None,
    ) -> list[StockLotRead]:
        stmt = select(StockMovement).where(StockMovement.product_id == product_id)
        if reference_type is not None:
            stmt = stmt.where(StockMovement.reference_type == reference_type)
        if reference_id is not None:
            stmt = stmt.where(StockMovement.reference_id == _reference_key(reference_id))
        rows = session.scalars(
            stmt.order_by(StockMovement.created_at.asc(), StockMovement.id.asc()).execution_options(populate_existing=True)
        ).all()
        return [StockLotRead.model_validate(item) for item in rows]

    def _open_lots(self, session: Session, product_id: uuid.UUID) -> list[StockMovement]:
        return list(
            session.scalars(
                select(StockMovement)
                .where(StockMovement.product_id == product_id, StockMovement.remaining_qty > 0)
                .order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
                .execution_options(populate_existing=True)
            ).all()
        )

    def _get_product(self, session: Session, product_id: uuid.UUID, *, for_update: bool = False) -> Product:
        stmt = select(Product).where(Product.id == product_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        product = session.scalar(stmt)
        if product is None:
            raise NotFoundError("product", product_id)
        return product


def _reference_key(value: object | None) -> str | None:
    if value is None:
        return None
    return str(value)


stock_service = StockService()
