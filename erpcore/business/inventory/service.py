from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from erpcore import events
from erpcore.business.accounts import system_account_ids
from erpcore.business.inventory.models import StockAdjustment, StockAdjustmentItem
from erpcore.business.inventory.schemas import (
    OpeningStockCreate,
    OpeningStockRead,
    StockAdjustmentCreate,
    StockAdjustmentRead,
)
from erpcore.core.numbers import ZERO, quantize
from erpcore.core.unit_of_work import DocumentNumbering, run_unit_of_work
from erpcore.errors import NotFoundError
from erpcore.platform.ledger.balance import JournalLines
from erpcore.platform.ledger.schemas import JournalPostRequest
from erpcore.platform.ledger.seed import (
    ADJUSTMENT_GAIN_ACCOUNT,
    INVENTORY_ACCOUNT,
    OPENING_EQUITY_ACCOUNT,
    SHRINKAGE_ACCOUNT,
)
from erpcore.platform.ledger.service import ledger_service
from erpcore.platform.sequence.service import sequence_service
from erpcore.platform.stock.service import stock_service

logger = logging.getLogger("erpcore.inventory")

ADJUSTMENT_NUMBERING = DocumentNumbering("adjustment", StockAdjustment.adjustment_number)

# Outbound movement type used for each removal kind.
REMOVAL_MOVEMENTS = {"remove": "ADJUSTMENT", "damage": "DAMAGE"}


@dataclass(slots=True)
class InventoryService:
    def record_opening_stock(self, session: Session, dto: OpeningStockCreate) -> OpeningStockRead:
        def work() -> OpeningStockRead:
            opening_id = uuid.uuid4()
            lot = stock_service.receive(
                session,
                dto.product_id,
                dto.quantity,
                dto.unit_cost,
                "opening",
                opening_id,
                notes="Opening stock",
                created_by=dto.created_by,
            )
            value = quantize(lot.quantity * lot.unit_cost)

            accounts = system_account_ids(session, INVENTORY_ACCOUNT, OPENING_EQUITY_ACCOUNT)
            lines = JournalLines()
            lines.debit(accounts[INVENTORY_ACCOUNT], value, "Opening stock")
            lines.credit(accounts[OPENING_EQUITY_ACCOUNT], value, "Opening stock")

            journal_id = None
            if len(lines):
                journal = ledger_service.post_journal(
                    session,
                    JournalPostRequest(
                        journal_date=dto.as_of_date or date.today(),
                        journal_type="opening_stock",
                        narration=f"Opening stock for product {dto.product_id}",
                        reference_type="opening",
                        reference_id=str(opening_id),
                        created_by=dto.created_by,
                        entries=lines.build(),
                    ),
                )
                journal_id = journal.id
            return OpeningStockRead(lot=lot, value=value, journal_id=journal_id)

        result = run_unit_of_work(session, work, operation="inventory.opening_stock")
        logger.info(
            "inventory.opening_stock_recorded",
            extra={"product_id": str(dto.product_id), "quantity": str(result.lot.quantity), "total_cost": str(result.value)},
        )
        events.publish(
            events.build_envelope(
                "inventory.opening_stock_recorded",
                dto.created_by,
                {"product_id": str(dto.product_id), "lot_id": result.lot.id, "value": str(result.value)},
            )
        )
        return result

    def adjust_stock(self, session: Session, dto: StockAdjustmentCreate) -> StockAdjustmentRead:
        adjustment = run_unit_of_work(
            session,
            lambda: self.record_adjustment(session, dto),
            operation="inventory.adjust",
            numberings=[ADJUSTMENT_NUMBERING],
        )
        logger.info(
            "inventory.adjusted",
            extra={
                "document_number": adjustment.adjustment_number,
                "reason": adjustment.adjustment_type,
                "total_cost": str(adjustment.total_value),
            },
        )
        events.publish(
            events.build_envelope(
                "inventory.adjusted",
                dto.created_by,
                {
                    "adjustment_id": str(adjustment.id),
                    "adjustment_number": adjustment.adjustment_number,
                    "adjustment_type": adjustment.adjustment_type,
                    "total_value": str(adjustment.total_value),
                },
            )
        )
        return adjustment

    def record_adjustment(self, session: Session, dto: StockAdjustmentCreate) -> StockAdjustmentRead:
        """Add found stock as new lots, or take removed and damaged stock out FIFO.

        Removals always block on shortage; counting more out than the lots
        hold is rejected rather than costed at a fallback price.
        """
        adjustment_number = sequence_service.allocate(session, "adjustment")
        adjustment_id = uuid.uuid4()
        adjustment_date = dto.adjustment_date or date.today()
        narration = f"Stock adjustment {adjustment_number}"

        stock_service.lock_products(session, (line.product_id for line in dto.items))
        items: list[StockAdjustmentItem] = []
        total_value = ZERO
        for line_no, line in enumerate(dto.items, start=1):
            if dto.adjustment_type == "add":
                unit_cost = line.unit_cost
                if unit_cost is None:
                    unit_cost = stock_service.get_product(session, line.product_id).cost_price
                lot = stock_service.receive(
                    session,
                    line.product_id,
                    line.quantity,
                    unit_cost,
                    "adjustment",
                    adjustment_id,
                    movement_type="ADJUSTMENT",
                    notes=dto.reason or narration,
                    created_by=dto.created_by,
                )
                line_cost = quantize(lot.quantity * lot.unit_cost)
                item = StockAdjustmentItem(
                    line_no=line_no,
                    product_id=line.product_id,
                    quantity=lot.quantity,
                    unit_cost=lot.unit_cost,
                    total_cost=line_cost,
                    stock_movement_id=lot.id,
                )
            else:
                consumption = stock_service.consume(
                    session,
                    line.product_id,
                    line.quantity,
                    reference_type="adjustment",
                    reference_id=adjustment_id,
                    movement_type=REMOVAL_MOVEMENTS[dto.adjustment_type],
                    block_on_shortage=True,
                    notes=dto.reason or narration,
                    created_by=dto.created_by,
                )
                line_cost = consumption.total_cost
                item = StockAdjustmentItem(
                    line_no=line_no,
                    product_id=line.product_id,
                    quantity=consumption.requested_quantity,
                    unit_cost=consumption.average_cost,
                    total_cost=line_cost,
                    stock_movement_id=consumption.movement_id,
                )
            total_value += line_cost
            items.append(item)

        total_value = quantize(total_value)
        accounts = system_account_ids(session, INVENTORY_ACCOUNT, ADJUSTMENT_GAIN_ACCOUNT, SHRINKAGE_ACCOUNT)
        lines = JournalLines()
        if dto.adjustment_type == "add":
            lines.debit(accounts[INVENTORY_ACCOUNT], total_value, narration)
            lines.credit(accounts[ADJUSTMENT_GAIN_ACCOUNT], total_value, narration)
        else:
            lines.debit(accounts[SHRINKAGE_ACCOUNT], total_value, narration)
            lines.credit(accounts[INVENTORY_ACCOUNT], total_value, narration)

        journal_id = None
        if len(lines):
            journal = ledger_service.post_journal(
                session,
                JournalPostRequest(
                    journal_date=adjustment_date,
                    journal_type="adjustment",
                    narration=f"{narration} ({dto.adjustment_type})",
                    reference_type="adjustment",
                    reference_id=str(adjustment_id),
                    created_by=dto.created_by,
                    entries=lines.build(),
                ),
            )
            journal_id = journal.id

        adjustment = StockAdjustment(
            id=adjustment_id,
            adjustment_number=adjustment_number,
            adjustment_date=adjustment_date,
            adjustment_type=dto.adjustment_type,
            reason=dto.reason,
            total_value=total_value,
            journal_id=journal_id,
            created_by=dto.created_by,
            items=items,
        )
        session.add(adjustment)
        session.flush()
        return StockAdjustmentRead.model_validate(adjustment)

    def get_adjustment(self, session: Session, adjustment_id: uuid.UUID) -> StockAdjustmentRead:
        adjustment = session.scalar(
            select(StockAdjustment)
            .where(StockAdjustment.id == adjustment_id)
            .options(selectinload(StockAdjustment.items))
            .execution_options(populate_existing=True)
        )
        if adjustment is None:
            raise NotFoundError("stock adjustment", adjustment_id)
        return StockAdjustmentRead.model_validate(adjustment)


inventory_service = InventoryService()
