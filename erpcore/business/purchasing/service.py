from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date

from sqlalchemy import Select, select
from sqlalchemy.orm import Session, selectinload

from erpcore import events
from erpcore.business.accounts import payment_account_code, system_account_ids
from erpcore.business.parties.service import party_service
from erpcore.business.purchasing.models import Purchase, PurchaseItem
from erpcore.business.purchasing.schemas import PurchaseCreate, PurchaseRead, PurchaseReturnCreate
from erpcore.core.numbers import ZERO, quantize
from erpcore.core.unit_of_work import DocumentNumbering, run_unit_of_work
from erpcore.errors import BusinessRuleError, NotFoundError
from erpcore.platform.ledger.balance import JournalLines
from erpcore.platform.ledger.schemas import JournalPostRequest
from erpcore.platform.ledger.seed import (
    DISCOUNT_RECEIVED_ACCOUNT,
    INPUT_TAX_ACCOUNT,
    INVENTORY_ACCOUNT,
    PAYABLES_ACCOUNT,
)
from erpcore.platform.ledger.service import ledger_service
from erpcore.platform.sequence.service import sequence_service
from erpcore.platform.stock.service import stock_service

logger = logging.getLogger("erpcore.purchasing")

PURCHASE_NUMBERING = DocumentNumbering("purchase", Purchase.bill_number)
DEBIT_NOTE_NUMBERING = DocumentNumbering("debit_note", Purchase.bill_number)


@dataclass(slots=True)
class PurchaseService:
    def create_purchase(self, session: Session, dto: PurchaseCreate) -> PurchaseRead:
        purchase = run_unit_of_work(
            session,
            lambda: self.record_purchase(session, dto),
            operation="purchase.create",
            numberings=[PURCHASE_NUMBERING],
        )
        logger.info(
            "purchase.created",
            extra={"document_number": purchase.bill_number, "status": purchase.payment_status},
        )
        events.publish(
            events.build_envelope(
                "purchase.created",
                dto.created_by,
                {
                    "purchase_id": str(purchase.id),
                    "bill_number": purchase.bill_number,
                    "total_amount": str(purchase.total_amount),
                },
            )
        )
        return purchase

    def record_purchase(self, session: Session, dto: PurchaseCreate) -> PurchaseRead:
        bill_date = dto.bill_date or date.today()
        supplier = party_service.load_supplier(session, dto.supplier_id) if dto.supplier_id is not None else None

        bill_number = sequence_service.allocate(session, "purchase")
        purchase_id = uuid.uuid4()

        stock_service.lock_products(session, (line.product_id for line in dto.items))
        items: list[PurchaseItem] = []
        subtotal = ZERO
        for line_no, line in enumerate(dto.items, start=1):
            quantity = quantize(line.quantity)
            unit_cost = quantize(line.unit_cost)
            lot = stock_service.receive(
                session,
                line.product_id,
                quantity,
                unit_cost,
                "purchase",
                purchase_id,
                notes=f"Purchase {bill_number}",
                created_by=dto.created_by,
            )
            line_total = quantize(quantity * unit_cost)
            subtotal += line_total
            items.append(
                PurchaseItem(
                    line_no=line_no,
                    product_id=line.product_id,
                    quantity=quantity,
                    unit_cost=unit_cost,
                    line_total=line_total,
                    stock_movement_id=lot.id,
                )
            )

        subtotal = quantize(subtotal)
        discount_amount = quantize(dto.discount_amount)
        if discount_amount > subtotal:
            raise BusinessRuleError(f"Discount {discount_amount} exceeds bill subtotal {subtotal}")
        tax_amount = quantize(dto.tax_amount)
        total_amount = quantize(subtotal - discount_amount + tax_amount)
        paid_amount = quantize(dto.paid_amount)
        if paid_amount > total_amount:
            raise BusinessRuleError(f"Paid amount {paid_amount} exceeds bill total {total_amount}")
        remainder = quantize(total_amount - paid_amount)

        payment_code = payment_account_code(dto.payment_method)
        accounts = system_account_ids(
            session,
            INVENTORY_ACCOUNT,
            INPUT_TAX_ACCOUNT,
            DISCOUNT_RECEIVED_ACCOUNT,
            PAYABLES_ACCOUNT,
            payment_code,
        )
        payable_account_id = supplier.account_id if supplier is not None else accounts[PAYABLES_ACCOUNT]

        lines = JournalLines()
        lines.debit(accounts[INVENTORY_ACCOUNT], subtotal, f"Inventory - {bill_number}")
        lines.debit(accounts[INPUT_TAX_ACCOUNT], tax_amount, f"Input tax - {bill_number}")
        lines.credit(accounts[DISCOUNT_RECEIVED_ACCOUNT], discount_amount, f"Discount - {bill_number}")
        lines.credit(accounts[payment_code], paid_amount, f"Payment - {bill_number}")
        lines.credit(payable_account_id, remainder, f"Payable - {bill_number}")

        journal_id = None
        if len(lines):
            journal = ledger_service.post_journal(
                session,
                JournalPostRequest(
                    journal_date=bill_date,
                    journal_type="purchase",
                    narration=f"Purchase Bill: {bill_number}",
                    reference_type="purchase",
                    reference_id=str(purchase_id),
                    created_by=dto.created_by,
                    entries=lines.build(),
                ),
            )
            journal_id = journal.id

        if paid_amount >= total_amount:
            payment_status = "paid"
        elif paid_amount > 0:
            payment_status = "partial"
        else:
            payment_status = "unpaid"

        purchase = Purchase(
            id=purchase_id,
            bill_number=bill_number,
            bill_date=bill_date,
            supplier_id=supplier.id if supplier is not None else None,
            reference_number=dto.reference_number,
            is_return=False,
            subtotal=subtotal,
            discount_amount=discount_amount,
            tax_amount=tax_amount,
            total_amount=total_amount,
            paid_amount=paid_amount,
            payment_method=dto.payment_method,
            payment_status=payment_status,
            notes=dto.notes,
            journal_id=journal_id,
            created_by=dto.created_by,
            items=items,
        )
        session.add(purchase)
        session.flush()
        return PurchaseRead.model_validate(purchase)

    def create_purchase_return(self, session: Session, dto: PurchaseReturnCreate) -> PurchaseRead:
        debit_note = run_unit_of_work(
            session,
            lambda: self.record_purchase_return(session, dto),
            operation="purchase_return.create",
            numberings=[DEBIT_NOTE_NUMBERING],
        )
        logger.info(
            "purchase.returned",
            extra={"document_number": debit_note.bill_number, "total_cost": str(debit_note.total_amount)},
        )
        events.publish(
            events.build_envelope(
                "purchase.returned",
                dto.created_by,
                {
                    "purchase_id": str(debit_note.id),
                    "original_purchase_id": str(debit_note.original_purchase_id),
                    "bill_number": debit_note.bill_number,
                    "total_amount": str(debit_note.total_amount),
                },
            )
        )
        return debit_note

    def record_purchase_return(self, session: Session, dto: PurchaseReturnCreate) -> PurchaseRead:
        """Send goods back to the supplier out of the lots the original bill received.

        Consumption is restricted to the original purchase's lots, so the
        inventory credit equals the cost those goods were booked at.
        """
        original = session.scalar(
            select(Purchase)
            .where(Purchase.id == dto.original_purchase_id)
            .options(selectinload(Purchase.items))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if original is None:
            raise NotFoundError("purchase", dto.original_purchase_id)
        if original.is_return:
            raise BusinessRuleError(f"{original.bill_number} is itself a debit note")

        purchased_products = {item.product_id for item in original.items}
        for line in dto.items:
            if line.product_id not in purchased_products:
                raise BusinessRuleError(f"Product '{line.product_id}' was not bought on {original.bill_number}")

        return_date = dto.return_date or date.today()
        bill_number = sequence_service.allocate(session, "debit_note")
        return_id = uuid.uuid4()

        stock_service.lock_products(session, (line.product_id for line in dto.items))
        items: list[PurchaseItem] = []
        total_cost = ZERO
        for line_no, line in enumerate(dto.items, start=1):
            quantity = quantize(line.quantity)
            consumption = stock_service.consume(
                session,
                line.product_id,
                quantity,
                reference_type="purchase_return",
                reference_id=return_id,
                movement_type="OUT",
                block_on_shortage=True,
                source_reference=("purchase", original.id),
                notes=f"Debit note {bill_number} for {original.bill_number}",
                created_by=dto.created_by,
            )
            total_cost += consumption.total_cost
            items.append(
                PurchaseItem(
                    line_no=line_no,
                    product_id=line.product_id,
                    quantity=quantity,
                    unit_cost=consumption.average_cost,
                    line_total=consumption.total_cost,
                    stock_movement_id=consumption.movement_id,
                )
            )
        total_cost = quantize(total_cost)

        accounts = system_account_ids(session, INVENTORY_ACCOUNT, PAYABLES_ACCOUNT)
        if dto.settlement == "account":
            if original.supplier_id is not None:
                settlement_account_id = party_service.load_supplier(session, original.supplier_id).account_id
            else:
                settlement_account_id = accounts[PAYABLES_ACCOUNT]
        else:
            refund_code = payment_account_code(dto.settlement)
            settlement_account_id = system_account_ids(session, refund_code)[refund_code]

        lines = JournalLines()
        lines.debit(settlement_account_id, total_cost, f"Debit Note - {bill_number}")
        lines.credit(accounts[INVENTORY_ACCOUNT], total_cost, f"Inventory Return - {bill_number}")

        journal_id = None
        if len(lines):
            journal = ledger_service.post_journal(
                session,
                JournalPostRequest(
                    journal_date=return_date,
                    journal_type="purchase_return",
                    narration=f"Debit Note: {bill_number}",
                    reference_type="purchase_return",
                    reference_id=str(return_id),
                    created_by=dto.created_by,
                    entries=lines.build(),
                ),
            )
            journal_id = journal.id

        debit_note = Purchase(
            id=return_id,
            bill_number=bill_number,
            bill_date=return_date,
            supplier_id=original.supplier_id,
            reference_number=original.bill_number,
            is_return=True,
            original_purchase_id=original.id,
            subtotal=total_cost,
            discount_amount=ZERO,
            tax_amount=ZERO,
            total_amount=total_cost,
            paid_amount=ZERO,
            payment_method=dto.settlement,
            payment_status="returned",
            notes=dto.notes or f"Return for Bill #{original.bill_number}",
            journal_id=journal_id,
            created_by=dto.created_by,
            items=items,
        )
        session.add(debit_note)
        session.flush()
        return PurchaseRead.model_validate(debit_note)

    def get_purchase(self, session: Session, purchase_id: uuid.UUID) -> PurchaseRead:
        purchase = session.scalar(
            select(Purchase)
            .where(Purchase.id == purchase_id)
            .options(selectinload(Purchase.items))
            .execution_options(populate_existing=True)
        )
        if purchase is None:
            raise NotFoundError("purchase", purchase_id)
        return PurchaseRead.model_validate(purchase)

    def list_purchases(
        self,
        session: Session,
        *,
        supplier_id: uuid.UUID | None = None,
        include_returns: bool = True,
    ) -> list[PurchaseRead]:
        stmt: Select[tuple[Purchase]] = select(Purchase).options(selectinload(Purchase.items))
        if supplier_id is not None:
            stmt = stmt.where(Purchase.supplier_id == supplier_id)
        if not include_returns:
            stmt = stmt.where(Purchase.is_return.is_(False))
        rows = session.scalars(stmt.order_by(Purchase.bill_date.desc(), Purchase.created_at.desc())).all()
        return [PurchaseRead.model_validate(row) for row in rows]


purchase_service = PurchaseService()
