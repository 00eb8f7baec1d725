from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import Select, select
from sqlalchemy.orm import Session, selectinload

from erpcore import events
from erpcore.business.accounts import payment_account_code, system_account_ids
from erpcore.business.parties.service import party_service
from erpcore.business.sales.models import Sale, SaleItem, SaleReturn, SaleReturnItem
from erpcore.business.sales.schemas import SaleCreate, SaleRead, SaleReturnCreate, SaleReturnRead
from erpcore.core.config import get_settings
from erpcore.core.numbers import ZERO, quantize
from erpcore.core.unit_of_work import DocumentNumbering, run_unit_of_work
from erpcore.errors import BusinessRuleError, NotFoundError
from erpcore.platform.ledger.balance import JournalLines
from erpcore.platform.ledger.schemas import JournalPostRequest
from erpcore.platform.ledger.seed import (
    COGS_ACCOUNT,
    CUSTOMER_ADVANCES_ACCOUNT,
    DISCOUNT_ALLOWED_ACCOUNT,
    INVENTORY_ACCOUNT,
    SALES_ACCOUNT,
    SALES_RETURNS_ACCOUNT,
    SALES_TAX_ACCOUNT,
)
from erpcore.platform.ledger.service import ledger_service
from erpcore.platform.sequence.service import sequence_service
from erpcore.platform.stock.service import stock_service

logger = logging.getLogger("erpcore.sales")

INVOICE_NUMBERING = DocumentNumbering("invoice", Sale.invoice_number)
SALE_RETURN_NUMBERING = DocumentNumbering("sale_return", SaleReturn.return_number)


@dataclass(slots=True)
class SalesService:
    def create_sale(self, session: Session, dto: SaleCreate) -> SaleRead:
        sale = run_unit_of_work(
            session,
            lambda: self.record_sale(session, dto),
            operation="sale.create",
            numberings=[INVOICE_NUMBERING],
        )
        logger.info(
            "sale.created",
            extra={"document_number": sale.invoice_number, "total_cost": str(sale.total_cost), "status": sale.status},
        )
        events.publish(
            events.build_envelope(
                "sale.created",
                dto.created_by,
                {
                    "sale_id": str(sale.id),
                    "invoice_number": sale.invoice_number,
                    "total_amount": str(sale.total_amount),
                    "amount_due": str(sale.amount_due),
                },
            )
        )
        return sale

    def record_sale(self, session: Session, dto: SaleCreate) -> SaleRead:
        """Post a sale inside the caller's unit of work without committing.

        Stock is consumed FIFO with shortage blocking on, so an
        ``InsufficientStockError`` leaves nothing behind once the caller
        rolls back.
        """
        settings = get_settings()
        sale_date = dto.sale_date or date.today()
        customer = (
            party_service.load_customer(session, dto.customer_id, for_update=True)
            if dto.customer_id is not None
            else None
        )

        invoice_number = sequence_service.allocate(session, "invoice")
        sale_id = uuid.uuid4()

        stock_service.lock_products(session, (line.product_id for line in dto.items))
        items: list[SaleItem] = []
        subtotal = ZERO
        line_discounts = ZERO
        total_cost = ZERO
        for line_no, line in enumerate(dto.items, start=1):
            quantity = quantize(line.quantity)
            unit_price = quantize(line.unit_price)
            line_discount = quantize(line.line_discount)
            line_gross = quantize(quantity * unit_price)
            if line_discount > line_gross:
                raise BusinessRuleError(f"Line {line_no} discount {line_discount} exceeds line value {line_gross}")

            consumption = stock_service.consume(
                session,
                line.product_id,
                quantity,
                reference_type="sale",
                reference_id=sale_id,
                movement_type="OUT",
                block_on_shortage=True,
                notes=f"Sale {invoice_number}",
                created_by=dto.created_by,
            )
            subtotal += line_gross
            line_discounts += line_discount
            total_cost += consumption.total_cost
            items.append(
                SaleItem(
                    line_no=line_no,
                    product_id=line.product_id,
                    quantity=quantity,
                    unit_price=unit_price,
                    line_discount=line_discount,
                    line_total=quantize(line_gross - line_discount),
                    cost_price=consumption.average_cost,
                    total_cost=consumption.total_cost,
                )
            )

        subtotal = quantize(subtotal)
        total_cost = quantize(total_cost)
        header_discount = quantize(dto.discount_amount)
        discount_total = quantize(line_discounts + header_discount)
        if discount_total > subtotal:
            raise BusinessRuleError(f"Discount {discount_total} exceeds sale subtotal {subtotal}")
        tax_amount = quantize(dto.tax_amount)
        total_amount = quantize(subtotal - discount_total + tax_amount)
        amount_paid = quantize(dto.amount_paid)

        amount_due = max(total_amount - amount_paid, ZERO)
        excess = max(amount_paid - total_amount, ZERO)
        change_amount = ZERO
        advance_amount = ZERO
        if excess > 0:
            if settings.sale_overpayment_policy == "advance":
                if customer is None:
                    raise BusinessRuleError("An overpayment kept as advance requires a customer")
                advance_amount = excess
            else:
                change_amount = excess

        if amount_due > 0:
            if customer is None:
                raise BusinessRuleError(f"Sale {invoice_number} leaves {amount_due} unpaid and has no customer")
            self._check_credit_limit(session, customer.account_id, customer.credit_limit, amount_due, customer.name)

        accounts = system_account_ids(
            session,
            SALES_ACCOUNT,
            DISCOUNT_ALLOWED_ACCOUNT,
            SALES_TAX_ACCOUNT,
            CUSTOMER_ADVANCES_ACCOUNT,
            COGS_ACCOUNT,
            INVENTORY_ACCOUNT,
            payment_account_code(dto.payment_method),
        )
        lines = JournalLines()
        lines.credit(accounts[SALES_ACCOUNT], subtotal, f"Sale {invoice_number}")
        lines.debit(accounts[DISCOUNT_ALLOWED_ACCOUNT], discount_total, f"Discount on {invoice_number}")
        lines.credit(accounts[SALES_TAX_ACCOUNT], tax_amount, f"Tax on {invoice_number}")
        lines.debit(
            accounts[payment_account_code(dto.payment_method)],
            amount_paid - change_amount,
            f"Payment for {invoice_number}",
        )
        if customer is not None:
            lines.debit(customer.account_id, amount_due, f"Receivable {invoice_number}")
        lines.credit(accounts[CUSTOMER_ADVANCES_ACCOUNT], advance_amount, f"Advance on {invoice_number}")
        lines.debit(accounts[COGS_ACCOUNT], total_cost, f"COGS {invoice_number}")
        lines.credit(accounts[INVENTORY_ACCOUNT], total_cost, f"Inventory out {invoice_number}")

        journal_id = None
        if len(lines):
            journal = ledger_service.post_journal(
                session,
                JournalPostRequest(
                    journal_date=sale_date,
                    journal_type="sale",
                    narration=f"Sale Invoice {invoice_number}",
                    reference_type="sale",
                    reference_id=str(sale_id),
                    created_by=dto.created_by,
                    entries=lines.build(),
                ),
            )
            journal_id = journal.id

        sale = Sale(
            id=sale_id,
            invoice_number=invoice_number,
            sale_date=sale_date,
            customer_id=customer.id if customer is not None else None,
            subtotal=subtotal,
            line_discount_total=quantize(line_discounts),
            discount_amount=header_discount,
            tax_amount=tax_amount,
            total_amount=total_amount,
            amount_paid=amount_paid,
            amount_due=amount_due,
            change_amount=change_amount,
            advance_amount=advance_amount,
            total_cost=total_cost,
            payment_method=dto.payment_method,
            status="completed" if amount_due == 0 else "confirmed",
            notes=dto.notes,
            journal_id=journal_id,
            created_by=dto.created_by,
            items=items,
        )
        session.add(sale)
        session.flush()
        return SaleRead.model_validate(sale)

    def create_sale_return(self, session: Session, dto: SaleReturnCreate) -> SaleReturnRead:
        sale_return = run_unit_of_work(
            session,
            lambda: self.record_sale_return(session, dto),
            operation="sale_return.create",
            numberings=[SALE_RETURN_NUMBERING],
        )
        logger.info(
            "sale.returned",
            extra={"document_number": sale_return.return_number, "total_cost": str(sale_return.total_cost)},
        )
        events.publish(
            events.build_envelope(
                "sale.returned",
                dto.created_by,
                {
                    "sale_return_id": str(sale_return.id),
                    "sale_id": str(sale_return.sale_id),
                    "return_number": sale_return.return_number,
                    "subtotal": str(sale_return.subtotal),
                    "refund_amount": str(sale_return.refund_amount),
                },
            )
        )
        return sale_return

    def record_sale_return(self, session: Session, dto: SaleReturnCreate) -> SaleReturnRead:
        sale = session.scalar(
            select(Sale)
            .where(Sale.id == dto.sale_id)
            .options(selectinload(Sale.items))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if sale is None:
            raise NotFoundError("sale", dto.sale_id)
        if dto.refund_method == "account" and sale.customer_id is None:
            raise BusinessRuleError(f"Sale {sale.invoice_number} has no customer account to credit")

        sale_items = {item.id: item for item in sale.items}
        requested: dict[uuid.UUID, Decimal] = {}
        for line in dto.items:
            item = sale_items.get(line.sale_item_id)
            if item is None:
                raise NotFoundError("sale item", line.sale_item_id)
            requested[item.id] = requested.get(item.id, ZERO) + quantize(line.quantity)
        for item_id, quantity in requested.items():
            item = sale_items[item_id]
            returnable = quantize(item.quantity - item.returned_quantity)
            if quantity > returnable:
                raise BusinessRuleError(
                    f"Cannot return {quantity} of line {item.line_no} on {sale.invoice_number}; {returnable} remain returnable"
                )

        return_number = sequence_service.allocate(session, "sale_return")
        return_id = uuid.uuid4()
        return_date = dto.return_date or date.today()

        net_value = quantize(sale.subtotal - sale.line_discount_total)
        returned_before = _returned_value(sale.items)
        stock_service.lock_products(session, (sale_items[item_id].product_id for item_id in requested))
        return_items: list[SaleReturnItem] = []
        subtotal = ZERO
        total_cost = ZERO
        for item_id, quantity in requested.items():
            item = sale_items[item_id]
            stock_service.restore(
                session,
                item.product_id,
                quantity,
                item.cost_price,
                "sale_return",
                return_id,
                notes=f"Return {return_number} of {sale.invoice_number}",
                created_by=dto.created_by,
            )
            line_total = quantize(quantity * item.line_total / item.quantity)
            line_cost = quantize(quantity * item.cost_price)
            item.returned_quantity = quantize(item.returned_quantity + quantity)
            subtotal += line_total
            total_cost += line_cost
            return_items.append(
                SaleReturnItem(
                    sale_item_id=item.id,
                    product_id=item.product_id,
                    quantity=quantity,
                    unit_price=quantize(item.line_total / item.quantity),
                    line_total=line_total,
                    cost_price=item.cost_price,
                    total_cost=line_cost,
                )
            )

        subtotal = quantize(subtotal)
        total_cost = quantize(total_cost)
        returned_after = _returned_value(sale.items)
        # Header discount and tax follow the share of line value returned so far, so a
        # sale returned in full reverses both exactly.
        discount_amount = _share(sale.discount_amount, returned_after, net_value) - _share(
            sale.discount_amount, returned_before, net_value
        )
        tax_amount = _share(sale.tax_amount, returned_after, net_value) - _share(sale.tax_amount, returned_before, net_value)
        refund_amount = quantize(subtotal - discount_amount + tax_amount)
        accounts = system_account_ids(
            session,
            SALES_RETURNS_ACCOUNT,
            SALES_TAX_ACCOUNT,
            DISCOUNT_ALLOWED_ACCOUNT,
            INVENTORY_ACCOUNT,
            COGS_ACCOUNT,
        )
        if dto.refund_method == "account":
            customer = party_service.load_customer(session, sale.customer_id)
            refund_account_id = customer.account_id
        else:
            refund_code = payment_account_code(dto.refund_method)
            refund_account_id = system_account_ids(session, refund_code)[refund_code]

        lines = JournalLines()
        lines.debit(accounts[SALES_RETURNS_ACCOUNT], subtotal, f"Return {return_number}")
        lines.debit(accounts[SALES_TAX_ACCOUNT], tax_amount, f"Tax reversed on {return_number}")
        lines.credit(accounts[DISCOUNT_ALLOWED_ACCOUNT], discount_amount, f"Discount reversed on {return_number}")
        lines.credit(refund_account_id, refund_amount, f"Refund {return_number}")
        lines.debit(accounts[INVENTORY_ACCOUNT], total_cost, f"Inventory back {return_number}")
        lines.credit(accounts[COGS_ACCOUNT], total_cost, f"COGS reversal {return_number}")

        journal_id = None
        if len(lines):
            journal = ledger_service.post_journal(
                session,
                JournalPostRequest(
                    journal_date=return_date,
                    journal_type="sale_return",
                    narration=f"Sale Return {return_number} for {sale.invoice_number}",
                    reference_type="sale_return",
                    reference_id=str(return_id),
                    created_by=dto.created_by,
                    entries=lines.build(),
                ),
            )
            journal_id = journal.id

        sale_return = SaleReturn(
            id=return_id,
            return_number=return_number,
            sale_id=sale.id,
            return_date=return_date,
            subtotal=subtotal,
            discount_amount=discount_amount,
            tax_amount=tax_amount,
            refund_amount=refund_amount,
            total_cost=total_cost,
            refund_method=dto.refund_method,
            reason=dto.reason,
            journal_id=journal_id,
            created_by=dto.created_by,
            items=return_items,
        )
        session.add(sale_return)
        session.flush()
        return SaleReturnRead.model_validate(sale_return)

    def get_sale(self, session: Session, sale_id: uuid.UUID) -> SaleRead:
        sale = session.scalar(
            select(Sale)
            .where(Sale.id == sale_id)
            .options(selectinload(Sale.items))
            .execution_options(populate_existing=True)
        )
        if sale is None:
            raise NotFoundError("sale", sale_id)
        return SaleRead.model_validate(sale)

    def list_sales(
        self,
        session: Session,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
        customer_id: uuid.UUID | None = None,
    ) -> list[SaleRead]:
        stmt: Select[tuple[Sale]] = select(Sale).options(selectinload(Sale.items))
        if start_date is not None:
            stmt = stmt.where(Sale.sale_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(Sale.sale_date <= end_date)
        if customer_id is not None:
            stmt = stmt.where(Sale.customer_id == customer_id)
        rows = session.scalars(stmt.order_by(Sale.sale_date.desc(), Sale.created_at.desc())).all()
        return [SaleRead.model_validate(row) for row in rows]

    def get_sale_return(self, session: Session, sale_return_id: uuid.UUID) -> SaleReturnRead:
        sale_return = session.scalar(
            select(SaleReturn)
            .where(SaleReturn.id == sale_return_id)
            .options(selectinload(SaleReturn.items))
            .execution_options(populate_existing=True)
        )
        if sale_return is None:
            raise NotFoundError("sale return", sale_return_id)
        return SaleReturnRead.model_validate(sale_return)

    def _check_credit_limit(
        self,
        session: Session,
        account_id: uuid.UUID,
        credit_limit: Decimal,
        amount_due: Decimal,
        customer_name: str,
    ) -> None:
        account = ledger_service.get_account(session, account_id)
        used = max(quantize(account.current_balance), ZERO)
        limit = quantize(credit_limit)
        if used + amount_due > limit:
            logger.warning(
                "sale.credit_limit_exceeded",
                extra={"account_id": str(account_id), "reason": "credit_limit", "status": "rejected"},
            )
            raise BusinessRuleError(
                f"Credit limit exceeded for {customer_name}. Available: {quantize(limit - used)}, requested: {amount_due}"
            )


def _returned_value(items: list[SaleItem]) -> Decimal:
    return quantize(sum((quantize(item.returned_quantity * item.line_total / item.quantity) for item in items), ZERO))


def _share(amount: Decimal, value: Decimal, whole: Decimal) -> Decimal:
    if whole <= 0:
        return ZERO
    return quantize(amount * value / whole)


sales_service = SalesService()
