from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from erpcore import events
from erpcore.business.parties.service import party_service
from erpcore.business.quotations.models import Quotation, QuotationItem
from erpcore.business.quotations.schemas import QuotationConvertRequest, QuotationCreate, QuotationRead
from erpcore.business.sales.schemas import SaleCreate, SaleLineCreate, SaleRead
from erpcore.business.sales.service import INVOICE_NUMBERING, sales_service
from erpcore.core.numbers import ZERO, quantize
from erpcore.core.unit_of_work import DocumentNumbering, run_unit_of_work
from erpcore.errors import BusinessRuleError, ConflictError, NotFoundError
from erpcore.platform.sequence.service import sequence_service
from erpcore.platform.stock.service import stock_service

logger = logging.getLogger("erpcore.quotations")

QUOTATION_NUMBERING = DocumentNumbering("quotation", Quotation.quotation_number)


@dataclass(slots=True)
class QuotationService:
    def create_quotation(self, session: Session, dto: QuotationCreate) -> QuotationRead:
        def work() -> QuotationRead:
            if dto.customer_id is not None:
                party_service.load_customer(session, dto.customer_id)
            quotation_date = dto.quotation_date or date.today()
            if dto.valid_until is not None and dto.valid_until < quotation_date:
                raise BusinessRuleError("A quotation cannot expire before it is issued")

            quotation_number = sequence_service.allocate(session, "quotation")
            items: list[QuotationItem] = []
            subtotal = ZERO
            line_discounts = ZERO
            for line_no, line in enumerate(dto.items, start=1):
                stock_service.get_product(session, line.product_id)
                quantity = quantize(line.quantity)
                unit_price = quantize(line.unit_price)
                line_discount = quantize(line.line_discount)
                line_gross = quantize(quantity * unit_price)
                if line_discount > line_gross:
                    raise BusinessRuleError(f"Line {line_no} discount {line_discount} exceeds line value {line_gross}")
                subtotal += line_gross
                line_discounts += line_discount
                items.append(
                    QuotationItem(
                        line_no=line_no,
                        product_id=line.product_id,
                        quantity=quantity,
                        unit_price=unit_price,
                        line_discount=line_discount,
                        line_total=quantize(line_gross - line_discount),
                    )
                )

            subtotal = quantize(subtotal)
            discount_amount = quantize(dto.discount_amount)
            if line_discounts + discount_amount > subtotal:
                raise BusinessRuleError(f"Discount exceeds quotation subtotal {subtotal}")
            tax_amount = quantize(dto.tax_amount)

            quotation = Quotation(
                quotation_number=quotation_number,
                quotation_date=quotation_date,
                valid_until=dto.valid_until,
                customer_id=dto.customer_id,
                subtotal=subtotal,
                discount_amount=discount_amount,
                tax_amount=tax_amount,
                total_amount=quantize(subtotal - line_discounts - discount_amount + tax_amount),
                status="draft",
                notes=dto.notes,
                created_by=dto.created_by,
                items=items,
            )
            session.add(quotation)
            session.flush()
            return QuotationRead.model_validate(quotation)

        quotation = run_unit_of_work(session, work, operation="quotation.create", numberings=[QUOTATION_NUMBERING])
        logger.info("quotation.created", extra={"document_number": quotation.quotation_number})
        events.publish(
            events.build_envelope(
                "quotation.created",
                dto.created_by,
                {"quotation_id": str(quotation.id), "quotation_number": quotation.quotation_number},
            )
        )
        return quotation

    def convert_to_sale(
        self,
        session: Session,
        quotation_id: uuid.UUID,
        dto: QuotationConvertRequest | None = None,
    ) -> SaleRead:
        """Turn a draft quotation into a sale and mark it converted in the same commit."""
        request = dto or QuotationConvertRequest()

        def work() -> SaleRead:
            quotation = session.scalar(
                select(Quotation)
                .where(Quotation.id == quotation_id)
                .options(selectinload(Quotation.items))
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            if quotation is None:
                raise NotFoundError("quotation", quotation_id)
            if quotation.status == "converted":
                raise ConflictError(f"quotation '{quotation.quotation_number}' was already converted")

            sale_date = request.sale_date or date.today()
            if quotation.valid_until is not None and sale_date > quotation.valid_until:
                raise BusinessRuleError(f"quotation '{quotation.quotation_number}' expired on {quotation.valid_until}")

            sale = sales_service.record_sale(
                session,
                SaleCreate(
                    sale_date=sale_date,
                    customer_id=quotation.customer_id,
                    items=[
                        SaleLineCreate(
                            product_id=item.product_id,
                            quantity=item.quantity,
                            unit_price=item.unit_price,
                            line_discount=item.line_discount,
                        )
                        for item in quotation.items
                    ],
                    discount_amount=quotation.discount_amount,
                    tax_amount=quotation.tax_amount,
                    amount_paid=request.amount_paid,
                    payment_method=request.payment_method,
                    notes=f"Converted from {quotation.quotation_number}",
                    created_by=request.created_by,
                ),
            )
            quotation.status = "converted"
            quotation.converted_sale_id = sale.id
            session.flush()
            return sale

        sale = run_unit_of_work(session, work, operation="quotation.convert", numberings=[INVOICE_NUMBERING])
        logger.info("quotation.converted", extra={"document_number": sale.invoice_number})
        events.publish(
            events.build_envelope(
                "quotation.converted",
                request.created_by,
                {"quotation_id": str(quotation_id), "sale_id": str(sale.id), "invoice_number": sale.invoice_number},
            )
        )
        return sale

    def get_quotation(self, session: Session, quotation_id: uuid.UUID) -> QuotationRead:
        quotation = session.scalar(
            select(Quotation)
            .where(Quotation.id == quotation_id)
            .options(selectinload(Quotation.items))
            .execution_options(populate_existing=True)
        )
        if quotation is None:
            raise NotFoundError("quotation", quotation_id)
        return QuotationRead.model_validate(quotation)

    def list_quotations(self, session: Session, *, status: str | None = None) -> list[QuotationRead]:
        stmt = select(Quotation).options(selectinload(Quotation.items))
        if status is not None:
            stmt = stmt.where(Quotation.status == status)
        rows = session.scalars(stmt.order_by(Quotation.quotation_date.desc(), Quotation.created_at.desc())).all()
        return [QuotationRead.model_validate(row) for row in rows]


quotation_service = QuotationService()
