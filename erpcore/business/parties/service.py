from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from erpcore import events
from erpcore.core.numbers import ZERO, quantize
from erpcore.core.unit_of_work import DocumentNumbering, run_unit_of_work
from erpcore.errors import NotFoundError
from erpcore.platform.ledger.balance import DEBIT_NORMAL_TYPES, JournalLines
from erpcore.platform.ledger.models import Account, AccountGroup
from erpcore.platform.ledger.schemas import JournalPostRequest
from erpcore.platform.ledger.seed import OPENING_EQUITY_ACCOUNT, PAYABLES_ACCOUNT, PAYABLES_GROUP, RECEIVABLES_ACCOUNT, RECEIVABLES_GROUP
from erpcore.platform.ledger.service import ledger_service
from erpcore.platform.sequence.service import sequence_service
from erpcore.business.parties.models import Customer, Supplier
from erpcore.business.parties.schemas import (
    CustomerCreate,
    CustomerCreditRead,
    CustomerRead,
    SupplierCreate,
    SupplierRead,
)

logger = logging.getLogger("erpcore.parties")

PARTY_ACCOUNT_MARKERS = ("accounts.code", "uq_accounts_code")
CUSTOMER_NUMBERING = DocumentNumbering("customer", Customer.code, aliases=PARTY_ACCOUNT_MARKERS)
SUPPLIER_NUMBERING = DocumentNumbering("supplier", Supplier.code, aliases=PARTY_ACCOUNT_MARKERS)


@dataclass(slots=True)
class PartyService:
    def create_customer(self, session: Session, dto: CustomerCreate) -> CustomerRead:
        def work() -> CustomerRead:
            code = sequence_service.allocate(session, "customer")
            account = self._open_party_account(
                session,
                code=f"{RECEIVABLES_ACCOUNT}-{code}",
                name=f"{dto.name} ({code})",
                account_type="asset",
                group_code=RECEIVABLES_GROUP,
            )
            customer = Customer(
                code=code,
                name=dto.name,
                phone=dto.phone,
                email=dto.email,
                address=dto.address,
                credit_limit=quantize(dto.credit_limit),
                account_id=account.id,
                created_by=dto.created_by,
            )
            session.add(customer)
            session.flush()
            self._post_opening_balance(
                session,
                account,
                dto.opening_balance,
                dto.opening_date,
                reference_type="customer",
                reference_id=customer.id,
                created_by=dto.created_by,
            )
            return CustomerRead.model_validate(customer)

        customer = run_unit_of_work(session, work, operation="customer.create", numberings=[CUSTOMER_NUMBERING])
        logger.info("party.customer_created", extra={"document_number": customer.code, "account_id": str(customer.account_id)})
        events.publish(
            events.build_envelope(
                "party.customer.created",
                dto.created_by,
                {"customer_id": str(customer.id), "code": customer.code, "account_id": str(customer.account_id)},
            )
        )
        return customer

    def create_supplier(self, session: Session, dto: SupplierCreate) -> SupplierRead:
        def work() -> SupplierRead:
            code = sequence_service.allocate(session, "supplier")
            account = self._open_party_account(
                session,
                code=f"{PAYABLES_ACCOUNT}-{code}",
                name=f"{dto.name} ({code})",
                account_type="liability",
                group_code=PAYABLES_GROUP,
            )
            supplier = Supplier(
                code=code,
                name=dto.name,
                phone=dto.phone,
                email=dto.email,
                address=dto.address,
                account_id=account.id,
                created_by=dto.created_by,
            )
            session.add(supplier)
            session.flush()
            self._post_opening_balance(
                session,
                account,
                dto.opening_balance,
                dto.opening_date,
                reference_type="supplier",
                reference_id=supplier.id,
                created_by=dto.created_by,
            )
            return SupplierRead.model_validate(supplier)

        supplier = run_unit_of_work(session, work, operation="supplier.create", numberings=[SUPPLIER_NUMBERING])
        logger.info("party.supplier_created", extra={"document_number": supplier.code, "account_id": str(supplier.account_id)})
        events.publish(
            events.build_envelope(
                "party.supplier.created",
                dto.created_by,
                {"supplier_id": str(supplier.id), "code": supplier.code, "account_id": str(supplier.account_id)},
            )
        )
        return supplier

    def get_customer(self, session: Session, customer_id: uuid.UUID) -> CustomerRead:
        return CustomerRead.model_validate(self.load_customer(session, customer_id))

    def get_supplier(self, session: Session, supplier_id: uuid.UUID) -> SupplierRead:
        return SupplierRead.model_validate(self.load_supplier(session, supplier_id))

    def list_customers(self, session: Session) -> list[CustomerRead]:
        rows = session.scalars(select(Customer).order_by(Customer.code.asc())).all()
        return [CustomerRead.model_validate(item) for item in rows]

    def list_suppliers(self, session: Session) -> list[SupplierRead]:
        rows = session.scalars(select(Supplier).order_by(Supplier.code.asc())).all()
        return [SupplierRead.model_validate(item) for item in rows]

    def get_customer_credit(self, session: Session, customer_id: uuid.UUID) -> CustomerCreditRead:
        """Credit in use is whatever the customer's receivable account currently carries."""
        customer = self.load_customer(session, customer_id)
        account = ledger_service.get_account(session, customer.account_id)
        used = max(quantize(account.current_balance), ZERO)
        limit = quantize(customer.credit_limit)
        return CustomerCreditRead(
            customer_id=customer.id,
            credit_limit=limit,
            credit_used=used,
            credit_available=quantize(limit - used),
        )

    def load_customer(self, session: Session, customer_id: uuid.UUID, *, for_update: bool = False) -> Customer:
        stmt = select(Customer).where(Customer.id == customer_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        customer = session.scalar(stmt)
        if customer is None:
            raise NotFoundError("customer", customer_id)
        return customer

    def load_supplier(self, session: Session, supplier_id: uuid.UUID) -> Supplier:
        supplier = session.get(Supplier, supplier_id, populate_existing=True)
        if supplier is None:
            raise NotFoundError("supplier", supplier_id)
        return supplier

    def _open_party_account(
        self,
        session: Session,
        *,
        code: str,
        name: str,
        account_type: str,
        group_code: str,
    ) -> Account:
        group_id = session.scalar(select(AccountGroup.id).where(AccountGroup.code == group_code))
        account = Account(code=code, name=name, account_type=account_type, group_id=group_id, is_system=False)
        session.add(account)
        session.flush()
        return account

    def _post_opening_balance(
        self,
        session: Session,
        account: Account,
        opening_balance: Decimal,
        opening_date: date | None,
        *,
        reference_type: str,
        reference_id: uuid.UUID,
        created_by: str | None,
    ) -> None:
        value = quantize(opening_balance)
        if value == 0:
            return

        equity = ledger_service.get_account_by_code(session, OPENING_EQUITY_ACCOUNT)
        amount = abs(value)
        # A positive opening balance grows the party account on its normal side.
        party_on_debit = (account.account_type in DEBIT_NORMAL_TYPES) == (value > 0)
        lines = JournalLines()
        if party_on_debit:
            lines.debit(account.id, amount).credit(equity.id, amount)
        else:
            lines.debit(equity.id, amount).credit(account.id, amount)

        ledger_service.post_journal(
            session,
            JournalPostRequest(
                journal_date=opening_date or date.today(),
                journal_type="opening_balance",
                narration=f"Opening balance for {account.name}",
                reference_type=reference_type,
                reference_id=str(reference_id),
                created_by=created_by,
                entries=lines.build(),
            ),
        )


party_service = PartyService()
