from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from erpcore import events
from erpcore.business.accounts import payment_account_code, system_account_ids
from erpcore.business.expenses.models import Expense
from erpcore.business.expenses.schemas import ExpenseCreate, ExpenseRead
from erpcore.core.numbers import quantize
from erpcore.core.unit_of_work import DocumentNumbering, run_unit_of_work
from erpcore.errors import BusinessRuleError, InvalidAmountError, NotFoundError
from erpcore.platform.ledger.balance import JournalLines
from erpcore.platform.ledger.schemas import JournalPostRequest
from erpcore.platform.ledger.seed import INPUT_TAX_ACCOUNT
from erpcore.platform.ledger.service import ledger_service
from erpcore.platform.sequence.service import sequence_service

logger = logging.getLogger("erpcore.expenses")

EXPENSE_NUMBERING = DocumentNumbering("expense", Expense.expense_number)
PAYMENT_ACCOUNT_TYPES = frozenset({"asset", "liability"})


@dataclass(slots=True)
class ExpenseService:
    def create_expense(self, session: Session, dto: ExpenseCreate) -> ExpenseRead:
        expense = run_unit_of_work(
            session,
            lambda: self.record_expense(session, dto),
            operation="expense.create",
            numberings=[EXPENSE_NUMBERING],
        )
        logger.info("expense.created", extra={"document_number": expense.expense_number})
        events.publish(
            events.build_envelope(
                "expense.created",
                dto.created_by,
                {
                    "expense_id": str(expense.id),
                    "expense_number": expense.expense_number,
                    "total_amount": str(expense.total_amount),
                },
            )
        )
        return expense

    def record_expense(self, session: Session, dto: ExpenseCreate) -> ExpenseRead:
        amount = quantize(dto.amount)
        if amount <= 0:
            raise InvalidAmountError(f"Expense amount must be greater than zero, got {amount}")
        tax_amount = quantize(dto.tax_amount)

        expense_account = ledger_service.get_account(session, dto.expense_account_id)
        if expense_account.account_type != "expense":
            raise BusinessRuleError(f"Account '{expense_account.code}' is not an expense account")

        if dto.payment_account_id is not None:
            payment_account = ledger_service.get_account(session, dto.payment_account_id)
        else:
            payment_account = ledger_service.get_account_by_code(session, payment_account_code(dto.payment_method))
        if payment_account.account_type not in PAYMENT_ACCOUNT_TYPES:
            raise BusinessRuleError(f"Account '{payment_account.code}' cannot settle an expense")

        expense_date = dto.expense_date or date.today()
        expense_number = sequence_service.allocate(session, "expense")
        expense_id = uuid.uuid4()
        total_amount = quantize(amount + tax_amount)

        input_tax = system_account_ids(session, INPUT_TAX_ACCOUNT)[INPUT_TAX_ACCOUNT]
        lines = JournalLines()
        lines.debit(expense_account.id, amount, f"Expense: {expense_number}")
        lines.debit(input_tax, tax_amount, f"Tax on {expense_number}")
        lines.credit(payment_account.id, total_amount, f"Payment for {expense_number}")

        journal = ledger_service.post_journal(
            session,
            JournalPostRequest(
                journal_date=expense_date,
                journal_type="expense",
                narration=f"Expense {expense_number} - {expense_account.name}",
                reference_type="expense",
                reference_id=str(expense_id),
                created_by=dto.created_by,
                entries=lines.build(),
            ),
        )

        expense = Expense(
            id=expense_id,
            expense_number=expense_number,
            expense_date=expense_date,
            expense_account_id=expense_account.id,
            payment_account_id=payment_account.id,
            amount=amount,
            tax_amount=tax_amount,
            total_amount=total_amount,
            payee=dto.payee,
            reference_number=dto.reference_number,
            notes=dto.notes,
            journal_id=journal.id,
            created_by=dto.created_by,
        )
        session.add(expense)
        session.flush()
        return ExpenseRead.model_validate(expense)

    def get_expense(self, session: Session, expense_id: uuid.UUID) -> ExpenseRead:
        expense = session.get(Expense, expense_id, populate_existing=True)
        if expense is None:
            raise NotFoundError("expense", expense_id)
        return ExpenseRead.model_validate(expense)

    def list_expenses(
        self,
        session: Session,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[ExpenseRead]:
        stmt = select(Expense)
        if start_date is not None:
            stmt = stmt.where(Expense.expense_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(Expense.expense_date <= end_date)
        rows = session.scalars(stmt.order_by(Expense.expense_date.desc(), Expense.created_at.desc())).all()
        return [ExpenseRead.model_validate(row) for row in rows]


expense_service = ExpenseService()
