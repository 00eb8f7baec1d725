from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import Select, and_, case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from erpcore import audit
from erpcore.context import get_correlation_id
from erpcore.core.config import get_settings
from erpcore.core.numbers import ZERO, quantize
from erpcore.errors import (
    BusinessRuleError,
    ConflictError,
    InvalidAmountError,
    NotFoundError,
    UnbalancedJournalError,
)
from erpcore.metrics import observe_journal_posted, observe_ledger_post_failure
from erpcore.platform.ledger.balance import (
    DEBIT_NORMAL_TYPES,
    EntryTotals,
    apply_entry,
    closing_balance,
    signed_amount,
    validate_entries,
)
from erpcore.platform.ledger.models import Account, AccountGroup, Journal, LedgerEntry
from erpcore.platform.ledger.schemas import (
    AccountBalanceRead,
    AccountCreate,
    AccountGroupCreate,
    AccountGroupRead,
    AccountLedgerLine,
    AccountLedgerRead,
    AccountRead,
    JournalEntryInput,
    JournalPostRequest,
    JournalRead,
    TrialBalanceLine,
    TrialBalanceRead,
    TrialBalanceTotals,
)
from erpcore.platform.sequence.service import sequence_service

logger = logging.getLogger("erpcore.ledger")

JOURNAL_SEQUENCE = "journal"


@dataclass(slots=True)
class LedgerService:
    def create_account_group(self, session: Session, dto: AccountGroupCreate) -> AccountGroupRead:
        group = AccountGroup(**dto.model_dump(mode="python"))
        session.add(group)
        try:
            session.flush()
        except IntegrityError as exc:
            session.rollback()
            raise ConflictError(f"account group '{dto.code}' already exists") from exc
        return AccountGroupRead.model_validate(group)

    def create_account(self, session: Session, dto: AccountCreate, *, actor_user_id: str = "system") -> AccountRead:
        payload = dto.model_dump(mode="python")
        if dto.group_id is not None and session.get(AccountGroup, dto.group_id) is None:
            raise NotFoundError("account group", dto.group_id)

        opening = quantize(payload.pop("opening_balance"))
        account = Account(**payload, opening_balance=opening, current_balance=opening)
        session.add(account)
        try:
            session.flush()
        except IntegrityError as exc:
            session.rollback()
            raise ConflictError(f"account '{dto.code}' already exists") from exc

        audit.record(
            actor_user_id=actor_user_id,
            entity_type="ledger.account",
            entity_id=str(account.id),
            action="ledger.account_created",
            before=None,
            after={"code": account.code, "account_type": account.account_type, "opening_balance": str(opening)},
            correlation_id=get_correlation_id(),
        )
        return AccountRead.model_validate(account)

    def get_account(self, session: Session, account_id: uuid.UUID) -> AccountRead:
        return AccountRead.model_validate(self._get_account(session, account_id))

    def get_account_by_code(self, session: Session, code: str) -> AccountRead:
        account = session.scalar(
            select(Account).where(Account.code == code).execution_options(populate_existing=True)
        )
        if account is None:
            raise NotFoundError("account", code)
        return AccountRead.model_validate(account)

    def list_accounts(
        self,
        session: Session,
        *,
        account_type: str | None = None,
        include_inactive: bool = False,
    ) -> list[AccountRead]:
        stmt: Select[tuple[Account]] = select(Account)
        if account_type is not None:
            stmt = stmt.where(Account.account_type == account_type)
        if not include_inactive:
            stmt = stmt.where(Account.is_active.is_(True))
        rows = session.scalars(stmt.order_by(Account.code.asc()).execution_options(populate_existing=True)).all()
        return [AccountRead.model_validate(item) for item in rows]

    def deactivate_account(self, session: Session, account_id: uuid.UUID, *, actor_user_id: str = "system") -> AccountRead:
        account = self._get_account(session, account_id)
        if account.is_system:
            raise BusinessRuleError(f"system account '{account.code}' cannot be deactivated")
        if quantize(account.current_balance) != 0:
            raise BusinessRuleError(f"account '{account.code}' still carries a balance of {quantize(account.current_balance)}")

        account.is_active = False
        session.flush()
        audit.record(
            actor_user_id=actor_user_id,
            entity_type="ledger.account",
            entity_id=str(account.id),
            action="ledger.account_deactivated",
            before={"is_active": True},
            after={"is_active": False},
            correlation_id=get_correlation_id(),
        )
        return AccountRead.model_validate(account)

    def post_journal(self, session: Session, request: JournalPostRequest) -> JournalRead:
        """Validate, number and persist a balanced journal inside the caller's transaction.

        Nothing is written until the entries pass amount, account and balance
        checks. Account balances move through ``UPDATE ... SET current_balance =
        current_balance + :delta`` so that concurrent posters serialize on the
        account rows. The caller owns the commit.
        """
        return self._post(session, request)

    def reverse_journal(
        self,
        session: Session,
        journal_id: uuid.UUID,
        *,
        reason: str,
        created_by: str | None = None,
        reversal_date: date | None = None,
    ) -> JournalRead:
        journal = self._get_journal(session, journal_id)
        already = session.scalar(select(Journal.number).where(Journal.reverses_journal_id == journal.id))
        if already is not None:
            raise ConflictError(f"journal '{journal.number}' was already reversed by '{already}'")

        request = JournalPostRequest(
            journal_date=reversal_date or date.today(),
            journal_type="reversal",
            narration=f"Reversal of {journal.number}: {reason}",
            reference_type="journal",
            reference_id=str(journal.id),
            created_by=created_by,
            entries=[
                JournalEntryInput(
                    account_id=entry.account_id,
                    entry_type="credit" if entry.entry_type == "debit" else "debit",
                    amount=entry.amount,
                    narration=entry.narration,
                )
                for entry in journal.entries
            ],
        )
        reversal = self._post(session, request, reverses_journal_id=journal.id)

        audit.record(
            actor_user_id=created_by or "system",
            entity_type="ledger.journal",
            entity_id=str(journal.id),
            action="ledger.reversed",
            before=None,
            after={"reversal_journal_id": str(reversal.id), "reversal_number": reversal.number, "reason": reason},
            correlation_id=get_correlation_id(),
        )
        return reversal

    def get_journal(self, session: Session, journal_id: uuid.UUID) -> JournalRead:
        return JournalRead.model_validate(self._get_journal(session, journal_id))

    def list_journals(
        self,
        session: Session,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
        journal_type: str | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
    ) -> list[JournalRead]:
        stmt: Select[tuple[Journal]] = select(Journal).options(selectinload(Journal.entries))
        if start_date is not None:
            stmt = stmt.where(Journal.journal_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(Journal.journal_date <= end_date)
        if journal_type is not None:
            stmt = stmt.where(Journal.journal_type == journal_type)
        if reference_type is not None:
            stmt = stmt.where(Journal.reference_type == reference_type)
        if reference_id is not None:
            stmt = stmt.where(Journal.reference_id == reference_id)

        rows = session.scalars(
            stmt.order_by(Journal.journal_date.desc(), Journal.created_at.desc()).execution_options(populate_existing=True)
        ).all()
        return [JournalRead.model_validate(row) for row in rows]

    def get_account_ledger(
        self,
        session: Session,
        account_id: uuid.UUID,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> AccountLedgerRead:
        """Replay an account's entries into running balances without touching stored state.

        Entries are ordered by ``entry_date``, ``created_at`` and ``line_no``.
        With ``from_date`` the opening balance absorbs every entry dated
        before it, so the window's closing balance matches an unfiltered
        replay up to ``to_date``.
        """
        account = self._get_account(session, account_id)
        opening = quantize(account.opening_balance)
        if from_date is not None:
            prior_debit, prior_credit = self._entry_totals(session, account.id, before=from_date)
            opening = closing_balance(account.account_type, opening, prior_debit, prior_credit)

        stmt = (
            select(LedgerEntry, Journal.number)
            .join(Journal, LedgerEntry.journal_id == Journal.id)
            .where(LedgerEntry.account_id == account.id)
        )
        if from_date is not None:
            stmt = stmt.where(LedgerEntry.entry_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(LedgerEntry.entry_date <= to_date)
        rows = session.execute(
            stmt.order_by(LedgerEntry.entry_date.asc(), LedgerEntry.created_at.asc(), LedgerEntry.line_no.asc())
        ).all()

        running = opening
        total_debit = ZERO
        total_credit = ZERO
        lines: list[AccountLedgerLine] = []
        for entry, journal_number in rows:
            amount = quantize(entry.amount)
            running = apply_entry(running, account.account_type, entry.entry_type, amount)
            if entry.entry_type == "debit":
                total_debit += amount
            else:
                total_credit += amount
            lines.append(
                AccountLedgerLine(
                    entry_id=entry.id,
                    journal_id=entry.journal_id,
                    journal_number=journal_number,
                    line_no=entry.line_no,
                    entry_date=entry.entry_date,
                    entry_type=entry.entry_type,
                    amount=amount,
                    narration=entry.narration,
                    running_balance=running,
                )
            )

        return AccountLedgerRead(
            account=AccountRead.model_validate(account),
            from_date=from_date,
            to_date=to_date,
            opening_balance=opening,
            total_debit=quantize(total_debit),
            total_credit=quantize(total_credit),
            closing_balance=running,
            entries=lines,
        )

    def get_account_balance(
        self,
        session: Session,
        account_id: uuid.UUID,
        as_of_date: date | None = None,
    ) -> AccountBalanceRead:
        account = self._get_account(session, account_id)
        total_debit, total_credit = self._entry_totals(session, account.id, through=as_of_date)
        opening = quantize(account.opening_balance)
        return AccountBalanceRead(
            account_id=account.id,
            code=account.code,
            account_type=account.account_type,
            as_of_date=as_of_date,
            opening_balance=opening,
            total_debit=total_debit,
            total_credit=total_credit,
            closing_balance=closing_balance(account.account_type, opening, total_debit, total_credit),
        )

    def get_trial_balance(self, session: Session, as_of_date: date | None = None) -> TrialBalanceRead:
        entry_filter = LedgerEntry.account_id == Account.id
        if as_of_date is not None:
            entry_filter = and_(entry_filter, LedgerEntry.entry_date <= as_of_date)

        debit_sum = func.coalesce(func.sum(case((LedgerEntry.entry_type == "debit", LedgerEntry.amount), else_=0)), 0)
        credit_sum = func.coalesce(func.sum(case((LedgerEntry.entry_type == "credit", LedgerEntry.amount), else_=0)), 0)
        stmt = (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                Account.opening_balance,
                Account.is_active,
                AccountGroup.name,
                debit_sum,
                credit_sum,
            )
            .outerjoin(AccountGroup, Account.group_id == AccountGroup.id)
            .outerjoin(LedgerEntry, entry_filter)
            .group_by(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                Account.opening_balance,
                Account.is_active,
                AccountGroup.name,
            )
            .order_by(Account.code.asc())
        )

        lines: list[TrialBalanceLine] = []
        total_debit_column = ZERO
        total_credit_column = ZERO
        for row in session.execute(stmt).all():
            account_id, code, name, account_type, opening_raw, is_active, group_name, debit_raw, credit_raw = row
            opening = quantize(opening_raw or ZERO)
            debits = quantize(debit_raw or ZERO)
            credits = quantize(credit_raw or ZERO)
            closing = closing_balance(account_type, opening, debits, credits)
            if not is_active and closing == 0 and debits == 0 and credits == 0:
                continue

            debit_column, credit_column = _trial_columns(account_type, closing)
            total_debit_column += debit_column
            total_credit_column += credit_column
            lines.append(
                TrialBalanceLine(
                    account_id=account_id,
                    code=code,
                    name=name,
                    account_type=account_type,
                    group_name=group_name,
                    opening_balance=opening,
                    total_debit=debits,
                    total_credit=credits,
                    closing_balance=closing,
                    debit_balance=debit_column,
                    credit_balance=credit_column,
                )
            )

        totals = TrialBalanceTotals(debit=quantize(total_debit_column), credit=quantize(total_credit_column))
        difference = quantize(totals.debit - totals.credit)
        return TrialBalanceRead(
            as_of_date=as_of_date,
            accounts=lines,
            totals=totals,
            difference=difference,
            is_balanced=abs(difference) <= get_settings().balance_tolerance,
        )

    def _post(
        self,
        session: Session,
        request: JournalPostRequest,
        *,
        reverses_journal_id: uuid.UUID | None = None,
    ) -> JournalRead:
        totals = self._validate(request)
        accounts = self._load_accounts(session, {entry.account_id for entry in request.entries})

        number = sequence_service.allocate(session, JOURNAL_SEQUENCE)
        journal = Journal(
            number=number,
            journal_date=request.journal_date,
            journal_type=request.journal_type,
            reference_type=request.reference_type,
            reference_id=request.reference_id,
            narration=request.narration,
            total_debit=totals.total_debit,
            total_credit=totals.total_credit,
            is_balanced=True,
            reverses_journal_id=reverses_journal_id,
            created_by=request.created_by,
            entries=[
                LedgerEntry(
                    account_id=entry.account_id,
                    line_no=line_no,
                    entry_date=request.journal_date,
                    entry_type=entry.entry_type,
                    amount=quantize(entry.amount),
                    reference_type=request.reference_type,
                    reference_id=request.reference_id,
                    narration=entry.narration or request.narration,
                )
                for line_no, entry in enumerate(request.entries, start=1)
            ],
        )
        session.add(journal)
        try:
            session.flush()
        except IntegrityError as exc:
            observe_ledger_post_failure("db_error")
            if reverses_journal_id is not None and "reverses_journal_id" in str(exc.orig):
                raise ConflictError(f"journal '{reverses_journal_id}' was already reversed") from exc
            raise

        deltas: dict[uuid.UUID, Decimal] = defaultdict(lambda: ZERO)
        for entry in request.entries:
            account_type = accounts[entry.account_id].account_type
            deltas[entry.account_id] += signed_amount(account_type, entry.entry_type, entry.amount)

        # Sorted so concurrent posters lock shared accounts in the same order.
        for account_id in sorted(deltas, key=str):
            delta = quantize(deltas[account_id])
            if delta == 0:
                continue
            session.execute(
                update(Account)
                .where(Account.id == account_id)
                .values(current_balance=Account.current_balance + delta),
                execution_options={"synchronize_session": "fetch"},
            )
        session.flush()

        observe_journal_posted(journal.journal_type, len(journal.entries))
        logger.info(
            "ledger.journal_posted",
            extra={
                "journal_id": str(journal.id),
                "journal_number": journal.number,
                "journal_type": journal.journal_type,
                "total_debit": str(totals.total_debit),
                "total_credit": str(totals.total_credit),
            },
        )
        audit.record(
            actor_user_id=request.created_by or "system",
            entity_type="ledger.journal",
            entity_id=str(journal.id),
            action="ledger.posted",
            before=None,
            after=_journal_audit_payload(journal),
            correlation_id=get_correlation_id(),
        )
        return JournalRead.model_validate(journal)

    def _validate(self, request: JournalPostRequest) -> EntryTotals:
        try:
            return validate_entries(request.entries)
        except InvalidAmountError:
            observe_ledger_post_failure("invalid_amount")
            raise
        except UnbalancedJournalError as exc:
            observe_ledger_post_failure("unbalanced_entry")
            logger.warning(
                "ledger.unbalanced_journal",
                extra={
                    "journal_type": request.journal_type,
                    "total_debit": str(exc.total_debit),
                    "total_credit": str(exc.total_credit),
                },
            )
            raise

    def _load_accounts(self, session: Session, account_ids: set[uuid.UUID]) -> dict[uuid.UUID, Account]:
        rows = session.scalars(select(Account).where(Account.id.in_(account_ids))).all()
        account_map = {item.id: item for item in rows}
        for account_id in sorted(account_ids, key=str):
            account = account_map.get(account_id)
            if account is None:
                observe_ledger_post_failure("account_not_found")
                raise NotFoundError("account", account_id)
            if not account.is_active:
                observe_ledger_post_failure("account_inactive")
                raise NotFoundError("active account", account_id)
        return account_map

    def _entry_totals(
        self,
        session: Session,
        account_id: uuid.UUID,
        *,
        before: date | None = None,
        through: date | None = None,
    ) -> tuple[Decimal, Decimal]:
        stmt = select(
            func.coalesce(func.sum(case((LedgerEntry.entry_type == "debit", LedgerEntry.amount), else_=0)), 0),
            func.coalesce(func.sum(case((LedgerEntry.entry_type == "credit", LedgerEntry.amount), else_=0)), 0),
        ).where(LedgerEntry.account_id == account_id)
        if before is not None:
            stmt = stmt.where(LedgerEntry.entry_date < before)
        if through is not None:
            stmt = stmt.where(LedgerEntry.entry_date <= through)
        debits, credits = session.execute(stmt).one()
        return quantize(debits or ZERO), quantize(credits or ZERO)

    def _get_account(self, session: Session, account_id: uuid.UUID) -> Account:
        account = session.get(Account, account_id, populate_existing=True)
        if account is None:
            raise NotFoundError("account", account_id)
        return account

    def _get_journal(self, session: Session, journal_id: uuid.UUID) -> Journal:
        journal = session.scalar(
            select(Journal)
            .where(Journal.id == journal_id)
            .options(selectinload(Journal.entries))
            .execution_options(populate_existing=True)
        )
        if journal is None:
            raise NotFoundError("journal", journal_id)
        return journal


def _trial_columns(account_type: str, closing: Decimal) -> tuple[Decimal, Decimal]:
    if account_type in DEBIT_NORMAL_TYPES:
        return (closing, ZERO) if closing >= 0 else (ZERO, -closing)
    return (ZERO, closing) if closing >= 0 else (-closing, ZERO)


def _journal_audit_payload(journal: Journal) -> dict[str, Any]:
    return {
        "number": journal.number,
        "journal_type": journal.journal_type,
        "journal_date": journal.journal_date.isoformat(),
        "reference_type": journal.reference_type,
        "reference_id": journal.reference_id,
        "total_debit": str(journal.total_debit),
        "total_credit": str(journal.total_credit),
        "line_count": len(journal.entries),
    }


ledger_service = LedgerService()
