from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erpcore.core.database import Base

ACCOUNT_TYPES = ("asset", "liability", "equity", "income", "expense")
JOURNAL_TYPES = (
    "sale",
    "sale_return",
    "purchase",
    "purchase_return",
    "expense",
    "adjustment",
    "opening_stock",
    "opening_balance",
    "manual",
    "reversal",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountGroup(Base):
    __tablename__ = "account_groups"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[str] = mapped_column(String(16), nullable=False)
    sequence_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    accounts: Mapped[list[Account]] = relationship("Account", back_populates="group")

    __table_args__ = (
        CheckConstraint(
            "account_type IN ('asset', 'liability', 'equity', 'income', 'expense')",
            name="ck_account_groups_type",
        ),
    )


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[str] = mapped_column(String(16), nullable=False)
    group_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("account_groups.id", ondelete="RESTRICT"),
        nullable=True,
    )
    opening_balance: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False, default=Decimal("0"), server_default="0")
    current_balance: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False, default=Decimal("0"), server_default="0")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    group: Mapped[AccountGroup | None] = relationship("AccountGroup", back_populates="accounts")
    entries: Mapped[list[LedgerEntry]] = relationship("LedgerEntry", back_populates="account")

    __table_args__ = (
        CheckConstraint(
            "account_type IN ('asset', 'liability', 'equity', 'income', 'expense')",
            name="ck_accounts_type",
        ),
        UniqueConstraint("code", name="uq_accounts_code"),
    )


class Journal(Base):
    __tablename__ = "journals"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    number: Mapped[str] = mapped_column(String(32), nullable=False)
    journal_date: Mapped[date] = mapped_column(Date(), nullable=False)
    journal_type: Mapped[str] = mapped_column(String(32), nullable=False)
    reference_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    narration: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_debit: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    total_credit: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    is_balanced: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    reverses_journal_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("journals.id", ondelete="RESTRICT"),
        nullable=True,
    )
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    entries: Mapped[list[LedgerEntry]] = relationship(
        "LedgerEntry",
        back_populates="journal",
        order_by="LedgerEntry.line_no",
    )

    __table_args__ = (
        UniqueConstraint("number", name="uq_journals_number"),
        UniqueConstraint("reverses_journal_id", name="uq_journals_reverses_journal_id"),
        CheckConstraint("total_debit >= 0", name="ck_journals_total_debit_nonnegative"),
        CheckConstraint("total_credit >= 0", name="ck_journals_total_credit_nonnegative"),
        Index("ix_journals_date", "journal_date"),
        Index("ix_journals_reference", "reference_type", "reference_id"),
    )


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    journal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("journals.id", ondelete="RESTRICT"),
        nullable=False,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    entry_date: Mapped[date] = mapped_column(Date(), nullable=False)
    entry_type: Mapped[str] = mapped_column(String(8), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    reference_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    narration: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    journal: Mapped[Journal] = relationship("Journal", back_populates="entries")
    account: Mapped[Account] = relationship("Account", back_populates="entries")

    __table_args__ = (
        CheckConstraint("entry_type IN ('debit', 'credit')", name="ck_ledger_entries_type"),
        CheckConstraint("amount > 0", name="ck_ledger_entries_amount_positive"),
        UniqueConstraint("journal_id", "line_no", name="uq_ledger_entries_line"),
        Index("ix_ledger_entries_account_date", "account_id", "entry_date"),
    )
