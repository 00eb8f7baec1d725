"""create sequence and ledger tables

Revision ID: 202610010001
Revises:
Create Date: 2026-10-01 09:00:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610010001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

ACCOUNT_TYPE_CHECK = "account_type IN ('asset', 'liability', 'equity', 'income', 'expense')"


def upgrade() -> None:
    op.create_table(
        "sequences",
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("prefix", sa.String(length=16), nullable=False, server_default=""),
        sa.Column("current_value", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("pad_length", sa.Integer(), nullable=False, server_default="6"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("name"),
        sa.CheckConstraint("current_value >= 0", name="ck_sequences_current_value_nonnegative"),
        sa.CheckConstraint("pad_length >= 0", name="ck_sequences_pad_length_nonnegative"),
    )

    op.create_table(
        "account_groups",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("account_type", sa.String(length=16), nullable=False),
        sa.Column("sequence_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
        sa.CheckConstraint(ACCOUNT_TYPE_CHECK, name="ck_account_groups_type"),
    )

    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("account_type", sa.String(length=16), nullable=False),
        sa.Column("group_id", sa.Uuid(), nullable=True),
        sa.Column("opening_balance", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("current_balance", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["group_id"], ["account_groups.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_accounts_code"),
        sa.CheckConstraint(ACCOUNT_TYPE_CHECK, name="ck_accounts_type"),
    )

    op.create_table(
        "journals",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("number", sa.String(length=32), nullable=False),
        sa.Column("journal_date", sa.Date(), nullable=False),
        sa.Column("journal_type", sa.String(length=32), nullable=False),
        sa.Column("reference_type", sa.String(length=32), nullable=True),
        sa.Column("reference_id", sa.String(length=64), nullable=True),
        sa.Column("narration", sa.Text(), nullable=True),
        sa.Column("total_debit", sa.Numeric(18, 6), nullable=False),
        sa.Column("total_credit", sa.Numeric(18, 6), nullable=False),
        sa.Column("is_balanced", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("reverses_journal_id", sa.Uuid(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["reverses_journal_id"], ["journals.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("number", name="uq_journals_number"),
        sa.UniqueConstraint("reverses_journal_id", name="uq_journals_reverses_journal_id"),
        sa.CheckConstraint("total_debit >= 0", name="ck_journals_total_debit_nonnegative"),
        sa.CheckConstraint("total_credit >= 0", name="ck_journals_total_credit_nonnegative"),
    )
    op.create_index("ix_journals_date", "journals", ["journal_date"])
    op.create_index("ix_journals_reference", "journals", ["reference_type", "reference_id"])

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("journal_id", sa.Uuid(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("entry_type", sa.String(length=8), nullable=False),
        sa.Column("amount", sa.Numeric(18, 6), nullable=False),
        sa.Column("reference_type", sa.String(length=32), nullable=True),
        sa.Column("reference_id", sa.String(length=64), nullable=True),
        sa.Column("narration", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["journal_id"], ["journals.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("journal_id", "line_no", name="uq_ledger_entries_line"),
        sa.CheckConstraint("entry_type IN ('debit', 'credit')", name="ck_ledger_entries_type"),
        sa.CheckConstraint("amount > 0", name="ck_ledger_entries_amount_positive"),
    )
    op.create_index("ix_ledger_entries_account_date", "ledger_entries", ["account_id", "entry_date"])


def downgrade() -> None:
    op.drop_index("ix_ledger_entries_account_date", table_name="ledger_entries")
    op.drop_table("ledger_entries")
    op.drop_index("ix_journals_reference", table_name="journals")
    op.drop_index("ix_journals_date", table_name="journals")
    op.drop_table("journals")
    op.drop_table("accounts")
    op.drop_table("account_groups")
    op.drop_table("sequences")
