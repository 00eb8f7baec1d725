from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from erpcore.platform.ledger.models import Account, AccountGroup
from erpcore.platform.ledger.schemas import AccountRead
from erpcore.platform.sequence.service import sequence_service

CASH_ACCOUNT = "1001"
BANK_ACCOUNT = "1002"
INVENTORY_ACCOUNT = "1004"
RECEIVABLES_ACCOUNT = "1201"
INPUT_TAX_ACCOUNT = "1300"
PAYABLES_ACCOUNT = "2001"
SALES_TAX_ACCOUNT = "2100"
CUSTOMER_ADVANCES_ACCOUNT = "2200"
OWNER_CAPITAL_ACCOUNT = "3001"
OPENING_EQUITY_ACCOUNT = "3002"
SALES_ACCOUNT = "4001"
SALES_RETURNS_ACCOUNT = "4003"
ADJUSTMENT_GAIN_ACCOUNT = "4100"
DISCOUNT_RECEIVED_ACCOUNT = "4200"
COGS_ACCOUNT = "5001"
DISCOUNT_ALLOWED_ACCOUNT = "5002"
SHRINKAGE_ACCOUNT = "5003"

RECEIVABLES_GROUP = "RECEIVABLES"
PAYABLES_GROUP = "PAYABLES"

DEFAULT_GROUPS: list[tuple[str, str, str, int]] = [
    ("CASH_BANK", "Cash & Bank", "asset", 10),
    ("INVENTORY", "Inventory", "asset", 20),
    (RECEIVABLES_GROUP, "Receivables", "asset", 30),
    (PAYABLES_GROUP, "Payables", "liability", 40),
    ("TAXES", "Taxes", "liability", 50),
    ("EQUITY", "Equity", "equity", 60),
    ("INCOME", "Income", "income", 70),
    ("COST_OF_SALES", "Cost of Sales", "expense", 80),
    ("OPERATING_EXPENSES", "Operating Expenses", "expense", 90),
]

DEFAULT_ACCOUNTS: list[tuple[str, str, str, str]] = [
    (CASH_ACCOUNT, "Cash in Hand", "asset", "CASH_BANK"),
    (BANK_ACCOUNT, "Bank Account", "asset", "CASH_BANK"),
    (INVENTORY_ACCOUNT, "Inventory", "asset", "INVENTORY"),
    (RECEIVABLES_ACCOUNT, "Customer Receivables", "asset", RECEIVABLES_GROUP),
    (INPUT_TAX_ACCOUNT, "Input Tax Recoverable", "asset", RECEIVABLES_GROUP),
    (PAYABLES_ACCOUNT, "Supplier Payables", "liability", PAYABLES_GROUP),
    (SALES_TAX_ACCOUNT, "Sales Tax Payable", "liability", "TAXES"),
    (CUSTOMER_ADVANCES_ACCOUNT, "Customer Advances", "liability", PAYABLES_GROUP),
    (OWNER_CAPITAL_ACCOUNT, "Owner Capital", "equity", "EQUITY"),
    (OPENING_EQUITY_ACCOUNT, "Opening Balance Equity", "equity", "EQUITY"),
    (SALES_ACCOUNT, "Sales Income", "income", "INCOME"),
    (SALES_RETURNS_ACCOUNT, "Sales Returns", "income", "INCOME"),
    (ADJUSTMENT_GAIN_ACCOUNT, "Inventory Adjustment Gain", "income", "INCOME"),
    (DISCOUNT_RECEIVED_ACCOUNT, "Discount Received", "income", "INCOME"),
    (COGS_ACCOUNT, "Cost of Goods Sold", "expense", "COST_OF_SALES"),
    (DISCOUNT_ALLOWED_ACCOUNT, "Discount Allowed", "expense", "COST_OF_SALES"),
    (SHRINKAGE_ACCOUNT, "Inventory Shrinkage & Damage", "expense", "COST_OF_SALES"),
    ("6001", "Salaries & Wages", "expense", "OPERATING_EXPENSES"),
    ("6002", "Rent & Utilities", "expense", "OPERATING_EXPENSES"),
    ("6003", "Marketing & Advertising", "expense", "OPERATING_EXPENSES"),
]


def seed_chart_of_accounts(session: Session) -> list[AccountRead]:
    """Create the default groups and system accounts that are still missing, then commit."""
    groups = {item.code: item for item in session.scalars(select(AccountGroup)).all()}
    for code, name, account_type, sequence_order in DEFAULT_GROUPS:
        if code in groups:
            continue
        group = AccountGroup(code=code, name=name, account_type=account_type, sequence_order=sequence_order)
        session.add(group)
        groups[code] = group
    session.flush()

    existing_codes = set(session.scalars(select(Account.code)).all())
    created: list[Account] = []
    for code, name, account_type, group_code in DEFAULT_ACCOUNTS:
        if code in existing_codes:
            continue
        account = Account(
            code=code,
            name=name,
            account_type=account_type,
            group_id=groups[group_code].id,
            is_active=True,
            is_system=True,
        )
        session.add(account)
        created.append(account)

    session.commit()
    return [AccountRead.model_validate(item) for item in created]


def seed_reference_data(session: Session) -> None:
    seed_chart_of_accounts(session)
    sequence_service.seed_default_sequences(session)
