from __future__ import annotations

import uuid

from sqlalchemy.orm import Session

from erpcore.platform.ledger.seed import BANK_ACCOUNT, CASH_ACCOUNT
from erpcore.platform.ledger.service import ledger_service


def system_account_ids(session: Session, *codes: str) -> dict[str, uuid.UUID]:
    """Resolve chart codes to account ids. A missing code raises ``NotFoundError``."""
    return {code: ledger_service.get_account_by_code(session, code).id for code in codes}


def payment_account_code(payment_method: str) -> str:
    return CASH_ACCOUNT if payment_method == "cash" else BANK_ACCOUNT
