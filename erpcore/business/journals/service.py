from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from erpcore import events
from erpcore.business.journals.schemas import ManualJournalCreate
from erpcore.core.unit_of_work import run_unit_of_work
from erpcore.platform.ledger.schemas import JournalPostRequest, JournalRead, JournalReverseRequest
from erpcore.platform.ledger.service import ledger_service

logger = logging.getLogger("erpcore.journals")


@dataclass(slots=True)
class JournalVoucherService:
    def post_manual_journal(self, session: Session, dto: ManualJournalCreate) -> JournalRead:
        request = JournalPostRequest(
            journal_date=dto.journal_date or date.today(),
            journal_type="manual",
            narration=dto.narration,
            reference_type="manual" if dto.reference_number else None,
            reference_id=dto.reference_number,
            created_by=dto.created_by,
            entries=dto.entries,
        )
        journal = run_unit_of_work(
            session,
            lambda: ledger_service.post_journal(session, request),
            operation="journal.manual",
        )
        logger.info("journal.manual_posted", extra={"journal_id": str(journal.id), "journal_number": journal.number})
        events.publish(
            events.build_envelope(
                "journal.posted",
                dto.created_by,
                {"journal_id": str(journal.id), "number": journal.number, "total_debit": str(journal.total_debit)},
            )
        )
        return journal

    def reverse(self, session: Session, journal_id: uuid.UUID, dto: JournalReverseRequest) -> JournalRead:
        reversal = run_unit_of_work(
            session,
            lambda: ledger_service.reverse_journal(
                session,
                journal_id,
                reason=dto.reason,
                created_by=dto.created_by,
                reversal_date=dto.reversal_date,
            ),
            operation="journal.reverse",
        )
        logger.info(
            "journal.reversed",
            extra={"journal_id": str(journal_id), "journal_number": reversal.number, "reason": dto.reason},
        )
        events.publish(
            events.build_envelope(
                "journal.reversed",
                dto.created_by,
                {"journal_id": str(journal_id), "reversal_journal_id": str(reversal.id), "number": reversal.number},
            )
        )
        return reversal


journal_voucher_service = JournalVoucherService()
