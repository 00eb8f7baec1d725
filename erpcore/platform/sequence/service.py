from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import InstrumentedAttribute, Session

from erpcore import audit
from erpcore.core.config import get_settings
from erpcore.errors import ConflictError, NotFoundError
from erpcore.metrics import observe_sequence_allocation
from erpcore.platform.sequence.models import Sequence, utcnow
from erpcore.platform.sequence.schemas import SequenceCreate, SequenceRead

logger = logging.getLogger("erpcore.sequence")

DEFAULT_SEQUENCES: list[tuple[str, str, str]] = [
    ("invoice", "SINV-", "Sale Invoice Numbering"),
    ("sale_return", "SRET-", "Sale Return Numbering"),
    ("purchase", "PUR-", "Purchase Bill Numbering"),
    ("debit_note", "DN-", "Purchase Return Numbering"),
    ("journal", "JV-", "Journal Voucher Numbering"),
    ("quotation", "QUO-", "Quotation Numbering"),
    ("expense", "EXP-", "Expense Numbering"),
    ("adjustment", "ADJ-", "Stock Adjustment Numbering"),
    ("customer", "CUST-", "Customer Code Numbering"),
    ("supplier", "SUPP-", "Supplier Code Numbering"),
]


def format_number(prefix: str, value: int, pad_length: int) -> str:
    return f"{prefix}{str(value).zfill(pad_length)}"


def parse_number(prefix: str, number: str) -> int | None:
    if not number.startswith(prefix):
        return None
    suffix = number[len(prefix):]
    if not suffix.isdigit():
        return None
    return int(suffix)


@dataclass(slots=True)
class SequenceService:
    def allocate(self, session: Session, name: str) -> str:
        """Issue the next formatted value of ``name`` inside the caller's transaction.

        The increment is a single UPDATE, so the row stays write-locked until the
        caller commits or rolls back and concurrent allocators for the same name
        queue behind it. A rollback discards the value and leaves a gap.
        """
        stmt = (
            update(Sequence)
            .where(Sequence.name == name, Sequence.is_active.is_(True))
            .values(current_value=Sequence.current_value + 1, updated_at=utcnow())
            .returning(Sequence.prefix, Sequence.current_value, Sequence.pad_length)
        )
        row = session.execute(stmt, execution_options={"synchronize_session": False}).one_or_none()
        if row is None:
            raise NotFoundError("sequence", name)

        prefix, value, pad_length = row
        observe_sequence_allocation(name)
        number = format_number(prefix, int(value), int(pad_length))
        logger.debug("sequence.allocated", extra={"sequence_name": name, "document_number": number})
        return number

    def get_sequence(self, session: Session, name: str) -> SequenceRead:
        return SequenceRead.model_validate(self._get(session, name))

    def list_sequences(self, session: Session) -> list[SequenceRead]:
        rows = session.scalars(
            select(Sequence).order_by(Sequence.name.asc()).execution_options(populate_existing=True)
        ).all()
        return [SequenceRead.model_validate(row) for row in rows]

    def create_sequence(self, session: Session, dto: SequenceCreate) -> SequenceRead:
        sequence = Sequence(**dto.model_dump(mode="python"))
        session.add(sequence)
        try:
            session.flush()
        except IntegrityError as exc:
            session.rollback()
            raise ConflictError(f"sequence '{dto.name}' already exists") from exc
        return SequenceRead.model_validate(sequence)

    def seed_default_sequences(self, session: Session) -> list[SequenceRead]:
        pad_length = get_settings().sequence_pad_length
        existing = set(session.scalars(select(Sequence.name)).all())

        created: list[Sequence] = []
        for name, prefix, description in DEFAULT_SEQUENCES:
            if name in existing:
                continue
            sequence = Sequence(
                name=name,
                prefix=prefix,
                current_value=0,
                pad_length=pad_length,
                is_active=True,
                description=description,
            )
            session.add(sequence)
            created.append(sequence)

        session.commit()
        return [SequenceRead.model_validate(item) for item in created]

    def resync(
        self,
        session: Session,
        name: str,
        column: InstrumentedAttribute[str],
        *,
        allow_decrease: bool = False,
        actor_user_id: str = "system",
    ) -> int:
        """Align ``current_value`` with the highest number already persisted in ``column``.

        Without ``allow_decrease`` the counter only moves forward, so a value that
        was issued once is never issued again. Administrative repair after data
        cleanup passes ``allow_decrease=True``.
        """
        sequence = session.scalar(
            select(Sequence)
            .where(Sequence.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if sequence is None:
            raise NotFoundError("sequence", name)

        numbers = session.scalars(select(column).where(column.like(f"{sequence.prefix}%"))).all()
        parsed = [parse_number(sequence.prefix, str(item)) for item in numbers]
        max_found = max((value for value in parsed if value is not None), default=0)

        previous = int(sequence.current_value)
        target = max_found if allow_decrease else max(previous, max_found)
        if target != previous:
            sequence.current_value = target
            sequence.updated_at = utcnow()
            session.flush()

        logger.warning(
            "sequence.resynced",
            extra={"sequence_name": name, "previous_value": previous, "current_value": target},
        )
        audit.record(
            actor_user_id=actor_user_id,
            entity_type="sequence",
            entity_id=name,
            action="sequence.resynced",
            before={"current_value": previous},
            after={"current_value": target},
        )
        return target

    def _get(self, session: Session, name: str) -> Sequence:
        sequence = session.get(Sequence, name, populate_existing=True)
        if sequence is None:
            raise NotFoundError("sequence", name)
        return sequence


sequence_service = SequenceService()
