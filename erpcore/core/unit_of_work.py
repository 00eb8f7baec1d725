"""Commit-once wrapper used by every orchestrator.

A duplicate document number surfaces as an ``IntegrityError`` on flush or
commit when a sequence row has fallen behind the numbers already persisted.
``run_unit_of_work`` rolls back, moves the sequence forward to the highest
persisted number and replays the whole operation, up to a bounded number of
attempts.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy import UniqueConstraint
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import InstrumentedAttribute, Session

from erpcore import audit
from erpcore.core.config import get_settings
from erpcore.errors import DuplicateDocumentNumberError
from erpcore.metrics import observe_document_number_retry, observe_unit_of_work
from erpcore.otel import operation_span
from erpcore.platform.ledger.models import Journal
from erpcore.platform.sequence.service import sequence_service

logger = logging.getLogger("erpcore.uow")

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class DocumentNumbering:
    """Ties a sequence to the unique column that stores the numbers it issues."""

    sequence_name: str
    column: InstrumentedAttribute[str]
    # Constraints on rows whose keys embed the issued number.
    aliases: tuple[str, ...] = ()

    def markers(self) -> tuple[str, ...]:
        table = self.column.property.parent.local_table
        column_name = self.column.property.columns[0].name
        names = [f"{table.name}.{column_name}", f"{table.name}_{column_name}_key"]
        for constraint in table.constraints:
            if isinstance(constraint, UniqueConstraint) and constraint.name and column_name in constraint.columns:
                names.append(str(constraint.name))
        names.extend(self.aliases)
        return tuple(names)

    def matches(self, exc: IntegrityError) -> bool:
        message = str(exc.orig)
        return any(marker in message for marker in self.markers())


JOURNAL_NUMBERING = DocumentNumbering("journal", Journal.number)


def run_unit_of_work(
    session: Session,
    work: Callable[[], T],
    *,
    operation: str,
    numberings: Iterable[DocumentNumbering] = (),
    max_attempts: int | None = None,
) -> T:
    """Run ``work`` and commit, replaying it after a duplicate document number.

    Any other exception rolls the session back and propagates unchanged.
    """
    attempts_allowed = get_settings().document_number_max_attempts if max_attempts is None else max_attempts
    if attempts_allowed < 1:
        raise ValueError(f"max_attempts must be at least 1, got {attempts_allowed}")
    candidates = [*numberings, JOURNAL_NUMBERING]
    last_numbering = JOURNAL_NUMBERING

    for attempt in range(1, attempts_allowed + 1):
        started = time.perf_counter()
        with operation_span(operation, attempt) as span:
            try:
                with audit.deferred() as pending:
                    result = work()
                    session.commit()
            except IntegrityError as exc:
                session.rollback()
                numbering = next((item for item in candidates if item.matches(exc)), None)
                if numbering is None:
                    span.set_attribute("erpcore.status", "error")
                    observe_unit_of_work(operation, "error", time.perf_counter() - started)
                    raise

                span.set_attribute("erpcore.status", "retry")
                span.set_attribute("erpcore.sequence_name", numbering.sequence_name)
                observe_unit_of_work(operation, "retry", time.perf_counter() - started)
                observe_document_number_retry(numbering.sequence_name)
                logger.warning(
                    "uow.duplicate_document_number",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "max_attempts": attempts_allowed,
                        "sequence_name": numbering.sequence_name,
                        "error": str(exc.orig),
                    },
                )
                last_numbering = numbering
                _resync(session, numbering)
                continue
            except Exception:
                session.rollback()
                span.set_attribute("erpcore.status", "error")
                observe_unit_of_work(operation, "error", time.perf_counter() - started)
                raise

            audit.keep(pending)
            duration = time.perf_counter() - started
            span.set_attribute("erpcore.status", "ok")
            observe_unit_of_work(operation, "ok", duration)
            logger.info(
                "uow.committed",
                extra={"operation": operation, "attempt": attempt, "duration_ms": round(duration * 1000, 3)},
            )
            return result

    logger.error(
        "uow.document_number_exhausted",
        extra={"operation": operation, "sequence_name": last_numbering.sequence_name, "max_attempts": attempts_allowed},
    )
    raise DuplicateDocumentNumberError(last_numbering.sequence_name, attempts_allowed)


def _resync(session: Session, numbering: DocumentNumbering) -> None:
    try:
        sequence_service.resync(session, numbering.sequence_name, numbering.column)
        session.commit()
    except Exception:
        session.rollback()
        raise
