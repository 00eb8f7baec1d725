from __future__ import annotations

import threading
from collections.abc import Generator
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from erpcore import audit
from erpcore.core.database import Base
from erpcore.errors import ConflictError, NotFoundError
from erpcore.platform.ledger.models import Journal
from erpcore.platform.sequence.models import Sequence
from erpcore.platform.sequence.schemas import SequenceCreate
from erpcore.platform.sequence.service import SequenceService, format_number, parse_number


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def test_number_formatting_pads_and_parses() -> None:
    assert format_number("SINV-", 42, 6) == "SINV-000042"
    assert format_number("X", 1234567, 3) == "X1234567"
    assert parse_number("SINV-", "SINV-000042") == 42
    assert parse_number("SINV-", "PUR-000042") is None
    assert parse_number("SINV-", "SINV-00A1") is None


def test_allocate_issues_consecutive_numbers(db_session: Session) -> None:
    service = SequenceService()
    service.create_sequence(db_session, SequenceCreate(name="invoice", prefix="SINV-", pad_length=6))
    db_session.commit()

    first = service.allocate(db_session, "invoice")
    second = service.allocate(db_session, "invoice")
    db_session.commit()

    assert first == "SINV-000001"
    assert second == "SINV-000002"
    assert service.get_sequence(db_session, "invoice").current_value == 2


def test_allocate_unknown_or_inactive_sequence_raises(db_session: Session) -> None:
    service = SequenceService()
    service.create_sequence(db_session, SequenceCreate(name="dormant", prefix="D-", is_active=False))
    db_session.commit()

    with pytest.raises(NotFoundError):
        service.allocate(db_session, "missing")
    with pytest.raises(NotFoundError):
        service.allocate(db_session, "dormant")


def test_rolled_back_allocation_leaves_counter_unchanged(db_session: Session) -> None:
    service = SequenceService()
    service.create_sequence(db_session, SequenceCreate(name="journal", prefix="JV-"))
    db_session.commit()

    service.allocate(db_session, "journal")
    db_session.rollback()

    assert service.allocate(db_session, "journal") == "JV-000001"


def test_create_sequence_rejects_duplicate_name(db_session: Session) -> None:
    service = SequenceService()
    service.create_sequence(db_session, SequenceCreate(name="quotation", prefix="QUO-"))
    db_session.commit()

    with pytest.raises(ConflictError):
        service.create_sequence(db_session, SequenceCreate(name="quotation", prefix="Q-"))

    assert service.get_sequence(db_session, "quotation").prefix == "QUO-"
    service.create_sequence(db_session, SequenceCreate(name="estimate", prefix="EST-"))
    db_session.commit()
    assert service.allocate(db_session, "estimate") == "EST-000001"


def test_seed_default_sequences_is_idempotent(db_session: Session) -> None:
    service = SequenceService()
    created = service.seed_default_sequences(db_session)
    again = service.seed_default_sequences(db_session)

    names = {item.name for item in service.list_sequences(db_session)}
    assert {"invoice", "sale_return", "purchase", "debit_note", "journal", "adjustment"} <= names
    assert len(created) == len(names)
    assert again == []


def _insert_journal_number(session: Session, number: str) -> None:
    session.add(
        Journal(
            number=number,
            journal_date=date(2026, 1, 1),
            journal_type="manual",
            total_debit=Decimal("0"),
            total_credit=Decimal("0"),
        )
    )
    session.flush()


def test_resync_moves_counter_forward_to_highest_persisted_number(db_session: Session) -> None:
    service = SequenceService()
    service.create_sequence(db_session, SequenceCreate(name="journal", prefix="JV-"))
    _insert_journal_number(db_session, "JV-000007")
    _insert_journal_number(db_session, "JV-000003")
    _insert_journal_number(db_session, "MANUAL-99")
    db_session.commit()

    assert service.resync(db_session, "journal", Journal.number) == 7
    db_session.commit()
    assert service.allocate(db_session, "journal") == "JV-000008"


def test_resync_never_lowers_counter_without_allow_decrease(db_session: Session) -> None:
    service = SequenceService()
    service.create_sequence(db_session, SequenceCreate(name="journal", prefix="JV-", current_value=20))
    _insert_journal_number(db_session, "JV-000005")
    db_session.commit()

    assert service.resync(db_session, "journal", Journal.number) == 20
    assert service.resync(db_session, "journal", Journal.number, allow_decrease=True) == 5
    db_session.commit()

    stored = db_session.scalar(select(Sequence.current_value).where(Sequence.name == "journal"))
    assert stored == 5

    resyncs = audit.entries_for("sequence", "journal", action="sequence.resynced")[-2:]
    assert resyncs[0]["changed_fields"] == []
    assert resyncs[1]["changed_fields"] == ["current_value"]
    assert resyncs[1]["before"] == {"current_value": 20}


def test_concurrent_allocations_are_unique(tmp_path: Path) -> None:
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'sequences.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    service = SequenceService()
    with SessionLocal() as session:
        service.create_sequence(session, SequenceCreate(name="invoice", prefix="SINV-"))
        session.commit()

    issued: list[str] = []
    lock = threading.Lock()
    errors: list[BaseException] = []

    def worker() -> None:
        try:
            for _ in range(10):
                with SessionLocal() as session:
                    number = service.allocate(session, "invoice")
                    session.commit()
                with lock:
                    issued.append(number)
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    try:
        assert errors == []
        assert len(issued) == 40
        assert len(set(issued)) == 40
        assert sorted(issued)[-1] == "SINV-000040"
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
