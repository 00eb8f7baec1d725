from __future__ import annotations

import logging
from collections.abc import Generator
from decimal import Decimal
from pathlib import Path

import pytest

from erpcore.bootstrap import bootstrap, session_scope
from erpcore.context import get_correlation_id
from erpcore.core.config import get_settings
from erpcore.core.database import Base
from erpcore.core.events import InternalEvent, event_bus
from erpcore.platform.ledger.seed import CASH_ACCOUNT
from erpcore.platform.ledger.service import ledger_service
from erpcore.platform.sequence.service import sequence_service


@pytest.fixture(autouse=True)
def setup_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setattr(logging.getLogger(), "_erpcore_configured", True, raising=False)
    monkeypatch.setenv("METRICS_ENABLED", "false")
    monkeypatch.setenv("OTEL_ENABLED", "false")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_bootstrap_prepares_a_fresh_database(tmp_path: Path) -> None:
    started: list[InternalEvent] = []
    with event_bus.subscription("system.started", started.append):
        engine = bootstrap(f"sqlite+pysqlite:///{tmp_path / 'books.db'}", create_schema=True)

    try:
        with session_scope("boot-1") as session:
            assert get_correlation_id() == "boot-1"
            assert ledger_service.get_account_by_code(session, CASH_ACCOUNT).current_balance == Decimal("0")
            assert sequence_service.get_sequence(session, "invoice").current_value == 0
        assert get_correlation_id() is None
        assert started and started[0].payload["app_name"] == "erpcore"

        bootstrap(f"sqlite+pysqlite:///{tmp_path / 'books.db'}")
        with session_scope() as session:
            assert len(sequence_service.list_sequences(session)) == 10
            assert get_correlation_id() is not None
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
