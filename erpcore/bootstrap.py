from __future__ import annotations

import logging
import uuid
from collections.abc import Generator
from contextlib import contextmanager

from prometheus_client import start_http_server
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from erpcore.context import reset_correlation_id, set_correlation_id
from erpcore.core.config import get_settings
from erpcore.core.database import Base, SessionLocal, build_engine, get_session
from erpcore.core.events import InternalEvent, event_bus
from erpcore.logging import configure_logging
from erpcore.otel import setup_otel
from erpcore.platform.ledger.seed import seed_reference_data

logger = logging.getLogger("erpcore.lifecycle")
_metrics_server_started = False
_subscriptions_registered = False


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system.started", extra={"status": event.payload.get("app_env")})


def bootstrap(database_url: str | None = None, *, create_schema: bool = False, seed: bool = True) -> Engine:
    """Wire logging, tracing and metrics, bind ``SessionLocal`` and load reference data.

    ``create_schema`` builds tables straight from the models for throwaway
    databases; real deployments run the Alembic migrations instead.
    """
    global _metrics_server_started, _subscriptions_registered

    configure_logging()
    settings = get_settings()
    if settings.otel_enabled:
        setup_otel(settings.app_name, True)
    if settings.metrics_enabled and not _metrics_server_started:
        start_http_server(settings.metrics_port)
        _metrics_server_started = True

    engine = build_engine(database_url)
    SessionLocal.configure(bind=engine)
    if create_schema:
        Base.metadata.create_all(bind=engine)
    if seed:
        for session in get_session(engine):
            seed_reference_data(session)

    if not _subscriptions_registered:
        event_bus.subscribe("system.started", _on_system_started)
        _subscriptions_registered = True
    event_bus.publish("system.started", {"app_name": settings.app_name, "app_env": settings.app_env})
    return engine


@contextmanager
def session_scope(correlation_id: str | None = None) -> Generator[Session, None, None]:
    token = set_correlation_id(correlation_id or str(uuid.uuid4()))
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        reset_correlation_id(token)
