from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from erpcore.core.config import get_settings


class Base(DeclarativeBase):
    pass


def build_engine(database_url: str | None = None, *, echo: bool | None = None) -> Engine:
    settings = get_settings()
    url = database_url or settings.database_url
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(
        url,
        echo=settings.database_echo if echo is None else echo,
        pool_pre_ping=not url.startswith("sqlite"),
        connect_args=connect_args,
    )


SessionLocal = sessionmaker(autocommit=False, autoflush=False)


def get_session(engine: Engine | None = None) -> Generator[Session, None, None]:
    session = SessionLocal(bind=engine or build_engine())
    try:
        yield session
    finally:
        session.close()
