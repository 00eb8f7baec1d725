from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from erpcore.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Sequence(Base):
    __tablename__ = "sequences"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    prefix: Mapped[str] = mapped_column(String(16), nullable=False, default="", server_default="")
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    pad_length: Mapped[int] = mapped_column(Integer, nullable=False, default=6, server_default="6")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("current_value >= 0", name="ck_sequences_current_value_nonnegative"),
        CheckConstraint("pad_length >= 0", name="ck_sequences_pad_length_nonnegative"),
    )
