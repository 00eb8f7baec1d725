from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from erpcore.platform.ledger.schemas import JournalEntryInput


class ManualJournalCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    journal_date: date | None = None
    narration: str = Field(min_length=1)
    reference_number: str | None = None
    entries: list[JournalEntryInput] = Field(min_length=2)
    created_by: str | None = None
