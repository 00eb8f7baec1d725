from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SequenceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    prefix: str = Field(default="", max_length=16)
    current_value: int = Field(default=0, ge=0)
    pad_length: int = Field(default=6, ge=0, le=18)
    is_active: bool = True
    description: str | None = None


class SequenceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    prefix: str
    current_value: int
    pad_length: int
    is_active: bool
    description: str | None
    updated_at: datetime
