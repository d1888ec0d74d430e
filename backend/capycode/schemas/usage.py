"""
Pydantic v2 response schemas for usage statistics.

All schemas use from_attributes=True so Row objects returned by Core
select() map directly.
"""

from __future__ import annotations

import datetime
import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class DailyUsageOut(BaseModel):
    """Event count and tokens for one (day, kind)."""

    model_config = ConfigDict(from_attributes=True)

    date: datetime.date
    kind: str
    event_count: int
    total_tokens: int


class UsageSummaryOut(BaseModel):
    """All-time totals for the current user."""

    projects: int
    sandboxes: int
    web_previews: int
    generations: int
    key_validations: int
    total_tokens: int


class UsageEventCreate(BaseModel):
    """Client-reported generation usage (POST /usage/events)."""

    kind: Literal["generation"] = "generation"
    provider: str | None = Field(default=None, max_length=20)
    tokens: int = Field(default=0, ge=0)
    project_id: uuid.UUID | None = None


class UsageEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    kind: str
    provider: str | None
    tokens: int
    project_id: uuid.UUID | None
