"""
Pydantic v2 schemas for provider API keys.

The raw key is accepted on create and validate only; responses carry
the masked preview, never the key itself.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Provider = Literal["openai", "anthropic", "google", "custom"]


class ProviderKeyCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100, examples=["My Gemini key"])
    provider: Provider
    key: str = Field(..., min_length=8, max_length=512)


class ProviderKeyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    provider: str
    key_preview: str
    status: str
    error_message: str | None
    last_checked_at: datetime | None
    created_at: datetime


class KeyValidationRequest(BaseModel):
    """Stateless validation of a key the user has not saved yet."""

    key: str = Field(..., min_length=1)
    provider: Provider


class KeyValidationOut(BaseModel):
    valid: bool
    error: str | None = None
    is_quota: bool = False
    hint: str | None = Field(
        default=None,
        description="Human-readable guidance derived from the provider error.",
    )
