"""
Pydantic v2 schemas for preview endpoints (web preview sessions and
synthesized device mocks).
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from capycode.schemas.project import ProjectFile

DeviceType = Literal["iphone", "android", "ipad"]


class WebPreviewCreate(BaseModel):
    project_id: uuid.UUID = Field(..., alias="projectId")

    model_config = ConfigDict(populate_by_name=True)


class WebPreviewCreated(BaseModel):
    success: bool = True
    session_id: str
    preview_url: str
    iframe_url: str


class WebPreviewUpdate(BaseModel):
    files: list[ProjectFile]


class WebPreviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    url: str
    iframe_url: str
    bundle_url: str
    status: Literal["building", "ready", "error"]
    files: list[ProjectFile]
    dependencies: dict[str, str]
    created_at: datetime
    expires_at: datetime


class RenderRequest(BaseModel):
    """Payload for POST /preview/render. Nothing is stored."""

    files: list[ProjectFile]
    app_name: str = Field(default="My App", max_length=100)
    device: DeviceType = "iphone"


class ClassifyRequest(BaseModel):
    source: str


class ClassificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    app_type: str
    accent_color: str
    title: str | None
