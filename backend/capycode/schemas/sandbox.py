"""
Pydantic v2 schemas for sandbox session endpoints.

Sandbox sessions live in process memory, so the *Out schemas are built
from the service's dataclasses with from_attributes=True.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from capycode.schemas.project import ProjectFile

LogLevel = Literal["info", "warn", "error", "debug"]


class SandboxCreate(BaseModel):
    """Payload for POST /sandbox/create."""

    project_id: str = Field(..., min_length=1, alias="projectId")
    files: list[ProjectFile]
    dependencies: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


class SandboxFilesUpdate(BaseModel):
    """Payload for PUT /sandbox/{id}/files."""

    files: list[ProjectFile] = Field(..., min_length=1)


class SandboxInfo(BaseModel):
    """Connection details returned right after creation."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    status: str
    dev_server_url: str
    expo_url: str
    qr_code_data: str
    metro_port: int


class SandboxCreated(BaseModel):
    success: bool = True
    sandbox: SandboxInfo


class SandboxStatus(SandboxInfo):
    files_count: int
    logs_count: int
    created_at: datetime
    last_activity_at: datetime
    expires_at: datetime


class CurrentSandbox(BaseModel):
    sandbox: SandboxInfo | None


class SandboxLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    timestamp: datetime
    level: LogLevel
    message: str
    source: Literal["expo", "metro", "app", "system"]
    metadata: dict[str, Any] | None = None


class SandboxLogs(BaseModel):
    logs: list[SandboxLogOut]


class SandboxStats(BaseModel):
    active_sandboxes: int
    total_logs: int
    avg_session_duration: int = Field(description="Seconds, rounded.")


class ActionResult(BaseModel):
    success: bool = True
    message: str
