"""
Pydantic v2 schemas for projects and project files.

Separation:
  • *Create / *Update — what the CLIENT sends.
  • *Out               — what the SERVER returns (from_attributes=True so
                         ORM rows map without manual conversion).
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

FileType = Literal[
    "component", "screen", "config", "style", "util",
    "hook", "service", "type", "asset",
]
ProjectStatus = Literal["draft", "generating", "ready", "building", "published", "error"]

_SLASHES_RE = re.compile(r"/+")


def normalize_path(path: str) -> str:
    """'/src//App.tsx ' -> 'src/App.tsx'."""
    return _SLASHES_RE.sub("/", path.strip()).strip("/")


def find_path_conflict(paths: Iterable[str]) -> str | None:
    """
    First path that cannot coexist with the others, or None.

    A path conflicts when it repeats an earlier one, or when it is used
    both as a file and as a folder ("a" next to "a/b").
    """
    paths = list(paths)
    seen: set[str] = set()
    for path in paths:
        if path in seen:
            return path
        seen.add(path)

    folders = {path.rsplit("/", 1)[0] for path in paths if "/" in path}
    for folder in list(folders):
        while "/" in folder:
            folder = folder.rsplit("/", 1)[0]
            folders.add(folder)
    for path in paths:
        if path in folders:
            return path
    return None


def _check_file_paths(files: list[ProjectFile]) -> None:
    conflict = find_path_conflict(f.path for f in files)
    if conflict is not None:
        raise ValueError(f"Conflicting file path: {conflict}")


# ── Files ───────────────────────────────────────────────────
class ProjectFile(BaseModel):
    """One source file of a generated app."""

    path: str = Field(..., min_length=1, max_length=500, examples=["src/screens/Home.tsx"])
    content: str = Field(default="")
    type: FileType = "component"

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        path = normalize_path(v)
        if not path:
            raise ValueError("File path must name a file")
        return path


class FileCreate(ProjectFile):
    """Payload for POST /projects/{id}/files."""


class FileContentUpdate(BaseModel):
    """Payload for PUT /projects/{id}/files/{path}."""

    content: str


class FileTreeNode(BaseModel):
    """Folder or file node of the IDE file tree."""

    name: str
    type: Literal["file", "folder"]
    path: str
    children: list[FileTreeNode] | None = None


class ProjectFilesOut(BaseModel):
    files: list[ProjectFile]
    tree: list[FileTreeNode]


# ── Projects ────────────────────────────────────────────────
class ProjectCreate(BaseModel):
    """Payload for POST /projects, usually sent right after generation."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    status: ProjectStatus = "draft"
    files: list[ProjectFile] = Field(default_factory=list)
    expo_config: dict[str, Any] = Field(default_factory=dict)
    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict)

    @field_validator("files")
    @classmethod
    def validate_files(cls, v: list[ProjectFile]) -> list[ProjectFile]:
        _check_file_paths(v)
        return v


class ProjectUpdate(BaseModel):
    """Payload for PUT /projects/{id}; only supplied fields change."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    status: ProjectStatus | None = None
    files: list[ProjectFile] | None = None
    expo_config: dict[str, Any] | None = None
    dependencies: dict[str, str] | None = None

    @field_validator("files")
    @classmethod
    def validate_files(cls, v: list[ProjectFile] | None) -> list[ProjectFile] | None:
        if v is not None:
            _check_file_paths(v)
        return v


class ProjectSummary(BaseModel):
    """List-view row: no files or config."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    slug: str
    description: str | None
    status: str
    created_at: datetime
    updated_at: datetime


class ProjectOut(ProjectSummary):
    files: list[ProjectFile]
    expo_config: dict[str, Any]
    dependencies: dict[str, str]
    dev_dependencies: dict[str, str]


class ProjectList(BaseModel):
    projects: list[ProjectSummary]
    total: int
    limit: int
    offset: int


class CloneRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)


class ProjectExport(BaseModel):
    """Everything the client needs to zip an Expo project."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    files: list[ProjectFile]
    app_json: dict[str, Any] = Field(alias="appJson")
    package_json: dict[str, Any] = Field(alias="packageJson")
