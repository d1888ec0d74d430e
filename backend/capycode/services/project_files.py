"""
Helpers over a project's file array (stored as JSONB on projects.files).

Every mutator returns a NEW list so that reassigning it to the ORM
attribute marks the column dirty; JSONB lists mutated in place are not
tracked by SQLAlchemy.
"""

from __future__ import annotations

import re
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from capycode.models.project import Project
from capycode.schemas.project import find_path_conflict, normalize_path

_WHITESPACE_RE = re.compile(r"\s+")
_SLUG_INVALID_RE = re.compile(r"[^a-z0-9-]")

EXPO_SCRIPTS = {
    "start": "expo start",
    "android": "expo start --android",
    "ios": "expo start --ios",
    "web": "expo start --web",
}


def slugify(name: str) -> str:
    return _SLUG_INVALID_RE.sub("", _WHITESPACE_RE.sub("-", name.lower()))


def build_file_tree(files: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Nest flat file paths into folder/file nodes for the IDE explorer.

    Files are sorted by path first, so siblings come out in path order.
    A path prefix only ever gets one node, however many files share it.
    A file never gets children: a path nested under an existing file
    node is left out of the tree.
    """
    tree: list[dict[str, Any]] = []
    nodes: dict[str, dict[str, Any]] = {}

    for file in sorted(files, key=lambda f: normalize_path(f["path"])):
        path = normalize_path(file["path"])
        if not path:
            continue
        parts = path.split("/")
        current = ""
        for i, part in enumerate(parts):
            parent = current
            current = f"{current}/{part}" if current else part
            existing = nodes.get(current)
            if existing is not None:
                if existing["type"] == "file":
                    break
                continue

            is_file = i == len(parts) - 1
            node: dict[str, Any] = {
                "name": part,
                "type": "file" if is_file else "folder",
                "path": current,
            }
            if not is_file:
                node["children"] = []
            nodes[current] = node

            if parent:
                nodes[parent]["children"].append(node)
            else:
                tree.append(node)

    return tree


def _index_of(files: list[dict[str, Any]], path: str) -> int:
    path = normalize_path(path)
    for i, file in enumerate(files):
        if file["path"] == path:
            return i
    return -1


def add_file(files: list[dict[str, Any]], new_file: dict[str, Any]) -> list[dict[str, Any]]:
    """Append `new_file`; FileExistsError if its path clashes with a file or folder."""
    new_file = {**new_file, "path": normalize_path(new_file["path"])}
    if find_path_conflict([*(f["path"] for f in files), new_file["path"]]) is not None:
        raise FileExistsError(new_file["path"])
    return [*files, new_file]


def update_file(files: list[dict[str, Any]], path: str, content: str) -> list[dict[str, Any]]:
    index = _index_of(files, path)
    if index < 0:
        raise FileNotFoundError(path)
    updated = list(files)
    updated[index] = {**files[index], "content": content}
    return updated


def remove_file(files: list[dict[str, Any]], path: str) -> list[dict[str, Any]]:
    index = _index_of(files, path)
    if index < 0:
        raise FileNotFoundError(path)
    return files[:index] + files[index + 1:]


def clone_expo_config(expo_config: dict[str, Any], name: str, slug: str) -> dict[str, Any]:
    return {**expo_config, "name": name, "slug": slug}


def build_export(project: Project) -> dict[str, Any]:
    """Everything the client needs to zip the project as a runnable Expo app."""
    expo_config = project.expo_config or {}
    return {
        "name": project.slug,
        "files": project.files,
        "appJson": {"expo": expo_config},
        "packageJson": {
            "name": project.slug,
            "version": expo_config.get("version") or "1.0.0",
            "main": "node_modules/expo/AppEntry.js",
            "scripts": dict(EXPO_SCRIPTS),
            "dependencies": project.dependencies,
            "devDependencies": project.dev_dependencies,
            "private": True,
        },
    }


async def get_owned_project(
    session: AsyncSession, project_id: uuid.UUID, user_id: uuid.UUID
) -> Project | None:
    """The project if it exists AND belongs to the user; otherwise None."""
    result = await session.execute(
        select(Project).where(Project.id == project_id, Project.user_id == user_id)
    )
    return result.scalar_one_or_none()
