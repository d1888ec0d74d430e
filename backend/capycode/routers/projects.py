"""
Projects router — CRUD for a user's generated apps and their files.

Every query is scoped to the authenticated user: a project owned by
someone else is indistinguishable from a missing one (404).

Endpoints:
  GET    /projects                    — paginated list, newest update first
  POST   /projects                    — create
  GET    /projects/{id}               — full project
  PUT    /projects/{id}               — partial update
  DELETE /projects/{id}               — delete
  GET    /projects/{id}/files         — files + IDE tree
  POST   /projects/{id}/files         — add one file (400 if path exists)
  PUT    /projects/{id}/files/{path}  — replace one file's content
  DELETE /projects/{id}/files/{path}  — remove one file
  GET    /projects/{id}/export        — app.json + package.json for zipping
  POST   /projects/{id}/clone         — copy under a new name
"""

import logging
import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from capycode.auth.dependencies import AuthContext
from capycode.auth.rate_limit import enforce_rate_limit
from capycode.core.database import get_db_session
from capycode.models.project import Project
from capycode.schemas.project import (
    CloneRequest,
    FileContentUpdate,
    FileCreate,
    ProjectCreate,
    ProjectExport,
    ProjectFilesOut,
    ProjectList,
    ProjectOut,
    ProjectUpdate,
)
from capycode.services import project_files

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Projects"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Auth = Annotated[AuthContext, Depends(enforce_rate_limit)]

_NOT_FOUND = HTTPException(
    status_code=status.HTTP_404_NOT_FOUND,
    detail="Project not found.",
)


async def _get_owned_project(
    session: AsyncSession, project_id: uuid.UUID, user_id: uuid.UUID
) -> Project:
    project = await project_files.get_owned_project(session, project_id, user_id)
    if project is None:
        raise _NOT_FOUND
    return project


async def _save(session: AsyncSession, project: Project, action: str) -> Project:
    """Commit + refresh, translating any DB failure into a generic 500."""
    try:
        session.add(project)
        await session.commit()
        await session.refresh(project)
    except Exception:
        await session.rollback()
        logger.exception("Failed to %s project %s", action, project.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to {action} the project. Please try again.",
        )
    return project


# ── Projects ────────────────────────────────────────────────
@router.get(
    "",
    response_model=ProjectList,
    summary="List the user's projects",
)
async def list_projects(
    session: DbSession,
    auth: Auth,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> dict[str, Any]:
    owned = Project.user_id == auth.user_id

    total = await session.scalar(select(func.count()).select_from(Project).where(owned))
    result = await session.execute(
        select(Project)
        .where(owned)
        .order_by(Project.updated_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return {
        "projects": result.scalars().all(),
        "total": total or 0,
        "limit": limit,
        "offset": offset,
    }


@router.post(
    "",
    response_model=ProjectOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a project",
)
async def create_project(
    payload: ProjectCreate,
    session: DbSession,
    auth: Auth,
) -> Project:
    project = Project(
        user_id=auth.user_id,
        name=payload.name,
        slug=project_files.slugify(payload.name),
        description=payload.description,
        status=payload.status,
        files=[f.model_dump() for f in payload.files],
        expo_config=payload.expo_config,
        dependencies=payload.dependencies,
        dev_dependencies=payload.dev_dependencies,
    )
    project = await _save(session, project, "create")
    logger.info("Project %s created by user %s", project.id, auth.user_id)
    return project


@router.get(
    "/{project_id}",
    response_model=ProjectOut,
    summary="Get one project with its files",
)
async def get_project(project_id: uuid.UUID, session: DbSession, auth: Auth) -> Project:
    return await _get_owned_project(session, project_id, auth.user_id)


@router.put(
    "/{project_id}",
    response_model=ProjectOut,
    summary="Update a project",
    description="Only the fields present in the body are changed.",
)
async def update_project(
    project_id: uuid.UUID,
    payload: ProjectUpdate,
    session: DbSession,
    auth: Auth,
) -> Project:
    project = await _get_owned_project(session, project_id, auth.user_id)

    changes = payload.model_dump(exclude_unset=True)
    if "name" in changes and changes["name"] is not None:
        project.name = changes["name"]
        project.slug = project_files.slugify(changes["name"])
    if "description" in changes:
        project.description = changes["description"]
    if changes.get("status") is not None:
        project.status = changes["status"]
    if payload.files is not None:
        project.files = [f.model_dump() for f in payload.files]
    if payload.expo_config is not None:
        project.expo_config = payload.expo_config
    if payload.dependencies is not None:
        project.dependencies = payload.dependencies

    return await _save(session, project, "update")


@router.delete(
    "/{project_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a project",
)
async def delete_project(project_id: uuid.UUID, session: DbSession, auth: Auth) -> Response:
    project = await _get_owned_project(session, project_id, auth.user_id)
    try:
        await session.delete(project)
        await session.commit()
    except Exception:
        await session.rollback()
        logger.exception("Failed to delete project %s", project_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete the project. Please try again.",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Files ───────────────────────────────────────────────────
@router.get(
    "/{project_id}/files",
    response_model=ProjectFilesOut,
    summary="Project files plus the folder tree",
)
async def get_project_files(
    project_id: uuid.UUID, session: DbSession, auth: Auth
) -> dict[str, Any]:
    project = await _get_owned_project(session, project_id, auth.user_id)
    return {
        "files": project.files,
        "tree": project_files.build_file_tree(project.files),
    }


@router.post(
    "/{project_id}/files",
    response_model=ProjectFilesOut,
    status_code=status.HTTP_201_CREATED,
    summary="Add a file",
)
async def add_project_file(
    project_id: uuid.UUID,
    payload: FileCreate,
    session: DbSession,
    auth: Auth,
) -> dict[str, Any]:
    project = await _get_owned_project(session, project_id, auth.user_id)
    try:
        project.files = project_files.add_file(project.files, payload.model_dump())
    except FileExistsError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A file or folder with this path already exists.",
        )

    project = await _save(session, project, "update")
    return {"files": project.files, "tree": project_files.build_file_tree(project.files)}


@router.put(
    "/{project_id}/files/{file_path:path}",
    response_model=ProjectFilesOut,
    summary="Replace a file's content",
)
async def update_project_file(
    project_id: uuid.UUID,
    file_path: str,
    payload: FileContentUpdate,
    session: DbSession,
    auth: Auth,
) -> dict[str, Any]:
    project = await _get_owned_project(session, project_id, auth.user_id)
    try:
        project.files = project_files.update_file(project.files, file_path, payload.content)
    except FileNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found.")

    project = await _save(session, project, "update")
    return {"files": project.files, "tree": project_files.build_file_tree(project.files)}


@router.delete(
    "/{project_id}/files/{file_path:path}",
    response_model=ProjectFilesOut,
    summary="Remove a file",
)
async def delete_project_file(
    project_id: uuid.UUID,
    file_path: str,
    session: DbSession,
    auth: Auth,
) -> dict[str, Any]:
    project = await _get_owned_project(session, project_id, auth.user_id)
    try:
        project.files = project_files.remove_file(project.files, file_path)
    except FileNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found.")

    project = await _save(session, project, "update")
    return {"files": project.files, "tree": project_files.build_file_tree(project.files)}


# ── Export / clone ──────────────────────────────────────────
@router.get(
    "/{project_id}/export",
    response_model=ProjectExport,
    response_model_by_alias=True,
    summary="Export data for client-side ZIP creation",
)
async def export_project(
    project_id: uuid.UUID, session: DbSession, auth: Auth
) -> dict[str, Any]:
    project = await _get_owned_project(session, project_id, auth.user_id)
    return project_files.build_export(project)


@router.post(
    "/{project_id}/clone",
    response_model=ProjectOut,
    status_code=status.HTTP_201_CREATED,
    summary="Clone a project",
    description="Defaults the new name to '<name> (Copy)'. The clone starts as 'ready'.",
)
async def clone_project(
    project_id: uuid.UUID,
    session: DbSession,
    auth: Auth,
    payload: CloneRequest | None = None,
) -> Project:
    source = await _get_owned_project(session, project_id, auth.user_id)

    name = ((payload.name if payload else None) or f"{source.name} (Copy)")[:100]
    slug = project_files.slugify(name)
    clone = Project(
        user_id=auth.user_id,
        name=name,
        slug=slug,
        description=source.description,
        status="ready",
        files=list(source.files),
        expo_config=project_files.clone_expo_config(source.expo_config or {}, name, slug),
        dependencies=dict(source.dependencies or {}),
        dev_dependencies=dict(source.dev_dependencies or {}),
    )
    clone = await _save(session, clone, "clone")
    logger.info("Project %s cloned to %s", project_id, clone.id)
    return clone
