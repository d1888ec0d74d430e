"""
Preview router — browser previews of generated apps.

Two flavours:
  • Web preview sessions (react-native-web) with a TTL, created from a
    stored project and refreshed by pushing files.
  • Static device mocks synthesized from the source without running it
    (capycode.services.preview_synth).

Endpoints:
  POST /preview/web                     — start a web preview for a project
  GET  /preview/web/{id}                — session details
  PUT  /preview/web/{id}                — push new files (rebuild)
  GET  /preview/web/{id}/html           — HTML page for the preview iframe
  POST /preview/render                  — device mock for posted files
  POST /preview/classify                — app type / accent colour / title
  GET  /preview/projects/{id}/mock      — device mock for a stored project

The /html route takes no bearer token: iframes cannot send one, so the
random session id is the credential.
"""

import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from capycode.auth.dependencies import AuthContext
from capycode.auth.rate_limit import enforce_rate_limit
from capycode.core.database import get_db_session
from capycode.schemas.preview import (
    ClassificationOut,
    ClassifyRequest,
    DeviceType,
    RenderRequest,
    WebPreviewCreate,
    WebPreviewCreated,
    WebPreviewOut,
    WebPreviewUpdate,
)
from capycode.schemas.project import ProjectFile
from capycode.services import preview_synth
from capycode.services.project_files import get_owned_project
from capycode.services.usage import meter
from capycode.services.web_preview import (
    PreviewSessionNotFound,
    WebPreviewService,
    WebPreviewSession,
    get_preview_service,
)

router = APIRouter(tags=["Preview"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Auth = Annotated[AuthContext, Depends(enforce_rate_limit)]
Previews = Annotated[WebPreviewService, Depends(get_preview_service)]

_SESSION_NOT_FOUND = HTTPException(
    status_code=status.HTTP_404_NOT_FOUND,
    detail="Preview session not found.",
)
_PROJECT_NOT_FOUND = HTTPException(
    status_code=status.HTTP_404_NOT_FOUND,
    detail="Project not found.",
)


def _get_owned_session(
    service: WebPreviewService, session_id: str, auth: AuthContext
) -> WebPreviewSession:
    preview = service.get_session(session_id)
    if preview is None:
        raise _SESSION_NOT_FOUND
    if preview.user_id != str(auth.user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this preview.",
        )
    return preview


# ── Web preview sessions ────────────────────────────────────
@router.post(
    "/web",
    response_model=WebPreviewCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Start a web preview for a project",
)
async def create_web_preview(
    payload: WebPreviewCreate,
    session: DbSession,
    service: Previews,
    auth: Auth,
) -> dict[str, Any]:
    project = await get_owned_project(session, payload.project_id, auth.user_id)
    if project is None:
        raise _PROJECT_NOT_FOUND

    preview = service.create_session(
        project_id=str(project.id),
        files=[ProjectFile.model_validate(f) for f in project.files],
        dependencies=project.dependencies,
        user_id=str(auth.user_id),
    )
    await meter(
        session, auth.user_id, "web_preview",
        project_id=project.id,
        metadata={"session_id": preview.id},
    )
    return {
        "success": True,
        "session_id": preview.id,
        "preview_url": preview.url,
        "iframe_url": preview.iframe_url,
    }


@router.get(
    "/web/{session_id}",
    response_model=WebPreviewOut,
    summary="Web preview session details",
)
async def get_web_preview(session_id: str, service: Previews, auth: Auth) -> WebPreviewSession:
    return _get_owned_session(service, session_id, auth)


@router.put(
    "/web/{session_id}",
    response_model=WebPreviewOut,
    summary="Push new files to a web preview",
)
async def update_web_preview(
    session_id: str,
    payload: WebPreviewUpdate,
    service: Previews,
    auth: Auth,
) -> WebPreviewSession:
    _get_owned_session(service, session_id, auth)
    try:
        return service.update_session(session_id, payload.files)
    except PreviewSessionNotFound:
        raise _SESSION_NOT_FOUND


@router.get(
    "/web/{session_id}/html",
    response_class=HTMLResponse,
    summary="HTML page for the preview iframe",
)
async def get_web_preview_html(session_id: str, service: Previews) -> HTMLResponse:
    preview = service.get_session(session_id)
    if preview is None:
        raise _SESSION_NOT_FOUND
    return HTMLResponse(service.generate_preview_html(preview))


# ── Synthesized device mocks ────────────────────────────────
@router.post(
    "/render",
    response_class=HTMLResponse,
    summary="Render a device mock for posted files",
)
async def render_preview(payload: RenderRequest, auth: Auth) -> HTMLResponse:
    return HTMLResponse(
        preview_synth.render_preview_html(payload.files, payload.app_name, payload.device)
    )


@router.post(
    "/classify",
    response_model=ClassificationOut,
    summary="Guess app type, accent colour and title from source",
)
async def classify_source(
    payload: ClassifyRequest, auth: Auth
) -> preview_synth.AppClassification:
    return preview_synth.classify_app(payload.source)


@router.get(
    "/projects/{project_id}/mock",
    response_class=HTMLResponse,
    summary="Render a device mock for a stored project",
)
async def render_project_mock(
    project_id: uuid.UUID,
    session: DbSession,
    auth: Auth,
    device: DeviceType = Query(default="iphone"),
) -> HTMLResponse:
    project = await get_owned_project(session, project_id, auth.user_id)
    if project is None:
        raise _PROJECT_NOT_FOUND

    files = [ProjectFile.model_validate(f) for f in project.files]
    return HTMLResponse(preview_synth.render_preview_html(files, project.name, device))
