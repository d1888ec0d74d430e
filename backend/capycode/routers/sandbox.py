"""
Sandbox router — lifecycle, file sync, and logs for Expo sandboxes.

Sandboxes live in process memory (capycode.services.sandbox). Any
sandbox id that is unknown or expired is a 404; a sandbox owned by
another user is a 403.

Endpoints:
  POST   /sandbox/create            — start a sandbox (replaces the user's previous one)
  GET    /sandbox/user/current      — the caller's active sandbox, if any
  GET    /sandbox/admin/stats       — process-wide counters (admin only)
  GET    /sandbox/{id}              — status
  PUT    /sandbox/{id}/files        — upsert files + hot reload
  GET    /sandbox/{id}/logs         — buffered logs (?limit=&level=)
  GET    /sandbox/{id}/logs/export  — expo.log download
  GET    /sandbox/{id}/logs/stream  — Server-Sent Events
  DELETE /sandbox/{id}              — stop
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from capycode.auth.dependencies import AuthContext, require_admin
from capycode.auth.rate_limit import enforce_rate_limit, enforce_sandbox_rate_limit
from capycode.core.database import get_db_session
from capycode.schemas.sandbox import (
    ActionResult,
    CurrentSandbox,
    LogLevel,
    SandboxCreate,
    SandboxCreated,
    SandboxFilesUpdate,
    SandboxInfo,
    SandboxLogs,
    SandboxStats,
    SandboxStatus,
)
from capycode.services.sandbox import (
    EVENT_STOPPED,
    ExpoSandboxService,
    SandboxNotFound,
    SandboxSession,
    get_sandbox_service,
)
from capycode.services.usage import meter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Sandbox"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Auth = Annotated[AuthContext, Depends(enforce_rate_limit)]
Sandboxes = Annotated[ExpoSandboxService, Depends(get_sandbox_service)]

# Comment line sent when no event arrived within this many seconds,
# so proxies keep the connection open.
KEEPALIVE_S = 15.0

_NOT_FOUND = HTTPException(
    status_code=status.HTTP_404_NOT_FOUND,
    detail="Sandbox not found.",
)
_FORBIDDEN = HTTPException(
    status_code=status.HTTP_403_FORBIDDEN,
    detail="You do not have access to this sandbox.",
)


def _get_owned_sandbox(
    service: ExpoSandboxService, sandbox_id: str, auth: AuthContext
) -> SandboxSession:
    sandbox = service.get_sandbox(sandbox_id)
    if sandbox is None:
        raise _NOT_FOUND
    if sandbox.user_id != str(auth.user_id):
        raise _FORBIDDEN
    return sandbox


def _sse(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def stream_sandbox_events(
    service: ExpoSandboxService,
    sandbox_id: str,
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive_s: float = KEEPALIVE_S,
) -> AsyncIterator[str]:
    """
    SSE frames for one sandbox: `connected`, then every log / hot_reload
    event until the sandbox stops or the client goes away.

    Raises SandboxNotFound before the first frame if the sandbox is gone.
    """
    queue: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()

    def on_event(event: str, payload: Any) -> None:
        queue.put_nowait((event, payload))

    if service.get_sandbox(sandbox_id) is None:
        raise SandboxNotFound(sandbox_id)

    async def frames() -> AsyncIterator[str]:
        # Subscribed on first iteration; a response that never starts leaves no listener.
        try:
            unsubscribe = service.subscribe(sandbox_id, on_event)
        except SandboxNotFound:
            yield _sse(EVENT_STOPPED, {"reason": "stopped"})
            return

        try:
            yield _sse("connected", {"sandboxId": sandbox_id})
            while True:
                if await is_disconnected():
                    break
                try:
                    event, payload = await asyncio.wait_for(queue.get(), timeout=keepalive_s)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue

                data = payload.to_dict() if hasattr(payload, "to_dict") else payload
                yield _sse(event, data)
                if event == EVENT_STOPPED:
                    break
        finally:
            unsubscribe()

    return frames()


# ── Lifecycle ───────────────────────────────────────────────
@router.post(
    "/create",
    response_model=SandboxCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Start an Expo sandbox",
    description=(
        "Starts a sandbox for the project files. Any sandbox the caller "
        "already has is stopped first. Limited per plan (sandboxes/day)."
    ),
)
async def create_sandbox(
    payload: SandboxCreate,
    session: DbSession,
    service: Sandboxes,
    auth: Annotated[AuthContext, Depends(enforce_sandbox_rate_limit)],
) -> dict[str, Any]:
    try:
        sandbox = await service.create_sandbox(
            project_id=payload.project_id,
            user_id=str(auth.user_id),
            files=payload.files,
            dependencies=payload.dependencies,
        )
    except SandboxNotFound:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Sandbox was replaced by a newer one.",
        )
    except Exception:
        logger.exception("Failed to create sandbox for project %s", payload.project_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create sandbox. Please try again.",
        )

    await meter(
        session, auth.user_id, "sandbox",
        metadata={"sandbox_id": sandbox.id, "project_id": payload.project_id},
    )
    return {"success": True, "sandbox": SandboxInfo.model_validate(sandbox)}


@router.get(
    "/user/current",
    response_model=CurrentSandbox,
    summary="The caller's active sandbox",
)
async def get_current_sandbox(service: Sandboxes, auth: Auth) -> dict[str, Any]:
    sandbox = service.get_sandbox_by_user(str(auth.user_id))
    return {"sandbox": SandboxInfo.model_validate(sandbox) if sandbox else None}


@router.get(
    "/admin/stats",
    response_model=SandboxStats,
    summary="Sandbox statistics (admin only)",
)
async def get_sandbox_stats(
    service: Sandboxes,
    _admin: Annotated[AuthContext, Depends(require_admin)],
) -> dict[str, int]:
    return service.get_stats()


@router.get(
    "/{sandbox_id}",
    response_model=SandboxStatus,
    summary="Sandbox status",
)
async def get_sandbox_status(sandbox_id: str, service: Sandboxes, auth: Auth) -> SandboxStatus:
    return SandboxStatus.model_validate(_get_owned_sandbox(service, sandbox_id, auth))


@router.put(
    "/{sandbox_id}/files",
    response_model=ActionResult,
    summary="Sync files and hot reload",
)
async def update_sandbox_files(
    sandbox_id: str,
    payload: SandboxFilesUpdate,
    service: Sandboxes,
    auth: Auth,
) -> dict[str, Any]:
    _get_owned_sandbox(service, sandbox_id, auth)
    try:
        await service.update_files(sandbox_id, payload.files)
    except SandboxNotFound:
        raise _NOT_FOUND
    return {"success": True, "message": "Files updated, hot reload triggered"}


@router.delete(
    "/{sandbox_id}",
    response_model=ActionResult,
    summary="Stop a sandbox",
)
async def stop_sandbox(sandbox_id: str, service: Sandboxes, auth: Auth) -> dict[str, Any]:
    _get_owned_sandbox(service, sandbox_id, auth)
    await service.stop_sandbox(sandbox_id)
    return {"success": True, "message": "Sandbox stopped"}


# ── Logs ────────────────────────────────────────────────────
@router.get(
    "/{sandbox_id}/logs",
    response_model=SandboxLogs,
    summary="Buffered sandbox logs",
)
async def get_sandbox_logs(
    sandbox_id: str,
    service: Sandboxes,
    auth: Auth,
    limit: int = Query(default=100, ge=1, le=1000),
    level: LogLevel | None = Query(default=None),
) -> dict[str, Any]:
    _get_owned_sandbox(service, sandbox_id, auth)
    return {"logs": service.get_logs(sandbox_id, limit=limit, level=level)}


@router.get(
    "/{sandbox_id}/logs/export",
    response_class=PlainTextResponse,
    summary="Download logs as expo.log",
)
async def export_sandbox_logs(
    sandbox_id: str, service: Sandboxes, auth: Auth
) -> PlainTextResponse:
    _get_owned_sandbox(service, sandbox_id, auth)
    return PlainTextResponse(
        service.export_logs(sandbox_id),
        headers={"Content-Disposition": 'attachment; filename="expo.log"'},
    )


@router.get(
    "/{sandbox_id}/logs/stream",
    summary="Live logs (Server-Sent Events)",
    description=(
        "Emits `connected`, then `log` and `hot_reload` events. The stream "
        "ends with a `stopped` event when the sandbox stops or expires."
    ),
)
async def stream_sandbox_logs(
    sandbox_id: str,
    request: Request,
    service: Sandboxes,
    auth: Auth,
) -> StreamingResponse:
    _get_owned_sandbox(service, sandbox_id, auth)
    try:
        frames = await stream_sandbox_events(service, sandbox_id, request.is_disconnected)
    except SandboxNotFound:
        raise _NOT_FOUND

    return StreamingResponse(
        frames,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
