"""
Usage router — the caller's own usage statistics.

Endpoints:
  GET  /usage/daily    — events and tokens per (day, kind), last N days
  GET  /usage/summary  — all-time totals
  POST /usage/events   — client-reported AI generation usage
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from capycode.auth.dependencies import AuthContext
from capycode.auth.rate_limit import enforce_rate_limit
from capycode.core.database import get_db_session
from capycode.models.usage import UsageEvent
from capycode.schemas.usage import (
    DailyUsageOut,
    UsageEventCreate,
    UsageEventOut,
    UsageSummaryOut,
)
from capycode.services.project_files import get_owned_project
from capycode.services.usage import daily_usage, record_usage, usage_summary

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Usage"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Auth = Annotated[AuthContext, Depends(enforce_rate_limit)]


@router.get(
    "/daily",
    response_model=list[DailyUsageOut],
    summary="Usage per day and kind",
    description="Ordered by date ascending. Days without events are omitted.",
)
async def get_daily_usage(
    session: DbSession,
    auth: Auth,
    days: int = Query(default=30, ge=1, le=365),
) -> list[DailyUsageOut]:
    rows = await daily_usage(session, auth.user_id, days=days)
    return [DailyUsageOut.model_validate(row, from_attributes=True) for row in rows]


@router.get(
    "/summary",
    response_model=UsageSummaryOut,
    summary="All-time usage totals",
)
async def get_usage_summary(session: DbSession, auth: Auth) -> dict[str, Any]:
    return await usage_summary(session, auth.user_id)


@router.post(
    "/events",
    response_model=UsageEventOut,
    status_code=status.HTTP_201_CREATED,
    summary="Report AI generation usage",
)
async def report_usage_event(
    payload: UsageEventCreate,
    session: DbSession,
    auth: Auth,
) -> UsageEvent:
    if payload.project_id is not None:
        project = await get_owned_project(session, payload.project_id, auth.user_id)
        if project is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Project not found.",
            )

    try:
        event = record_usage(
            session,
            auth.user_id,
            payload.kind,
            project_id=payload.project_id,
            provider=payload.provider,
            tokens=payload.tokens,
        )
        await session.commit()
        await session.refresh(event)
    except Exception:
        await session.rollback()
        logger.exception("Failed to persist usage event")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store the usage event. Please try again.",
        )

    return event
