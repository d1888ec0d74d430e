"""
Usage metering: write usage_events rows and aggregate them per user.

record_usage() only adds to the session; the calling router owns the
commit so the event lands in the same transaction as the action it meters.
Aggregation happens in SQL via GROUP BY.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from typing import Any

from sqlalchemy import Date, cast, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from capycode.models.project import Project
from capycode.models.usage import USAGE_KINDS, UsageEvent

logger = logging.getLogger(__name__)


def record_usage(
    session: AsyncSession,
    user_id: uuid.UUID,
    kind: str,
    *,
    project_id: uuid.UUID | None = None,
    provider: str | None = None,
    tokens: int = 0,
    metadata: dict[str, Any] | None = None,
) -> UsageEvent:
    if kind not in USAGE_KINDS:
        raise ValueError(f"Unknown usage kind: {kind!r}")

    event = UsageEvent(
        user_id=user_id,
        kind=kind,
        project_id=project_id,
        provider=provider,
        tokens=tokens,
        metadata_=metadata,
    )
    session.add(event)
    return event


async def meter(
    session: AsyncSession,
    user_id: uuid.UUID,
    kind: str,
    **fields: Any,
) -> None:
    """
    Record and commit one usage event for an action that already happened.

    Metering is best-effort: a failed write is logged and rolled back, but
    the caller's response is not turned into an error.
    """
    try:
        record_usage(session, user_id, kind, **fields)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        logger.exception("Failed to record %s usage for user %s", kind, user_id)


async def daily_usage(
    session: AsyncSession,
    user_id: uuid.UUID,
    days: int = 30,
    now: datetime.datetime | None = None,
) -> list[Any]:
    """
    SQL: SELECT DATE(timestamp) AS date, kind, COUNT(*), SUM(tokens)
         FROM usage_events
         WHERE user_id = :user AND timestamp >= :since
         GROUP BY date, kind ORDER BY date, kind

    Served by ix_usage_events_user_id_timestamp.
    """
    now = now or datetime.datetime.now(datetime.timezone.utc)
    since = now - datetime.timedelta(days=days)
    date_col = cast(UsageEvent.timestamp, Date).label("date")

    stmt = (
        select(
            date_col,
            UsageEvent.kind,
            func.count().label("event_count"),
            func.coalesce(func.sum(UsageEvent.tokens), 0).label("total_tokens"),
        )
        .where(UsageEvent.user_id == user_id, UsageEvent.timestamp >= since)
        .group_by(date_col, UsageEvent.kind)
        .order_by(date_col.asc(), UsageEvent.kind.asc())
    )
    result = await session.execute(stmt)
    return list(result.all())


async def usage_summary(session: AsyncSession, user_id: uuid.UUID) -> dict[str, int]:
    """All-time counts per usage kind, total tokens, and owned projects."""
    stmt = (
        select(
            UsageEvent.kind,
            func.count().label("event_count"),
            func.coalesce(func.sum(UsageEvent.tokens), 0).label("total_tokens"),
        )
        .where(UsageEvent.user_id == user_id)
        .group_by(UsageEvent.kind)
    )
    rows = (await session.execute(stmt)).all()
    counts = {row.kind: row.event_count for row in rows}

    projects = await session.scalar(
        select(func.count()).select_from(Project).where(Project.user_id == user_id)
    )

    return {
        "projects": projects or 0,
        "sandboxes": counts.get("sandbox", 0),
        "web_previews": counts.get("web_preview", 0),
        "generations": counts.get("generation", 0),
        "key_validations": counts.get("key_validation", 0),
        "total_tokens": sum(int(row.total_tokens) for row in rows),
    }
