"""
Postgres-backed rate limiter.

Enforces per-access-token limits using atomic INSERT … ON CONFLICT
counters in the token_usage table. Quotas depend on the user's plan.

Counters are read before they are incremented, so a 429 does not count
against the token. Buckets start on the UTC minute and the UTC midnight.
The sandbox cap is a third, daily window on the same table.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from capycode.models.subscription import Subscription
from capycode.models.token_usage import TokenUsage

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PlanLimits:
    """Quotas for one plan."""

    rpm: int  # requests per minute
    rpd: int  # requests per day
    sandboxes_per_day: int


PLAN_LIMITS: dict[str, PlanLimits] = {
    "free": PlanLimits(rpm=60, rpd=5_000, sandboxes_per_day=10),
    "pro": PlanLimits(rpm=300, rpd=50_000, sandboxes_per_day=200),
    "team": PlanLimits(rpm=600, rpd=200_000, sandboxes_per_day=1_000),
}

# Window type constants
WINDOW_MINUTE = "minute"
WINDOW_DAY = "day"
WINDOW_SANDBOX_DAY = "sandbox_day"


class RateLimitExceeded(Exception):
    """Raised when an access token exceeds its rate limit."""


def _minute_bucket(now: datetime.datetime) -> datetime.datetime:
    """Floor a timestamp to the start of the current minute (UTC)."""
    return now.replace(second=0, microsecond=0)


def _day_bucket(now: datetime.datetime) -> datetime.datetime:
    """Floor a timestamp to midnight UTC of the current day."""
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def limits_for_plan(plan: str | None) -> PlanLimits:
    """Unknown or missing plans fall back to the free tier."""
    return PLAN_LIMITS.get(plan or "free", PLAN_LIMITS["free"])


async def get_plan_limits(session: AsyncSession, user_id: uuid.UUID) -> PlanLimits:
    """Look up the user's active plan and return its quotas."""
    result = await session.execute(
        select(Subscription.plan).where(
            Subscription.user_id == user_id,
            Subscription.status == "active",
        )
    )
    return limits_for_plan(result.scalar_one_or_none())


async def _get_current_count(
    session: AsyncSession,
    token_id: uuid.UUID,
    window_type: str,
    window_start: datetime.datetime,
) -> int:
    """Read the counter for a token/window/bucket. Returns 0 if no row."""
    stmt = select(TokenUsage.request_count).where(
        TokenUsage.token_id == token_id,
        TokenUsage.window_type == window_type,
        TokenUsage.window_start == window_start,
    )
    result = await session.execute(stmt)
    row = result.scalar_one_or_none()
    return row if row is not None else 0


async def _increment(
    session: AsyncSession,
    token_id: uuid.UUID,
    window_type: str,
    window_start: datetime.datetime,
) -> None:
    """Atomically increment the counter for a token/window/bucket."""
    stmt = pg_insert(TokenUsage).values(
        token_id=token_id,
        window_type=window_type,
        window_start=window_start,
        request_count=1,
    ).on_conflict_do_update(
        index_elements=["token_id", "window_type", "window_start"],
        set_={"request_count": TokenUsage.request_count + 1},
    )
    await session.execute(stmt)


async def check_and_increment_request(
    session: AsyncSession,
    token_id: uuid.UUID,
    limits: PlanLimits,
) -> None:
    """
    Check RPM + RPD and increment both counters if allowed.

    Raises RateLimitExceeded if either limit is reached.
    """
    now = datetime.datetime.now(datetime.timezone.utc)
    minute_start = _minute_bucket(now)
    day_start = _day_bucket(now)

    rpm_count = await _get_current_count(session, token_id, WINDOW_MINUTE, minute_start)
    if rpm_count >= limits.rpm:
        raise RateLimitExceeded("RPM limit exceeded")

    rpd_count = await _get_current_count(session, token_id, WINDOW_DAY, day_start)
    if rpd_count >= limits.rpd:
        raise RateLimitExceeded("RPD limit exceeded")

    await _increment(session, token_id, WINDOW_MINUTE, minute_start)
    await _increment(session, token_id, WINDOW_DAY, day_start)
    await session.commit()  # persist counters even on read-only routes


async def check_and_increment_sandbox(
    session: AsyncSession,
    token_id: uuid.UUID,
    limits: PlanLimits,
) -> None:
    """
    Check the daily sandbox-creation cap and increment it if allowed.

    Called on top of check_and_increment_request for POST /sandbox/create.
    """
    day_start = _day_bucket(datetime.datetime.now(datetime.timezone.utc))

    count = await _get_current_count(session, token_id, WINDOW_SANDBOX_DAY, day_start)
    if count >= limits.sandboxes_per_day:
        raise RateLimitExceeded("Sandbox creations/day limit exceeded")

    await _increment(session, token_id, WINDOW_SANDBOX_DAY, day_start)
    await session.commit()
