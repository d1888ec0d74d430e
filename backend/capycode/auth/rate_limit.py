"""
FastAPI dependencies for rate limit enforcement.

  • enforce_rate_limit          — every protected route (RPM + RPD)
  • enforce_sandbox_rate_limit  — sandbox creation (RPM + RPD + sandboxes/day)

Order in the request pipeline: AUTH → RATE LIMIT → ROUTER LOGIC.
Exceeded limits return 429 with a generic message; remaining quota is
not exposed.
"""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from capycode.auth.dependencies import AuthContext, get_current_user
from capycode.core.database import get_db_session
from capycode.services.rate_limiter import (
    RateLimitExceeded,
    check_and_increment_request,
    check_and_increment_sandbox,
    get_plan_limits,
)

logger = logging.getLogger(__name__)

_RATE_LIMITED = HTTPException(
    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
    detail="Rate limit exceeded. Please try again later.",
)


async def enforce_rate_limit(
    auth: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> AuthContext:
    """Enforce RPM + RPD for standard endpoints; returns the AuthContext."""
    limits = await get_plan_limits(session, auth.user_id)
    try:
        await check_and_increment_request(session, auth.token_id, limits)
    except RateLimitExceeded as exc:
        logger.info("Rate limit hit for token %s: %s", auth.token_id, exc)
        raise _RATE_LIMITED

    return auth


async def enforce_sandbox_rate_limit(
    auth: AuthContext = Depends(enforce_rate_limit),
    session: AsyncSession = Depends(get_db_session),
) -> AuthContext:
    """Additionally cap how many sandboxes a token may start per day."""
    limits = await get_plan_limits(session, auth.user_id)
    try:
        await check_and_increment_sandbox(session, auth.token_id, limits)
    except RateLimitExceeded as exc:
        logger.info("Sandbox limit hit for token %s: %s", auth.token_id, exc)
        raise _RATE_LIMITED

    return auth
