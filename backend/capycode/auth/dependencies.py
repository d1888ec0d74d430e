"""
FastAPI dependencies for bearer-token authentication.

Flow:
  1. Extract Bearer token from the Authorization header
  2. Hash it (SHA-256) and look up access_tokens by hash
  3. Verify is_active = true
  4. Load the owning User
  5. Return AuthContext (user + token_id)

Security:
  • Generic 401 for ALL failure modes (missing, malformed, unknown, revoked)
  • Raw tokens are NEVER logged
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from capycode.auth.hashing import hash_token
from capycode.core.database import get_db_session
from capycode.models.access_token import AccessToken
from capycode.models.user import User

logger = logging.getLogger(__name__)

_AUTH_FAILED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or missing access token.",
    headers={"WWW-Authenticate": "Bearer"},
)

_ADMIN_REQUIRED = HTTPException(
    status_code=status.HTTP_403_FORBIDDEN,
    detail="Admin access required.",
)


@dataclass(frozen=True, slots=True)
class AuthContext:
    """Authenticated request context.

    Attributes:
        user:     The User that owns the token.
        token_id: The access token used for this request; the rate
                  limiter counts requests per token.
    """

    user: User
    token_id: uuid.UUID

    @property
    def user_id(self) -> uuid.UUID:
        return self.user.id


async def get_current_user(
    authorization: str | None = Header(default=None, alias="Authorization"),
    session: AsyncSession = Depends(get_db_session),
) -> AuthContext:
    """
    Resolve the Bearer token to an AuthContext.

    Raises 401 for a missing header, a non-Bearer scheme, an unknown
    token hash, a revoked token, or a token whose user is gone.
    """
    if not authorization:
        raise _AUTH_FAILED

    parts = authorization.split(" ", maxsplit=1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise _AUTH_FAILED

    token_hash = hash_token(parts[1].strip())

    result = await session.execute(
        select(AccessToken).where(AccessToken.token_hash == token_hash)
    )
    token = result.scalar_one_or_none()

    if token is None or not token.is_active:
        raise _AUTH_FAILED

    user = await session.get(User, token.user_id)
    if user is None:
        logger.error("Access token %s references missing user %s", token.id, token.user_id)
        raise _AUTH_FAILED

    return AuthContext(user=user, token_id=token.id)


async def require_admin(
    auth: AuthContext = Depends(get_current_user),
) -> AuthContext:
    """403 unless the authenticated user has the admin role."""
    if not auth.user.is_admin:
        raise _ADMIN_REQUIRED
    return auth
