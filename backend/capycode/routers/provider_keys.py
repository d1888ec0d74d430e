"""
Provider keys router — users' own AI provider API keys.

Keys are encrypted on the way in (capycode.services.key_vault) and never
returned; responses carry a masked preview and the last validation result.

Endpoints:
  GET    /keys                — list the user's keys
  POST   /keys                — store a key (status 'unknown' until validated)
  DELETE /keys/{id}           — delete a key
  POST   /keys/{id}/validate  — validate a stored key, persist the outcome
  POST   /keys/validate       — validate an unsaved key (nothing stored)
"""

import datetime
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from capycode.auth.dependencies import AuthContext
from capycode.auth.rate_limit import enforce_rate_limit
from capycode.core.database import get_db_session
from capycode.models.provider_key import ProviderKey
from capycode.schemas.provider_key import (
    KeyValidationOut,
    KeyValidationRequest,
    ProviderKeyCreate,
    ProviderKeyOut,
)
from capycode.services.error_hints import classify_error
from capycode.services.key_validator import KeyCheck, validate_provider_key
from capycode.services.key_vault import KeyVaultError, decrypt_key, encrypt_key, mask_key
from capycode.services.usage import meter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Provider Keys"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Auth = Annotated[AuthContext, Depends(enforce_rate_limit)]

_NOT_FOUND = HTTPException(
    status_code=status.HTTP_404_NOT_FOUND,
    detail="API key not found.",
)
_VAULT_UNAVAILABLE = HTTPException(
    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    detail="Key storage is unavailable. Please try again later.",
)


def _to_validation_out(result: KeyCheck) -> KeyValidationOut:
    hint = None if result.valid else classify_error(result.error).hint
    return KeyValidationOut(
        valid=result.valid,
        error=result.error,
        is_quota=result.is_quota,
        hint=hint,
    )


def _status_for(result: KeyCheck) -> str:
    if result.valid:
        return "active"
    return "quota_exceeded" if result.is_quota else "error"


async def _get_owned_key(
    session: AsyncSession, key_id: uuid.UUID, user_id: uuid.UUID
) -> ProviderKey:
    result = await session.execute(
        select(ProviderKey).where(ProviderKey.id == key_id, ProviderKey.user_id == user_id)
    )
    key = result.scalar_one_or_none()
    if key is None:
        raise _NOT_FOUND
    return key


@router.get(
    "",
    response_model=list[ProviderKeyOut],
    summary="List the user's provider keys",
)
async def list_keys(session: DbSession, auth: Auth) -> list[ProviderKey]:
    result = await session.execute(
        select(ProviderKey)
        .where(ProviderKey.user_id == auth.user_id)
        .order_by(ProviderKey.created_at.desc())
    )
    return list(result.scalars().all())


@router.post(
    "",
    response_model=ProviderKeyOut,
    status_code=status.HTTP_201_CREATED,
    summary="Store a provider key",
)
async def create_key(payload: ProviderKeyCreate, session: DbSession, auth: Auth) -> ProviderKey:
    raw_key = payload.key.strip()
    try:
        encrypted = encrypt_key(raw_key)
    except KeyVaultError:
        logger.exception("Cannot encrypt provider key")
        raise _VAULT_UNAVAILABLE

    key = ProviderKey(
        user_id=auth.user_id,
        name=payload.name,
        provider=payload.provider,
        key_preview=mask_key(raw_key),
        encrypted_key=encrypted,
        status="unknown",
    )
    try:
        session.add(key)
        await session.commit()
        await session.refresh(key)
    except Exception:
        await session.rollback()
        logger.exception("Failed to store provider key")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store the key. Please try again.",
        )

    logger.info("Provider key %s (%s) stored for user %s", key.id, key.provider, auth.user_id)
    return key


@router.delete(
    "/{key_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a provider key",
)
async def delete_key(key_id: uuid.UUID, session: DbSession, auth: Auth) -> Response:
    key = await _get_owned_key(session, key_id, auth.user_id)
    try:
        await session.delete(key)
        await session.commit()
    except Exception:
        await session.rollback()
        logger.exception("Failed to delete provider key %s", key_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete the key. Please try again.",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Validation ──────────────────────────────────────────────
@router.post(
    "/validate",
    response_model=KeyValidationOut,
    summary="Validate an unsaved key",
    description="Makes one cheap request to the provider. Nothing is stored.",
)
async def validate_unsaved_key(
    payload: KeyValidationRequest, session: DbSession, auth: Auth
) -> KeyValidationOut:
    result = await validate_provider_key(payload.provider, payload.key.strip())
    await meter(session, auth.user_id, "key_validation", provider=payload.provider)
    return _to_validation_out(result)


@router.post(
    "/{key_id}/validate",
    response_model=KeyValidationOut,
    summary="Validate a stored key",
    description="Updates the key's status, error message, and last check time.",
)
async def validate_stored_key(
    key_id: uuid.UUID, session: DbSession, auth: Auth
) -> KeyValidationOut:
    key = await _get_owned_key(session, key_id, auth.user_id)
    try:
        raw_key = decrypt_key(key.encrypted_key)
    except KeyVaultError:
        logger.exception("Cannot decrypt provider key %s", key.id)
        raise _VAULT_UNAVAILABLE

    result = await validate_provider_key(key.provider, raw_key)

    key.status = _status_for(result)
    key.error_message = result.error
    key.last_checked_at = datetime.datetime.now(datetime.timezone.utc)
    # Commits the key update together with the usage event.
    await meter(session, auth.user_id, "key_validation", provider=key.provider)

    return _to_validation_out(result)
