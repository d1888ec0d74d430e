"""
Provider key model — a user's own AI provider credential.

Security notes:
  • The raw key is stored Fernet-encrypted (see capycode.services.key_vault),
    never in plain text and never logged.
  • `key_preview` ("AIza...Xk2w") is safe to return to the client.
  • `status` caches the outcome of the last validation call so the IDE
    can show quota / invalid-key badges without re-checking every load.
"""

import uuid
import datetime

from sqlalchemy import CheckConstraint, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID, TIMESTAMP
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column

from capycode.core.database import Base


class ProviderKey(Base):
    """Encrypted third-party API key owned by a user."""

    __tablename__ = "provider_keys"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    key_preview: Mapped[str] = mapped_column(String(20), nullable=False)
    encrypted_key: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="unknown",
        server_default="unknown",
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_checked_at: Mapped[datetime.datetime | None] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            "provider IN ('openai', 'anthropic', 'google', 'custom')",
            name="ck_provider_keys_provider_valid",
        ),
        CheckConstraint(
            "status IN ('unknown', 'active', 'error', 'quota_exceeded')",
            name="ck_provider_keys_status_valid",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ProviderKey id={self.id!s:.8} provider={self.provider} "
            f"preview={self.key_preview!r} status={self.status}>"
        )
