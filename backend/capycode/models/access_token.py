"""
Access token model — bearer credential for a user.

Security notes:
  • Raw tokens are NEVER stored. Only a SHA-256 hash is persisted.
  • `prefix` keeps the first 12 characters (e.g. "cc_live_3f2a")
    so a token can be recognised in the dashboard without exposing it.
  • `is_active` allows revocation without deletion.
"""

import uuid
import datetime

from sqlalchemy import Boolean, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID, TIMESTAMP
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column

from capycode.core.database import Base


class AccessToken(Base):
    """Hashed bearer token belonging to a user."""

    __tablename__ = "access_tokens"

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
    token_hash: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        unique=True,
    )
    prefix: Mapped[str] = mapped_column(
        String(12),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default="true",
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<AccessToken id={self.id!s:.8} prefix={self.prefix!r} "
            f"active={self.is_active}>"
        )
