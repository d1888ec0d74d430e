"""
SQLAlchemy model for the `usage_events` table.

Each row is one metered action a user took: starting a sandbox, opening a
web preview, validating a provider key, or an AI generation reported by
the client. Usage statistics are aggregated from this table in SQL.
"""

import uuid
import datetime

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID, TIMESTAMP
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column

from capycode.core.database import Base

USAGE_KINDS = ("sandbox", "web_preview", "key_validation", "generation")


class UsageEvent(Base):
    """One metered user action."""

    __tablename__ = "usage_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    timestamp: Mapped[datetime.datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Projects may be deleted later; keep the event.
    project_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    provider: Mapped[str | None] = mapped_column(String(20), nullable=True)
    tokens: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0",
    )

    # Column named `metadata_` to avoid clashing with Base.metadata;
    # maps to DB column `metadata`.
    metadata_: Mapped[dict | None] = mapped_column(
        "metadata",
        JSONB,
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint("tokens >= 0", name="ck_usage_tokens_non_neg"),
        CheckConstraint(
            "kind IN ('sandbox', 'web_preview', 'key_validation', 'generation')",
            name="ck_usage_kind_valid",
        ),
        Index("ix_usage_events_user_id_timestamp", "user_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<UsageEvent id={self.id!s:.8} kind={self.kind} user={self.user_id!s:.8}>"
