"""
Per-token request counters for rate limiting.

Each row is the request count for one access token in one time bucket.
Composite PK: (token_id, window_type, window_start).

Buckets:
  • 'minute'      — floor to the current minute (RPM)
  • 'day'         — floor to midnight UTC (RPD)
  • 'sandbox_day' — floor to midnight UTC (sandbox creations per day)
"""

import uuid
import datetime

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from capycode.core.database import Base


class TokenUsage(Base):
    """Per-token, per-window request counter."""

    __tablename__ = "token_usage"

    token_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("access_tokens.id", ondelete="CASCADE"),
        primary_key=True,
    )
    window_type: Mapped[str] = mapped_column(
        String(20),
        primary_key=True,
    )
    window_start: Mapped[datetime.datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        primary_key=True,
    )
    request_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return (
            f"<TokenUsage token={self.token_id!s:.8} "
            f"type={self.window_type} count={self.request_count}>"
        )
