"""
Subscription model — which plan a user is on.

Rows are written by the billing integration (outside this service);
here they are only read to pick rate-limit quotas. A user without a row,
or with a non-active subscription, is treated as 'free'.
"""

import uuid
import datetime

from sqlalchemy import CheckConstraint, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID, TIMESTAMP
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column

from capycode.core.database import Base


class Subscription(Base):
    """Current plan for one user."""

    __tablename__ = "subscriptions"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    plan: Mapped[str] = mapped_column(
        String(10), nullable=False, default="free", server_default="free",
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active", server_default="active",
    )
    current_period_end: Mapped[datetime.datetime | None] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint("plan IN ('free', 'pro', 'team')", name="ck_subscriptions_plan_valid"),
    )

    def __repr__(self) -> str:
        return f"<Subscription user={self.user_id!s:.8} plan={self.plan} status={self.status}>"
