"""
User model — the owner of projects, provider keys, and sandboxes.

Authentication happens through AccessToken rows; this table only holds
identity and role. `role = 'admin'` unlocks the sandbox statistics route.
"""

import uuid
import datetime

from sqlalchemy import CheckConstraint, String, Text
from sqlalchemy.dialects.postgresql import UUID, TIMESTAMP
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column

from capycode.core.database import Base


class User(Base):
    """One CapyCode account."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    email: Mapped[str] = mapped_column(
        Text, nullable=False, unique=True,
    )
    role: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="user",
        server_default="user",
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin')", name="ck_users_role_valid"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def __repr__(self) -> str:
        return f"<User id={self.id!s:.8} email={self.email!r} role={self.role}>"
