"""create provider keys, usage events and subscriptions

Revision ID: 0002
Revises: 0001
Create Date: 2026-03-04

  - provider_keys (Fernet-encrypted AI provider keys + last validation)
  - usage_events (metered actions; project_id SET NULL so history survives deletes)
  - subscriptions (plan per user, read for rate-limit quotas)
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0002"
down_revision: Union[str, None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── 1. provider_keys ────────────────────────────────────
    op.create_table(
        "provider_keys",
        sa.Column("id", sa.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("provider", sa.String(20), nullable=False),
        sa.Column("key_preview", sa.String(20), nullable=False),
        sa.Column("encrypted_key", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), server_default="unknown", nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("last_checked_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "provider IN ('openai', 'anthropic', 'google', 'custom')",
            name="ck_provider_keys_provider_valid",
        ),
        sa.CheckConstraint(
            "status IN ('unknown', 'active', 'error', 'quota_exceeded')",
            name="ck_provider_keys_status_valid",
        ),
    )
    op.create_index("ix_provider_keys_user_id", "provider_keys", ["user_id"])

    # ── 2. usage_events ─────────────────────────────────────
    op.create_table(
        "usage_events",
        sa.Column("id", sa.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("timestamp", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("project_id", sa.UUID(), nullable=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("provider", sa.String(20), nullable=True),
        sa.Column("tokens", sa.Integer(), server_default="0", nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="SET NULL"),
        sa.CheckConstraint("tokens >= 0", name="ck_usage_tokens_non_neg"),
        sa.CheckConstraint(
            "kind IN ('sandbox', 'web_preview', 'key_validation', 'generation')",
            name="ck_usage_kind_valid",
        ),
    )
    op.create_index(
        "ix_usage_events_user_id_timestamp", "usage_events", ["user_id", "timestamp"]
    )

    # ── 3. subscriptions ────────────────────────────────────
    op.create_table(
        "subscriptions",
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("plan", sa.String(10), server_default="free", nullable=False),
        sa.Column("status", sa.String(20), server_default="active", nullable=False),
        sa.Column("current_period_end", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("plan IN ('free', 'pro', 'team')", name="ck_subscriptions_plan_valid"),
    )


def downgrade() -> None:
    op.drop_table("subscriptions")
    op.drop_index("ix_usage_events_user_id_timestamp", table_name="usage_events")
    op.drop_table("usage_events")
    op.drop_index("ix_provider_keys_user_id", table_name="provider_keys")
    op.drop_table("provider_keys")
