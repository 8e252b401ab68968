"""Create the content table with deduplication columns.

Creates ``content`` together with:

- the natural-key constraint ``(creator_id, platform, platform_content_id)``;
- lookup indexes on ``content_hash``, ``duplicate_group_id`` and
  ``(creator_id, published_at)`` for the exact-match, group and
  similarity-fallback queries;
- the partial unique index ``uq_content_group_primary`` that allows at most
  one ``is_primary`` row per non-null ``duplicate_group_id``.

``content_hash`` is intentionally not unique: every member of a duplicate
group shares it.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the content table and its indexes."""
    op.create_table(
        "content",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("creator_id", sa.String(255), nullable=False),
        sa.Column("platform", sa.String(50), nullable=False),
        sa.Column("platform_content_id", sa.String(2000), nullable=False),
        sa.Column("url", sa.String(2000), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("content_body", sa.Text(), nullable=True),
        sa.Column("thumbnail_url", sa.String(2000), nullable=True),
        sa.Column("word_count", sa.Integer(), nullable=True),
        sa.Column("reading_time_minutes", sa.Integer(), nullable=True),
        sa.Column(
            "media_urls",
            postgresql.JSONB(),
            nullable=True,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "engagement_metrics",
            postgresql.JSONB(),
            nullable=True,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("content_hash", sa.String(64), nullable=True),
        sa.Column("duplicate_group_id", sa.String(64), nullable=True),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "processing_status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'pending'"),
        ),
        sa.Column("published_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.UniqueConstraint(
            "creator_id",
            "platform",
            "platform_content_id",
            name="uq_content_creator_platform_item",
        ),
        sa.CheckConstraint(
            "processing_status IN ('pending', 'processed', 'failed')",
            name="ck_content_processing_status",
        ),
    )
    op.create_index("idx_content_hash", "content", ["content_hash"])
    op.create_index("idx_content_duplicate_group", "content", ["duplicate_group_id"])
    op.create_index(
        "idx_content_creator_published", "content", ["creator_id", "published_at"]
    )
    op.create_index(
        "uq_content_group_primary",
        "content",
        ["duplicate_group_id"],
        unique=True,
        postgresql_where=sa.text("is_primary AND duplicate_group_id IS NOT NULL"),
    )


def downgrade() -> None:
    """Drop the content table and its indexes."""
    op.drop_index("uq_content_group_primary", table_name="content")
    op.drop_index("idx_content_creator_published", table_name="content")
    op.drop_index("idx_content_duplicate_group", table_name="content")
    op.drop_index("idx_content_hash", table_name="content")
    op.drop_table("content")
