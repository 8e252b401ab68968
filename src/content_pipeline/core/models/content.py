"""Content record ORM model.

Every normalized item from every platform is stored in the ``content``
table, duplicates included.  Deduplication state lives in three columns:

- ``content_hash``: identity hash (SHA-256 hex).  Deliberately *not*
  unique; several records share a hash once they form a duplicate group.
- ``duplicate_group_id``: opaque group token, ``NULL`` until a second
  member is recognised.
- ``is_primary``: exactly one ``TRUE`` per non-null group, enforced by the
  partial unique index ``uq_content_group_primary``.

The migration in ``alembic/versions/001_create_content_table.py`` is the
authoritative DDL.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from content_pipeline.core.models.base import Base, TimestampMixin


class ContentRecord(TimestampMixin, Base):
    """A single normalized content item from any platform.

    Columns are grouped by concern:

    Identity
        id, creator_id, platform, platform_content_id, url

    Text payload
        title, description, content_body, thumbnail_url

    Derived
        word_count, reading_time_minutes, media_urls, engagement_metrics

    Deduplication
        content_hash, duplicate_group_id, is_primary

    Lifecycle
        processing_status, published_at, created_at, updated_at
    """

    __tablename__ = "content"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------
    creator_id: Mapped[str] = mapped_column(
        sa.String(255),
        nullable=False,
    )
    platform: Mapped[str] = mapped_column(
        sa.String(50),
        nullable=False,
    )
    platform_content_id: Mapped[str] = mapped_column(
        sa.String(2000),
        nullable=False,
    )
    url: Mapped[Optional[str]] = mapped_column(
        sa.String(2000),
        nullable=True,
    )

    # ------------------------------------------------------------------
    # Text payload
    # ------------------------------------------------------------------
    title: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    content_body: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(
        sa.String(2000),
        nullable=True,
    )

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------
    word_count: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    reading_time_minutes: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    media_urls: Mapped[Optional[list]] = mapped_column(
        JSONB,
        nullable=True,
        server_default=sa.text("'[]'"),
    )
    engagement_metrics: Mapped[Optional[dict]] = mapped_column(
        JSONB,
        nullable=True,
        server_default=sa.text("'{}'"),
    )

    # ------------------------------------------------------------------
    # Deduplication
    # ------------------------------------------------------------------
    content_hash: Mapped[Optional[str]] = mapped_column(
        sa.String(64),
        nullable=True,
    )
    duplicate_group_id: Mapped[Optional[str]] = mapped_column(
        sa.String(64),
        nullable=True,
    )
    is_primary: Mapped[bool] = mapped_column(
        sa.Boolean,
        nullable=False,
        server_default=sa.true(),
    )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    processing_status: Mapped[str] = mapped_column(
        sa.String(20),
        nullable=False,
        server_default=sa.text("'pending'"),
    )
    published_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        sa.UniqueConstraint(
            "creator_id",
            "platform",
            "platform_content_id",
            name="uq_content_creator_platform_item",
        ),
        sa.Index("idx_content_hash", "content_hash"),
        sa.Index("idx_content_duplicate_group", "duplicate_group_id"),
        sa.Index("idx_content_creator_published", "creator_id", "published_at"),
        # One primary per group.
        sa.Index(
            "uq_content_group_primary",
            "duplicate_group_id",
            unique=True,
            postgresql_where=sa.text("is_primary AND duplicate_group_id IS NOT NULL"),
        ),
        sa.CheckConstraint(
            "processing_status IN ('pending', 'processed', 'failed')",
            name="processing_status",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ContentRecord id={self.id} platform={self.platform!r} "
            f"platform_content_id={self.platform_content_id!r}>"
        )
