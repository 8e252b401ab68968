"""SQLAlchemy ORM models for the content pipeline.

All models are imported here so that Alembic autogenerate can discover them
via ``Base.metadata``.
"""

from __future__ import annotations

from content_pipeline.core.models.base import Base, TimestampMixin
from content_pipeline.core.models.content import ContentRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "ContentRecord",
]
