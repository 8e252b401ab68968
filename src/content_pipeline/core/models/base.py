"""Declarative base for the content pipeline's tables.

``Base.metadata`` carries a constraint naming convention so that
autogenerated migrations name constraints the same way the hand-written
``001_create_content_table`` revision does (``uq_content_*``, ``ck_content_*``).
"""

from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

NAMING_CONVENTION = {
    "ix": "idx_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = sa.MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map = {
        uuid.UUID: UUID(as_uuid=True),
        datetime: TIMESTAMP(timezone=True),
    }


class TimestampMixin:
    """Row bookkeeping: when a record was first stored and last rewritten.

    ``updated_at`` moves on every UPDATE issued through SQLAlchemy, the
    repository's bulk statements included.
    """

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=sa.func.now(),
        onupdate=sa.func.now(),
    )
