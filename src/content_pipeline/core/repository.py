"""PostgreSQL-backed duplicate store.

``SqlAlchemyContentStore`` implements :class:`DuplicateStore` on an
``AsyncSession`` bound to the ``content`` table.

Serialization: :meth:`SqlAlchemyContentStore.transaction` takes one
``pg_advisory_xact_lock`` per lock key (sorted, so that two transactions
never acquire overlapping keys in opposite order) before running its body.
The locks are released automatically at commit or rollback.  Together with
the partial unique index ``uq_content_group_primary`` this guarantees that
concurrent ingestion of identically hashing items creates a single group
with a single primary.

Individual methods never commit; only ``transaction()`` does.  Every
SQLAlchemy failure is re-raised as :class:`DeduplicationStoreError` with the
driver exception chained.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Iterable, Optional, Sequence

import sqlalchemy as sa
import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from content_pipeline.core.exceptions import DeduplicationStoreError
from content_pipeline.core.models.content import ContentRecord
from content_pipeline.core.schemas.content import (
    MUTABLE_CONTENT_FIELDS,
    DeduplicationResult,
    DuplicateGroupSummary,
    NormalizedContent,
    ProcessingStatus,
    StoredContent,
)
from content_pipeline.core.store import DuplicateStore

logger = structlog.get_logger(__name__)

_ADVISORY_XACT_LOCK = sa.text("SELECT pg_advisory_xact_lock(hashtextextended(:key, 0))")


def _column_values(record: NormalizedContent, fields: Iterable[str]) -> dict[str, Any]:
    """Map normalized fields to JSON-ready column values."""
    values: dict[str, Any] = {}
    for name in fields:
        if name == "media_urls":
            values[name] = [
                m.model_dump(mode="json", exclude_none=True) for m in record.media_urls
            ]
        elif name == "engagement_metrics":
            values[name] = dict(record.engagement_metrics)
        else:
            values[name] = getattr(record, name)
    return values


class SqlAlchemyContentStore(DuplicateStore):
    """Duplicate store over the ``content`` table.

    Args:
        session: Active async session.  The store owns its commit
            boundaries through :meth:`transaction`; do not share the session
            with code that commits independently.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self, lock_keys: Sequence[str] = ()) -> AsyncIterator[None]:
        try:
            for key in sorted(set(lock_keys)):
                await self._session.execute(_ADVISORY_XACT_LOCK, {"key": key})
            yield
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.warning("store.transaction.failed", lock_keys=list(lock_keys), error=str(exc))
            raise DeduplicationStoreError(
                f"Transaction failed: {exc}", operation="transaction"
            ) from exc
        except BaseException:
            await self._session.rollback()
            raise

    async def _execute(self, operation: str, statement: Any, params: Optional[dict] = None) -> Any:
        try:
            return await self._session.execute(statement, params)
        except SQLAlchemyError as exc:
            raise DeduplicationStoreError(
                f"{operation} failed: {exc}", operation=operation
            ) from exc

    async def _select_records(self, operation: str, statement: Any) -> list[StoredContent]:
        result = await self._execute(operation, statement)
        return [StoredContent.model_validate(row) for row in result.scalars().all()]

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def find_by_hash(self, content_hash: str) -> list[StoredContent]:
        stmt = (
            select(ContentRecord)
            .where(ContentRecord.content_hash == content_hash)
            .order_by(ContentRecord.created_at, ContentRecord.id)
        )
        return await self._select_records("find_by_hash", stmt)

    async def find_recent_by_creator(
        self,
        creator_id: str,
        platforms: Iterable[str],
        since: datetime,
    ) -> list[StoredContent]:
        stmt = (
            select(ContentRecord)
            .where(
                ContentRecord.creator_id == creator_id,
                ContentRecord.platform.in_([str(getattr(p, "value", p)) for p in platforms]),
                ContentRecord.published_at >= since,
                ContentRecord.content_hash.isnot(None),
            )
            .order_by(ContentRecord.published_at.desc(), ContentRecord.id)
        )
        return await self._select_records("find_recent_by_creator", stmt)

    async def find_group_members(self, duplicate_group_id: str) -> list[StoredContent]:
        stmt = (
            select(ContentRecord)
            .where(ContentRecord.duplicate_group_id == duplicate_group_id)
            .order_by(ContentRecord.created_at, ContentRecord.id)
        )
        return await self._select_records("find_group_members", stmt)

    async def find_by_platform_id(
        self,
        creator_id: str,
        platform: str,
        platform_content_id: str,
    ) -> Optional[StoredContent]:
        stmt = select(ContentRecord).where(
            ContentRecord.creator_id == creator_id,
            ContentRecord.platform == str(getattr(platform, "value", platform)),
            ContentRecord.platform_content_id == platform_content_id,
        )
        result = await self._execute("find_by_platform_id", stmt)
        row = result.scalar_one_or_none()
        return StoredContent.model_validate(row) if row is not None else None

    async def find_unhashed(self, limit: int) -> list[StoredContent]:
        stmt = (
            select(ContentRecord)
            .where(ContentRecord.content_hash.is_(None))
            .order_by(ContentRecord.created_at, ContentRecord.id)
            .limit(limit)
        )
        return await self._select_records("find_unhashed", stmt)

    async def list_duplicate_groups(
        self,
        limit: int = 50,
        offset: int = 0,
    ) -> list[DuplicateGroupSummary]:
        # PostgreSQL has no max(uuid); aggregate over the text form.
        primary_id = sa.func.max(
            sa.case((ContentRecord.is_primary, sa.cast(ContentRecord.id, sa.String)))
        )
        stmt = (
            select(
                ContentRecord.duplicate_group_id,
                primary_id.label("primary_content_id"),
                sa.func.count().label("member_count"),
            )
            .where(ContentRecord.duplicate_group_id.isnot(None))
            .group_by(ContentRecord.duplicate_group_id)
            .order_by(ContentRecord.duplicate_group_id)
            .limit(limit)
            .offset(offset)
        )
        result = await self._execute("list_duplicate_groups", stmt)
        return [
            DuplicateGroupSummary(
                duplicate_group_id=row.duplicate_group_id,
                primary_content_id=(
                    uuid.UUID(row.primary_content_id) if row.primary_content_id else None
                ),
                member_count=row.member_count,
            )
            for row in result.all()
        ]

    # ------------------------------------------------------------------
    # Group writes
    # ------------------------------------------------------------------

    async def attach_to_group(
        self,
        duplicate_group_id: str,
        record_ids: Iterable[uuid.UUID],
        primary_id: Optional[uuid.UUID] = None,
    ) -> int:
        ids = list(record_ids)
        in_scope = ContentRecord.duplicate_group_id == duplicate_group_id
        if ids:
            in_scope = or_(ContentRecord.id.in_(ids), in_scope)

        # Demote before promoting so the one-primary index never sees two.
        demote = (
            update(ContentRecord)
            .where(in_scope)
            .values(duplicate_group_id=duplicate_group_id, is_primary=False)
            .execution_options(synchronize_session=False)
        )
        result = await self._execute("attach_to_group", demote)
        written: int = result.rowcount

        if primary_id is not None:
            await self._promote(duplicate_group_id, primary_id, "attach_to_group")

        logger.debug(
            "store.attach_to_group",
            duplicate_group_id=duplicate_group_id,
            written=written,
            primary_id=str(primary_id) if primary_id else None,
        )
        return written

    async def set_group_primary(self, duplicate_group_id: str, record_id: uuid.UUID) -> None:
        demote = (
            update(ContentRecord)
            .where(ContentRecord.duplicate_group_id == duplicate_group_id)
            .values(is_primary=False)
            .execution_options(synchronize_session=False)
        )
        await self._execute("set_group_primary", demote)
        await self._promote(duplicate_group_id, record_id, "set_group_primary")

    async def _promote(self, duplicate_group_id: str, record_id: uuid.UUID, operation: str) -> None:
        promote = (
            update(ContentRecord)
            .where(
                ContentRecord.id == record_id,
                ContentRecord.duplicate_group_id == duplicate_group_id,
            )
            .values(is_primary=True)
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(operation, promote)
        if result.rowcount != 1:
            raise DeduplicationStoreError(
                f"Record {record_id} is not a member of group {duplicate_group_id}",
                operation=operation,
            )

    # ------------------------------------------------------------------
    # Record writes
    # ------------------------------------------------------------------

    async def insert(
        self,
        record: NormalizedContent,
        dedup: DeduplicationResult,
        record_id: Optional[uuid.UUID] = None,
    ) -> StoredContent:
        row = ContentRecord(
            id=record_id or uuid.uuid4(),
            creator_id=record.creator_id,
            platform=record.platform.value,
            platform_content_id=record.platform_content_id,
            published_at=record.published_at,
            word_count=record.word_count,
            reading_time_minutes=record.reading_time_minutes,
            content_hash=dedup.content_hash,
            duplicate_group_id=dedup.duplicate_group_id,
            is_primary=dedup.is_primary,
            processing_status=ProcessingStatus.PROCESSED.value,
            **_column_values(record, ("url", *MUTABLE_CONTENT_FIELDS)),
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except SQLAlchemyError as exc:
            raise DeduplicationStoreError(f"insert failed: {exc}", operation="insert") from exc
        return StoredContent.model_validate(row)

    async def update_content(
        self,
        record_id: uuid.UUID,
        record: NormalizedContent,
    ) -> StoredContent:
        stmt = (
            update(ContentRecord)
            .where(ContentRecord.id == record_id)
            .values(**_column_values(record, MUTABLE_CONTENT_FIELDS))
            .returning(ContentRecord)
        )
        result = await self._execute("update_content", stmt)
        row = result.scalar_one_or_none()
        if row is None:
            raise DeduplicationStoreError(
                f"Record {record_id} does not exist", operation="update_content"
            )
        return StoredContent.model_validate(row)

    async def set_content_hash(self, record_id: uuid.UUID, content_hash: str) -> None:
        stmt = (
            update(ContentRecord)
            .where(ContentRecord.id == record_id)
            .values(content_hash=content_hash)
            .execution_options(synchronize_session=False)
        )
        await self._execute("set_content_hash", stmt)
