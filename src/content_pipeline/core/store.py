"""Abstract duplicate store and an in-memory implementation.

The duplicate resolver never talks to a database directly; it works against
the :class:`DuplicateStore` interface.  Deployments choose how the
read-modify-write sequence for one duplicate group is serialized by how they
implement :meth:`DuplicateStore.transaction`:

- :class:`InMemoryContentStore` (this module) is a single-writer store: one
  ``asyncio.Lock`` serializes every transaction, and a failed transaction
  restores the pre-transaction state.
- :class:`content_pipeline.core.repository.SqlAlchemyContentStore` takes
  PostgreSQL transaction-scoped advisory locks on the supplied lock keys.

Store methods never commit on their own; callers group them inside
``async with store.transaction(lock_keys):``.
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from abc import ABC, abstractmethod
from collections import Counter
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Iterable, Optional, Sequence

import structlog

from content_pipeline.core.exceptions import DeduplicationStoreError
from content_pipeline.core.schemas.content import (
    MUTABLE_CONTENT_FIELDS,
    DeduplicationResult,
    DuplicateGroupSummary,
    NormalizedContent,
    ProcessingStatus,
    StoredContent,
)

logger = structlog.get_logger(__name__)


class DuplicateStore(ABC):
    """Query/update surface the deduplication core needs from persistence.

    Every method may raise :class:`DeduplicationStoreError`; implementations
    wrap their driver exceptions and chain the original as ``__cause__``.
    """

    @abstractmethod
    def transaction(
        self, lock_keys: Sequence[str] = ()
    ) -> AbstractAsyncContextManager[None]:
        """Return an async context manager that runs its body atomically.

        The body is serialized against every other transaction holding any
        of *lock_keys*.  Leaving the block normally commits; raising rolls
        back.

        Args:
            lock_keys: Opaque serialization keys, e.g. ``"hash:<sha256>"``.
        """

    @abstractmethod
    async def find_by_hash(self, content_hash: str) -> list[StoredContent]:
        """Return every record whose ``content_hash`` equals *content_hash*."""

    @abstractmethod
    async def find_recent_by_creator(
        self,
        creator_id: str,
        platforms: Iterable[str],
        since: datetime,
    ) -> list[StoredContent]:
        """Return the creator's hashed records on *platforms* published at or
        after *since*, in a stable store order."""

    @abstractmethod
    async def find_group_members(self, duplicate_group_id: str) -> list[StoredContent]:
        """Return every record in the given duplicate group."""

    @abstractmethod
    async def attach_to_group(
        self,
        duplicate_group_id: str,
        record_ids: Iterable[uuid.UUID],
        primary_id: Optional[uuid.UUID] = None,
    ) -> int:
        """Put *record_ids* into the group and settle its primary flags.

        After the call every listed record and every record already in the
        group carries ``duplicate_group_id``; the one whose id equals
        *primary_id* is primary and all others are not.  ``primary_id=None``
        demotes every stored member (the primary is about to be inserted).

        Returns:
            Number of records written.
        """

    @abstractmethod
    async def set_group_primary(self, duplicate_group_id: str, record_id: uuid.UUID) -> None:
        """Make *record_id* the only primary of its group.

        Raises:
            DeduplicationStoreError: When *record_id* is not a member of the
                group.
        """

    @abstractmethod
    async def find_by_platform_id(
        self,
        creator_id: str,
        platform: str,
        platform_content_id: str,
    ) -> Optional[StoredContent]:
        """Return the record with this natural key, or ``None``."""

    @abstractmethod
    async def insert(
        self,
        record: NormalizedContent,
        dedup: DeduplicationResult,
        record_id: Optional[uuid.UUID] = None,
    ) -> StoredContent:
        """Persist a new record together with its dedup fields."""

    @abstractmethod
    async def update_content(
        self,
        record_id: uuid.UUID,
        record: NormalizedContent,
    ) -> StoredContent:
        """Refresh the mutable content fields of an existing record."""

    @abstractmethod
    async def list_duplicate_groups(
        self,
        limit: int = 50,
        offset: int = 0,
    ) -> list[DuplicateGroupSummary]:
        """Return a page of duplicate groups ordered by group id."""

    @abstractmethod
    async def find_unhashed(self, limit: int) -> list[StoredContent]:
        """Return up to *limit* records that have no ``content_hash`` yet."""

    @abstractmethod
    async def set_content_hash(self, record_id: uuid.UUID, content_hash: str) -> None:
        """Store the identity hash of an existing record."""


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class InMemoryContentStore(DuplicateStore):
    """Process-local store suitable for tests and single-process ingestion.

    Records are kept in insertion order, which is also the order queries
    return them in.
    """

    def __init__(self, records: Iterable[StoredContent] = ()) -> None:
        self._records: dict[uuid.UUID, StoredContent] = {r.id: r for r in records}
        self._lock = asyncio.Lock()

    @property
    def records(self) -> list[StoredContent]:
        """Snapshot of every stored record in insertion order."""
        return list(self._records.values())

    def get(self, record_id: uuid.UUID) -> Optional[StoredContent]:
        return self._records.get(record_id)

    @asynccontextmanager
    async def transaction(self, lock_keys: Sequence[str] = ()) -> AsyncIterator[None]:
        async with self._lock:
            snapshot = copy.deepcopy(self._records)
            try:
                yield
            except BaseException:
                self._records = snapshot
                logger.debug("store.memory.rollback", lock_keys=list(lock_keys))
                raise

    async def find_by_hash(self, content_hash: str) -> list[StoredContent]:
        return [r for r in self._records.values() if r.content_hash == content_hash]

    async def find_recent_by_creator(
        self,
        creator_id: str,
        platforms: Iterable[str],
        since: datetime,
    ) -> list[StoredContent]:
        wanted = {str(getattr(p, "value", p)) for p in platforms}
        return [
            r
            for r in self._records.values()
            if r.creator_id == creator_id
            and r.platform in wanted
            and r.content_hash is not None
            and r.published_at is not None
            and r.published_at >= since
        ]

    async def find_group_members(self, duplicate_group_id: str) -> list[StoredContent]:
        return [
            r for r in self._records.values() if r.duplicate_group_id == duplicate_group_id
        ]

    async def attach_to_group(
        self,
        duplicate_group_id: str,
        record_ids: Iterable[uuid.UUID],
        primary_id: Optional[uuid.UUID] = None,
    ) -> int:
        targets = set(record_ids)
        missing = [rid for rid in targets if rid not in self._records]
        if missing:
            raise DeduplicationStoreError(
                f"Cannot attach unknown records to group {duplicate_group_id}: {missing}",
                operation="attach_to_group",
            )
        written = 0
        for record_id, record in self._records.items():
            if record_id in targets or record.duplicate_group_id == duplicate_group_id:
                self._records[record_id] = record.model_copy(
                    update={
                        "duplicate_group_id": duplicate_group_id,
                        "is_primary": record_id == primary_id,
                    }
                )
                written += 1
        return written

    async def set_group_primary(self, duplicate_group_id: str, record_id: uuid.UUID) -> None:
        target = self._records.get(record_id)
        if target is None or target.duplicate_group_id != duplicate_group_id:
            raise DeduplicationStoreError(
                f"Record {record_id} is not a member of group {duplicate_group_id}",
                operation="set_group_primary",
            )
        for member in await self.find_group_members(duplicate_group_id):
            self._records[member.id] = member.model_copy(
                update={"is_primary": member.id == record_id}
            )

    async def find_by_platform_id(
        self,
        creator_id: str,
        platform: str,
        platform_content_id: str,
    ) -> Optional[StoredContent]:
        platform = str(getattr(platform, "value", platform))
        for record in self._records.values():
            if (
                record.creator_id == creator_id
                and record.platform == platform
                and record.platform_content_id == platform_content_id
            ):
                return record
        return None

    async def insert(
        self,
        record: NormalizedContent,
        dedup: DeduplicationResult,
        record_id: Optional[uuid.UUID] = None,
    ) -> StoredContent:
        record_id = record_id or uuid.uuid4()
        if record_id in self._records:
            raise DeduplicationStoreError(
                f"Record {record_id} already exists", operation="insert"
            )
        if await self.find_by_platform_id(
            record.creator_id, record.platform.value, record.platform_content_id
        ):
            raise DeduplicationStoreError(
                f"Duplicate natural key {record.platform.value}:{record.platform_content_id}",
                operation="insert",
            )
        stored = StoredContent(
            id=record_id,
            **record.model_dump(exclude={"platform"}),
            platform=record.platform.value,
            content_hash=dedup.content_hash,
            duplicate_group_id=dedup.duplicate_group_id,
            is_primary=dedup.is_primary,
            processing_status=ProcessingStatus.PROCESSED,
        )
        self._records[record_id] = stored
        return stored

    async def update_content(
        self,
        record_id: uuid.UUID,
        record: NormalizedContent,
    ) -> StoredContent:
        existing = self._records.get(record_id)
        if existing is None:
            raise DeduplicationStoreError(
                f"Record {record_id} does not exist", operation="update_content"
            )
        updated = existing.model_copy(
            update={name: getattr(record, name) for name in MUTABLE_CONTENT_FIELDS}
        )
        self._records[record_id] = updated
        return updated

    async def list_duplicate_groups(
        self,
        limit: int = 50,
        offset: int = 0,
    ) -> list[DuplicateGroupSummary]:
        counts: Counter[str] = Counter()
        primaries: dict[str, uuid.UUID] = {}
        for record in self._records.values():
            if record.duplicate_group_id is None:
                continue
            counts[record.duplicate_group_id] += 1
            if record.is_primary:
                primaries[record.duplicate_group_id] = record.id
        group_ids = sorted(counts)[offset : offset + limit]
        return [
            DuplicateGroupSummary(
                duplicate_group_id=group_id,
                primary_content_id=primaries.get(group_id),
                member_count=counts[group_id],
            )
            for group_id in group_ids
        ]

    async def find_unhashed(self, limit: int) -> list[StoredContent]:
        return [r for r in self._records.values() if r.content_hash is None][:limit]

    async def set_content_hash(self, record_id: uuid.UUID, content_hash: str) -> None:
        existing = self._records.get(record_id)
        if existing is None:
            raise DeduplicationStoreError(
                f"Record {record_id} does not exist", operation="set_content_hash"
            )
        self._records[record_id] = existing.model_copy(update={"content_hash": content_hash})
