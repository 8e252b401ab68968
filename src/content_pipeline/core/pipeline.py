"""Ingestion pipeline: raw payloads -> normalized, deduplicated, stored records.

``IngestionPipeline`` is what orchestrators (cron sweeps, webhook handlers,
Celery tasks) call with a batch of fetched payloads.  Each item goes through:

1. Normalization (:class:`ContentNormalizer`).
2. A natural-key lookup on ``(creator_id, platform, platform_content_id)``.
3. For unseen items, duplicate resolution and insertion inside one store
   transaction holding the resolver's lock keys.  For known items, a refresh
   of the mutable content fields, or nothing at all when they are unchanged.

Items are processed sequentially.  A failing item is recorded in
``BatchResult.errors`` and never aborts the rest of the batch.

Example usage::

    store = SqlAlchemyContentStore(session)
    pipeline = IngestionPipeline(store)
    result = await pipeline.ingest("creator-1", "rss", feed.entries, source_url=feed_url)
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Iterable, Optional

import structlog

from content_pipeline.config.platforms import Platform
from content_pipeline.core.deduplication import DuplicateResolver
from content_pipeline.core.exceptions import ContentPipelineError
from content_pipeline.core.logging_config import batch_id_var
from content_pipeline.core.normalizer import ContentNormalizer
from content_pipeline.core.schemas.content import (
    BatchItemError,
    BatchResult,
    NormalizedContent,
    content_changed,
)
from content_pipeline.core.store import DuplicateStore

logger = structlog.get_logger(__name__)


class StoreOutcome(str, Enum):
    """What storing one normalized record did."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class IngestionPipeline:
    """Normalizes, deduplicates and stores batches of platform payloads.

    Args:
        store: Persistence backend.
        normalizer: Payload normalizer.  Defaults to a fresh
            :class:`ContentNormalizer`.
        resolver: Duplicate resolver.  Defaults to a resolver with built-in
            configuration; use :func:`get_duplicate_resolver` for
            settings-driven configuration.
    """

    def __init__(
        self,
        store: DuplicateStore,
        normalizer: Optional[ContentNormalizer] = None,
        resolver: Optional[DuplicateResolver] = None,
    ) -> None:
        self._store = store
        self._normalizer = normalizer or ContentNormalizer()
        self._resolver = resolver or DuplicateResolver()

    async def ingest(
        self,
        creator_id: str,
        platform: str | Platform,
        raw_items: Iterable[Any],
        source_url: Optional[str] = None,
    ) -> BatchResult:
        """Normalize and store a batch of raw payloads from one creator.

        Args:
            creator_id: Identifier of the author/account the batch belongs to.
            platform: Platform of every payload in the batch.
            raw_items: Raw payloads in fetch order.
            source_url: Feed or page URL the payloads were fetched from.

        Returns:
            Created/updated/skipped tallies plus one error entry per failed
            item (normalization failures first, then storage failures).
        """
        token = batch_id_var.set(uuid.uuid4().hex)
        try:
            normalized = self._normalizer.normalize_multiple(
                creator_id, platform, raw_items, source_url
            )
            result = await self._store_records(normalized.items)
            result.errors = normalized.errors + result.errors
            logger.info(
                "pipeline.batch.complete",
                creator_id=creator_id,
                platform=str(getattr(platform, "value", platform)),
                created=result.created,
                updated=result.updated,
                skipped=result.skipped,
                errors=len(result.errors),
            )
            return result
        finally:
            batch_id_var.reset(token)

    async def store_batch(self, records: Iterable[NormalizedContent]) -> BatchResult:
        """Store already-normalized records.

        Returns:
            Created/updated/skipped tallies plus per-item errors keyed by
            ``platform_content_id``.
        """
        token = batch_id_var.set(batch_id_var.get() or uuid.uuid4().hex)
        try:
            result = await self._store_records(records)
            logger.info(
                "pipeline.batch.complete",
                created=result.created,
                updated=result.updated,
                skipped=result.skipped,
                errors=len(result.errors),
            )
            return result
        finally:
            batch_id_var.reset(token)

    async def store_record(self, record: NormalizedContent) -> StoreOutcome:
        """Store one normalized record.

        Raises:
            ContentPipelineError: When resolution or persistence fails; the
                store transaction is rolled back.
        """
        natural_key = (
            f"item:{record.creator_id}:{record.platform.value}:{record.platform_content_id}"
        )
        lock_keys = [*self._resolver.lock_keys(record), natural_key]

        async with self._store.transaction(lock_keys):
            existing = await self._store.find_by_platform_id(
                record.creator_id,
                record.platform.value,
                record.platform_content_id,
            )
            if existing is not None:
                if not content_changed(existing, record):
                    return StoreOutcome.SKIPPED
                await self._store.update_content(existing.id, record)
                return StoreOutcome.UPDATED

            record_id = uuid.uuid4()
            dedup = await self._resolver.resolve(record, self._store, record_id)
            if not dedup.should_store:
                return StoreOutcome.SKIPPED
            await self._store.insert(record, dedup, record_id)
            return StoreOutcome.CREATED

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _store_records(self, records: Iterable[NormalizedContent]) -> BatchResult:
        result = BatchResult()
        for record in records:
            try:
                outcome = await self.store_record(record)
            except ContentPipelineError as exc:
                logger.warning(
                    "pipeline.item.failed",
                    platform=record.platform.value,
                    platform_content_id=record.platform_content_id,
                    error=str(exc),
                )
                result.errors.append(
                    BatchItemError(identifier=record.platform_content_id, error=str(exc))
                )
                continue
            if outcome is StoreOutcome.CREATED:
                result.created += 1
            elif outcome is StoreOutcome.UPDATED:
                result.updated += 1
            else:
                result.skipped += 1
        return result
