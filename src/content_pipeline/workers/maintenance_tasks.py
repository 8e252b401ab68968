"""Celery tasks wrapping the ingestion pipeline and the dedup backfill.

Covers:

- ``ingest_content``: normalize, deduplicate and store one fetched batch.
- ``backfill_deduplication``: hash and group records stored without a
  content hash.
- ``set_primary_content``: operator override of a group's primary.

Celery workers are synchronous processes; each task runs its async body
with ``asyncio.run()`` on a private engine that is disposed before the
event loop closes.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog

from content_pipeline.config.settings import get_settings
from content_pipeline.core.backfill import backfill_deduplication as run_backfill
from content_pipeline.core.database import open_content_store
from content_pipeline.core.deduplication import get_duplicate_resolver
from content_pipeline.core.normalizer import ContentNormalizer
from content_pipeline.core.pipeline import IngestionPipeline
from content_pipeline.core.repository import SqlAlchemyContentStore
from content_pipeline.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def _with_store(work: Callable[[SqlAlchemyContentStore], Awaitable[T]]) -> T:
    """Run *work* against a store on a task-private engine."""
    async with open_content_store() as store:
        return await work(store)


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@celery_app.task(name="content_pipeline.workers.maintenance_tasks.ingest_content", bind=True)  # type: ignore[misc]
def ingest_content(
    self: Any,  # noqa: ANN401
    creator_id: str,
    platform: str,
    raw_items: list[dict[str, Any]],
    source_url: Optional[str] = None,
) -> dict[str, Any]:
    """Normalize, deduplicate and store one batch of fetched payloads.

    Args:
        creator_id: Identifier of the author/account the batch belongs to.
        platform: Platform string of every payload.
        raw_items: JSON payloads as returned by the fetcher.
        source_url: Feed or page URL the payloads were fetched from.

    Returns:
        ``BatchResult`` as a dict, plus ``success`` and ``total``.
    """
    log = logger.bind(task="ingest_content", creator_id=creator_id, platform=platform)
    log.info("ingest_task.start", items=len(raw_items))
    settings = get_settings()

    async def _ingest(store: SqlAlchemyContentStore) -> dict[str, Any]:
        pipeline = IngestionPipeline(
            store,
            normalizer=ContentNormalizer(words_per_minute=settings.words_per_minute),
            resolver=get_duplicate_resolver(),
        )
        result = await pipeline.ingest(creator_id, platform, raw_items, source_url)
        return {**result.model_dump(mode="json"), "success": result.success, "total": result.total}

    try:
        summary = asyncio.run(_with_store(_ingest))
    except Exception as exc:
        log.error("ingest_task.failed", error=str(exc))
        raise
    log.info("ingest_task.complete", created=summary["created"], errors=len(summary["errors"]))
    return summary


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------


@celery_app.task(  # type: ignore[misc]
    name="content_pipeline.workers.maintenance_tasks.backfill_deduplication", bind=True
)
def backfill_deduplication(
    self: Any,  # noqa: ANN401
    batch_size: Optional[int] = None,
) -> dict[str, Any]:
    """Hash and group every record that has no ``content_hash`` yet.

    Safe to rerun: each run only touches records that are still unhashed.

    Args:
        batch_size: Records hashed per transaction.  Defaults to
            ``Settings.backfill_batch_size``.

    Returns:
        Dict with ``processed``, ``unique_hashes``, ``groups_created`` and
        ``groups_extended`` counts.
    """
    settings = get_settings()
    size = batch_size or settings.backfill_batch_size
    log = logger.bind(task="backfill_deduplication", batch_size=size)
    log.info("backfill_task.start")

    async def _backfill(store: SqlAlchemyContentStore) -> dict[str, Any]:
        stats = await run_backfill(
            store,
            batch_size=size,
            max_tokens=settings.fingerprint_max_tokens,
        )
        return stats.as_dict()

    try:
        result = asyncio.run(_with_store(_backfill))
    except Exception as exc:
        log.error("backfill_task.failed", error=str(exc))
        raise
    log.info("backfill_task.complete", **result)
    return result


@celery_app.task(  # type: ignore[misc]
    name="content_pipeline.workers.maintenance_tasks.set_primary_content", bind=True
)
def set_primary_content(
    self: Any,  # noqa: ANN401
    duplicate_group_id: str,
    record_id: str,
) -> dict[str, str]:
    """Force *record_id* to be the primary of *duplicate_group_id*.

    Returns:
        Dict echoing the group id and the new primary id.
    """
    log = logger.bind(task="set_primary_content", duplicate_group_id=duplicate_group_id)

    async def _set_primary(store: SqlAlchemyContentStore) -> None:
        await get_duplicate_resolver().set_primary(store, duplicate_group_id, uuid.UUID(record_id))

    try:
        asyncio.run(_with_store(_set_primary))
    except Exception as exc:
        log.error("set_primary_task.failed", record_id=record_id, error=str(exc))
        raise
    return {"duplicate_group_id": duplicate_group_id, "primary_content_id": record_id}
