"""Deduplication backfill for records stored without a content hash.

Records written before deduplication existed (or by importers that bypass
the pipeline) have ``content_hash = NULL``.  The backfill runs in two
phases:

1. **Hash**: page through unhashed records ``batch_size`` at a time and
   store each record's identity hash.  Each page is its own transaction.
2. **Group**: for every hash touched in phase 1, load all records sharing
   it.  Hashes with two or more records form a duplicate group (reusing an
   existing group id when one of the records already has one) and get a
   primary elected with :func:`select_primary` over every member of the
   group, including members joined earlier by similarity.  Each hash is
   grouped in its own transaction holding the same ``hash:<sha256>`` lock
   key the ingestion pipeline uses.

The similarity fallback is not applied; the backfill only groups exact
hash matches.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from typing import Any, Mapping

import structlog

from content_pipeline.config.platforms import PLATFORM_PRIORITY
from content_pipeline.core.hashing import generate_content_hash
from content_pipeline.core.primary import PrimaryCandidate, select_primary
from content_pipeline.core.schemas.content import StoredContent
from content_pipeline.core.store import DuplicateStore
from content_pipeline.core.text import DEFAULT_FINGERPRINT_TOKENS

logger = structlog.get_logger(__name__)


@dataclass
class BackfillStats:
    """Counters reported by :func:`backfill_deduplication`."""

    processed: int = 0
    unique_hashes: int = 0
    groups_created: int = 0
    groups_extended: int = 0

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


async def backfill_deduplication(
    store: DuplicateStore,
    batch_size: int = 500,
    max_tokens: int = DEFAULT_FINGERPRINT_TOKENS,
    priority: Mapping[str, int] = PLATFORM_PRIORITY,
) -> BackfillStats:
    """Hash every unhashed record and group the resulting exact duplicates.

    Args:
        store: Store to backfill.
        batch_size: Records hashed per transaction.
        max_tokens: Fingerprint length for social content hashes.  Must
            match the value used at ingestion time.
        priority: Platform ranking for primary election.

    Returns:
        Backfill counters.

    Raises:
        DeduplicationStoreError: When a store operation fails.  Pages
            committed before the failure stay committed; rerunning resumes
            with the records still unhashed.
    """
    stats = BackfillStats()
    touched: dict[str, None] = {}

    while True:
        async with store.transaction(["backfill:hash"]):
            page = await store.find_unhashed(batch_size)
            for record in page:
                content_hash = generate_content_hash(record, max_tokens)
                await store.set_content_hash(record.id, content_hash)
                touched.setdefault(content_hash, None)
        if not page:
            break
        stats.processed += len(page)
        logger.info("backfill.hash.page", hashed=len(page), processed=stats.processed)

    stats.unique_hashes = len(touched)

    for content_hash in touched:
        async with store.transaction([f"hash:{content_hash}"]):
            members = await store.find_by_hash(content_hash)
            if len(members) < 2:
                continue

            existing_groups = list(
                dict.fromkeys(m.duplicate_group_id for m in members if m.duplicate_group_id)
            )
            if existing_groups:
                group_id = existing_groups[0]
                stats.groups_extended += 1
            else:
                group_id = uuid.uuid4().hex
                stats.groups_created += 1

            # A group may hold members with other hashes (joined by
            # similarity); they compete for primary too.
            grouped: dict[uuid.UUID, StoredContent] = {}
            for existing_id in existing_groups:
                for member in await store.find_group_members(existing_id):
                    grouped.setdefault(member.id, member)
            for member in members:
                grouped.setdefault(member.id, member)

            # Incumbents first so they keep ties: the current primary, then
            # the rest of the group, then records joining it.
            ordered = sorted(
                grouped.values(),
                key=lambda m: (m.duplicate_group_id != group_id, not m.is_primary),
            )
            elected = select_primary(
                [PrimaryCandidate.from_record(m) for m in ordered], priority
            )
            await store.attach_to_group(group_id, list(grouped), primary_id=elected)
            logger.debug(
                "backfill.group",
                content_hash=content_hash,
                duplicate_group_id=group_id,
                members=len(grouped),
                primary_id=str(elected),
            )

    logger.info("backfill.complete", **stats.as_dict())
    return stats
