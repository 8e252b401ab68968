"""Duplicate resolution for incoming content records.

Each ingested record ends in exactly one of three states:

- ``new_primary``: no stored record matches.  The record keeps
  ``duplicate_group_id = None`` and ``is_primary = True``.
- ``duplicate_secondary``: a match exists and an existing member stays (or
  becomes) the group's primary.
- ``duplicate_primary``: a match exists and the incoming record outranks
  every existing member; all of them are demoted in the same store call
  that attaches them to the group.

Matching runs in two stages:

1. **Exact**: stored records sharing the incoming record's content hash.
2. **Similarity fallback** (social platforms only, when stage 1 found
   nothing): the creator's hashed social posts from the last
   ``similarity_window_days`` days.  Candidates are checked in store order
   and the first whose description reaches ``similarity_threshold`` Jaccard
   similarity wins; no further ranking by score.

A group id is minted (``uuid4().hex``) the first time a second member is
recognised and is never regenerated afterwards.  When the matches span
several existing groups they are merged into the first one found.

The resolver does not open transactions itself: callers wrap
:meth:`DuplicateResolver.resolve` and the subsequent insert in
``store.transaction(resolver.lock_keys(record))``.  The manual override
:meth:`DuplicateResolver.set_primary` opens its own.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Mapping, Optional, TypeVar

import structlog

from content_pipeline.config.platforms import PLATFORM_PRIORITY, SOCIAL_PLATFORMS, is_social
from content_pipeline.config.settings import Settings, get_settings
from content_pipeline.core.exceptions import DeduplicationStoreError
from content_pipeline.core.hashing import generate_content_hash, get_content_text
from content_pipeline.core.primary import PrimaryCandidate, select_primary
from content_pipeline.core.schemas.content import (
    DeduplicationOutcome,
    DeduplicationResult,
    DuplicateGroupSummary,
    NormalizedContent,
    StoredContent,
)
from content_pipeline.core.store import DuplicateStore
from content_pipeline.core.text import jaccard_similarity

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_SOCIAL_PLATFORM_VALUES: tuple[str, ...] = tuple(sorted(p.value for p in SOCIAL_PLATFORMS))


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DeduplicationConfig:
    """Tunable knobs of the resolver.

    Attributes:
        similarity_threshold: Minimum Jaccard similarity for a fallback match.
        similarity_window_days: Look-back window of the fallback, by
            ``published_at``.
        fingerprint_max_tokens: Fingerprint length for social content hashes.
        priority: Platform ranking used for primary election.
    """

    similarity_threshold: float = 0.85
    similarity_window_days: int = 30
    fingerprint_max_tokens: int = 100
    priority: Mapping[str, int] = field(default_factory=lambda: PLATFORM_PRIORITY)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> DeduplicationConfig:
        """Build a config from application settings (cached settings by default)."""
        settings = settings or get_settings()
        return cls(
            similarity_threshold=settings.similarity_threshold,
            similarity_window_days=settings.similarity_window_days,
            fingerprint_max_tokens=settings.fingerprint_max_tokens,
        )


async def _store_call(operation: str, awaitable: Awaitable[T]) -> T:
    """Await a store operation, wrapping foreign failures as store errors."""
    try:
        return await awaitable
    except DeduplicationStoreError:
        raise
    except Exception as exc:
        raise DeduplicationStoreError(
            f"Store operation {operation!r} failed: {exc}",
            operation=operation,
        ) from exc


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class DuplicateResolver:
    """Decides the dedup fields of incoming records against a store.

    The resolver holds no state besides its configuration, so a single
    instance can be shared across tasks.

    Args:
        config: Resolver knobs.  Defaults to the built-in constants.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        config: Optional[DeduplicationConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._config = config or DeduplicationConfig()
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))

    @property
    def config(self) -> DeduplicationConfig:
        return self._config

    def content_hash(self, record: NormalizedContent) -> str:
        """Return the identity hash of *record* under this resolver's config."""
        return generate_content_hash(record, self._config.fingerprint_max_tokens)

    def lock_keys(self, record: NormalizedContent) -> list[str]:
        """Serialization keys a store transaction must hold to resolve *record*.

        The hash key serializes exact-match resolution.  Social records also
        take a per-creator key so that the similarity fallback cannot race
        against a concurrent near-duplicate from the same creator.
        """
        keys = [f"hash:{self.content_hash(record)}"]
        if is_social(record.platform):
            keys.append(f"creator:{record.creator_id}")
        return keys

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve(
        self,
        record: NormalizedContent,
        store: DuplicateStore,
        record_id: Optional[uuid.UUID] = None,
    ) -> DeduplicationResult:
        """Compute the dedup fields of *record* and settle its group.

        Existing group members are updated through the store as a side
        effect; the incoming record itself is not written.  Persist it with
        the returned fields inside the same transaction.

        Args:
            record: The normalized incoming record.
            store: Store to match against and update.
            record_id: Id the record will be inserted under.  A fresh UUID is
                used when omitted; pass the id you insert with so that
                election results can be compared.

        Returns:
            The dedup fields to persist on the incoming record.

        Raises:
            DeduplicationStoreError: When any store read or write fails.
        """
        record_id = record_id or uuid.uuid4()
        content_hash = self.content_hash(record)
        log = logger.bind(
            platform=record.platform.value,
            creator_id=record.creator_id,
            platform_content_id=record.platform_content_id,
        )

        matches = await _store_call("find_by_hash", store.find_by_hash(content_hash))
        matched_by = "hash"
        if not matches and is_social(record.platform):
            similar = await self._find_similar(record, store, record_id)
            if similar is not None:
                matches = [similar]
                matched_by = "similarity"

        if not matches:
            log.debug("dedup.resolve.new_primary", content_hash=content_hash)
            return DeduplicationResult(content_hash=content_hash)

        members: dict[uuid.UUID, StoredContent] = {m.id: m for m in matches}
        existing_groups = list(
            dict.fromkeys(m.duplicate_group_id for m in matches if m.duplicate_group_id)
        )
        for group_id in existing_groups:
            group_members = await _store_call(
                "find_group_members", store.find_group_members(group_id)
            )
            for member in group_members:
                members.setdefault(member.id, member)
        group_id = existing_groups[0] if existing_groups else uuid.uuid4().hex

        # Existing members first: on equal rank the incumbent keeps its place.
        candidates = [PrimaryCandidate.from_record(m) for m in members.values()]
        candidates.append(
            PrimaryCandidate(
                id=record_id,
                platform=record.platform.value,
                published_at=record.published_at,
            )
        )
        elected = select_primary(candidates, self._config.priority)
        is_primary = elected == record_id

        await _store_call(
            "attach_to_group",
            store.attach_to_group(
                group_id,
                list(members),
                primary_id=None if is_primary else elected,
            ),
        )

        outcome = (
            DeduplicationOutcome.DUPLICATE_PRIMARY
            if is_primary
            else DeduplicationOutcome.DUPLICATE_SECONDARY
        )
        log.info(
            f"dedup.resolve.{outcome.value}",
            content_hash=content_hash,
            duplicate_group_id=group_id,
            matched_by=matched_by,
            group_size=len(members) + 1,
            minted_group=not existing_groups,
            merged_groups=max(len(existing_groups) - 1, 0),
        )
        return DeduplicationResult(
            content_hash=content_hash,
            duplicate_group_id=group_id,
            is_primary=is_primary,
            should_store=True,
            outcome=outcome,
            matched_ids=list(members),
        )

    async def _find_similar(
        self,
        record: NormalizedContent,
        store: DuplicateStore,
        record_id: uuid.UUID,
    ) -> Optional[StoredContent]:
        since = self._clock() - timedelta(days=self._config.similarity_window_days)
        candidates = await _store_call(
            "find_recent_by_creator",
            store.find_recent_by_creator(record.creator_id, _SOCIAL_PLATFORM_VALUES, since),
        )
        text = get_content_text(record)
        for candidate in candidates:
            if candidate.id == record_id or not candidate.description:
                continue
            similarity = jaccard_similarity(text, candidate.description)
            if similarity >= self._config.similarity_threshold:
                logger.debug(
                    "dedup.similarity.match",
                    candidate_id=str(candidate.id),
                    similarity=round(similarity, 4),
                )
                return candidate
        return None

    # ------------------------------------------------------------------
    # Operator management
    # ------------------------------------------------------------------

    async def set_primary(
        self,
        store: DuplicateStore,
        duplicate_group_id: str,
        record_id: uuid.UUID,
    ) -> None:
        """Force *record_id* to be the primary of its group.

        Bypasses automatic ranking.  Every sibling is demoted and the target
        promoted in one transaction.

        Raises:
            DeduplicationStoreError: When the record is not in the group or
                the store fails.
        """
        async with store.transaction([f"group:{duplicate_group_id}"]):
            await _store_call(
                "set_group_primary",
                store.set_group_primary(duplicate_group_id, record_id),
            )
        logger.info(
            "dedup.set_primary",
            duplicate_group_id=duplicate_group_id,
            record_id=str(record_id),
        )

    async def list_duplicate_groups(
        self,
        store: DuplicateStore,
        limit: int = 50,
        offset: int = 0,
    ) -> list[DuplicateGroupSummary]:
        """Return a page of duplicate groups with their primary and size."""
        return await _store_call(
            "list_duplicate_groups", store.list_duplicate_groups(limit=limit, offset=offset)
        )


# ---------------------------------------------------------------------------
# Module-level convenience
# ---------------------------------------------------------------------------


async def resolve_duplicate(
    record: NormalizedContent,
    store: DuplicateStore,
    record_id: Optional[uuid.UUID] = None,
    config: Optional[DeduplicationConfig] = None,
) -> DeduplicationResult:
    """Resolve *record* against *store* with a one-off resolver.

    See :meth:`DuplicateResolver.resolve`.
    """
    return await DuplicateResolver(config).resolve(record, store, record_id)


def get_duplicate_resolver() -> DuplicateResolver:
    """Return a ``DuplicateResolver`` configured from application settings."""
    return DuplicateResolver(DeduplicationConfig.from_settings())
