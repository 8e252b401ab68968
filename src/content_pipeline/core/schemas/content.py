"""Pydantic schemas for canonical content and deduplication results.

These are the value objects passed between the normalizer, the hash engine,
the duplicate resolver and the store.  The ORM row lives in
:mod:`content_pipeline.core.models.content`; :class:`StoredContent` is the
read-model a store hands back to the resolver.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from content_pipeline.config.platforms import Platform

ENGAGEMENT_COUNTERS: tuple[str, ...] = (
    "views",
    "likes",
    "comments",
    "shares",
    "retweets",
    "bookmarks",
)
"""Canonical names of the engagement counters a record may carry."""


def _ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class MediaType(str, Enum):
    """Four-way media classification used for every platform."""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"

    @classmethod
    def from_mime(cls, mime_type: Optional[str]) -> MediaType:
        """Map a MIME type (or loose type hint) to a :class:`MediaType`.

        ``image/*``, ``video/*`` and ``audio/*`` map to their namesakes, as do
        the bare hints ``"image"``/``"photo"``, ``"video"``/``"animated_gif"``
        and ``"audio"``.  Anything else is a document.
        """
        hint = (mime_type or "").strip().lower()
        if hint.startswith("image/") or hint in {"image", "photo"}:
            return cls.IMAGE
        if hint.startswith("video/") or hint in {"video", "animated_gif"}:
            return cls.VIDEO
        if hint.startswith("audio/") or hint == "audio":
            return cls.AUDIO
        return cls.DOCUMENT


class MediaUrl(BaseModel):
    """A media asset attached to a content item."""

    url: str
    type: MediaType
    title: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None
    size: Optional[int] = None


class ProcessingStatus(str, Enum):
    """Lifecycle tag owned by downstream processing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class NormalizedContent(BaseModel):
    """Canonical, platform-agnostic content record produced by the normalizer.

    Attributes:
        creator_id: Opaque identifier of the author/account.
        platform: Source platform.
        platform_content_id: Native platform id, or the canonical URL when the
            platform provides none.
        url: Canonical link to the content.
        title: Headline or video title; often empty on social platforms.
        description: Short text (caption, summary, snippet).
        content_body: Full body text, possibly containing markup.
        thumbnail_url: Representative image, when available.
        media_urls: Ordered media attachments.
        engagement_metrics: Named counters present on the source payload.
        word_count: Whitespace-delimited tokens in the markup-stripped text.
        reading_time_minutes: ``ceil(word_count / words_per_minute)``.
        published_at: Publication timestamp (UTC); ingestion time when the
            source has none.
    """

    creator_id: str = Field(min_length=1)
    platform: Platform
    platform_content_id: str = Field(min_length=1)
    url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    content_body: Optional[str] = None
    thumbnail_url: Optional[str] = None
    media_urls: list[MediaUrl] = Field(default_factory=list)
    engagement_metrics: dict[str, int] = Field(default_factory=dict)
    word_count: Optional[int] = Field(default=None, ge=0)
    reading_time_minutes: Optional[int] = Field(default=None, ge=0)
    published_at: datetime

    @field_validator("published_at")
    @classmethod
    def _published_at_utc(cls, value: datetime) -> datetime:
        return _ensure_utc(value)

    @field_validator("engagement_metrics")
    @classmethod
    def _known_counters(cls, value: dict[str, int]) -> dict[str, int]:
        unknown = sorted(set(value) - set(ENGAGEMENT_COUNTERS))
        if unknown:
            raise ValueError(f"unknown engagement counters: {', '.join(unknown)}")
        return value


class StoredContent(BaseModel):
    """A persisted content record as seen by the duplicate resolver.

    ``platform`` is a plain string because rows written by older ingestion
    code may carry platforms the current enumeration does not know.
    """

    id: uuid.UUID
    creator_id: str
    platform: str
    platform_content_id: str
    url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    content_body: Optional[str] = None
    thumbnail_url: Optional[str] = None
    media_urls: list[MediaUrl] = Field(default_factory=list)
    engagement_metrics: dict[str, int] = Field(default_factory=dict)
    published_at: Optional[datetime] = None
    word_count: Optional[int] = None
    reading_time_minutes: Optional[int] = None
    content_hash: Optional[str] = None
    duplicate_group_id: Optional[str] = None
    is_primary: bool = True
    processing_status: ProcessingStatus = ProcessingStatus.PENDING

    model_config = ConfigDict(from_attributes=True)

    @field_validator("published_at")
    @classmethod
    def _published_at_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _ensure_utc(value)

    @field_validator("media_urls", mode="before")
    @classmethod
    def _none_media_is_empty(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("engagement_metrics", mode="before")
    @classmethod
    def _none_metrics_is_empty(cls, value: object) -> object:
        return {} if value is None else value


MUTABLE_CONTENT_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "thumbnail_url",
    "content_body",
    "media_urls",
    "engagement_metrics",
)
"""Fields refreshed when an already-stored item is ingested again.

Identity fields and dedup state are never touched by a re-ingestion."""


def content_changed(stored: StoredContent, incoming: NormalizedContent) -> bool:
    """Return ``True`` when any of :data:`MUTABLE_CONTENT_FIELDS` differs."""
    return any(
        getattr(stored, name) != getattr(incoming, name) for name in MUTABLE_CONTENT_FIELDS
    )


# ---------------------------------------------------------------------------
# Deduplication results
# ---------------------------------------------------------------------------


class DeduplicationOutcome(str, Enum):
    """Terminal state of one resolution."""

    NEW_PRIMARY = "new_primary"
    DUPLICATE_PRIMARY = "duplicate_primary"
    DUPLICATE_SECONDARY = "duplicate_secondary"


class DeduplicationResult(BaseModel):
    """Dedup fields to persist on the incoming record.

    Attributes:
        content_hash: Identity hash of the incoming record.
        duplicate_group_id: Group the record joins; ``None`` when it has no
            known duplicates.
        is_primary: Whether the incoming record is its group's primary.
        should_store: Whether the caller should persist the record.
            Duplicates are always stored (and flagged) so they can be audited
            or restored later.
        outcome: Terminal resolution state.
        matched_ids: Existing records the incoming record was matched with.
    """

    content_hash: str
    duplicate_group_id: Optional[str] = None
    is_primary: bool = True
    should_store: bool = True
    outcome: DeduplicationOutcome = DeduplicationOutcome.NEW_PRIMARY
    matched_ids: list[uuid.UUID] = Field(default_factory=list)


class DuplicateGroupSummary(BaseModel):
    """One duplicate group as listed for operators."""

    duplicate_group_id: str
    primary_content_id: Optional[uuid.UUID] = None
    member_count: int


# ---------------------------------------------------------------------------
# Batch results
# ---------------------------------------------------------------------------


class BatchItemError(BaseModel):
    """A per-item failure inside a batch.

    Attributes:
        identifier: ``platform_content_id`` of the item, or the best-effort
            identifier available when normalization itself failed.
        error: Human-readable failure message.
    """

    identifier: str
    error: str


class NormalizedBatch(BaseModel):
    """Output of :meth:`ContentNormalizer.normalize_multiple`.

    ``items`` preserves the input order of the successfully normalized
    payloads; every failed payload has exactly one entry in ``errors``.
    """

    items: list[NormalizedContent] = Field(default_factory=list)
    errors: list[BatchItemError] = Field(default_factory=list)


class BatchResult(BaseModel):
    """Tally of one ingestion batch."""

    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[BatchItemError] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        """``True`` when no item failed."""
        return not self.errors

    @property
    def total(self) -> int:
        return self.created + self.updated + self.skipped + len(self.errors)
