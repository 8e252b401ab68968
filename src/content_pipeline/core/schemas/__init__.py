"""Pydantic schemas for the content pipeline."""

from __future__ import annotations

from content_pipeline.core.schemas.content import (
    ENGAGEMENT_COUNTERS,
    MUTABLE_CONTENT_FIELDS,
    BatchItemError,
    BatchResult,
    DeduplicationOutcome,
    DeduplicationResult,
    DuplicateGroupSummary,
    MediaType,
    MediaUrl,
    NormalizedBatch,
    NormalizedContent,
    ProcessingStatus,
    StoredContent,
    content_changed,
)

__all__ = [
    "ENGAGEMENT_COUNTERS",
    "MUTABLE_CONTENT_FIELDS",
    "BatchItemError",
    "BatchResult",
    "DeduplicationOutcome",
    "DeduplicationResult",
    "DuplicateGroupSummary",
    "MediaType",
    "MediaUrl",
    "NormalizedBatch",
    "NormalizedContent",
    "ProcessingStatus",
    "StoredContent",
    "content_changed",
]
