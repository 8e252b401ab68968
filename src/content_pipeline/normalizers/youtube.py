"""YouTube Data API v3 video normalizer.

Handles both ``search.list`` results (``id`` is ``{"kind": ..., "videoId":
...}``) and ``videos.list`` results (``id`` is the bare video id string).
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from content_pipeline.core.schemas.content import MediaType
from content_pipeline.core.text import count_words
from content_pipeline.normalizers._helpers import (
    compact_metrics,
    get_field,
    get_path,
    parse_datetime,
    to_int,
)

logger = structlog.get_logger(__name__)

_WATCH_URL = "https://www.youtube.com/watch?v={video_id}"


class YouTubeNormalizer:
    """Normalizes YouTube video resources."""

    def normalize(
        self,
        raw_data: Any,
        source_url: Optional[str] = None,  # noqa: ARG002
    ) -> dict[str, Any]:
        """Normalize one YouTube video resource.

        Videos have no reading time, so ``reading_time_minutes`` is supplied
        as ``0`` and never derived from the description.

        Args:
            raw_data: Video resource dict from the YouTube Data API.
            source_url: Unused; accepted for interface parity.

        Returns:
            Flat dict of canonical content fields.
        """
        raw_id = get_field(raw_data, "id")
        if isinstance(raw_id, str):
            video_id: Optional[str] = raw_id or None
        else:
            video_id = get_field(raw_id, "videoId")

        snippet = get_field(raw_data, "snippet", {})
        description = get_field(snippet, "description") or ""

        published_raw = get_field(snippet, "publishedAt")
        published_at = parse_datetime(published_raw)
        if published_raw is not None and published_at is None:
            logger.warning(
                "youtube.timestamp_parse_error",
                published_at=published_raw,
                video_id=video_id,
            )

        thumbnail = get_path(snippet, "thumbnails", "high") or get_path(
            snippet, "thumbnails", "default"
        )
        thumbnail_url = get_field(thumbnail, "url")
        media_urls: list[dict[str, Any]] = []
        if thumbnail_url:
            media_urls.append(
                {
                    "url": thumbnail_url,
                    "type": MediaType.IMAGE,
                    "width": to_int(get_field(thumbnail, "width")),
                    "height": to_int(get_field(thumbnail, "height")),
                }
            )

        statistics = get_field(raw_data, "statistics", {})

        return {
            "platform_content_id": video_id,
            "url": _WATCH_URL.format(video_id=video_id) if video_id else None,
            "title": get_field(snippet, "title") or "Untitled Video",
            "description": description,
            "content_body": description,
            "thumbnail_url": thumbnail_url,
            "published_at": published_at,
            "media_urls": media_urls,
            "engagement_metrics": compact_metrics(
                {
                    "views": get_field(statistics, "viewCount"),
                    "likes": get_field(statistics, "likeCount"),
                    "comments": get_field(statistics, "commentCount"),
                }
            ),
            "word_count": count_words(description),
            "reading_time_minutes": 0,
        }
