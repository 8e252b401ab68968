"""Threads post normalizer.

Threads posts have no title.  The first media item doubles as the thumbnail.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from content_pipeline.core.schemas.content import MediaType
from content_pipeline.normalizers._helpers import (
    compact_metrics,
    first_str,
    get_field,
    parse_datetime,
)

logger = structlog.get_logger(__name__)


class ThreadsNormalizer:
    """Normalizes Threads posts."""

    def normalize(
        self,
        raw_data: Any,
        source_url: Optional[str] = None,  # noqa: ARG002
    ) -> dict[str, Any]:
        """Normalize one Threads post.

        Args:
            raw_data: Post dict with ``id``, ``url``, ``text``, ``timestamp``,
                ``media[]`` and the ``likeCount``/``replyCount``/``shareCount``
                counters.
            source_url: Unused; accepted for interface parity.

        Returns:
            Flat dict of canonical content fields.
        """
        text = first_str(raw_data, ("text",)) or ""

        timestamp = get_field(raw_data, "timestamp")
        published_at = parse_datetime(timestamp)
        if timestamp is not None and published_at is None:
            logger.warning("threads.timestamp_parse_error", timestamp=timestamp)

        media_urls: list[dict[str, Any]] = []
        for item in get_field(raw_data, "media", []) or []:
            url = get_field(item, "url")
            if not url:
                continue
            media_urls.append(
                {"url": url, "type": MediaType.from_mime(get_field(item, "type", "image"))}
            )

        return {
            "platform_content_id": first_str(raw_data, ("id",)),
            "url": first_str(raw_data, ("url",)),
            "title": None,
            "description": text,
            "content_body": text,
            "thumbnail_url": media_urls[0]["url"] if media_urls else None,
            "published_at": published_at,
            "media_urls": media_urls,
            "engagement_metrics": compact_metrics(
                {
                    "likes": get_field(raw_data, "likeCount"),
                    "comments": get_field(raw_data, "replyCount"),
                    "shares": get_field(raw_data, "shareCount"),
                }
            ),
        }
