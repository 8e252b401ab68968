"""LinkedIn post normalizer for scraper output."""

from __future__ import annotations

from typing import Any, Optional

import structlog

from content_pipeline.core.schemas.content import MediaType
from content_pipeline.normalizers._helpers import (
    compact_metrics,
    first_str,
    get_field,
    get_path,
    parse_datetime,
)

logger = structlog.get_logger(__name__)


class LinkedInNormalizer:
    """Normalizes scraped LinkedIn posts.

    The post identifier is the numeric ``id`` when the scraper provides one,
    otherwise the activity ``urn``.
    """

    def normalize(
        self,
        raw_data: Any,
        source_url: Optional[str] = None,  # noqa: ARG002
    ) -> dict[str, Any]:
        text = first_str(raw_data, ("text", "commentary")) or ""

        published_raw = get_field(raw_data, "publishedAt")
        published_at = parse_datetime(published_raw)
        if published_raw is not None and published_at is None:
            logger.warning("linkedin.timestamp_parse_error", published_at=published_raw)

        media_urls: list[dict[str, Any]] = []
        for image in get_field(raw_data, "images", []) or []:
            url = image if isinstance(image, str) else get_field(image, "url")
            if url:
                media_urls.append({"url": url, "type": MediaType.IMAGE})

        return {
            "platform_content_id": first_str(raw_data, ("id", "urn")),
            "url": first_str(raw_data, ("url",)),
            "title": first_str(raw_data, ("title",)),
            "description": text,
            "content_body": text,
            "thumbnail_url": get_path(raw_data, "image", "url"),
            "published_at": published_at,
            "media_urls": media_urls,
            "engagement_metrics": compact_metrics(
                {
                    "likes": get_field(raw_data, "numLikes"),
                    "comments": get_field(raw_data, "numComments"),
                    "shares": get_field(raw_data, "numShares"),
                }
            ),
        }
