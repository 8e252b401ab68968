"""Generic web-page normalizer for scraped articles.

A scraped page has no native id; its canonical URL (or the URL it was
scraped from) is the identifier.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from content_pipeline.core.schemas.content import MediaType
from content_pipeline.normalizers._helpers import first_datetime, first_str, get_field

logger = structlog.get_logger(__name__)


class WebsiteNormalizer:
    """Normalizes scraped web pages."""

    def normalize(
        self,
        raw_data: Any,
        source_url: Optional[str] = None,
    ) -> dict[str, Any]:
        url = first_str(raw_data, ("url",)) or source_url

        published_at = first_datetime(raw_data, ("publishDate", "datePublished"))
        if published_at is None and (
            get_field(raw_data, "publishDate") or get_field(raw_data, "datePublished")
        ):
            logger.warning("website.timestamp_parse_error", url=url)

        media_urls: list[dict[str, Any]] = []
        for image in get_field(raw_data, "images", []) or []:
            image_url = image if isinstance(image, str) else get_field(image, "url")
            if image_url:
                media_urls.append({"url": image_url, "type": MediaType.IMAGE})

        return {
            "platform_content_id": url,
            "url": url,
            "title": first_str(raw_data, ("title",)) or "Untitled",
            "description": first_str(raw_data, ("description", "excerpt")),
            "content_body": first_str(raw_data, ("content", "body")) or "",
            "thumbnail_url": first_str(raw_data, ("image", "thumbnail")),
            "published_at": published_at,
            "media_urls": media_urls,
            "engagement_metrics": {},
        }
