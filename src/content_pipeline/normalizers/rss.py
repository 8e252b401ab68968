"""RSS/Atom item normalizer.

Accepts items in either of the two shapes fetchers hand us:

- rss-parser style dicts: ``guid``, ``link``, ``title``, ``content``,
  ``contentSnippet``, ``pubDate``, ``enclosure{url,type,length}``.
- feedparser entries: ``id``, ``link``, ``title``, ``summary``,
  ``content[].value``, ``published_parsed``/``updated_parsed``,
  ``enclosures[]``.
"""

from __future__ import annotations

import re
from typing import Any, Optional

import structlog

from content_pipeline.core.schemas.content import MediaType
from content_pipeline.core.text import strip_html
from content_pipeline.normalizers._helpers import (
    first_datetime,
    first_str,
    get_field,
    to_int,
)

logger = structlog.get_logger(__name__)

_IMG_SRC_RE = re.compile(r"""<img[^>]+src=["']([^"'>]+)["']""", re.IGNORECASE)

_DESCRIPTION_FALLBACK_CHARS = 300


class RssNormalizer:
    """Normalizes a single feed item into canonical content fields."""

    def normalize(
        self,
        raw_data: Any,
        source_url: Optional[str] = None,
    ) -> dict[str, Any]:
        """Normalize one RSS/Atom item.

        Args:
            raw_data: rss-parser item dict or feedparser entry.
            source_url: URL of the feed the item was read from.  Used as the
                link fallback and, combined with the publication date, as the
                identifier of last resort.

        Returns:
            Flat dict of canonical content fields.
        """
        content_body = self._extract_body(raw_data)
        snippet = first_str(raw_data, ("contentSnippet", "summary", "description"))
        plain_text = strip_html(content_body)

        link = first_str(raw_data, ("link",))
        platform_content_id = first_str(raw_data, ("guid", "id")) or link
        if not platform_content_id:
            pub_date = first_str(raw_data, ("pubDate", "published", "updated"))
            if source_url and pub_date:
                platform_content_id = f"{source_url}_{pub_date}"

        published_at = first_datetime(
            raw_data,
            ("pubDate", "isoDate", "published_parsed", "updated_parsed", "published", "updated"),
        )
        if published_at is None and get_field(raw_data, "pubDate") is not None:
            logger.warning(
                "rss.timestamp_parse_error",
                pub_date=get_field(raw_data, "pubDate"),
                link=link,
            )

        description = snippet
        if description and "<" in description:
            description = strip_html(description)
        if not description:
            description = plain_text[:_DESCRIPTION_FALLBACK_CHARS]

        return {
            "platform_content_id": platform_content_id,
            "url": link or source_url or None,
            "title": first_str(raw_data, ("title",)) or "Untitled",
            "description": description,
            "content_body": content_body,
            "published_at": published_at,
            "media_urls": self._extract_media(raw_data, content_body),
            "engagement_metrics": {},
        }

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_body(raw_data: Any) -> str:
        body = first_str(raw_data, ("content", "content:encoded"))
        if body:
            return body
        # feedparser exposes content as a list of {type, value} dicts.
        content = get_field(raw_data, "content")
        if isinstance(content, list):
            for part in content:
                value = get_field(part, "value")
                if isinstance(value, str) and value.strip():
                    return value
        return first_str(raw_data, ("contentSnippet", "summary", "description")) or ""

    @staticmethod
    def _extract_media(raw_data: Any, content_body: str) -> list[dict[str, Any]]:
        media: list[dict[str, Any]] = []

        enclosures: list[Any] = []
        single = get_field(raw_data, "enclosure")
        if single:
            enclosures.append(single)
        multiple = get_field(raw_data, "enclosures")
        if isinstance(multiple, list):
            enclosures.extend(multiple)

        for enclosure in enclosures:
            url = first_str(enclosure, ("url", "href"))
            if not url:
                continue
            media.append(
                {
                    "url": url,
                    "type": MediaType.from_mime(first_str(enclosure, ("type",))),
                    "size": to_int(get_field(enclosure, "length")),
                }
            )

        for src in _IMG_SRC_RE.findall(content_body or ""):
            media.append({"url": src, "type": MediaType.IMAGE})

        return media
