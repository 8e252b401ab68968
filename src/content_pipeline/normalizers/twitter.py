"""Twitter/X normalizer for API v2 tweet objects.

Tweets have no title; the tweet text is both the description and the body.
Media come from two places: v2 ``attachments.media_keys`` resolved against
the response's ``includes.media`` expansion, and the legacy v1.1
``entities.media`` array.
"""

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
    to_int,
)

logger = structlog.get_logger(__name__)

_STATUS_URL = "https://twitter.com/i/status/{tweet_id}"


class TwitterNormalizer:
    """Normalizes Twitter/X tweet objects."""

    def normalize(
        self,
        raw_data: Any,
        source_url: Optional[str] = None,  # noqa: ARG002
    ) -> dict[str, Any]:
        """Normalize one tweet.

        Args:
            raw_data: Tweet object, optionally carrying the ``includes``
                expansion of the response it came from.
            source_url: Unused; accepted for interface parity.

        Returns:
            Flat dict of canonical content fields.
        """
        tweet_id = first_str(raw_data, ("id", "id_str", "rest_id"))
        text = first_str(raw_data, ("text", "full_text")) or ""

        created_at = get_field(raw_data, "created_at")
        published_at = self._parse_twitter_timestamp(created_at)

        metrics = get_field(raw_data, "public_metrics", {})

        return {
            "platform_content_id": tweet_id,
            "url": _STATUS_URL.format(tweet_id=tweet_id) if tweet_id else None,
            "title": None,
            "description": text,
            "content_body": text,
            "published_at": published_at,
            "media_urls": self._extract_media(raw_data),
            "engagement_metrics": compact_metrics(
                {
                    "likes": get_field(metrics, "like_count"),
                    "retweets": get_field(metrics, "retweet_count"),
                    "comments": get_field(metrics, "reply_count"),
                    "bookmarks": get_field(metrics, "bookmark_count"),
                }
            ),
        }

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_twitter_timestamp(value: Any) -> Any:
        """Parse a v2 ISO timestamp or a v1.1 ``"Mon Jan 15 ..."`` timestamp."""
        if value is None:
            return None
        parsed = parse_datetime(value)
        if parsed is None:
            logger.warning("twitter.timestamp_parse_error", created_at=value)
        return parsed

    @staticmethod
    def _extract_media(raw_data: Any) -> list[dict[str, Any]]:
        media: list[dict[str, Any]] = []

        media_keys = get_path(raw_data, "attachments", "media_keys") or []
        included = get_path(raw_data, "includes", "media") or []
        if media_keys and included:
            wanted = set(media_keys)
            for item in included:
                if get_field(item, "media_key") not in wanted:
                    continue
                kind = get_field(item, "type")
                if kind == "photo":
                    url = first_str(item, ("url", "preview_image_url"))
                    duration = None
                elif kind in ("video", "animated_gif"):
                    # Only the preview frame is addressable for videos.
                    url = first_str(item, ("preview_image_url",))
                    duration_ms = to_int(get_field(item, "duration_ms"))
                    duration = duration_ms / 1000 if duration_ms else None
                else:
                    continue
                if not url:
                    continue
                media.append(
                    {
                        "url": url,
                        "type": MediaType.from_mime(kind),
                        "width": to_int(get_field(item, "width")),
                        "height": to_int(get_field(item, "height")),
                        "duration": duration,
                    }
                )

        for item in get_path(raw_data, "entities", "media") or []:
            url = first_str(item, ("media_url_https", "media_url"))
            if not url:
                continue
            kind = get_field(item, "type")
            media.append(
                {
                    "url": url,
                    "type": MediaType.IMAGE if kind == "photo" else MediaType.VIDEO,
                }
            )

        return media
