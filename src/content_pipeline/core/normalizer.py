"""Normalizer pipeline: raw platform payloads -> canonical content records.

The ``ContentNormalizer`` dispatches each raw payload to the adapter for its
platform (see :mod:`content_pipeline.normalizers`), then finalises the flat
field dict the adapter returns:

- ``word_count`` and ``reading_time_minutes`` are derived from the
  markup-stripped body (or description) only when the adapter did not
  supply them.
- ``published_at`` defaults to the ingestion time when the payload carries
  no usable timestamp.
- The result is validated into a :class:`NormalizedContent`.

Normalization is pure apart from that timestamp default: normalizing the
same payload twice yields equal records.

Example usage::

    from content_pipeline.core.normalizer import ContentNormalizer

    normalizer = ContentNormalizer()
    record = normalizer.normalize(
        platform="rss",
        raw_payload={"guid": "abc", "title": "Hello", "link": "https://example.com/a"},
        creator_id="creator-1",
    )
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Protocol

from pydantic import ValidationError

from content_pipeline.config.platforms import Platform
from content_pipeline.core.exceptions import NormalizationError
from content_pipeline.core.schemas.content import (
    BatchItemError,
    NormalizedBatch,
    NormalizedContent,
)
from content_pipeline.core.text import (
    DEFAULT_WORDS_PER_MINUTE,
    count_words,
    reading_time_minutes,
)
from content_pipeline.normalizers import (
    LinkedInNormalizer,
    RssNormalizer,
    ThreadsNormalizer,
    TwitterNormalizer,
    WebsiteNormalizer,
    YouTubeNormalizer,
)
from content_pipeline.normalizers._helpers import first_str

logger = logging.getLogger(__name__)

# Keys tried, in order, when a payload fails before an id could be extracted.
_IDENTIFIER_KEYS: tuple[str, ...] = ("id", "guid", "urn", "link", "url")


class PlatformAdapter(Protocol):
    """Interface every per-platform normalizer implements."""

    def normalize(self, raw_data: Any, source_url: Optional[str] = None) -> dict[str, Any]:
        ...


def default_adapters() -> dict[Platform, PlatformAdapter]:
    """Return a fresh adapter instance for every supported platform."""
    return {
        Platform.RSS: RssNormalizer(),
        Platform.YOUTUBE: YouTubeNormalizer(),
        Platform.TWITTER: TwitterNormalizer(),
        Platform.LINKEDIN: LinkedInNormalizer(),
        Platform.THREADS: ThreadsNormalizer(),
        Platform.WEBSITE: WebsiteNormalizer(),
    }


class ContentNormalizer:
    """Maps raw platform payloads to :class:`NormalizedContent` records.

    The normalizer is stateless; a single instance can be shared across
    tasks.

    Args:
        words_per_minute: Reading speed used for ``reading_time_minutes``.
        adapters: Optional adapter mapping overriding the defaults.  It must
            cover every :class:`Platform` member.

    Raises:
        ValueError: When *adapters* does not cover every platform.
    """

    def __init__(
        self,
        words_per_minute: int = DEFAULT_WORDS_PER_MINUTE,
        adapters: Optional[Mapping[Platform, PlatformAdapter]] = None,
    ) -> None:
        self._words_per_minute = words_per_minute
        self._adapters: dict[Platform, PlatformAdapter] = dict(
            adapters if adapters is not None else default_adapters()
        )
        missing = [p.value for p in Platform if p not in self._adapters]
        if missing:
            raise ValueError(f"No normalizer adapter registered for: {', '.join(missing)}")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def normalize(
        self,
        platform: str | Platform,
        raw_payload: Any,
        creator_id: str,
        source_url: Optional[str] = None,
    ) -> NormalizedContent:
        """Normalize a single raw payload.

        Args:
            platform: Platform of the payload; a :class:`Platform` member or
                its string value.
            raw_payload: Platform-specific payload (dict, feedparser entry or
                attribute-bearing object).
            creator_id: Identifier of the content's author/account.
            source_url: Feed or page URL the payload was fetched from.

        Returns:
            The canonical record.

        Raises:
            UnsupportedPlatformError: When *platform* is not supported.
            NormalizationError: When the payload lacks an identifier or does
                not validate.
        """
        resolved = Platform.parse(platform)
        adapter = self._adapters[resolved]

        try:
            fields = adapter.normalize(raw_payload, source_url)
        except NormalizationError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise NormalizationError(
                f"{resolved.value} adapter failed: {exc}",
                platform=resolved.value,
                raw_item=raw_payload if isinstance(raw_payload, dict) else None,
            ) from exc

        if not fields.get("platform_content_id"):
            raise NormalizationError(
                "Payload has no native id and no canonical URL",
                platform=resolved.value,
                raw_item=raw_payload if isinstance(raw_payload, dict) else None,
            )

        self._finalise(fields)

        try:
            return NormalizedContent(creator_id=creator_id, platform=resolved, **fields)
        except ValidationError as exc:
            raise NormalizationError(
                f"Normalized {resolved.value} record is invalid: {exc.error_count()} error(s)",
                platform=resolved.value,
                raw_item=raw_payload if isinstance(raw_payload, dict) else None,
            ) from exc

    def normalize_multiple(
        self,
        creator_id: str,
        platform: str | Platform,
        raw_items: Iterable[Any],
        source_url: Optional[str] = None,
    ) -> NormalizedBatch:
        """Normalize a sequence of payloads, collecting per-item failures.

        A failing item never aborts the batch: it is recorded in
        ``errors`` under its best-effort identifier and normalization
        continues with the next item.

        Args:
            creator_id: Identifier of the content's author/account.
            platform: Platform shared by every item.
            raw_items: Raw payloads in fetch order.
            source_url: Feed or page URL the payloads were fetched from.

        Returns:
            Successfully normalized records (input order preserved) and one
            error entry per failed item.
        """
        batch = NormalizedBatch()
        for index, raw_item in enumerate(raw_items):
            try:
                batch.items.append(
                    self.normalize(platform, raw_item, creator_id, source_url)
                )
            except NormalizationError as exc:
                identifier = first_str(raw_item, _IDENTIFIER_KEYS) or f"item[{index}]"
                logger.warning(
                    "Normalization failed for %s item %s: %s",
                    platform,
                    identifier,
                    exc,
                )
                batch.errors.append(BatchItemError(identifier=identifier, error=str(exc)))
        return batch

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _finalise(self, fields: dict[str, Any]) -> None:
        """Fill derived fields the adapter left unset, in place."""
        if fields.get("word_count") is None:
            text = fields.get("content_body") or fields.get("description") or ""
            fields["word_count"] = count_words(text)
        if fields.get("reading_time_minutes") is None:
            fields["reading_time_minutes"] = reading_time_minutes(
                fields["word_count"], self._words_per_minute
            )
        if fields.get("published_at") is None:
            fields["published_at"] = datetime.now(tz=timezone.utc)
