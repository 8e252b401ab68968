"""Unit tests for the ContentNormalizer and the per-platform adapters.

Tests cover:
- Field mapping for every platform (ids, URLs, titles, metrics, media)
- RSS items from both rss-parser dicts and real feedparser entries
- Derived fields: word count, reading time, ingestion-time default
- Unsupported platforms and payloads without any identifier
- Idempotence: the same payload normalizes to equal records
- normalize_multiple: per-item failures never abort the batch

These tests are pure unit tests — no database, no network, no Celery.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import feedparser
import pytest
from pydantic import ValidationError

from content_pipeline.config.platforms import Platform
from content_pipeline.core.exceptions import NormalizationError, UnsupportedPlatformError
from content_pipeline.core.normalizer import ContentNormalizer, default_adapters
from content_pipeline.core.schemas.content import MediaType, NormalizedContent
from tests.factories import (
    LinkedInPostFactory,
    RssItemFactory,
    ThreadsPostFactory,
    TweetPayloadFactory,
    WebsitePageFactory,
    YouTubeVideoFactory,
)

CREATOR = "creator-1"

_FEED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/">
  <channel>
    <title>Dune notes</title>
    <link>https://blog.example.com</link>
    <description>Field notes</description>
    <item>
      <title>Planting week</title>
      <link>https://blog.example.com/posts/planting-week</link>
      <guid>https://blog.example.com/?p=42</guid>
      <pubDate>Tue, 13 Oct 2026 08:30:00 GMT</pubDate>
      <description>Short summary of the week</description>
      <content:encoded><![CDATA[<p>We planted <b>marram</b> grass.</p><img src="https://cdn.example.com/dune.jpg" />]]></content:encoded>
      <enclosure url="https://cdn.example.com/ep42.mp3" type="audio/mpeg" length="12345" />
    </item>
  </channel>
</rss>
"""


# ---------------------------------------------------------------------------
# RSS
# ---------------------------------------------------------------------------


class TestRssNormalization:
    def test_rss_parser_item_field_mapping(self, normalizer: ContentNormalizer) -> None:
        """guid becomes the id; the snippet becomes the description."""
        item = RssItemFactory.build(
            guid="https://blog.example.com/?p=7",
            title="Dune planting",
            content="<p>one two three four</p>",
            contentSnippet="one two three four",
        )

        record = normalizer.normalize("rss", item, CREATOR)

        assert record.platform is Platform.RSS
        assert record.platform_content_id == "https://blog.example.com/?p=7"
        assert record.title == "Dune planting"
        assert record.description == "one two three four"
        assert record.content_body == "<p>one two three four</p>"
        assert record.word_count == 4
        assert record.reading_time_minutes == 1
        assert record.published_at == datetime(2026, 10, 13, 8, 30, tzinfo=timezone.utc)
        assert record.engagement_metrics == {}

    def test_feedparser_entry(self, normalizer: ContentNormalizer) -> None:
        """A real feedparser entry maps guid, body, timestamp and media."""
        entry = feedparser.parse(_FEED_XML).entries[0]

        record = normalizer.normalize(
            "rss", entry, CREATOR, source_url="https://blog.example.com/feed"
        )

        assert record.platform_content_id == "https://blog.example.com/?p=42"
        assert record.url == "https://blog.example.com/posts/planting-week"
        assert record.title == "Planting week"
        assert record.description == "Short summary of the week"
        assert "marram" in (record.content_body or "")
        assert record.word_count == 4
        assert record.published_at == datetime(2026, 10, 13, 8, 30, tzinfo=timezone.utc)
        by_type = {m.type: m for m in record.media_urls}
        assert by_type[MediaType.AUDIO].url == "https://cdn.example.com/ep42.mp3"
        assert by_type[MediaType.AUDIO].size == 12345
        assert by_type[MediaType.IMAGE].url == "https://cdn.example.com/dune.jpg"

    def test_empty_body_reads_in_zero_minutes(self, normalizer: ContentNormalizer) -> None:
        """An item with no content and no snippet has 0 words and 0 minutes."""
        item = {"guid": "empty-1", "title": "Nothing here", "pubDate": "2026-10-13"}

        record = normalizer.normalize("rss", item, CREATOR)

        assert record.word_count == 0
        assert record.reading_time_minutes == 0
        assert record.description == ""

    def test_missing_title_defaults_to_untitled(self, normalizer: ContentNormalizer) -> None:
        item = RssItemFactory.build(title=None)

        assert normalizer.normalize("rss", item, CREATOR).title == "Untitled"

    def test_source_url_and_date_form_last_resort_id(
        self, normalizer: ContentNormalizer
    ) -> None:
        """Without guid or link the id is '<source_url>_<pubDate>'."""
        item = {"title": "Orphan", "pubDate": "Tue, 13 Oct 2026 08:30:00 GMT"}

        record = normalizer.normalize(
            "rss", item, CREATOR, source_url="https://blog.example.com/feed"
        )

        assert record.platform_content_id == (
            "https://blog.example.com/feed_Tue, 13 Oct 2026 08:30:00 GMT"
        )

    def test_enclosure_type_maps_to_media_type(self, normalizer: ContentNormalizer) -> None:
        item = RssItemFactory.build(
            enclosure={
                "url": "https://cdn.example.com/clip.mp4",
                "type": "video/mp4",
                "length": "999",
            }
        )

        record = normalizer.normalize("rss", item, CREATOR)

        assert record.media_urls[0].type is MediaType.VIDEO
        assert record.media_urls[0].size == 999


# ---------------------------------------------------------------------------
# Video and social platforms
# ---------------------------------------------------------------------------


class TestYouTubeNormalization:
    def test_video_resource_field_mapping(self, normalizer: ContentNormalizer) -> None:
        video = YouTubeVideoFactory.build(id="dQw4w9WgXcQ")

        record = normalizer.normalize("youtube", video, CREATOR)

        assert record.platform_content_id == "dQw4w9WgXcQ"
        assert record.url == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
        assert record.thumbnail_url is not None
        assert record.thumbnail_url.endswith("/hqdefault.jpg")
        assert record.media_urls[0].type is MediaType.IMAGE
        assert record.media_urls[0].width == 480
        assert record.engagement_metrics == {"views": 1520, "likes": 88, "comments": 12}
        assert record.word_count == 10
        assert record.reading_time_minutes == 0

    def test_search_result_id_shape(self, normalizer: ContentNormalizer) -> None:
        """search.list results nest the id under id.videoId."""
        video = YouTubeVideoFactory.build(
            id={"kind": "youtube#video", "videoId": "abcdefghijk"}
        )

        assert normalizer.normalize("youtube", video, CREATOR).platform_content_id == (
            "abcdefghijk"
        )

    def test_missing_title_defaults(self, normalizer: ContentNormalizer) -> None:
        video = YouTubeVideoFactory.build(snippet={"description": "no title here"})

        record = normalizer.normalize("youtube", video, CREATOR)

        assert record.title == "Untitled Video"
        assert record.thumbnail_url is None


class TestTwitterNormalization:
    def test_tweet_field_mapping(self, normalizer: ContentNormalizer) -> None:
        tweet = TweetPayloadFactory.build(id="1846000000000000001", text="Hello dunes")

        record = normalizer.normalize("twitter", tweet, CREATOR)

        assert record.title is None
        assert record.description == "Hello dunes"
        assert record.content_body == "Hello dunes"
        assert record.url == "https://twitter.com/i/status/1846000000000000001"
        assert record.engagement_metrics == {
            "likes": 42,
            "retweets": 7,
            "comments": 3,
            "bookmarks": 1,
        }
        assert record.published_at == datetime(2026, 10, 14, 9, 0, tzinfo=timezone.utc)

    def test_legacy_timestamp_format(self, normalizer: ContentNormalizer) -> None:
        tweet = TweetPayloadFactory.build(created_at="Wed Oct 14 09:00:00 +0000 2026")

        record = normalizer.normalize("twitter", tweet, CREATOR)

        assert record.published_at == datetime(2026, 10, 14, 9, 0, tzinfo=timezone.utc)

    def test_unparseable_timestamp_defaults_to_ingestion_time(
        self, normalizer: ContentNormalizer
    ) -> None:
        tweet = TweetPayloadFactory.build(created_at="sometime last week")
        before = datetime.now(tz=timezone.utc)

        record = normalizer.normalize("twitter", tweet, CREATOR)

        assert record.published_at >= before - timedelta(seconds=1)
        assert record.published_at.tzinfo is not None

    def test_media_resolved_from_includes(self, normalizer: ContentNormalizer) -> None:
        """attachments.media_keys are looked up in the includes expansion."""
        tweet = TweetPayloadFactory.build(
            attachments={"media_keys": ["3_1", "7_2"]},
            includes={
                "media": [
                    {
                        "media_key": "3_1",
                        "type": "photo",
                        "url": "https://pbs.twimg.com/media/a.jpg",
                        "width": 1200,
                        "height": 800,
                    },
                    {
                        "media_key": "7_2",
                        "type": "video",
                        "preview_image_url": "https://pbs.twimg.com/preview.jpg",
                        "duration_ms": 15000,
                    },
                    {"media_key": "9_9", "type": "photo", "url": "https://unrelated"},
                ]
            },
        )

        record = normalizer.normalize("twitter", tweet, CREATOR)

        assert [m.type for m in record.media_urls] == [MediaType.IMAGE, MediaType.VIDEO]
        assert record.media_urls[0].width == 1200
        assert record.media_urls[1].duration == pytest.approx(15.0)


class TestLinkedInNormalization:
    def test_post_field_mapping(self, normalizer: ContentNormalizer) -> None:
        post = LinkedInPostFactory.build(
            id="7100",
            image={"url": "https://media.licdn.com/thumb.jpg"},
            images=["https://media.licdn.com/a.jpg", {"url": "https://media.licdn.com/b.jpg"}],
        )

        record = normalizer.normalize("linkedin", post, CREATOR)

        assert record.platform_content_id == "7100"
        assert record.thumbnail_url == "https://media.licdn.com/thumb.jpg"
        assert [m.url for m in record.media_urls] == [
            "https://media.licdn.com/a.jpg",
            "https://media.licdn.com/b.jpg",
        ]
        assert record.engagement_metrics == {"likes": 120, "comments": 9, "shares": 4}

    def test_urn_is_fallback_id(self, normalizer: ContentNormalizer) -> None:
        post = LinkedInPostFactory.build(id=None, urn="urn:li:activity:55")

        assert normalizer.normalize("linkedin", post, CREATOR).platform_content_id == (
            "urn:li:activity:55"
        )


class TestThreadsNormalization:
    def test_first_media_is_thumbnail(self, normalizer: ContentNormalizer) -> None:
        post = ThreadsPostFactory.build(
            media=[
                {"url": "https://cdn.threads.net/v.mp4", "type": "video"},
                {"url": "https://cdn.threads.net/i.jpg"},
            ]
        )

        record = normalizer.normalize("threads", post, CREATOR)

        assert record.title is None
        assert record.thumbnail_url == "https://cdn.threads.net/v.mp4"
        assert [m.type for m in record.media_urls] == [MediaType.VIDEO, MediaType.IMAGE]
        assert record.engagement_metrics == {"likes": 15, "comments": 2, "shares": 1}


class TestWebsiteNormalization:
    def test_url_is_identifier(self, normalizer: ContentNormalizer) -> None:
        page = WebsitePageFactory.build(url="https://www.dunes.example.org/articles/1")

        record = normalizer.normalize("website", page, CREATOR)

        assert record.platform_content_id == "https://www.dunes.example.org/articles/1"
        assert record.url == record.platform_content_id
        assert record.word_count == 7
        assert record.reading_time_minutes == 1
        assert record.published_at == datetime(2026, 10, 10, 7, 0, tzinfo=timezone.utc)

    def test_source_url_used_when_page_has_none(self, normalizer: ContentNormalizer) -> None:
        page = WebsitePageFactory.build(url=None)

        record = normalizer.normalize(
            "website", page, CREATOR, source_url="https://dunes.example.org/about"
        )

        assert record.platform_content_id == "https://dunes.example.org/about"


# ---------------------------------------------------------------------------
# Dispatch, failures and idempotence
# ---------------------------------------------------------------------------


class TestNormalizerDispatch:
    def test_unsupported_platform_raises(self, normalizer: ContentNormalizer) -> None:
        with pytest.raises(UnsupportedPlatformError) as exc_info:
            normalizer.normalize("carrier-pigeon", {"id": "1"}, CREATOR)

        assert exc_info.value.platform == "carrier-pigeon"

    def test_platform_enum_and_string_are_equivalent(
        self, normalizer: ContentNormalizer
    ) -> None:
        tweet = TweetPayloadFactory.build()

        assert normalizer.normalize(Platform.TWITTER, tweet, CREATOR) == normalizer.normalize(
            "Twitter", tweet, CREATOR
        )

    def test_payload_without_identifier_raises(self, normalizer: ContentNormalizer) -> None:
        with pytest.raises(NormalizationError):
            normalizer.normalize("rss", {"title": "no id, no link"}, CREATOR)

    def test_empty_creator_is_rejected(self, normalizer: ContentNormalizer) -> None:
        with pytest.raises(NormalizationError):
            normalizer.normalize("twitter", TweetPayloadFactory.build(), "")

    def test_normalization_is_idempotent(self, normalizer: ContentNormalizer) -> None:
        """The same payload yields equal records every time."""
        item = RssItemFactory.build()

        assert normalizer.normalize("rss", item, CREATOR) == normalizer.normalize(
            "rss", item, CREATOR
        )

    def test_incomplete_adapter_registry_is_rejected(self) -> None:
        adapters = default_adapters()
        del adapters[Platform.THREADS]

        with pytest.raises(ValueError, match="threads"):
            ContentNormalizer(adapters=adapters)

    def test_custom_words_per_minute(self) -> None:
        normalizer = ContentNormalizer(words_per_minute=2)
        item = RssItemFactory.build(content="one two three four five", contentSnippet=None)

        assert normalizer.normalize("rss", item, CREATOR).reading_time_minutes == 3


class TestNormalizeMultiple:
    def test_failures_are_collected_per_item(self, normalizer: ContentNormalizer) -> None:
        """One bad item is reported and the rest of the batch still normalizes."""
        good_1 = RssItemFactory.build(guid="good-1")
        bad = {"title": "no identifier"}
        good_2 = RssItemFactory.build(guid="good-2")

        batch = normalizer.normalize_multiple(CREATOR, "rss", [good_1, bad, good_2])

        assert [r.platform_content_id for r in batch.items] == ["good-1", "good-2"]
        assert len(batch.errors) == 1
        assert batch.errors[0].identifier == "item[1]"

    def test_error_identifier_prefers_payload_id(self, normalizer: ContentNormalizer) -> None:
        """A payload that fails after exposing an id is reported under it."""
        batch = normalizer.normalize_multiple(
            "", "twitter", [TweetPayloadFactory.build(id="42")]
        )

        assert batch.items == []
        assert batch.errors[0].identifier == "42"

    def test_unsupported_platform_fails_every_item(
        self, normalizer: ContentNormalizer
    ) -> None:
        batch = normalizer.normalize_multiple(CREATOR, "carrier-pigeon", [{"id": "a"}, {}])

        assert batch.items == []
        assert [e.identifier for e in batch.errors] == ["a", "item[1]"]
        assert all("carrier-pigeon" in e.error for e in batch.errors)

    def test_overflowing_counter_is_dropped(self, normalizer: ContentNormalizer) -> None:
        """A counter such as "Infinity" is treated as absent, not fatal."""
        hostile = YouTubeVideoFactory.build(
            id="bad", statistics={"viewCount": "Infinity", "likeCount": "1e400"}
        )
        batch = normalizer.normalize_multiple(
            CREATOR,
            "youtube",
            [YouTubeVideoFactory.build(), hostile, YouTubeVideoFactory.build()],
        )

        assert len(batch.items) == 3
        assert batch.errors == []
        assert batch.items[1].engagement_metrics == {}

    def test_unexpected_adapter_failure_is_collected(self) -> None:
        """Any exception escaping an adapter becomes a per-item error."""

        class _ExplodingAdapter:
            def normalize(self, raw_data, source_url=None):
                if raw_data.get("id") == "bad":
                    raise OverflowError("cannot convert float infinity to integer")
                return default_adapters()[Platform.YOUTUBE].normalize(raw_data, source_url)

        adapters = default_adapters()
        adapters[Platform.YOUTUBE] = _ExplodingAdapter()  # type: ignore[assignment]
        normalizer = ContentNormalizer(adapters=adapters)

        batch = normalizer.normalize_multiple(
            CREATOR,
            "youtube",
            [
                YouTubeVideoFactory.build(),
                YouTubeVideoFactory.build(id="bad"),
                YouTubeVideoFactory.build(),
            ],
        )

        assert len(batch.items) == 2
        assert [e.identifier for e in batch.errors] == ["bad"]
        assert "infinity" in batch.errors[0].error

    def test_unknown_counter_name_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            NormalizedContent(
                creator_id=CREATOR,
                platform=Platform.TWITTER,
                platform_content_id="1",
                engagement_metrics={"likes": 3, "reactions": 2},
                published_at=datetime(2026, 10, 14, tzinfo=timezone.utc),
            )
