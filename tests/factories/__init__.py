"""Factory Boy factories for test data generation.

Available factories
-------------------
RssItemFactory          — rss-parser style feed item dict
YouTubeVideoFactory     — YouTube Data API video resource dict
TweetPayloadFactory     — Twitter/X API v2 tweet dict
LinkedInPostFactory     — scraped LinkedIn post dict
ThreadsPostFactory      — Threads post dict
WebsitePageFactory      — scraped web page dict
StoredContentFactory    — keyword arguments for a StoredContent row
"""

from __future__ import annotations

from tests.factories.content import (
    LinkedInPostFactory,
    RssItemFactory,
    StoredContentFactory,
    ThreadsPostFactory,
    TweetPayloadFactory,
    WebsitePageFactory,
    YouTubeVideoFactory,
)

__all__ = [
    "LinkedInPostFactory",
    "RssItemFactory",
    "StoredContentFactory",
    "ThreadsPostFactory",
    "TweetPayloadFactory",
    "WebsitePageFactory",
    "YouTubeVideoFactory",
]
