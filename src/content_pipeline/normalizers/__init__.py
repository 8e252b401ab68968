"""Platform-specific normalizer adapters.

Each adapter implements a ``normalize()`` method that takes:
- raw_data: The platform payload as returned by the fetcher
- source_url: The feed/page URL the payload was fetched from, if any

And returns a flat dict of canonical content fields that
:class:`content_pipeline.core.normalizer.ContentNormalizer` finalises into a
``NormalizedContent``.

Normalizers:
- RssNormalizer: rss-parser items and feedparser entries
- YouTubeNormalizer: YouTube Data API v3 video resources
- TwitterNormalizer: Twitter/X API v2 tweets (with legacy media entities)
- LinkedInNormalizer: scraped LinkedIn posts
- ThreadsNormalizer: Threads posts
- WebsiteNormalizer: scraped web pages
"""

from __future__ import annotations

__all__ = [
    "RssNormalizer",
    "YouTubeNormalizer",
    "TwitterNormalizer",
    "LinkedInNormalizer",
    "ThreadsNormalizer",
    "WebsiteNormalizer",
]

from content_pipeline.normalizers.linkedin import LinkedInNormalizer
from content_pipeline.normalizers.rss import RssNormalizer
from content_pipeline.normalizers.threads import ThreadsNormalizer
from content_pipeline.normalizers.twitter import TwitterNormalizer
from content_pipeline.normalizers.website import WebsiteNormalizer
from content_pipeline.normalizers.youtube import YouTubeNormalizer
