"""Supported content platforms and their static ranking.

Defines the closed set of platforms the pipeline can normalize, the subset
treated as "social" for fingerprinting and similarity matching, and the
priority table used when electing the primary record of a duplicate group.

The priority table is exposed as a read-only mapping so that callers can
inject an alternative ranking into :func:`content_pipeline.core.primary.select_primary`
without mutating shared state.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping

from content_pipeline.core.exceptions import UnsupportedPlatformError


class Platform(str, Enum):
    """Closed enumeration of platforms the normalizer understands."""

    YOUTUBE = "youtube"
    TWITTER = "twitter"
    LINKEDIN = "linkedin"
    THREADS = "threads"
    RSS = "rss"
    WEBSITE = "website"

    @classmethod
    def parse(cls, value: str | Platform) -> Platform:
        """Return the :class:`Platform` for *value*.

        Args:
            value: A platform member or its lowercase string value.

        Raises:
            UnsupportedPlatformError: When *value* is not one of the
                supported platforms.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedPlatformError(str(value)) from None


SOCIAL_PLATFORMS: frozenset[Platform] = frozenset(
    {Platform.TWITTER, Platform.LINKEDIN, Platform.THREADS}
)
"""Platforms whose captions are fingerprinted and eligible for the
similarity fallback."""


UNKNOWN_PLATFORM_PRIORITY: int = 0

PLATFORM_PRIORITY: Mapping[str, int] = MappingProxyType(
    {
        Platform.YOUTUBE.value: 10,
        Platform.TWITTER.value: 8,
        Platform.LINKEDIN.value: 7,
        Platform.THREADS.value: 6,
        Platform.RSS.value: 5,
        Platform.WEBSITE.value: 4,
    }
)
"""Primary-election priority per platform (higher wins).

Platforms missing from the mapping rank at :data:`UNKNOWN_PLATFORM_PRIORITY`.
"""


def is_social(platform: str | Platform) -> bool:
    """Return ``True`` when *platform* is one of :data:`SOCIAL_PLATFORMS`."""
    try:
        return Platform.parse(platform) in SOCIAL_PLATFORMS
    except UnsupportedPlatformError:
        return False
