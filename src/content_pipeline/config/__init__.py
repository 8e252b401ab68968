"""Configuration package for the content pipeline.

Re-exports the most commonly used configuration symbols so that
callers can write::

    from content_pipeline.config import get_settings, Platform, PLATFORM_PRIORITY

without needing to know which sub-module each symbol lives in.
"""

from __future__ import annotations

from content_pipeline.config.platforms import (
    PLATFORM_PRIORITY,
    SOCIAL_PLATFORMS,
    UNKNOWN_PLATFORM_PRIORITY,
    Platform,
    is_social,
)
from content_pipeline.config.settings import Settings, get_settings

__all__ = [
    # settings
    "Settings",
    "get_settings",
    # platforms
    "Platform",
    "SOCIAL_PLATFORMS",
    "PLATFORM_PRIORITY",
    "UNKNOWN_PLATFORM_PRIORITY",
    "is_social",
]
