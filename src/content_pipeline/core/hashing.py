"""Content identity hashing.

``generate_content_hash`` computes the SHA-256 identity of a content record
with a platform-dependent strategy:

- **Social platforms** (twitter, linkedin, threads): ``creator_id`` plus the
  fingerprint of the post text.  Fingerprinting absorbs punctuation, casing
  and trailing drift (appended boilerplate, truncation past the first 100
  significant tokens) while still requiring the same author.
- **YouTube**: ``creator_id`` plus the normalized text, plus the video id
  when it can be parsed from the URL.
- **RSS and websites**: ``creator_id`` plus the normalized text, plus the
  URL's domain when it parses, so identical headlines syndicated from
  different sites stay distinct.

Components are joined with ``":"`` before hashing.  The digest is not
security-critical; it only has to make accidental collisions between
unrelated content negligible.
"""

from __future__ import annotations

import hashlib
import re
from typing import Any, Optional
from urllib.parse import urlparse

from content_pipeline.config.platforms import SOCIAL_PLATFORMS, Platform
from content_pipeline.core.text import DEFAULT_FINGERPRINT_TOKENS, fingerprint, normalize_text

_SOCIAL_VALUES: frozenset[str] = frozenset(p.value for p in SOCIAL_PLATFORMS)

_YOUTUBE_ID_PATTERNS: tuple[tuple[re.Pattern[str], int], ...] = (
    (
        re.compile(
            r"(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?)/|.*[?&]v=)|youtu\.be/)"
            r"([^\"&?/\s]{11})"
        ),
        1,
    ),
    (re.compile(r"^.*(youtu.be/|v/|u/\w/|embed/|watch\?v=|&v=)([^#&?]*).*"), 2),
)
_YOUTUBE_ID_LENGTH = 11


def _platform_value(platform: Any) -> str:
    return str(getattr(platform, "value", platform) or "").strip().lower()


def get_content_text(record: Any) -> str:
    """Return the most meaningful free text of *record* for identity purposes.

    Social posts rarely have a meaningful title, so they prefer the
    description, then the body, then the title.  Every other platform
    prefers the title, then the description, then the body.

    Args:
        record: Any object exposing ``platform``, ``title``, ``description``
            and ``content_body`` attributes.

    Returns:
        The first non-empty candidate, or ``""``.
    """
    title = getattr(record, "title", None)
    description = getattr(record, "description", None)
    body = getattr(record, "content_body", None)
    if _platform_value(getattr(record, "platform", None)) in _SOCIAL_VALUES:
        candidates = (description, body, title)
    else:
        candidates = (title, description, body)
    return next((c for c in candidates if c), "")


def extract_video_id(url: Optional[str], platform: str | Platform) -> Optional[str]:
    """Extract the platform video id from *url*.

    Only YouTube URLs are understood (``watch?v=``, ``youtu.be/``,
    ``embed/``, ``v/`` and ``u/<x>/`` forms).  An id is accepted only when it
    is exactly 11 characters long.

    Returns:
        The video id, or ``None``.
    """
    if not url or _platform_value(platform) != Platform.YOUTUBE.value:
        return None
    for pattern, group in _YOUTUBE_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            candidate = match.group(group)
            if candidate and len(candidate) == _YOUTUBE_ID_LENGTH:
                return candidate
    return None


def extract_domain(url: Optional[str]) -> str:
    """Return the hostname of *url* without a leading ``www.``.

    Returns ``""`` when *url* is empty or is not an absolute URL.
    """
    if not url:
        return ""
    try:
        hostname = urlparse(url.strip()).hostname
    except ValueError:
        return ""
    if not hostname:
        return ""
    return hostname[4:] if hostname.startswith("www.") else hostname


def generate_content_hash(record: Any, max_tokens: int = DEFAULT_FINGERPRINT_TOKENS) -> str:
    """Compute the identity hash of *record*.

    Pure: the same record always yields the same hash, and records differing
    only in ``creator_id`` always yield different hashes.

    Args:
        record: A :class:`NormalizedContent`, :class:`StoredContent` or any
            object with ``creator_id``, ``platform``, ``url`` and the text
            fields.
        max_tokens: Fingerprint length for social platforms.

    Returns:
        Lowercase hex SHA-256 digest (64 characters).
    """
    platform = _platform_value(getattr(record, "platform", None))
    url = getattr(record, "url", None)
    text = get_content_text(record)
    components = [str(getattr(record, "creator_id", "") or "")]

    if platform in _SOCIAL_VALUES:
        components.append(fingerprint(text, max_tokens))
    else:
        components.append(normalize_text(text))
        if platform == Platform.YOUTUBE.value:
            video_id = extract_video_id(url, platform)
            if video_id:
                components.append(video_id)
        elif platform in (Platform.RSS.value, Platform.WEBSITE.value):
            domain = extract_domain(url)
            if domain:
                components.append(domain)

    return hashlib.sha256(":".join(components).encode("utf-8")).hexdigest()
