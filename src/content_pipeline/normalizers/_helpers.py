"""Field-extraction helpers shared by the platform adapters.

Raw payloads arrive as plain dicts, feedparser ``FeedParserDict`` objects or
SDK objects exposing attributes; :func:`get_field` papers over the
difference so adapters can be written once.
"""

from __future__ import annotations

import calendar
import logging
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)

_DATETIME_FORMATS: tuple[str, ...] = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%d %H:%M:%S",
    "%a %b %d %H:%M:%S %z %Y",  # Twitter v1.1: "Mon Jan 15 12:34:56 +0000 2026"
    "%Y-%m-%d",
)


def get_field(raw: Any, key: str, default: Any = None) -> Any:
    """Return ``raw[key]`` for mappings or ``raw.key`` for objects."""
    if raw is None:
        return default
    if isinstance(raw, Mapping):
        value = raw.get(key, default)
    else:
        value = getattr(raw, key, default)
    return default if value is None else value


def get_path(raw: Any, *keys: str) -> Any:
    """Walk nested mappings/objects; ``None`` as soon as a level is missing."""
    current = raw
    for key in keys:
        current = get_field(current, key)
        if current is None:
            return None
    return current


def first_str(raw: Any, keys: Iterable[str]) -> str | None:
    """Return the first non-empty string value found under any of *keys*.

    Args:
        raw: Source mapping or object.
        keys: Candidate keys to try in order.

    Returns:
        First non-empty, stripped string value, or ``None``.
    """
    for key in keys:
        value = get_field(raw, key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
    return None


def to_int(value: Any) -> int | None:
    """Coerce *value* to ``int``; ``None`` when it is absent or not numeric.

    Numeric strings such as YouTube's ``"12345"`` statistics are accepted.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return None


def compact_metrics(counters: Mapping[str, Any]) -> dict[str, int]:
    """Keep only the counters that are actually present on the payload.

    Absent counters are omitted, never defaulted to zero, so downstream
    consumers can tell "no likes" from "likes not reported".
    """
    metrics: dict[str, int] = {}
    for name, raw_value in counters.items():
        value = to_int(raw_value)
        if value is not None:
            metrics[name] = value
    return metrics


def parse_datetime(value: Any) -> datetime | None:
    """Parse a publication timestamp into a timezone-aware UTC datetime.

    Handles:

    - ``datetime`` objects (naive values are assumed to be UTC).
    - Unix epoch integers/floats and numeric strings.
    - ``time.struct_time`` values (feedparser's ``*_parsed`` fields).
    - ISO 8601 strings, Twitter v1.1 strings and RFC 822 strings
      (RSS ``pubDate``).

    Args:
        value: Raw timestamp value.

    Returns:
        UTC :class:`datetime`, or ``None`` when *value* is absent or
        unparseable.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, time.struct_time):
        try:
            return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)
        except (OverflowError, ValueError):
            return None

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OSError, OverflowError, ValueError):
            return None

    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    if text.isdigit():
        return parse_datetime(int(text))

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
    if parsed is None:
        for fmt in _DATETIME_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            logger.debug("Could not parse datetime string '%s'", text)
            return None
    return parse_datetime(parsed)


def first_datetime(raw: Any, keys: Iterable[str]) -> datetime | None:
    """Return the first parseable timestamp found under any of *keys*."""
    for key in keys:
        parsed = parse_datetime(get_field(raw, key))
        if parsed is not None:
            return parsed
    return None
