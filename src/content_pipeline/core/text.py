"""Pure text helpers shared by the normalizer, the hash engine and the resolver.

Nothing in this module performs I/O or depends on configuration; every
function is total and deterministic, so the same input always produces the
same output.

Normalization rules (:func:`normalize_text`):

1. Lowercase.
2. Replace every non-word character with a space.  "Word" follows Python's
   Unicode ``\\w`` class, so letters such as ``æ``, ``é`` or ``ß`` survive.
3. Collapse runs of whitespace to a single space and strip the ends.

A *significant* token is a whitespace-delimited token of the normalized text
that is longer than :data:`MIN_TOKEN_LENGTH` characters.
"""

from __future__ import annotations

import math
import re

_NON_WORD_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_HTML_TAG_RE = re.compile(r"<[^>]*>")

MIN_TOKEN_LENGTH: int = 2
"""Tokens of this length or shorter are ignored for similarity and fingerprints."""

DEFAULT_FINGERPRINT_TOKENS: int = 100
DEFAULT_WORDS_PER_MINUTE: int = 200


def normalize_text(text: str | None) -> str:
    """Return the canonical comparison form of *text*.

    Args:
        text: Arbitrary input; ``None`` is treated as the empty string.

    Returns:
        Lowercased text with punctuation replaced by spaces and whitespace
        collapsed.  Empty input yields ``""``.
    """
    if not text:
        return ""
    lowered = text.lower()
    spaced = _NON_WORD_RE.sub(" ", lowered)
    return _WHITESPACE_RE.sub(" ", spaced).strip()


def tokenize_significant(text: str | None) -> list[str]:
    """Split the normalized form of *text* into significant tokens.

    Order and repeats are preserved.

    Args:
        text: Arbitrary input text.

    Returns:
        Tokens longer than :data:`MIN_TOKEN_LENGTH` characters.
    """
    normalized = normalize_text(text)
    if not normalized:
        return []
    return [token for token in normalized.split(" ") if len(token) > MIN_TOKEN_LENGTH]


def jaccard_similarity(text_a: str | None, text_b: str | None) -> float:
    """Compute the Jaccard similarity of the significant-token sets of two texts.

    Two texts with no significant tokens at all have similarity ``0.0``
    rather than an undefined ``0/0``, so empty strings never match each other.

    Args:
        text_a: First text.
        text_b: Second text.

    Returns:
        ``|A ∩ B| / |A ∪ B|`` in the closed interval ``[0.0, 1.0]``.
    """
    tokens_a = set(tokenize_significant(text_a))
    tokens_b = set(tokenize_significant(text_b))
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def fingerprint(text: str | None, max_tokens: int = DEFAULT_FINGERPRINT_TOKENS) -> str:
    """Return an order-preserving summary of the leading content of *text*.

    Two near-duplicate texts that share the same opening converge to the same
    fingerprint even when one of them was truncated or re-flowed downstream.

    Args:
        text: Source text.
        max_tokens: Maximum number of significant tokens to keep.

    Returns:
        The first *max_tokens* significant tokens joined by single spaces.
    """
    return " ".join(tokenize_significant(text)[:max_tokens])


def strip_html(text: str | None) -> str:
    """Strip HTML tags from *text* and collapse whitespace.

    Args:
        text: Raw string that may contain HTML markup.

    Returns:
        Plain-text string with tags removed and whitespace normalized.
    """
    if not text:
        return ""
    cleaned = _HTML_TAG_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def count_words(text: str | None) -> int:
    """Count whitespace-delimited tokens in the markup-stripped *text*."""
    plain = strip_html(text)
    if not plain:
        return 0
    return len(plain.split(" "))


def reading_time_minutes(
    word_count: int,
    words_per_minute: int = DEFAULT_WORDS_PER_MINUTE,
) -> int:
    """Return ``ceil(word_count / words_per_minute)``; zero words read in zero minutes."""
    if word_count <= 0:
        return 0
    return math.ceil(word_count / words_per_minute)
