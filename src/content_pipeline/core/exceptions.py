"""Exception hierarchy for the content pipeline.

All custom exceptions subclass ``ContentPipelineError``, enabling
consistent error handling and structured logging across the pipeline.

Hierarchy::

    ContentPipelineError
    ├── NormalizationError
    │   └── UnsupportedPlatformError   (platform: str)
    ├── DeduplicationStoreError        (operation: str)
    └── EmptyCandidateSetError
"""

from __future__ import annotations


class ContentPipelineError(Exception):
    """Base class for all content pipeline exceptions.

    Callers can catch the entire hierarchy with a single ``except`` clause
    when needed.
    """


# ---------------------------------------------------------------------------
# Normalization exceptions
# ---------------------------------------------------------------------------


class NormalizationError(ContentPipelineError):
    """Raised when a raw platform payload cannot be normalized.

    Args:
        message: Description of the normalization failure.
        platform: Platform identifier of the raw payload.
        raw_item: The raw dict that could not be normalized (for debugging).
    """

    def __init__(
        self,
        message: str,
        platform: str | None = None,
        raw_item: dict | None = None,  # type: ignore[type-arg]
    ) -> None:
        super().__init__(message)
        self.platform = platform
        self.raw_item = raw_item


class UnsupportedPlatformError(NormalizationError):
    """Raised when normalization is requested for a platform outside the
    supported enumeration.

    Fatal for the single item only; batch operations record it and move on.

    Args:
        platform: The rejected platform string.
    """

    def __init__(self, platform: str) -> None:
        super().__init__(f"Unsupported platform: {platform!r}", platform=platform)


# ---------------------------------------------------------------------------
# Deduplication exceptions
# ---------------------------------------------------------------------------


class DeduplicationStoreError(ContentPipelineError):
    """Raised when reading or writing duplicate-group state fails.

    The underlying driver/ORM exception is chained as ``__cause__``.  Never
    swallow this error: an inconsistent group (two primaries, or a hash set
    without a group id) is worse than a visible failure.

    Args:
        message: Description of the failure.
        operation: Name of the store operation that failed
            (e.g. ``"find_by_hash"``).
    """

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation


class EmptyCandidateSetError(ContentPipelineError):
    """Raised when primary selection is invoked with no candidates.

    This is a caller contract violation and indicates a logic bug upstream,
    not a runtime data condition.
    """

    def __init__(self) -> None:
        super().__init__("No candidates provided for primary selection")
