"""Primary election for duplicate groups.

:func:`select_primary` ranks candidates by platform priority (highest
first), then by publication time (latest first).  Candidates with equal keys
keep their input order, so the first-listed one wins.  The priority table is
injected so that alternative rankings never require mutating shared state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Hashable, Mapping, Optional, Sequence

from content_pipeline.config.platforms import PLATFORM_PRIORITY, UNKNOWN_PLATFORM_PRIORITY
from content_pipeline.core.exceptions import EmptyCandidateSetError

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class PrimaryCandidate:
    """Minimal view of a group member needed to elect a primary."""

    id: Hashable
    platform: str
    published_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Any) -> PrimaryCandidate:
        """Build a candidate from any object with ``id``, ``platform`` and
        ``published_at`` attributes."""
        platform = getattr(record, "platform", "")
        return cls(
            id=record.id,
            platform=str(getattr(platform, "value", platform) or ""),
            published_at=getattr(record, "published_at", None),
        )


def _recency_key(published_at: Optional[datetime]) -> datetime:
    if published_at is None:
        return _EPOCH
    if published_at.tzinfo is None:
        return published_at.replace(tzinfo=timezone.utc)
    return published_at


def select_primary(
    candidates: Sequence[PrimaryCandidate],
    priority: Mapping[str, int] = PLATFORM_PRIORITY,
) -> Hashable:
    """Return the id of the candidate that should be the group's primary.

    Args:
        candidates: Group members, including the incoming record.
        priority: Platform -> rank mapping; unknown platforms rank at
            :data:`UNKNOWN_PLATFORM_PRIORITY`.

    Returns:
        The ``id`` of the elected candidate.

    Raises:
        EmptyCandidateSetError: When *candidates* is empty.
    """
    if not candidates:
        raise EmptyCandidateSetError()
    if len(candidates) == 1:
        return candidates[0].id

    # sorted() is stable, so equal keys keep input order.
    ranked = sorted(
        candidates,
        key=lambda c: (
            -priority.get(c.platform, UNKNOWN_PLATFORM_PRIORITY),
            -_recency_key(c.published_at).timestamp(),
        ),
    )
    return ranked[0].id
