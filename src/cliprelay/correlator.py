#!/usr/bin/env python3
"""Cross-device correlation of clipboard observations.

correlate() compares a CorrelationCandidate with the records observed in
a trailing time window. A match requires both the temporal condition
(record created within the window of the candidate) and either an exact
fingerprint match or, for text, a near-duplicate similarity match.
No match means the candidate is a genuinely new item.

The module is read-only over its inputs and never suspends.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterable

from cliprelay.similarity import is_near_duplicate
from cliprelay.sync_constants import HANDOFF_WINDOW, SIMILARITY_THRESHOLD

if TYPE_CHECKING:
    from cliprelay.records import ClipboardRecord, CorrelationCandidate

logger = logging.getLogger(__name__)


class MatchKind(str, Enum):
    EXACT = "exact"
    SIMILAR = "similar"
    NONE = "none"


@dataclass(frozen=True)
class MatchResult:
    """Outcome of correlating one candidate.

    Attributes:
        kind: How the match was made, NONE when unmatched.
        record: The matching record, or None.
        confidence: 1.0 for exact matches, similarity score otherwise.
        reason: Human-readable explanation for logs and observers.
    """

    kind: MatchKind
    record: ClipboardRecord | None
    confidence: float
    reason: str

    @property
    def matched(self) -> bool:
        return self.record is not None

    @classmethod
    def no_match(cls, reason: str = "No correlated record in window") -> MatchResult:
        return cls(MatchKind.NONE, None, 0.0, reason)


def within_window(candidate: CorrelationCandidate, record: ClipboardRecord, window: float) -> bool:
    """Return True if record was created within window seconds of candidate."""
    return abs(candidate.received_at - record.created_at) <= window


def correlate(
    candidate: CorrelationCandidate,
    window_records: Iterable[ClipboardRecord],
    window: float = HANDOFF_WINDOW,
    threshold: float = SIMILARITY_THRESHOLD,
) -> MatchResult:
    """Match a candidate against records observed within the window.

    Exact fingerprint matches take precedence over similarity matches.
    Among several matches the earliest created record wins, since it is
    the one that becomes canonical in a tie-break.

    Args:
        candidate: The fresh observation.
        window_records: Records to compare against; deleted records and
            records outside the window are ignored.
        window: Correlation window in seconds.
        threshold: Similarity threshold passed to is_near_duplicate().

    Returns:
        The MatchResult.
    """
    in_window = sorted(
        (r for r in window_records if not r.deleted and within_window(candidate, r, window)),
        key=lambda r: (r.created_at, r.canonical_id),
    )

    for record in in_window:
        if record.content_fingerprint == candidate.content_fingerprint:
            delta = candidate.received_at - record.created_at
            return MatchResult(
                MatchKind.EXACT,
                record,
                1.0,
                f"Exact fingerprint match with {record.canonical_id} ({delta:+.1f}s)",
            )

    if not candidate.content_type.is_textual or not isinstance(candidate.content, str):
        return MatchResult.no_match()

    for record in in_window:
        if not record.content_type.is_textual or not isinstance(record.content, str):
            continue
        matched, score = is_near_duplicate(candidate.content, record.content, threshold)
        if matched:
            logger.debug("Near-duplicate of %s (%.2f similar)", record.canonical_id, score)
            return MatchResult(
                MatchKind.SIMILAR,
                record,
                score,
                f"Similar content match with {record.canonical_id} ({score:.0%} similar)",
            )

    return MatchResult.no_match()
