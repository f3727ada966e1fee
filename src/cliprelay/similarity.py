#!/usr/bin/env python3
"""Textual similarity fallback for near-duplicate correlation.

Used only when fingerprints differ, to absorb trivial whitespace or
encoding differences (e.g. trailing newline added by one platform).
"""

from __future__ import annotations

import unicodedata

from cliprelay.sync_constants import (
    MAX_SIMILARITY_LENGTH,
    MIN_SIMILARITY_LENGTH,
    SIMILARITY_THRESHOLD,
)


def normalize_text(text: str) -> str:
    """Apply NFC normalization and collapse runs of whitespace."""
    return " ".join(unicodedata.normalize("NFC", text).split())


def levenshtein_distance(first: str, second: str) -> int:
    """Return the edit distance between two strings.

    Uses the two-row dynamic programming formulation.
    """
    if len(first) < len(second):
        first, second = second, first
    if not second:
        return len(first)

    previous = list(range(len(second) + 1))
    for i, char_a in enumerate(first, start=1):
        current = [i]
        for j, char_b in enumerate(second, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def similarity(first: str, second: str) -> float:
    """Return 1 - distance / longer length, in [0, 1]."""
    longest = max(len(first), len(second))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(first, second) / longest


def is_near_duplicate(
    first: str,
    second: str,
    threshold: float = SIMILARITY_THRESHOLD,
) -> tuple[bool, float]:
    """Decide whether two texts differ only trivially.

    Both texts are normalized first. Texts shorter than
    MIN_SIMILARITY_LENGTH or longer than MAX_SIMILARITY_LENGTH are only
    matched when their normalized forms are identical.

    Args:
        first: First text.
        second: Second text.
        threshold: Maximum edit distance as a fraction of the longer text.

    Returns:
        Tuple of (is_match, similarity score).
    """
    norm_a = normalize_text(first)
    norm_b = normalize_text(second)
    if norm_a == norm_b:
        return True, 1.0

    shortest = min(len(norm_a), len(norm_b))
    longest = max(len(norm_a), len(norm_b))
    if shortest < MIN_SIMILARITY_LENGTH or longest > MAX_SIMILARITY_LENGTH:
        return False, 0.0
    # Length gap alone already exceeds the allowed distance.
    if longest - shortest > threshold * longest:
        return False, 0.0

    score = similarity(norm_a, norm_b)
    return score >= 1.0 - threshold, score
