#!/usr/bin/env python3
"""Tests for candidate correlation against windowed records."""
from dataclasses import replace

from cliprelay.correlator import MatchKind, correlate, within_window
from cliprelay.records import ContentType, CorrelationCandidate, SourceHint


def _candidate(content="hello world", at=1005.0, content_type=ContentType.TEXT):
    return CorrelationCandidate.observe(content, content_type, at, SourceHint.HANDOFF_RECEIVE)


def test_exact_fingerprint_match_within_window(make_record) -> None:
    """Test identical content inside the window is an exact match."""
    record = make_record("a", "hello world", created_at=1000.0)
    result = correlate(_candidate(), [record])
    assert result.kind is MatchKind.EXACT
    assert result.record.canonical_id == "a"
    assert result.confidence == 1.0
    assert result.matched is True


def test_match_outside_window_is_rejected(make_record) -> None:
    """Test identical content outside the window is a new item."""
    record = make_record("a", "hello world", created_at=900.0)
    result = correlate(_candidate(), [record], window=15.0)
    assert result.kind is MatchKind.NONE
    assert result.record is None


def test_earliest_record_wins_among_exact_matches(make_record) -> None:
    """Test the earliest created record is chosen among duplicates."""
    later = make_record("b", "hello world", created_at=1003.0)
    earlier = make_record("a", "hello world", created_at=1001.0)
    result = correlate(_candidate(), [later, earlier])
    assert result.record.canonical_id == "a"


def test_exact_match_preferred_over_similar(make_record) -> None:
    """Test an exact match wins even if a similar record is older."""
    similar = make_record("a", "hello world!", created_at=1000.0)
    exact = make_record("b", "hello world", created_at=1002.0)
    result = correlate(_candidate(), [similar, exact])
    assert result.kind is MatchKind.EXACT
    assert result.record.canonical_id == "b"


def test_similar_match_for_whitespace_difference(make_record) -> None:
    """Test trivially different text resolves as a similar match."""
    record = make_record("a", "hello world  ", created_at=1000.0)
    result = correlate(_candidate("hello world"), [record])
    assert result.kind is MatchKind.SIMILAR
    assert result.record.canonical_id == "a"


def test_deleted_records_are_ignored(make_record) -> None:
    """Test tombstoned records never match."""
    record = replace(make_record("a", "hello world"), deleted=True)
    assert correlate(_candidate(), [record]).matched is False


def test_binary_content_only_matches_exactly(make_record) -> None:
    """Test image content never goes through the similarity fallback."""
    record = replace(make_record("a", b"\x89PNG1234"), content_type=ContentType.IMAGE)
    candidate = _candidate(b"\x89PNG1235", content_type=ContentType.IMAGE)
    assert correlate(candidate, [record]).matched is False


def test_within_window_is_symmetric(make_record) -> None:
    """Test records created shortly after the candidate are in the window."""
    record = make_record("a", created_at=1010.0)
    assert within_window(_candidate(at=1000.0), record, 15.0) is True
    assert within_window(_candidate(at=1030.0), record, 15.0) is False
