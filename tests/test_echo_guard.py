#!/usr/bin/env python3
"""Tests for own-copy echo suppression."""
from cliprelay.echo_guard import EchoGuard
from cliprelay.sync_constants import MAX_RECENT_EVENTS


def test_new_fingerprint_is_ingested() -> None:
    """Test an unseen fingerprint is not an echo."""
    guard = EchoGuard()
    assert guard.should_ingest("abc", 100.0) is True


def test_recorded_fingerprint_suppressed_within_window() -> None:
    """Test a fingerprint recorded just before is suppressed."""
    guard = EchoGuard(window=2.0)
    guard.record("abc", 100.0)
    assert guard.should_ingest("abc", 101.5) is False


def test_recorded_fingerprint_ingested_after_window() -> None:
    """Test the same content is new again once the window passed."""
    guard = EchoGuard(window=2.0)
    guard.record("abc", 100.0)
    assert guard.should_ingest("abc", 102.5) is True


def test_other_fingerprint_not_suppressed() -> None:
    """Test suppression is per fingerprint."""
    guard = EchoGuard()
    guard.record("abc", 100.0)
    assert guard.should_ingest("def", 100.5) is True


def test_recent_events_are_bounded() -> None:
    """Test the event log never exceeds its cap."""
    guard = EchoGuard()
    for i in range(MAX_RECENT_EVENTS + 10):
        guard.record(f"fp{i}", 100.0)
    assert len(guard.recent) == MAX_RECENT_EVENTS


def test_prune_drops_old_events() -> None:
    """Test events far older than the handoff window are dropped."""
    guard = EchoGuard()
    guard.record("abc", 0.0)
    guard.prune(1000.0)
    assert len(guard.recent) == 0


def test_clear_empties_log() -> None:
    """Test clear removes all events."""
    guard = EchoGuard()
    guard.record("abc", 100.0)
    guard.clear()
    assert guard.should_ingest("abc", 100.0) is True
