#!/usr/bin/env python3
"""Tests for handoff payload conversion."""
from cliprelay.fingerprint import compute_fingerprint
from cliprelay.handoff import HandoffPayload
from cliprelay.records import SourceHint


def test_handoff_becomes_candidate_with_hint() -> None:
    """Test payloads become handoff candidates stamped with their timestamp."""
    candidate = HandoffPayload("h1 content", 11.0, source_device_hint="phone").to_candidate()
    assert candidate.source_hint is SourceHint.HANDOFF_RECEIVE
    assert candidate.received_at == 11.0
    assert candidate.source_device == "phone"
    assert candidate.content_fingerprint == compute_fingerprint("h1 content")
