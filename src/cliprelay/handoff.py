#!/usr/bin/env python3
"""Handoff payloads delivered by the device-to-device transport.

The transport itself is external. It hands over (payload, timestamp,
source device hint) tuples, which become correlation candidates exactly
like local clipboard observations, tagged as handoff receives.
"""

from __future__ import annotations

from dataclasses import dataclass

from cliprelay.records import ContentType, CorrelationCandidate, SourceHint


@dataclass(frozen=True)
class HandoffPayload:
    """One payload received over the handoff transport.

    Attributes:
        payload: Opaque clipboard content.
        timestamp: Copy time reported by the sending device.
        source_device_hint: Sending device, if the transport knows it.
        content_type: Variant tag of payload.
    """

    payload: str | bytes
    timestamp: float
    source_device_hint: str | None = None
    content_type: ContentType = ContentType.TEXT

    def to_candidate(self) -> CorrelationCandidate:
        return CorrelationCandidate.observe(
            self.payload,
            self.content_type,
            self.timestamp,
            SourceHint.HANDOFF_RECEIVE,
            source_device=self.source_device_hint,
        )
