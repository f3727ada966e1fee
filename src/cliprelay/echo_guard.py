#!/usr/bin/env python3
"""
Own-copy suppression for local clipboard observations.

When this device writes an entry back to the system clipboard (the user
picked an item from history, or a synced item was applied), the
clipboard poller reports that write as a fresh copy. Likewise a poller
may report one user copy twice in quick succession. Without tracking,
each of these would become a new record and be pushed again.

EchoGuard remembers the fingerprints this device produced recently and
suppresses observations of the same fingerprint within the echo window.

Critical ordering: record() must be called BEFORE writing to the system
clipboard so the resulting observation is recognized as an echo.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from cliprelay.sync_constants import ECHO_WINDOW, HANDOFF_WINDOW, MAX_RECENT_EVENTS


@dataclass
class EchoGuard:
    """
    Track recently produced fingerprints for echo suppression.

    Attributes:
        window: Suppression window in seconds.
        recent: Bounded log of (fingerprint, timestamp) pairs, oldest first.
    """

    window: float = ECHO_WINDOW
    recent: deque[tuple[str, float]] = field(
        default_factory=lambda: deque(maxlen=MAX_RECENT_EVENTS)
    )

    def should_ingest(self, fingerprint: str, now: float) -> bool:
        """
        Check if an observation should be turned into a candidate.

        Returns False if the same fingerprint was recorded within the echo
        window before now.

        Args:
            fingerprint: SHA-256 hex digest of the observed content.
            now: Observation timestamp.

        Returns:
            True if the observation is new, False if it is an echo.
        """
        self.prune(now)
        for seen, at in reversed(self.recent):
            if seen == fingerprint and 0 <= now - at <= self.window:
                return False
        return True

    def record(self, fingerprint: str, now: float) -> None:
        """
        Record a fingerprint this device produced or accepted.

        Args:
            fingerprint: SHA-256 hex digest of the content.
            now: Timestamp of the event.
        """
        self.recent.append((fingerprint, now))

    def prune(self, now: float) -> None:
        """Drop events older than twice the handoff window."""
        cutoff = now - HANDOFF_WINDOW * 2
        while self.recent and self.recent[0][1] < cutoff:
            self.recent.popleft()

    def clear(self) -> None:
        self.recent.clear()
