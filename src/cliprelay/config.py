#!/usr/bin/env python3
"""Runtime configuration for the sync core.

SyncConfig gathers the tunables from sync_constants so that components
receive them by injection and tests can shrink windows and intervals.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from cliprelay.sync_constants import (
    CONFLICT_WINDOW,
    CORRELATION_TIMEOUT,
    ECHO_WINDOW,
    HANDOFF_WINDOW,
    POLL_INTERVAL,
    RETRY_INITIAL_WAIT,
    RETRY_MAX_WAIT,
    RETRY_MULTIPLIER,
    SIMILARITY_THRESHOLD,
)


@dataclass(frozen=True)
class SyncConfig:
    """Tunables for correlation, reconciliation and scheduling.

    All durations are in seconds.
    """

    handoff_window: float = HANDOFF_WINDOW
    echo_window: float = ECHO_WINDOW
    conflict_window: float = CONFLICT_WINDOW
    similarity_threshold: float = SIMILARITY_THRESHOLD
    correlation_timeout: float = CORRELATION_TIMEOUT
    poll_interval: float = POLL_INTERVAL
    retry_initial_wait: float = RETRY_INITIAL_WAIT
    retry_max_wait: float = RETRY_MAX_WAIT
    retry_multiplier: float = RETRY_MULTIPLIER

    def with_interval(self, seconds: float) -> SyncConfig:
        if seconds <= 0:
            raise ValueError("Poll interval must be positive")
        return replace(self, poll_interval=seconds)
