#!/usr/bin/env python3
"""Read-only fan-out of sync notifications to observers.

Observers (UI, status indicators) receive sync-state changes,
reconciliation summaries and surfaced errors. A failing observer is
logged and does not stop delivery to the others or reach the sync core.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cliprelay.interfaces import SyncObserver
    from cliprelay.reconciliation import ReconciliationResult
    from cliprelay.records import SyncState

logger = logging.getLogger(__name__)


class ObserverHub:
    """Holds observers and forwards notifications to each of them."""

    def __init__(self) -> None:
        self._observers: list[SyncObserver] = []

    def add(self, observer: SyncObserver) -> None:
        self._observers.append(observer)

    def remove(self, observer: SyncObserver) -> None:
        self._observers.remove(observer)

    def sync_state(self, canonical_id: str | None, state: SyncState) -> None:
        """Announce a sync state; canonical_id None means the whole device."""
        for observer in list(self._observers):
            try:
                observer.on_sync_state(canonical_id, state)
            except Exception:
                logger.exception("Observer %r failed on sync state", observer)

    def reconciliation(self, result: ReconciliationResult) -> None:
        for observer in list(self._observers):
            try:
                observer.on_reconciliation(result)
            except Exception:
                logger.exception("Observer %r failed on reconciliation result", observer)

    def error(self, error: Exception) -> None:
        for observer in list(self._observers):
            try:
                observer.on_error(error)
            except Exception:
                logger.exception("Observer %r failed on error notification", observer)
