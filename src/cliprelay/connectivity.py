#!/usr/bin/env python3
"""Connectivity signal for the shared store.

ConnectivitySignal emits boolean transitions to its subscribers; the
orchestrator subscribes instead of polling. watch_path() is a small
producer for directory-backed shared stores: it reports the directory
as reachable while it exists and is listable.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)


class ConnectivitySignal:
    """Current connectivity plus subscribers notified on every transition.

    Callbacks run on the thread calling set(), which is the event loop
    thread for all producers in this package.
    """

    def __init__(self, connected: bool = False) -> None:
        self._connected = connected
        self._subscribers: list[Callable[[bool], None]] = []

    @property
    def connected(self) -> bool:
        return self._connected

    def subscribe(self, callback: Callable[[bool], None]) -> None:
        self._subscribers.append(callback)

    def set(self, connected: bool) -> None:
        """Update connectivity, notifying subscribers only on a change."""
        if connected == self._connected:
            return
        self._connected = connected
        logger.info("Shared store %s", "reachable" if connected else "unreachable")
        for callback in list(self._subscribers):
            callback(connected)


def path_reachable(path: Path) -> bool:
    return path.is_dir() and os.access(path, os.R_OK | os.W_OK | os.X_OK)


async def watch_path(signal: ConnectivitySignal, path: Path, interval: float) -> None:
    """Drive signal from the reachability of path until cancelled.

    Args:
        signal: Signal to update.
        path: Shared store directory.
        interval: Seconds between checks.
    """
    while True:
        signal.set(path_reachable(path))
        await asyncio.sleep(interval)
