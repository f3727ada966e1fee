#!/usr/bin/env python3
"""In-memory local and shared stores.

InMemoryLocalStore backs tests and short-lived sessions. InMemorySharedStore
models the cloud database, including connectivity loss and injected
transient failures, so orchestration can be exercised without a network.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Callable

from cliprelay.errors import NotConnected, RemoteNotFound, TransientStoreFailure
from cliprelay.records import ClipboardRecord

logger = logging.getLogger(__name__)


class InMemoryLocalStore:
    """Dictionary-backed LocalStore keyed by canonical ID."""

    def __init__(self) -> None:
        self._records: dict[str, ClipboardRecord] = {}

    def get_by_id(self, canonical_id: str) -> ClipboardRecord | None:
        record = self._records.get(canonical_id)
        return replace(record) if record else None

    def upsert(self, record: ClipboardRecord) -> None:
        self._records[record.canonical_id] = replace(record)

    def delete(self, canonical_id: str) -> None:
        self._records.pop(canonical_id, None)

    def query_modified_since(self, timestamp: float) -> list[ClipboardRecord]:
        return [
            replace(r) for r in self._records.values()
            if r.last_modified >= timestamp or r.created_at >= timestamp
        ]

    def __len__(self) -> int:
        return len(self._records)


class InMemorySharedStore:
    """SharedStore keeping records in memory.

    Deletes leave a tombstone so incremental pulls can propagate them.

    Attributes:
        online: When False every call raises NotConnected.
        fail_next: Number of upcoming calls that raise TransientStoreFailure.
        calls: Log of (operation, canonical_id) for successful calls.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._records: dict[str, ClipboardRecord] = {}
        self._subscribers: list[Callable[[], None]] = []
        self._clock = clock
        self.online = True
        self.fail_next = 0
        self.calls: list[tuple[str, str | None]] = []

    def _check_available(self) -> None:
        if not self.online:
            raise NotConnected("Shared store unreachable")
        if self.fail_next > 0:
            self.fail_next -= 1
            raise TransientStoreFailure("Injected shared store failure")

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback()

    async def push(self, record: ClipboardRecord) -> None:
        self._check_available()
        existing = self._records.get(record.canonical_id)
        if existing is not None and existing.deleted and not record.deleted:
            raise RemoteNotFound(record.canonical_id)
        self._records[record.canonical_id] = replace(record)
        self.calls.append(("push", record.canonical_id))
        self._notify()

    async def pull(self, since: float | None) -> list[ClipboardRecord]:
        self._check_available()
        self.calls.append(("pull", None))
        return [
            replace(r) for r in self._records.values()
            if since is None or r.last_modified >= since
        ]

    async def delete(self, canonical_id: str) -> None:
        self._check_available()
        existing = self._records.get(canonical_id)
        if existing is None or existing.deleted:
            raise RemoteNotFound(canonical_id)
        self._records[canonical_id] = existing.as_deleted(self._clock())
        self.calls.append(("delete", canonical_id))
        self._notify()

    def subscribe_to_changes(self, on_change: Callable[[], None]) -> None:
        self._subscribers.append(on_change)

    def seed(self, record: ClipboardRecord) -> None:
        """Place a record directly, bypassing connectivity checks."""
        self._records[record.canonical_id] = replace(record)

    def get(self, canonical_id: str) -> ClipboardRecord | None:
        record = self._records.get(canonical_id)
        return replace(record) if record else None

    def live_records(self) -> list[ClipboardRecord]:
        return [replace(r) for r in self._records.values() if not r.deleted]
