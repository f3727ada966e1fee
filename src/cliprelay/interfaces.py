#!/usr/bin/env python3
"""Boundary contracts of the sync core.

The local record store, shared store client and observers are external
collaborators. The core only relies on the methods below; memory_stores
and file_stores provide implementations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Protocol

if TYPE_CHECKING:
    from cliprelay.records import ClipboardRecord, SyncState
    from cliprelay.reconciliation import ReconciliationResult


class LocalStore(Protocol):
    """Persistent local record store with CRUD and a modified-since query."""

    def get_by_id(self, canonical_id: str) -> ClipboardRecord | None: ...

    def upsert(self, record: ClipboardRecord) -> None: ...

    def delete(self, canonical_id: str) -> None: ...

    def query_modified_since(self, timestamp: float) -> list[ClipboardRecord]: ...


class SharedStore(Protocol):
    """Client of the eventually-reachable shared store.

    Implementations raise NotConnected while offline, TransientStoreFailure
    on network or permission errors and RemoteNotFound when deleting an
    unknown record.
    """

    async def push(self, record: ClipboardRecord) -> None: ...

    async def pull(self, since: float | None) -> list[ClipboardRecord]: ...

    async def delete(self, canonical_id: str) -> None: ...

    def subscribe_to_changes(self, on_change: Callable[[], None]) -> None: ...


class SyncObserver(Protocol):
    """Read-only receiver of sync notifications."""

    def on_sync_state(self, canonical_id: str | None, state: SyncState) -> None: ...

    def on_reconciliation(self, result: ReconciliationResult) -> None: ...

    def on_error(self, error: Exception) -> None: ...
