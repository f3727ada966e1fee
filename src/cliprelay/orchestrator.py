#!/usr/bin/env python3
"""Sync orchestrator: role-specific push/pull and the reconnection sequence.

The relay pushes every new or changed local record immediately and pulls
only to pick up remote edits and deletions. Clients never create
shared-store records: their local copies stay local until the relay
publishes them, and their edits and deletes go through the offline queue.

All triggers (connectivity edges, timer ticks, app activation, remote
change notifications) are messages on one event channel consumed by a
single control loop, so at most one sync cycle runs at a time. Queue
drains, reconciliation and local mutations share one lock.

On a connectivity false -> true edge the queue is drained first, then a
full reconciliation pull runs. A disconnect edge cancels whatever part
of that sequence is still running.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import suppress
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from cliprelay.config import SyncConfig
from cliprelay.echo_guard import EchoGuard
from cliprelay.errors import NotConnected, RemoteNotFound, SyncError
from cliprelay.id_aliases import AliasTable
from cliprelay.id_resolver import CanonicalIDResolver
from cliprelay.observers import ObserverHub
from cliprelay.offline_queue import DrainResult, OfflineQueue
from cliprelay.orchestrator_events import EventKind, OrchestratorState, SyncEvent
from cliprelay.orchestrator_retry import run_until_drained
from cliprelay.privacy import exclusion_reason
from cliprelay.reconciliation import ReconciliationEngine, ReconciliationResult, RemoteSnapshot
from cliprelay.records import (
    ClipboardRecord,
    ContentType,
    CorrelationCandidate,
    OpType,
    SourceHint,
    SyncState,
)

if TYPE_CHECKING:
    from cliprelay.connectivity import ConnectivitySignal
    from cliprelay.device import DeviceIdentity
    from cliprelay.handoff import HandoffPayload
    from cliprelay.interfaces import LocalStore, SharedStore
    from cliprelay.records import PendingOperation

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Drives synchronization for one device.

    Use SyncOrchestrator.build() to assemble the default component graph.

    Args:
        identity: This device's identity and role.
        local_store: Local record store.
        shared_store: Shared store client.
        connectivity: Connectivity signal to subscribe to.
        queue: Offline operation queue.
        resolver: Canonical ID resolver.
        engine: Reconciliation engine.
        aliases: Alias table shared with resolver and engine.
        observers: Notification fan-out.
        config: Tunables.
        clock: Time source.
    """

    def __init__(
        self,
        identity: DeviceIdentity,
        local_store: LocalStore,
        shared_store: SharedStore,
        connectivity: ConnectivitySignal,
        queue: OfflineQueue,
        resolver: CanonicalIDResolver,
        engine: ReconciliationEngine,
        aliases: AliasTable,
        observers: ObserverHub | None = None,
        config: SyncConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.identity = identity
        self.local_store = local_store
        self.shared_store = shared_store
        self.connectivity = connectivity
        self.queue = queue
        self.resolver = resolver
        self.engine = engine
        self.aliases = aliases
        self.observers = observers or ObserverHub()
        self.config = config or SyncConfig()
        self._clock = clock

        self.echo_guard = EchoGuard(window=self.config.echo_window)
        self.state = OrchestratorState.IDLE
        self.foreground = True
        self.last_full_sync: float | None = None
        self._last_pull_at: float | None = None

        self._lock = asyncio.Lock()
        self._events: asyncio.Queue[SyncEvent] = asyncio.Queue()
        self._cycle_task: asyncio.Task | None = None
        self._retry_task: asyncio.Task | None = None
        self._interval_changed = asyncio.Event()
        self._subscribed = False

    @classmethod
    def build(
        cls,
        identity: DeviceIdentity,
        local_store: LocalStore,
        shared_store: SharedStore,
        connectivity: ConnectivitySignal,
        state_dir: Path | None = None,
        config: SyncConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> SyncOrchestrator:
        """Construct the orchestrator together with its components.

        Args:
            identity: This device's identity and role.
            local_store: Local record store.
            shared_store: Shared store client.
            connectivity: Connectivity signal.
            state_dir: Directory for queue and alias files, or None to keep
                them in memory.
            config: Tunables.
            clock: Time source.
        """
        config = config or SyncConfig()
        aliases = AliasTable(state_dir)
        queue = OfflineQueue(identity, state_dir, clock=clock)
        resolver = CanonicalIDResolver(identity, local_store, aliases, shared_store, config)
        engine = ReconciliationEngine(local_store, resolver, aliases, config)
        return cls(
            identity, local_store, shared_store, connectivity, queue, resolver,
            engine, aliases, config=config, clock=clock,
        )

    # Public API

    async def observe_local_copy(
        self,
        content: str | bytes,
        content_type: ContentType = ContentType.TEXT,
        source_app: str | None = None,
    ) -> ClipboardRecord | None:
        """Ingest a locally observed clipboard change.

        Args:
            content: Clipboard content.
            content_type: Variant tag of content.
            source_app: Identifier of the application the copy came from.

        Returns:
            The record the copy resolved to, or None if it was filtered out
            or suppressed as an echo.
        """
        reason = exclusion_reason(source_app)
        if reason:
            logger.debug("%s", reason)
            return None
        candidate = CorrelationCandidate.observe(
            content, content_type, self._clock(), SourceHint.LOCAL_COPY
        )
        return await self._ingest(candidate)

    async def receive_handoff(self, payload: HandoffPayload) -> ClipboardRecord | None:
        """Ingest a payload delivered by the handoff transport."""
        return await self._ingest(payload.to_candidate())

    def note_clipboard_write(self, content: str | bytes) -> None:
        """Register content this device is about to write to the system clipboard.

        Must be called BEFORE the write so the poller's observation of it
        is suppressed as an echo.
        """
        candidate = CorrelationCandidate.observe(
            content, ContentType.TEXT, self._clock(), SourceHint.LOCAL_COPY
        )
        self.echo_guard.record(candidate.content_fingerprint, candidate.received_at)

    async def request_edit(self, canonical_id: str, content: str | bytes) -> ClipboardRecord:
        """Edit a record's content locally and queue the update.

        Raises:
            KeyError: If no live record exists for canonical_id.
        """
        async with self._lock:
            record = self._require_live(canonical_id)
            edited = record.with_content(content, self._clock(), self.identity.role())
            published = self._awaits_push(record)
            stored = self.engine.record_local_change(edited, awaiting_push=published)
            if published:
                await self.queue.enqueue(OpType.UPDATE, stored.canonical_id, stored)
        self.observers.sync_state(stored.canonical_id, stored.sync_state)
        await self._drain_if_connected()
        return stored

    async def request_delete(self, canonical_id: str) -> None:
        """Tombstone a record locally and queue the shared-store delete.

        Raises:
            KeyError: If no live record exists for canonical_id.
        """
        async with self._lock:
            record = self._require_live(canonical_id)
            tombstone = record.as_deleted(self._clock(), self.identity.role())
            published = self._awaits_push(record)
            stored = self.engine.record_local_change(tombstone, awaiting_push=published)
            if published:
                await self.queue.enqueue(OpType.DELETE, stored.canonical_id, stored)
        self.observers.sync_state(stored.canonical_id, stored.sync_state)
        await self._drain_if_connected()

    def app_activated(self) -> None:
        self._events.put_nowait(SyncEvent(EventKind.APP_ACTIVATED))

    def notify_remote_change(self) -> None:
        self._events.put_nowait(SyncEvent(EventKind.REMOTE_CHANGE))

    def set_foreground(self, foreground: bool) -> None:
        """Pause or resume the periodic pull timer."""
        self.foreground = foreground
        if foreground:
            self._events.put_nowait(SyncEvent(EventKind.APP_ACTIVATED))

    def update_interval(self, seconds: float) -> None:
        """Change the periodic pull interval, restarting the current wait."""
        self.config = self.config.with_interval(seconds)
        self._interval_changed.set()
        logger.info("Sync interval set to %.1f seconds", seconds)

    def stop(self) -> None:
        self._events.put_nowait(SyncEvent(EventKind.SHUTDOWN))

    # Control loop

    async def run(self) -> None:
        """Consume events until stop() is called."""
        self._subscribe()
        ticker = asyncio.create_task(self._ticker())
        if self.connectivity.connected:
            self._events.put_nowait(SyncEvent(EventKind.CONNECTIVITY, connected=True))
        logger.info("Orchestrator running as %s", self.identity.role().value)
        try:
            while True:
                event = await self._events.get()
                if event.kind is EventKind.SHUTDOWN:
                    break
                self._dispatch(event)
        finally:
            for task in (ticker, self._cycle_task, self._retry_task):
                if task is not None:
                    task.cancel()
                    with suppress(asyncio.CancelledError):
                        await task
            logger.info("Orchestrator stopped")

    def _subscribe(self) -> None:
        if self._subscribed:
            return
        self._subscribed = True
        self.connectivity.subscribe(
            lambda connected: self._events.put_nowait(SyncEvent(EventKind.CONNECTIVITY, connected=connected))
        )
        self.shared_store.subscribe_to_changes(self.notify_remote_change)

    def _dispatch(self, event: SyncEvent) -> None:
        if event.kind is EventKind.CONNECTIVITY:
            self._cancel_tasks()
            if event.connected:
                self._cycle_task = asyncio.create_task(self.handle_reconnection())
            return

        if not self.connectivity.connected:
            logger.debug("Ignoring %s while offline", event.kind.value)
            return
        if self._cycle_task is not None and not self._cycle_task.done():
            logger.debug("Sync cycle running, coalescing %s", event.kind.value)
            return
        full = event.kind is EventKind.APP_ACTIVATED
        self._cycle_task = asyncio.create_task(self.sync_cycle(full=full))

    def _cancel_tasks(self) -> None:
        for task in (self._cycle_task, self._retry_task):
            if task is not None and not task.done():
                task.cancel()
        self._cycle_task = None
        self._retry_task = None
        self.state = OrchestratorState.IDLE

    async def _ticker(self) -> None:
        while True:
            self._interval_changed.clear()
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._interval_changed.wait(), timeout=self.config.poll_interval)
                continue
            if self.foreground:
                self._events.put_nowait(SyncEvent(EventKind.TIMER))

    # Sync cycles

    async def handle_reconnection(self) -> ReconciliationResult | None:
        """Drain the offline queue, then run one full reconciliation pull."""
        logger.info("Handling reconnection")
        await self._drain()
        result = await self.pull_and_reconcile(full=True)
        if result is not None and result.merges:
            await self._drain()
        return result

    async def sync_cycle(self, full: bool = False) -> ReconciliationResult | None:
        """One periodic cycle: drain pending intent, then pull."""
        await self._drain()
        return await self.pull_and_reconcile(full=full or self.last_full_sync is None)

    async def pull_and_reconcile(self, full: bool) -> ReconciliationResult | None:
        """Pull from the shared store and merge into local state.

        Args:
            full: Pull everything instead of changes since the last pull.

        Returns:
            The ReconciliationResult, or None if the pull failed.
        """
        since = None
        if not full and self._last_pull_at is not None:
            since = self._last_pull_at - self.config.handoff_window
        started = self._clock()
        self.state = OrchestratorState.PULLING
        try:
            records = await self.shared_store.pull(since)
        except SyncError as e:
            self.state = OrchestratorState.IDLE
            logger.warning("Pull from shared store failed: %s", e)
            self.observers.sync_state(None, SyncState.FAILED)
            self.observers.error(e)
            return None

        async with self._lock:
            self.state = OrchestratorState.RECONCILING
            result = self.engine.reconcile(
                RemoteSnapshot(records, is_full=since is None),
                allow_inserts=not self.identity.is_relay(),
            )
            for merge in result.merges:
                if merge.alias_published:
                    tombstone = merge.alias_record.as_deleted(self._clock())
                    await self.queue.enqueue(OpType.DELETE, merge.alias_id, tombstone)
            self.state = OrchestratorState.IDLE

        self._last_pull_at = started
        if since is None:
            self.last_full_sync = started
        self.observers.reconciliation(result)
        for conflict in result.unresolved:
            self.observers.error(conflict)
        self.observers.sync_state(None, SyncState.SYNCED)
        return result

    async def _drain_if_connected(self) -> None:
        if self.connectivity.connected:
            await self._drain()

    async def _drain(self, schedule_retry: bool = True) -> DrainResult:
        async with self._lock:
            self.state = OrchestratorState.PUSHING
            try:
                result = await self.queue.drain(self._execute)
            finally:
                self.state = OrchestratorState.IDLE

        if not result.completed and result.stuck is not None:
            target = result.stuck.target_canonical_id
            if target is not None:
                async with self._lock:
                    self.engine.mark_failed(target)
            status = self.queue.status()
            logger.warning(
                "%d operations still queued, oldest enqueued at %.3f",
                status.count, status.oldest_enqueued_at,
            )
            self.observers.sync_state(target, SyncState.FAILED)
            if result.error is not None:
                self.observers.error(result.error)
            if schedule_retry:
                self._schedule_retry()
        return result

    def _schedule_retry(self) -> None:
        if self._retry_task is not None and not self._retry_task.done():
            return
        self._retry_task = asyncio.create_task(self._retry_stuck())

    async def _retry_stuck(self) -> None:
        try:
            await run_until_drained(lambda: self._drain(schedule_retry=False), self.config)
        except SyncError as e:
            logger.error("Giving up retrying queue drain: %s", e)
            self.observers.error(e)

    async def _execute(self, op: PendingOperation) -> None:
        """Apply one queued operation to the shared store.

        Raises:
            NotConnected: While offline; the operation stays queued.
            TransientStoreFailure: On store failures; retried with backoff.
        """
        if not self.connectivity.connected:
            raise NotConnected("Offline, keeping operation queued")
        target = op.target_canonical_id or op.payload_snapshot.canonical_id

        if op.op_type is OpType.DELETE:
            try:
                await self.shared_store.delete(target)
            except RemoteNotFound:
                logger.debug("Delete of %s: already absent remotely", target)
            self.engine.mark_synced(target, op.payload_snapshot)
            self.observers.sync_state(target, SyncState.SYNCED)
            return

        if self.aliases.is_alias(target):
            logger.debug("Skipping %s of merged-away record %s", op.op_type.value, target)
            return
        if op.op_type is OpType.UPDATE and self._overruled(op):
            logger.debug("Skipping update of %s overruled by reconciliation", target)
            return

        record = op.payload_snapshot
        if self.identity.is_relay() and record.relayed_by is None:
            record = replace(record, relayed_by=self.identity.device_id())
        try:
            await self.shared_store.push(record)
        except RemoteNotFound:
            logger.debug("Update of %s: deleted remotely, tombstone wins", target)
            return
        self.engine.mark_synced(target, record)
        self.observers.sync_state(target, SyncState.SYNCED)

    def _overruled(self, op: PendingOperation) -> bool:
        current = self.local_store.get_by_id(op.payload_snapshot.canonical_id)
        return (
            current is not None
            and current.sync_state is SyncState.SYNCED
            and current.content_fingerprint != op.payload_snapshot.content_fingerprint
        )

    # Ingestion

    async def _ingest(self, candidate: CorrelationCandidate) -> ClipboardRecord | None:
        now = self._clock()
        if not self.echo_guard.should_ingest(candidate.content_fingerprint, now):
            logger.debug("Suppressing echo of own clipboard content")
            return None
        self.echo_guard.record(candidate.content_fingerprint, now)

        resolution = await self.resolver.resolve(candidate)
        is_relay = self.identity.is_relay()

        async with self._lock:
            existing = self.local_store.get_by_id(resolution.canonical_id)
            if existing is not None:
                logger.debug("Observation matches existing record %s", existing.canonical_id)
                return existing

            match = resolution.match.record
            if match is not None:
                stored = replace(
                    match,
                    canonical_id=resolution.canonical_id,
                    relayed_by=resolution.relayed_by,
                )
                stored = self.engine.record_local_change(stored, awaiting_push=False)
                self.engine.mark_synced(stored.canonical_id, stored)
                stored = self.local_store.get_by_id(stored.canonical_id) or stored
            else:
                record = ClipboardRecord.new(
                    resolution.canonical_id,
                    candidate.content,
                    candidate.content_type,
                    resolution.origin_device,
                    candidate.received_at,
                    role=self.identity.role(),
                )
                if is_relay:
                    record = replace(record, relayed_by=self.identity.device_id())
                stored = self.engine.record_local_change(record, awaiting_push=is_relay)
                if is_relay:
                    await self.queue.enqueue(OpType.PUSH, stored.canonical_id, stored)
        self.observers.sync_state(stored.canonical_id, stored.sync_state)

        if is_relay and resolution.is_new:
            await self._drain_if_connected()
        return self.local_store.get_by_id(stored.canonical_id) or stored

    def _require_live(self, canonical_id: str) -> ClipboardRecord:
        record = self.local_store.get_by_id(self.aliases.resolve(canonical_id))
        if record is None or record.deleted:
            raise KeyError(canonical_id)
        return record

    def _awaits_push(self, record: ClipboardRecord) -> bool:
        """Return True if changes to record must reach the shared store."""
        return self.identity.is_relay() or record.last_synced_at is not None
