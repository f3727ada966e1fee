#!/usr/bin/env python3
"""Pytest fixtures for cliprelay tests.

Provides device identities for both roles, a controllable clock, small
sync windows, in-memory stores and a recording observer.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace

import pytest

from cliprelay.config import SyncConfig
from cliprelay.connectivity import ConnectivitySignal
from cliprelay.device import DeviceIdentity, DeviceRole
from cliprelay.file_stores import DirectorySharedStore
from cliprelay.memory_stores import InMemoryLocalStore, InMemorySharedStore
from cliprelay.orchestrator import SyncOrchestrator
from cliprelay.records import ClipboardRecord, ContentType, SyncState


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class RecordingObserver:
    """SyncObserver that keeps every notification."""

    def __init__(self) -> None:
        self.states: list[tuple[str | None, SyncState]] = []
        self.results: list = []
        self.errors: list[Exception] = []

    def on_sync_state(self, canonical_id, state) -> None:
        self.states.append((canonical_id, state))

    def on_reconciliation(self, result) -> None:
        self.results.append(result)

    def on_error(self, error) -> None:
        self.errors.append(error)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> SyncConfig:
    """SyncConfig with short timeouts and retry delays."""
    return SyncConfig(
        correlation_timeout=0.05,
        poll_interval=0.05,
        retry_initial_wait=0.01,
        retry_max_wait=0.05,
    )


@pytest.fixture
def relay_identity() -> DeviceIdentity:
    return DeviceIdentity.create("relay-1", DeviceRole.RELAY)


@pytest.fixture
def client_identity() -> DeviceIdentity:
    return DeviceIdentity.create("client-1", DeviceRole.CLIENT)


@pytest.fixture
def local_store() -> InMemoryLocalStore:
    return InMemoryLocalStore()


@pytest.fixture
def shared_store(clock: FakeClock) -> InMemorySharedStore:
    return InMemorySharedStore(clock=clock)


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def make_record() -> Callable[..., ClipboardRecord]:
    """Factory for records; extra keyword arguments override fields."""

    def factory(
        canonical_id: str = "rec-1",
        content: str | bytes = "hello world",
        created_at: float = 1000.0,
        origin_device: str = "relay-1",
        **overrides,
    ) -> ClipboardRecord:
        record = ClipboardRecord.new(
            canonical_id, content, ContentType.TEXT, origin_device, created_at
        )
        return replace(record, **overrides)

    return factory


@pytest.fixture
def make_synced(make_record) -> Callable[..., ClipboardRecord]:
    """Factory for records already synced at their last_modified."""

    def factory(*args, **kwargs) -> ClipboardRecord:
        record = make_record(*args, **kwargs)
        return replace(record, sync_state=SyncState.SYNCED, last_synced_at=record.last_modified)

    return factory


def build_orchestrator(identity, local_store, shared_store, clock, config, observer, connected=True):
    """Assemble an orchestrator over in-memory stores."""
    connectivity = ConnectivitySignal(connected=connected)
    orchestrator = SyncOrchestrator.build(
        identity, local_store, shared_store, connectivity, config=config, clock=clock
    )
    orchestrator.observers.add(observer)
    return orchestrator


@pytest.fixture
def relay(relay_identity, local_store, shared_store, clock, config, observer) -> SyncOrchestrator:
    """Connected relay orchestrator."""
    return build_orchestrator(relay_identity, local_store, shared_store, clock, config, observer)


@pytest.fixture
def client(client_identity, local_store, shared_store, clock, config, observer) -> SyncOrchestrator:
    """Connected client orchestrator."""
    return build_orchestrator(client_identity, local_store, shared_store, clock, config, observer)


@pytest.fixture
def offline_client(client_identity, local_store, shared_store, clock, config, observer) -> SyncOrchestrator:
    """Client orchestrator starting without connectivity."""
    return build_orchestrator(
        client_identity, local_store, shared_store, clock, config, observer, connected=False
    )


@pytest.fixture
def directory_client(tmp_path, client_identity, local_store, clock, config, observer) -> SyncOrchestrator:
    """Connected client orchestrator over a shared store directory."""
    store = DirectorySharedStore(tmp_path / "store", clock=clock)
    store.root.mkdir()
    return build_orchestrator(client_identity, local_store, store, clock, config, observer)
