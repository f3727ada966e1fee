#!/usr/bin/env python3
"""Device runner for cliprelay.

Wires a persisted identity, file-backed stores and the orchestrator
together and runs them until shutdown. Each line read from stdin is
treated as a local clipboard copy, which lets any clipboard poller feed
the sync core through a pipe (for example ``wl-paste --watch``).
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path

from cliprelay.connectivity import ConnectivitySignal, path_reachable, watch_path
from cliprelay.device import DeviceIdentity, DeviceRole
from cliprelay.file_stores import DirectorySharedStore, JsonLocalStore
from cliprelay.orchestrator import SyncOrchestrator
from cliprelay.config import SyncConfig

logger = logging.getLogger(__name__)


async def feed_stdin(orchestrator: SyncOrchestrator) -> None:
    """Forward stdin lines to the orchestrator as local copies until EOF.

    Lines are decoded as UTF-8 regardless of locale; invalid bytes become
    U+FFFD.
    """
    while True:
        raw = await asyncio.to_thread(sys.stdin.buffer.readline)
        if not raw:
            logger.debug("Input closed")
            return
        content = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        if content:
            await orchestrator.observe_local_copy(content)


async def run_device(
    role: DeviceRole,
    state_dir: Path,
    store_dir: Path,
    config: SyncConfig,
) -> None:
    """Run synchronization for this device until EOF or a signal.

    Args:
        role: Role requested on the command line.
        state_dir: Local state directory (identity, records, queue, aliases).
        store_dir: Directory acting as the shared store.
        config: Sync tunables.

    Raises:
        RoleMismatchError: If state_dir belongs to an installation with a
            different role.
    """
    identity = DeviceIdentity.load(state_dir, role)
    connectivity = ConnectivitySignal(connected=path_reachable(store_dir))
    orchestrator = SyncOrchestrator.build(
        identity,
        JsonLocalStore(state_dir),
        DirectorySharedStore(store_dir),
        connectivity,
        state_dir=state_dir,
        config=config,
    )

    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, orchestrator.stop)
    loop.add_signal_handler(signal.SIGTERM, orchestrator.stop)

    watcher = asyncio.create_task(watch_path(connectivity, store_dir, config.poll_interval))
    reader = asyncio.create_task(feed_stdin(orchestrator))
    reader.add_done_callback(lambda _: orchestrator.stop())
    try:
        await orchestrator.run()
    finally:
        for task in (watcher, reader):
            task.cancel()
        await asyncio.gather(watcher, reader, return_exceptions=True)
