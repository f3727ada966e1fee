#!/usr/bin/env python3
"""File-backed local and shared stores.

JsonLocalStore keeps the local record set in one JSON file in the state
directory. DirectorySharedStore treats a directory (typically on a
network or synced mount) as the shared store: one JSON file per
canonical ID, tombstones kept as files with deleted set. While the
directory is unreachable every call raises NotConnected.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import Callable

from cliprelay.connectivity import path_reachable
from cliprelay.errors import NotConnected, RemoteNotFound, TransientStoreFailure
from cliprelay.json_state import read_json, write_json_atomic
from cliprelay.records import ClipboardRecord

logger = logging.getLogger(__name__)

LOCAL_STORE_FILENAME = "records.json"
RECORD_SUFFIX = ".json"


class JsonLocalStore:
    """LocalStore persisted to records.json in state_dir.

    The file is rewritten after every mutation.

    Args:
        state_dir: Directory holding the records file.
    """

    def __init__(self, state_dir: Path) -> None:
        self._path = state_dir / LOCAL_STORE_FILENAME
        self._records = {
            data["canonical_id"]: ClipboardRecord.from_dict(data)
            for data in read_json(self._path, [])
        }
        logger.debug("Loaded %d local records from %s", len(self._records), self._path)

    def _save(self) -> None:
        write_json_atomic(self._path, [r.to_dict() for r in self._records.values()])

    def get_by_id(self, canonical_id: str) -> ClipboardRecord | None:
        record = self._records.get(canonical_id)
        return replace(record) if record else None

    def upsert(self, record: ClipboardRecord) -> None:
        self._records[record.canonical_id] = replace(record)
        self._save()

    def delete(self, canonical_id: str) -> None:
        if self._records.pop(canonical_id, None) is not None:
            self._save()

    def query_modified_since(self, timestamp: float) -> list[ClipboardRecord]:
        return [
            replace(r) for r in self._records.values()
            if r.last_modified >= timestamp or r.created_at >= timestamp
        ]

    def __len__(self) -> int:
        return len(self._records)


class DirectorySharedStore:
    """SharedStore backed by a directory of per-record JSON files.

    File access runs in a worker thread so a hanging mount does not block
    the event loop.

    Args:
        root: The shared directory.
        clock: Time source for tombstones.
    """

    def __init__(self, root: Path, clock: Callable[[], float] = time.time) -> None:
        self.root = root
        self._clock = clock
        self._subscribers: list[Callable[[], None]] = []

    def _path_for(self, canonical_id: str) -> Path:
        if not canonical_id or "/" in canonical_id or canonical_id.startswith("."):
            raise ValueError(f"Invalid canonical ID: {canonical_id!r}")
        return self.root / f"{canonical_id}{RECORD_SUFFIX}"

    def _check_available(self) -> None:
        if not path_reachable(self.root):
            raise NotConnected(f"Shared store directory {self.root} unreachable")

    def _read(self, path: Path) -> ClipboardRecord | None:
        """Load one record file, or None if it does not exist.

        Raises:
            TransientStoreFailure: If the file is truncated or malformed,
                for example while another device is still writing it.
        """
        try:
            data = read_json(path, None)
            return ClipboardRecord.from_dict(data) if data is not None else None
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise TransientStoreFailure(f"Unreadable record file {path.name}: {e}") from e

    def _push_sync(self, record: ClipboardRecord) -> None:
        path = self._path_for(record.canonical_id)
        try:
            existing = self._read(path)
        except TransientStoreFailure as e:
            logger.warning("Overwriting: %s", e)
            existing = None
        if existing is not None and existing.deleted and not record.deleted:
            raise RemoteNotFound(record.canonical_id)
        write_json_atomic(path, record.to_dict())

    def _pull_sync(self, since: float | None) -> list[ClipboardRecord]:
        records = []
        for path in sorted(self.root.glob(f"*{RECORD_SUFFIX}")):
            try:
                record = self._read(path)
            except TransientStoreFailure as e:
                logger.warning("Skipping: %s", e)
                continue
            if record is not None and (since is None or record.last_modified >= since):
                records.append(record)
        return records

    def _delete_sync(self, canonical_id: str, now: float) -> None:
        path = self._path_for(canonical_id)
        existing = self._read(path)
        if existing is None or existing.deleted:
            raise RemoteNotFound(canonical_id)
        write_json_atomic(path, existing.as_deleted(now).to_dict())

    async def _run(self, func: Callable, *args):
        self._check_available()
        try:
            return await asyncio.to_thread(func, *args)
        except OSError as e:
            raise TransientStoreFailure(f"Shared store I/O failed: {e}") from e

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback()

    async def push(self, record: ClipboardRecord) -> None:
        await self._run(self._push_sync, record)
        logger.debug("Pushed %s to shared store", record.canonical_id)
        self._notify()

    async def pull(self, since: float | None) -> list[ClipboardRecord]:
        records = await self._run(self._pull_sync, since)
        logger.debug("Pulled %d records from shared store", len(records))
        return records

    async def delete(self, canonical_id: str) -> None:
        await self._run(self._delete_sync, canonical_id, self._clock())
        logger.debug("Deleted %s from shared store", canonical_id)
        self._notify()

    def subscribe_to_changes(self, on_change: Callable[[], None]) -> None:
        """Register a callback for changes made through this client.

        Changes made by other devices are picked up by periodic pulls.
        """
        self._subscribers.append(on_change)
