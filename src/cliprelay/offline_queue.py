#!/usr/bin/env python3
"""Persisted, ordered, deduplicated log of pending shared-store mutations.

Operations are drained strictly in enqueue order. A later operation with
the same target and type supersedes the queued one in place: it keeps
the original queue position and enqueued_at but carries the new payload.
Draining stops at the first failing operation, which stays at the head,
so operations against one record are never reordered.

The queue is written to its state file after every mutation. Clients may
only queue updates and deletes; pushes are reserved for the relay.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable

from cliprelay.errors import SyncError
from cliprelay.json_state import read_json, write_json_atomic
from cliprelay.records import OpType, PendingOperation

if TYPE_CHECKING:
    from cliprelay.device import DeviceIdentity
    from cliprelay.records import ClipboardRecord

logger = logging.getLogger(__name__)

Executor = Callable[[PendingOperation], Awaitable[None]]


@dataclass(frozen=True)
class DrainResult:
    """Outcome of one drain pass.

    Attributes:
        processed: Operations executed and removed.
        remaining: Operations still queued.
        stuck: Head operation that failed, or None if the queue emptied.
        error: The failure raised by the executor for stuck.
    """

    processed: int
    remaining: int
    stuck: PendingOperation | None = None
    error: SyncError | None = None

    @property
    def completed(self) -> bool:
        return self.stuck is None


@dataclass(frozen=True)
class QueueStatus:
    count: int
    oldest_enqueued_at: float | None


class OfflineQueue:
    """FIFO queue of PendingOperations, partitioned per device.

    Args:
        identity: Device identity; names the state file and decides which
            operation types may be queued.
        state_dir: Directory for the queue file, or None to keep the queue
            in memory only.
        clock: Time source for enqueued_at.
    """

    def __init__(
        self,
        identity: DeviceIdentity,
        state_dir: Path | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._identity = identity
        self._clock = clock
        self._lock = asyncio.Lock()
        self._path = state_dir / f"queue-{identity.device_id()}.json" if state_dir else None
        self._ops: list[PendingOperation] = self._load()

    def _load(self) -> list[PendingOperation]:
        if self._path is None:
            return []
        ops = [PendingOperation.from_dict(d) for d in read_json(self._path, [])]
        if ops:
            logger.info("Loaded %d queued operations", len(ops))
        return ops

    def _save(self) -> None:
        if self._path is not None:
            write_json_atomic(self._path, [op.to_dict() for op in self._ops])

    async def enqueue(
        self,
        op_type: OpType,
        target_canonical_id: str | None,
        payload: ClipboardRecord,
    ) -> PendingOperation:
        """Append an operation, superseding a queued one with the same key.

        Args:
            op_type: Mutation to perform.
            target_canonical_id: Record the mutation applies to.
            payload: Record state to carry.

        Returns:
            The queued (new or superseded) operation.

        Raises:
            PermissionError: If a client device tries to queue a push.
        """
        if op_type is OpType.PUSH and not self._identity.is_relay():
            raise PermissionError("Client devices cannot create shared-store records")

        async with self._lock:
            op = PendingOperation(
                op_type=op_type,
                target_canonical_id=target_canonical_id,
                payload_snapshot=payload,
                enqueued_at=self._clock(),
            )
            key = op.dedup_key
            for index, queued in enumerate(self._ops):
                if key is not None and queued.dedup_key == key:
                    queued.payload_snapshot = payload
                    queued.attempts = 0
                    self._save()
                    logger.debug("Superseded %s for %s at position %d", op_type.value, target_canonical_id, index)
                    return queued

            self._ops.append(op)
            self._save()
            logger.debug("Queued %s for %s, queue size %d", op_type.value, target_canonical_id, len(self._ops))
            return op

    async def drain(self, executor: Executor) -> DrainResult:
        """Execute queued operations in order until empty or one fails.

        Each operation is removed only after executor returns. A SyncError
        leaves it at the head, increments its attempt count and stops the
        drain. Cancellation leaves the current operation queued.

        Args:
            executor: Coroutine function performing one operation.

        Returns:
            The DrainResult.
        """
        async with self._lock:
            processed = 0
            while self._ops:
                op = self._ops[0]
                try:
                    await executor(op)
                except SyncError as e:
                    op.attempts += 1
                    self._save()
                    logger.warning(
                        "Queued %s for %s failed (attempt %d): %s",
                        op.op_type.value, op.target_canonical_id, op.attempts, e,
                    )
                    return DrainResult(processed, len(self._ops), stuck=op, error=e)
                self._ops.pop(0)
                self._save()
                processed += 1
            if processed:
                logger.info("Drained %d queued operations", processed)
            return DrainResult(processed, 0)

    def snapshot(self) -> list[PendingOperation]:
        """Return the queued operations in drain order."""
        return list(self._ops)

    def status(self) -> QueueStatus:
        oldest = min((op.enqueued_at for op in self._ops), default=None)
        return QueueStatus(len(self._ops), oldest)

    def __len__(self) -> int:
        return len(self._ops)
