#!/usr/bin/env python3
"""Error taxonomy for shared-store and sync failures.

Store adapters raise these; the orchestrator catches them at its boundary
and converts them into SyncState.FAILED notifications plus a retained
pending operation. None of them reach observer or UI code.
"""


class SyncError(Exception):
    """Base class for all sync-related errors."""

    pass


class NotConnected(SyncError):
    """Operation attempted while the shared store is unreachable.

    Callers should enqueue the mutation instead of failing the user.
    """

    pass


class RemoteNotFound(SyncError):
    """The shared store has no record for the requested canonical ID.

    Treated as success for deletes and as a miss for lookups.
    """

    def __init__(self, canonical_id: str) -> None:
        super().__init__(f"Record {canonical_id} not found in shared store")
        self.canonical_id = canonical_id


class TransientStoreFailure(SyncError):
    """Network, timeout or permission failure talking to the shared store.

    The triggering operation stays queued and is retried with backoff.
    """

    pass


class CorrelationTimeout(SyncError):
    """Correlation could not finish inside its window.

    Not a failure: the resolver falls back to minting a new canonical ID.
    """

    pass


class IrreconcilableConflict(SyncError):
    """The conflict rule chain produced no decision.

    Unreachable while the rule chain keeps its total ordering; if raised it
    is surfaced to observers instead of silently picking a side.
    """

    def __init__(self, canonical_id: str, reason: str) -> None:
        super().__init__(f"Conflict on {canonical_id} unresolved: {reason}")
        self.canonical_id = canonical_id
        self.reason = reason
