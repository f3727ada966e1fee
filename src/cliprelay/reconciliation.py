#!/usr/bin/env python3
"""Reconciliation of shared-store snapshots into local state.

The engine merges a full or incremental pull into the local store:

- unknown remote records are inserted as synced, unless they duplicate
  an unresolved local copy, in which case the IDs are merged;
- a local record unmodified since its last sync is overwritten;
- records changed on both sides go through the conflict rule chain;
- tombstones always propagate, deletion beats concurrent edits;
- a full snapshot also tombstones published local records that are
  missing remotely, while local-only pending records are kept for push.

The engine is also the only component that changes sync_state of
stored records; the orchestrator reports push results through
record_local_change(), mark_synced() and mark_failed().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from cliprelay.config import SyncConfig
from cliprelay.conflict_rules import Outcome, resolve_conflict
from cliprelay.errors import IrreconcilableConflict
from cliprelay.records import SyncState

if TYPE_CHECKING:
    from cliprelay.id_aliases import AliasTable
    from cliprelay.id_resolver import CanonicalIDResolver, MergeDecision
    from cliprelay.interfaces import LocalStore
    from cliprelay.records import ClipboardRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteSnapshot:
    """Records pulled from the shared store.

    Attributes:
        records: Pulled records, tombstones included.
        is_full: True for a full pull; only then may absence imply deletion.
    """

    records: list[ClipboardRecord]
    is_full: bool


@dataclass(frozen=True)
class RecordOutcome:
    canonical_id: str
    outcome: Outcome
    rule: str


@dataclass
class ReconciliationResult:
    """Observable summary of one reconciliation pass."""

    outcomes: list[RecordOutcome] = field(default_factory=list)
    inserted: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    merges: list[MergeDecision] = field(default_factory=list)
    unresolved: list[IrreconcilableConflict] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.inserted or self.updated or self.deleted or self.merges)

    def outcome_for(self, canonical_id: str) -> Outcome | None:
        for item in reversed(self.outcomes):
            if item.canonical_id == canonical_id:
                return item.outcome
        return None

    def _record(self, canonical_id: str, outcome: Outcome, rule: str) -> None:
        self.outcomes.append(RecordOutcome(canonical_id, outcome, rule))


def _as_synced(record: ClipboardRecord) -> ClipboardRecord:
    return replace(record, sync_state=SyncState.SYNCED, last_synced_at=record.last_modified)


class ReconciliationEngine:
    """Merges remote snapshots into the local store.

    Args:
        local_store: The local record store.
        resolver: Canonical ID resolver used for duplicate merges.
        aliases: Alias table, consulted to skip merged-away IDs.
        config: Conflict and correlation windows.
    """

    def __init__(
        self,
        local_store: LocalStore,
        resolver: CanonicalIDResolver,
        aliases: AliasTable,
        config: SyncConfig | None = None,
    ) -> None:
        self._local = local_store
        self._resolver = resolver
        self._aliases = aliases
        self._config = config or SyncConfig()

    def reconcile(self, snapshot: RemoteSnapshot, allow_inserts: bool = True) -> ReconciliationResult:
        """Merge snapshot into local state.

        Args:
            snapshot: The pulled records.
            allow_inserts: False on the relay, which never creates records
                from a pull.

        Returns:
            The ReconciliationResult.
        """
        result = ReconciliationResult()
        remote_ids: set[str] = set()

        for remote in snapshot.records:
            remote_ids.add(remote.canonical_id)
            if self._aliases.is_alias(remote.canonical_id):
                logger.debug("Skipping merged-away record %s", remote.canonical_id)
                continue
            local = self._local.get_by_id(remote.canonical_id)
            if remote.deleted:
                self._apply_tombstone(local, remote, result)
            elif local is None:
                self._apply_new(remote, allow_inserts, result)
            else:
                self._apply_existing(local, remote, result)

        if snapshot.is_full:
            self._apply_absences(remote_ids, result)

        logger.info(
            "Reconciled %d remote records: %d inserted, %d updated, %d deleted, %d merged",
            len(snapshot.records), len(result.inserted), len(result.updated),
            len(result.deleted), len(result.merges),
        )
        return result

    def _apply_tombstone(
        self, local: ClipboardRecord | None, remote: ClipboardRecord, result: ReconciliationResult
    ) -> None:
        if local is None:
            return
        if local.deleted and local.sync_state is SyncState.SYNCED:
            return
        tombstone = replace(
            local,
            deleted=True,
            deleted_at=remote.deleted_at or remote.last_modified,
            last_modified=max(local.last_modified, remote.last_modified),
        )
        self._local.upsert(_as_synced(tombstone))
        result.deleted.append(local.canonical_id)
        result._record(local.canonical_id, Outcome.CLOUD_WINS, "tombstone")

    def _apply_new(self, remote: ClipboardRecord, allow_inserts: bool, result: ReconciliationResult) -> None:
        duplicate = self._find_duplicate(remote)
        if duplicate is not None:
            if duplicate.last_synced_at is None:
                decision = self._resolver.adopt(duplicate, remote)
                self._local.upsert(_as_synced(remote))
            else:
                decision = self._resolver.merge(duplicate, remote)
                if decision.survivor_id == remote.canonical_id:
                    self._local.upsert(_as_synced(remote))
            result.merges.append(decision)
            result._record(decision.survivor_id, Outcome.MERGED, "fingerprint_merge")
            return

        if not allow_inserts:
            logger.debug("Not inserting remote record %s on relay", remote.canonical_id)
            return
        self._local.upsert(_as_synced(remote))
        result.inserted.append(remote.canonical_id)
        result._record(remote.canonical_id, Outcome.CLOUD_WINS, "insert")

    def _find_duplicate(self, remote: ClipboardRecord) -> ClipboardRecord | None:
        window = self._config.handoff_window
        for local in self._local.query_modified_since(remote.created_at - window):
            if (
                not local.deleted
                and local.canonical_id != remote.canonical_id
                and local.content_fingerprint == remote.content_fingerprint
                and abs(local.created_at - remote.created_at) <= window
            ):
                return local
        return None

    def _apply_existing(
        self, local: ClipboardRecord, remote: ClipboardRecord, result: ReconciliationResult
    ) -> None:
        cid = local.canonical_id
        if local.deleted:
            # Pending local delete; deletion is monotonic.
            result._record(cid, Outcome.LOCAL_WINS, "tombstone")
            return

        local_modified = local.is_modified_since_sync()
        remote_modified = local.last_synced_at is None or remote.last_modified > local.last_synced_at

        if not local_modified:
            if remote.last_modified != local.last_modified or remote.content_fingerprint != local.content_fingerprint:
                self._local.upsert(_as_synced(remote))
                result.updated.append(cid)
                result._record(cid, Outcome.CLOUD_WINS, "unmodified_local")
            return

        if not remote_modified:
            result._record(cid, Outcome.LOCAL_WINS, "unmodified_remote")
            return

        decision = resolve_conflict(local, remote, self._config.conflict_window)
        if decision.outcome is Outcome.MERGED:
            merged = replace(local, last_modified=max(local.last_modified, remote.last_modified))
            self._local.upsert(_as_synced(merged))
        elif decision.outcome is Outcome.CLOUD_WINS:
            self._local.upsert(_as_synced(remote))
            result.updated.append(cid)
        elif decision.outcome is Outcome.LOCAL_WINS:
            if local.sync_state is not SyncState.FAILED:
                self._local.upsert(replace(local, sync_state=SyncState.PENDING))
        else:
            conflict = IrreconcilableConflict(cid, "conflict rules exhausted")
            logger.error("%s", conflict)
            self._local.upsert(replace(local, sync_state=SyncState.CONFLICTED))
            result.unresolved.append(conflict)
        logger.debug("Conflict on %s decided %s by %s", cid, decision.outcome.value, decision.rule)
        result._record(cid, decision.outcome, decision.rule)

    def _apply_absences(self, remote_ids: set[str], result: ReconciliationResult) -> None:
        for local in self._local.query_modified_since(0.0):
            if local.canonical_id in remote_ids or local.deleted:
                continue
            if local.last_synced_at is None:
                # Never published; stays queued for push.
                continue
            self._local.upsert(_as_synced(local.as_deleted(local.last_modified)))
            result.deleted.append(local.canonical_id)
            result._record(local.canonical_id, Outcome.CLOUD_WINS, "absent_remotely")

    def record_local_change(self, record: ClipboardRecord, awaiting_push: bool) -> ClipboardRecord:
        """Store a locally made change with the matching sync state.

        Args:
            record: The new local version.
            awaiting_push: True if the change will be pushed or queued,
                False for records that stay local until the relay
                publishes them.

        Returns:
            The stored record.
        """
        state = SyncState.PENDING if awaiting_push else SyncState.LOCAL
        stored = replace(record, sync_state=state)
        self._local.upsert(stored)
        return stored

    def mark_synced(self, canonical_id: str, pushed: ClipboardRecord) -> None:
        """Mark a record synced after pushed reached the shared store.

        A local change made after the pushed snapshot keeps the record pending.
        """
        local = self._local.get_by_id(canonical_id)
        if local is None:
            return
        if local.last_modified > pushed.last_modified:
            self._local.upsert(replace(local, last_synced_at=pushed.last_modified))
            return
        self._local.upsert(_as_synced(local))

    def mark_failed(self, canonical_id: str) -> None:
        local = self._local.get_by_id(canonical_id)
        if local is not None and local.sync_state is not SyncState.SYNCED:
            self._local.upsert(replace(local, sync_state=SyncState.FAILED))
