#!/usr/bin/env python3
"""Ordered conflict rule chain for records edited on both sides.

Rules are applied in order until one decides:

1. Content identity: equal fingerprints are not a real conflict.
2. Simultaneity: edits closer than the conflict window are decided by
   device hierarchy, the relay's edit beats a client's.
3. Recency: the later lastModified wins.
4. Completeness: with equal timestamps the longer content wins, then the
   smaller fingerprint, which makes the chain a total order.

The module is pure and never suspends.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from cliprelay.device import DeviceRole
from cliprelay.sync_constants import CONFLICT_WINDOW

if TYPE_CHECKING:
    from cliprelay.records import ClipboardRecord


class Outcome(str, Enum):
    LOCAL_WINS = "local_wins"
    CLOUD_WINS = "cloud_wins"
    MERGED = "merged"
    CONFLICT_UNRESOLVED = "conflict_unresolved"


@dataclass(frozen=True)
class ConflictDecision:
    """Decision for one conflicting pair.

    Attributes:
        outcome: Which side wins.
        rule: Name of the rule that decided.
    """

    outcome: Outcome
    rule: str


def _is_relay_edit(record: ClipboardRecord) -> bool:
    return record.modified_by_role is DeviceRole.RELAY


def resolve_conflict(
    local: ClipboardRecord,
    remote: ClipboardRecord,
    conflict_window: float = CONFLICT_WINDOW,
) -> ConflictDecision:
    """Decide a true conflict between a local and a remote version.

    Args:
        local: Local version, modified since the last sync.
        remote: Shared-store version, modified since the last sync.
        conflict_window: Simultaneity window in seconds.

    Returns:
        The ConflictDecision. CONFLICT_UNRESOLVED is only returned if every
        rule abstains, which the total ordering of rule 4 rules out.
    """
    if local.content_fingerprint == remote.content_fingerprint:
        return ConflictDecision(Outcome.MERGED, "content_hash")

    delta = remote.last_modified - local.last_modified
    if abs(delta) < conflict_window:
        local_relay = _is_relay_edit(local)
        remote_relay = _is_relay_edit(remote)
        if local_relay and not remote_relay:
            return ConflictDecision(Outcome.LOCAL_WINS, "device_hierarchy")
        if remote_relay and not local_relay:
            return ConflictDecision(Outcome.CLOUD_WINS, "device_hierarchy")

    if delta > 0:
        return ConflictDecision(Outcome.CLOUD_WINS, "recency")
    if delta < 0:
        return ConflictDecision(Outcome.LOCAL_WINS, "recency")

    if remote.content_length != local.content_length:
        outcome = Outcome.CLOUD_WINS if remote.content_length > local.content_length else Outcome.LOCAL_WINS
        return ConflictDecision(outcome, "completeness")
    if remote.content_fingerprint != local.content_fingerprint:
        outcome = Outcome.CLOUD_WINS if remote.content_fingerprint < local.content_fingerprint else Outcome.LOCAL_WINS
        return ConflictDecision(outcome, "completeness")

    return ConflictDecision(Outcome.CONFLICT_UNRESOLVED, "exhausted")
