#!/usr/bin/env python3
"""Canonical ID resolution and duplicate merging.

resolve() assigns the single cross-device identifier for a fresh
observation: it adopts the ID of a correlated record seen within the
handoff window (locally or in the shared store) or mints a new one.
Resolution never waits past the correlation timeout; if the shared
store cannot be consulted in time the local view alone decides, and a
missed match is later repaired by reconciliation's fingerprint merge.

choose_canonical() is the tie-break for two published IDs that turn out
to name one logical item: the earliest created_at wins and the other ID
is aliased.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cliprelay.config import SyncConfig
from cliprelay.correlator import MatchResult, correlate
from cliprelay.errors import CorrelationTimeout, SyncError
from cliprelay.records import ClipboardRecord, new_canonical_id

if TYPE_CHECKING:
    from cliprelay.device import DeviceIdentity
    from cliprelay.id_aliases import AliasTable
    from cliprelay.interfaces import LocalStore, SharedStore
    from cliprelay.records import CorrelationCandidate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    """Result of resolving one candidate.

    Attributes:
        canonical_id: Adopted or newly minted canonical ID.
        origin_device: Device that first created the logical entry.
        relayed_by: Relay that handled this observation, if any.
        is_new: True if a new canonical ID was minted.
        match: The correlation result that led to the decision.
    """

    canonical_id: str
    origin_device: str
    relayed_by: str | None
    is_new: bool
    match: MatchResult


@dataclass(frozen=True)
class MergeDecision:
    """Outcome of a canonical ID tie-break.

    Attributes:
        survivor_id: Canonical ID that stays active.
        alias_id: Canonical ID converted into an alias of survivor_id.
        alias_published: True if alias_id exists in the shared store and
            must be deleted there.
        alias_record: Last known state of the aliased record.
    """

    survivor_id: str
    alias_id: str
    alias_published: bool
    alias_record: ClipboardRecord


def choose_canonical(first: ClipboardRecord, second: ClipboardRecord) -> tuple[ClipboardRecord, ClipboardRecord]:
    """Order two records naming the same item as (survivor, alias).

    The earliest created_at wins; equal timestamps fall back to the
    lexicographically smaller canonical ID so every device agrees.
    """
    if (first.created_at, first.canonical_id) <= (second.created_at, second.canonical_id):
        return first, second
    return second, first


class CanonicalIDResolver:
    """Assigns and merges canonical IDs.

    Args:
        identity: This device's identity.
        local_store: Local record store to search.
        aliases: Alias table recording merged IDs.
        shared_store: Shared store to search, or None to rely on the local
            view only.
        config: Windows and timeouts.
    """

    def __init__(
        self,
        identity: DeviceIdentity,
        local_store: LocalStore,
        aliases: AliasTable,
        shared_store: SharedStore | None = None,
        config: SyncConfig | None = None,
    ) -> None:
        self._identity = identity
        self._local = local_store
        self._aliases = aliases
        self._shared = shared_store
        self._config = config or SyncConfig()

    async def resolve(self, candidate: CorrelationCandidate) -> Resolution:
        """Resolve the canonical ID for candidate.

        Args:
            candidate: The fresh observation.

        Returns:
            The Resolution.
        """
        since = candidate.received_at - self._config.handoff_window
        window_records = self._local.query_modified_since(since)
        try:
            window_records += await self._remote_window(since)
        except CorrelationTimeout as e:
            logger.debug("Resolving from local view only: %s", e)

        match = correlate(
            candidate,
            window_records,
            window=self._config.handoff_window,
            threshold=self._config.similarity_threshold,
        )
        device_id = self._identity.device_id()

        if match.record is not None:
            record = match.record
            canonical_id = self._aliases.resolve(record.canonical_id)
            relayed_by = record.relayed_by
            if self._identity.is_relay() and record.origin_device != device_id:
                relayed_by = device_id
            logger.debug("Candidate resolved to %s: %s", canonical_id, match.reason)
            return Resolution(canonical_id, record.origin_device, relayed_by, False, match)

        canonical_id = new_canonical_id()
        logger.debug("Minted canonical ID %s (%s)", canonical_id, match.reason)
        return Resolution(canonical_id, device_id, None, True, match)

    async def _remote_window(self, since: float) -> list[ClipboardRecord]:
        if self._shared is None:
            return []
        try:
            return await asyncio.wait_for(
                self._shared.pull(since), timeout=self._config.correlation_timeout
            )
        except asyncio.TimeoutError as e:
            raise CorrelationTimeout("Shared store lookup timed out") from e
        except SyncError as e:
            raise CorrelationTimeout(f"Shared store lookup failed: {e}") from e

    def merge(self, first: ClipboardRecord, second: ClipboardRecord) -> MergeDecision:
        """Merge two published records naming the same logical item.

        The alias is written durably before returning; the local store then
        keeps only the survivor. Removing the alias from the shared store is
        left to the caller, which queues it through the offline queue.

        Args:
            first: One of the duplicates.
            second: The other duplicate.

        Returns:
            The MergeDecision.
        """
        survivor, alias = choose_canonical(first, second)
        self._aliases.add(alias.canonical_id, survivor.canonical_id)
        if self._local.get_by_id(alias.canonical_id) is not None:
            self._local.delete(alias.canonical_id)
        logger.info(
            "Merged duplicate %s into %s (created %.3f vs %.3f)",
            alias.canonical_id, survivor.canonical_id, alias.created_at, survivor.created_at,
        )
        return MergeDecision(survivor.canonical_id, alias.canonical_id, True, alias)

    def adopt(self, local_record: ClipboardRecord, remote_record: ClipboardRecord) -> MergeDecision:
        """Re-key an unpublished local record onto a published remote ID.

        Used when a local-only record turns out to be a copy the relay has
        already published under its own ID. Since client devices cannot
        publish, the shared-store ID always survives.
        """
        self._aliases.add(local_record.canonical_id, remote_record.canonical_id)
        self._local.delete(local_record.canonical_id)
        logger.info("Local record %s adopted canonical ID %s", local_record.canonical_id, remote_record.canonical_id)
        return MergeDecision(remote_record.canonical_id, local_record.canonical_id, False, local_record)
