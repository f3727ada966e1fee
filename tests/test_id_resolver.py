#!/usr/bin/env python3
"""Tests for canonical ID resolution and duplicate merging."""
import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest

from cliprelay.errors import NotConnected
from cliprelay.handoff import HandoffPayload
from cliprelay.id_aliases import AliasTable
from cliprelay.id_resolver import CanonicalIDResolver, choose_canonical
from cliprelay.records import ContentType, CorrelationCandidate, SourceHint


def _resolver(identity, local_store, shared_store=None, config=None, aliases=None):
    if aliases is None:
        aliases = AliasTable()
    return CanonicalIDResolver(identity, local_store, aliases, shared_store, config)


@pytest.mark.asyncio
async def test_handoff_resolves_to_existing_id_on_relay(
    relay_identity, local_store, shared_store, config, make_record
) -> None:
    """Test a handoff of content created elsewhere adopts that canonical ID."""
    original = make_record("id-a", "h1 content", created_at=10.0, origin_device="client-a")
    shared_store.seed(original)
    resolver = _resolver(relay_identity, local_store, shared_store, config)

    resolution = await resolver.resolve(HandoffPayload("h1 content", 11.0).to_candidate())

    assert resolution.canonical_id == "id-a"
    assert resolution.is_new is False
    assert resolution.origin_device == "client-a"
    assert resolution.relayed_by == "relay-1"


@pytest.mark.asyncio
async def test_handoff_on_client_keeps_relayed_by(
    client_identity, local_store, config, make_record
) -> None:
    """Test a client never claims to have relayed a record."""
    local_store.upsert(make_record("id-a", "h1 content", created_at=10.0, relayed_by="relay-1"))
    resolver = _resolver(client_identity, local_store, config=config)

    resolution = await resolver.resolve(HandoffPayload("h1 content", 11.0).to_candidate())

    assert resolution.canonical_id == "id-a"
    assert resolution.relayed_by == "relay-1"


@pytest.mark.asyncio
async def test_unmatched_candidate_mints_new_id(relay_identity, local_store, config) -> None:
    """Test content with no correlated record gets a fresh ID owned by this device."""
    resolver = _resolver(relay_identity, local_store, config=config)
    candidate = CorrelationCandidate.observe("fresh", ContentType.TEXT, 50.0, SourceHint.LOCAL_COPY)

    resolution = await resolver.resolve(candidate)

    assert resolution.is_new is True
    assert resolution.origin_device == "relay-1"
    assert resolution.relayed_by is None


@pytest.mark.asyncio
async def test_match_through_alias_resolves_to_survivor(client_identity, local_store, config, make_record) -> None:
    """Test a match on a merged-away record yields the surviving ID."""
    aliases = AliasTable()
    aliases.add("old", "survivor")
    local_store.upsert(make_record("old", "text", created_at=10.0))
    resolver = _resolver(client_identity, local_store, config=config, aliases=aliases)
    candidate = CorrelationCandidate.observe("text", ContentType.TEXT, 12.0, SourceHint.LOCAL_COPY)

    resolution = await resolver.resolve(candidate)

    assert resolution.canonical_id == "survivor"


@pytest.mark.asyncio
async def test_unreachable_store_falls_back_to_local_view(relay_identity, local_store, config, make_record) -> None:
    """Test resolution proceeds locally when the shared store is offline."""
    shared = MagicMock()
    shared.pull = AsyncMock(side_effect=NotConnected("offline"))
    local_store.upsert(make_record("local", "known", created_at=10.0))
    resolver = _resolver(relay_identity, local_store, shared, config)
    candidate = CorrelationCandidate.observe("known", ContentType.TEXT, 11.0, SourceHint.LOCAL_COPY)

    resolution = await resolver.resolve(candidate)

    assert resolution.canonical_id == "local"


@pytest.mark.asyncio
async def test_slow_store_times_out_and_mints_new_id(relay_identity, local_store, config) -> None:
    """Test resolution does not wait beyond the correlation timeout."""

    async def slow_pull(since):
        await asyncio.sleep(10)
        return []

    shared = MagicMock()
    shared.pull = slow_pull
    resolver = _resolver(relay_identity, local_store, shared, config)
    candidate = CorrelationCandidate.observe("x", ContentType.TEXT, 11.0, SourceHint.LOCAL_COPY)

    resolution = await asyncio.wait_for(resolver.resolve(candidate), timeout=2.0)

    assert resolution.is_new is True


def test_choose_canonical_prefers_earliest(make_record) -> None:
    """Test the earliest created record survives."""
    early = make_record("z", created_at=100.0)
    late = make_record("a", created_at=105.0)
    assert choose_canonical(late, early) == (early, late)


def test_choose_canonical_ties_break_on_smaller_id(make_record) -> None:
    """Test equal creation times fall back to the smaller ID."""
    first = make_record("b", created_at=100.0)
    second = make_record("a", created_at=100.0)
    survivor, alias = choose_canonical(first, second)
    assert survivor.canonical_id == "a"
    assert alias.canonical_id == "b"


def test_merge_aliases_loser_and_removes_it_locally(client_identity, local_store, make_record) -> None:
    """Test merging writes the alias and keeps only the survivor locally."""
    aliases = AliasTable()
    early = make_record("early", created_at=100.0)
    late = make_record("late", created_at=104.0)
    local_store.upsert(late)
    resolver = _resolver(client_identity, local_store, aliases=aliases)

    decision = resolver.merge(late, early)

    assert decision.survivor_id == "early"
    assert decision.alias_id == "late"
    assert decision.alias_published is True
    assert aliases.resolve("late") == "early"
    assert local_store.get_by_id("late") is None


def test_adopt_rekeys_unpublished_record(client_identity, local_store, make_record) -> None:
    """Test a local-only record takes over the published ID even if older."""
    aliases = AliasTable()
    local = make_record("local", created_at=100.0)
    remote = replace(make_record("remote", created_at=101.0), relayed_by="relay-1")
    local_store.upsert(local)
    resolver = _resolver(client_identity, local_store, aliases=aliases)

    decision = resolver.adopt(local, remote)

    assert decision.survivor_id == "remote"
    assert decision.alias_published is False
    assert aliases.resolve("local") == "remote"
    assert local_store.get_by_id("local") is None
