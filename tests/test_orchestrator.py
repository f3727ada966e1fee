#!/usr/bin/env python3
"""Tests for role-specific ingestion and intents in the sync orchestrator."""
from dataclasses import replace

import pytest

from cliprelay.handoff import HandoffPayload
from cliprelay.records import OpType, SyncState


@pytest.mark.asyncio
async def test_relay_publishes_local_copy_immediately(relay, shared_store, local_store) -> None:
    """Test a relay copy gets a new ID and reaches the shared store stamped by the relay."""
    record = await relay.observe_local_copy("hello")

    remote = shared_store.get(record.canonical_id)
    assert remote is not None
    assert remote.relayed_by == "relay-1"
    assert remote.origin_device == "relay-1"
    assert local_store.get_by_id(record.canonical_id).sync_state is SyncState.SYNCED
    assert len(relay.queue) == 0


@pytest.mark.asyncio
async def test_copy_with_undecodable_bytes_is_published(relay, shared_store) -> None:
    """Test text carrying escaped invalid bytes is ingested like any other copy."""
    record = await relay.observe_local_copy(b"caf\xff".decode("utf-8", "surrogateescape"))

    assert shared_store.get(record.canonical_id) is not None


@pytest.mark.asyncio
async def test_client_copy_stays_local(client, shared_store, local_store) -> None:
    """Test clients never create shared-store records."""
    record = await client.observe_local_copy("hello")

    assert record.sync_state is SyncState.LOCAL
    assert shared_store.get(record.canonical_id) is None
    assert ("push", record.canonical_id) not in shared_store.calls
    assert len(client.queue) == 0


@pytest.mark.asyncio
async def test_repeated_copy_is_suppressed_as_echo(relay, clock) -> None:
    """Test the same content observed again within the echo window is ignored."""
    first = await relay.observe_local_copy("hello")
    clock.advance(1)
    assert await relay.observe_local_copy("hello") is None
    assert first is not None


@pytest.mark.asyncio
async def test_clipboard_write_is_not_reingested(relay, local_store) -> None:
    """Test content this device writes to the clipboard is not a new copy."""
    relay.note_clipboard_write("from history")
    assert await relay.observe_local_copy("from history") is None
    assert len(local_store) == 0


@pytest.mark.asyncio
async def test_password_manager_copy_is_dropped(relay, local_store) -> None:
    """Test excluded source apps never produce records."""
    result = await relay.observe_local_copy("s3cret", source_app="com.bitwarden.desktop")
    assert result is None
    assert len(local_store) == 0


@pytest.mark.asyncio
async def test_copy_matching_existing_record_keeps_its_id(relay, local_store, shared_store, clock) -> None:
    """Test a copy of content seen moments ago on another path is not duplicated."""
    first = await relay.observe_local_copy("shared text")
    clock.advance(5)
    second = await relay.receive_handoff(HandoffPayload("shared text", clock()))

    assert second.canonical_id == first.canonical_id
    assert len(shared_store.live_records()) == 1
    assert len(local_store) == 1


@pytest.mark.asyncio
async def test_relay_handoff_of_published_record(relay, shared_store, local_store, make_record) -> None:
    """Test a handoff correlates with a record already in the shared store."""
    original = make_record("id-a", "h1 content", created_at=998.0, relayed_by="relay-1")
    shared_store.seed(original)

    record = await relay.receive_handoff(HandoffPayload("h1 content", 999.0))

    assert record.canonical_id == "id-a"
    assert record.relayed_by == "relay-1"
    assert local_store.get_by_id("id-a").sync_state is SyncState.SYNCED
    assert len(shared_store.live_records()) == 1


@pytest.mark.asyncio
async def test_client_edit_of_published_record_is_pushed(client, local_store, shared_store, make_synced, clock) -> None:
    """Test client edits reach the shared store through the queue."""
    record = make_synced("a", "old", relayed_by="relay-1")
    local_store.upsert(record)
    shared_store.seed(record)
    clock.advance(10)

    await client.request_edit("a", "new")

    assert shared_store.get("a").content == "new"
    assert shared_store.get("a").relayed_by == "relay-1"
    assert local_store.get_by_id("a").sync_state is SyncState.SYNCED
    assert len(client.queue) == 0


@pytest.mark.asyncio
async def test_client_edit_of_unpublished_record_stays_local(client, local_store, shared_store) -> None:
    """Test edits to local-only records are not queued."""
    record = await client.observe_local_copy("draft")

    edited = await client.request_edit(record.canonical_id, "draft 2")

    assert edited.sync_state is SyncState.LOCAL
    assert local_store.get_by_id(record.canonical_id).content == "draft 2"
    assert len(client.queue) == 0


@pytest.mark.asyncio
async def test_edit_of_unknown_record_raises(client) -> None:
    """Test intents on missing records are rejected."""
    with pytest.raises(KeyError):
        await client.request_edit("missing", "x")


@pytest.mark.asyncio
async def test_offline_edits_supersede_in_queue(offline_client, local_store, make_synced, clock) -> None:
    """Test repeated offline edits leave one queued update with the last content."""
    local_store.upsert(make_synced("a", "v0"))
    clock.advance(1)
    await offline_client.request_edit("a", "v1")
    clock.advance(1)
    await offline_client.request_edit("a", "v2")

    ops = offline_client.queue.snapshot()
    assert len(ops) == 1
    assert ops[0].op_type is OpType.UPDATE
    assert ops[0].payload_snapshot.content == "v2"
    assert local_store.get_by_id("a").sync_state is SyncState.PENDING


@pytest.mark.asyncio
async def test_delete_through_alias_targets_survivor(client, local_store, shared_store, make_synced) -> None:
    """Test intents using a merged-away ID act on the surviving record."""
    record = make_synced("survivor", "text")
    local_store.upsert(record)
    shared_store.seed(record)
    client.aliases.add("old", "survivor")

    await client.request_delete("old")

    assert local_store.get_by_id("survivor").deleted is True
    assert shared_store.get("survivor").deleted is True


@pytest.mark.asyncio
async def test_update_interval_validates(client) -> None:
    """Test the poll interval can be changed but must stay positive."""
    client.update_interval(30.0)
    assert client.config.poll_interval == 30.0
    with pytest.raises(ValueError):
        client.update_interval(0)


@pytest.mark.asyncio
async def test_client_adopts_id_published_by_relay(client, local_store, shared_store, make_record) -> None:
    """Test a client's local copy converges onto the relay's record."""
    local = await client.observe_local_copy("copied on both")
    published = replace(
        make_record("relay-id", "copied on both", created_at=1001.0), relayed_by="relay-1"
    )
    shared_store.seed(published)

    result = await client.pull_and_reconcile(full=True)

    assert local_store.get_by_id(local.canonical_id) is None
    assert local_store.get_by_id("relay-id").sync_state is SyncState.SYNCED
    assert client.aliases.resolve(local.canonical_id) == "relay-id"
    assert result.merges[0].alias_published is False
    assert len(client.queue) == 0


@pytest.mark.asyncio
async def test_published_duplicate_is_deleted_remotely(client, local_store, shared_store, make_synced) -> None:
    """Test the losing ID of a merge is removed from the shared store."""
    older = make_synced("older", "dup", created_at=1000.0)
    newer = make_synced("newer", "dup", created_at=1003.0)
    local_store.upsert(older)
    shared_store.seed(older)
    shared_store.seed(newer)

    await client.handle_reconnection()

    assert shared_store.get("newer").deleted is True
    assert shared_store.get("older").deleted is False
    assert len(client.queue) == 0


@pytest.mark.asyncio
async def test_relay_pull_does_not_insert(relay, local_store, shared_store, make_synced) -> None:
    """Test the relay only applies remote edits and deletions."""
    shared_store.seed(make_synced("foreign", "text"))
    await relay.pull_and_reconcile(full=True)
    assert local_store.get_by_id("foreign") is None
