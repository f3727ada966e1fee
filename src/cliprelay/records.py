#!/usr/bin/env python3
"""Clipboard record and pending operation data model.

ClipboardRecord is the logical clipboard entry shared across devices.
PendingOperation is a queued shared-store mutation. Both serialize to
plain JSON-compatible dicts for the local state files and the
directory-backed shared store.

Ownership: only the reconciliation engine changes sync_state of stored
records and only the offline queue creates or removes PendingOperations.
"""

from __future__ import annotations

import base64
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from cliprelay.device import DeviceRole
from cliprelay.fingerprint import compute_fingerprint


class ContentType(str, Enum):
    TEXT = "text"
    URL = "url"
    IMAGE = "image"
    FILE = "file"

    @property
    def is_textual(self) -> bool:
        return self in (ContentType.TEXT, ContentType.URL)


class SyncState(str, Enum):
    LOCAL = "local"
    PENDING = "pending"
    SYNCED = "synced"
    CONFLICTED = "conflicted"
    FAILED = "failed"


class OpType(str, Enum):
    PUSH = "push"
    UPDATE = "update"
    DELETE = "delete"


class SourceHint(str, Enum):
    """Where a correlation candidate was observed."""

    LOCAL_COPY = "local_copy"
    HANDOFF_RECEIVE = "handoff_receive"
    SHARED_STORE_PULL = "shared_store_pull"


def new_canonical_id() -> str:
    """Mint a fresh canonical identifier."""
    return str(uuid.uuid4())


def _encode_content(content: str | bytes) -> dict[str, str]:
    if isinstance(content, bytes):
        return {"content": base64.b64encode(content).decode("ascii"), "content_encoding": "base64"}
    return {"content": content, "content_encoding": "utf-8"}


def _decode_content(data: dict[str, Any]) -> str | bytes:
    if data.get("content_encoding") == "base64":
        return base64.b64decode(data["content"])
    return data["content"]


@dataclass
class ClipboardRecord:
    """A logical clipboard entry.

    Attributes:
        canonical_id: Cross-device identifier, never reassigned once resolved.
        content: Text for text/url records, raw bytes for image/file records.
        content_type: Variant tag for content.
        content_fingerprint: SHA-256 hex digest of content.
        created_at: POSIX timestamp of creation on the origin device.
        last_modified: POSIX timestamp of the latest field change.
        origin_device: Device that first created the logical entry.
        relayed_by: Device that pushed the record to the shared store.
        sync_state: Local sync status, see SyncState.
        deleted: Soft-delete (tombstone) marker.
        deleted_at: Timestamp of the soft delete.
        last_synced_at: last_modified value at the last successful sync, the
            common sync point for conflict detection. Local only.
        modified_by_role: Role of the device that made the latest change.
    """

    canonical_id: str
    content: str | bytes
    content_type: ContentType
    content_fingerprint: str
    created_at: float
    last_modified: float
    origin_device: str
    relayed_by: str | None = None
    sync_state: SyncState = SyncState.LOCAL
    deleted: bool = False
    deleted_at: float | None = None
    last_synced_at: float | None = None
    modified_by_role: DeviceRole | None = None

    @classmethod
    def new(
        cls,
        canonical_id: str,
        content: str | bytes,
        content_type: ContentType,
        origin_device: str,
        now: float,
        role: DeviceRole | None = None,
    ) -> ClipboardRecord:
        return cls(
            canonical_id=canonical_id,
            content=content,
            content_type=content_type,
            content_fingerprint=compute_fingerprint(content),
            created_at=now,
            last_modified=now,
            origin_device=origin_device,
            modified_by_role=role,
        )

    @property
    def content_length(self) -> int:
        return len(self.content)

    def is_modified_since_sync(self) -> bool:
        """Return True if the record changed locally after its last sync."""
        if self.last_synced_at is None:
            return True
        return self.last_modified > self.last_synced_at

    def with_content(
        self, content: str | bytes, now: float, role: DeviceRole
    ) -> ClipboardRecord:
        """Return a copy carrying new content, fingerprint and lastModified."""
        return replace(
            self,
            content=content,
            content_fingerprint=compute_fingerprint(content),
            last_modified=now,
            modified_by_role=role,
        )

    def as_deleted(self, now: float, role: DeviceRole | None = None) -> ClipboardRecord:
        """Return a tombstoned copy."""
        return replace(
            self,
            deleted=True,
            deleted_at=now,
            last_modified=now,
            modified_by_role=role or self.modified_by_role,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "canonical_id": self.canonical_id,
            "content_type": self.content_type.value,
            "content_fingerprint": self.content_fingerprint,
            "created_at": self.created_at,
            "last_modified": self.last_modified,
            "origin_device": self.origin_device,
            "relayed_by": self.relayed_by,
            "sync_state": self.sync_state.value,
            "deleted": self.deleted,
            "deleted_at": self.deleted_at,
            "last_synced_at": self.last_synced_at,
            "modified_by_role": self.modified_by_role.value if self.modified_by_role else None,
        }
        data.update(_encode_content(self.content))
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClipboardRecord:
        role = data.get("modified_by_role")
        return cls(
            canonical_id=data["canonical_id"],
            content=_decode_content(data),
            content_type=ContentType(data["content_type"]),
            content_fingerprint=data["content_fingerprint"],
            created_at=float(data["created_at"]),
            last_modified=float(data["last_modified"]),
            origin_device=data["origin_device"],
            relayed_by=data.get("relayed_by"),
            sync_state=SyncState(data.get("sync_state", SyncState.LOCAL.value)),
            deleted=bool(data.get("deleted", False)),
            deleted_at=data.get("deleted_at"),
            last_synced_at=data.get("last_synced_at"),
            modified_by_role=DeviceRole(role) if role else None,
        )


@dataclass
class PendingOperation:
    """A queued mutation awaiting shared-store connectivity.

    Attributes:
        op_type: push, update or delete.
        target_canonical_id: Record the operation applies to, or None for a
            push of a not-yet-resolved item.
        payload_snapshot: Record state at enqueue time.
        enqueued_at: Timestamp of the first enqueue; kept on supersession.
        op_id: Unique identifier of the queue entry.
        attempts: Failed execution attempts so far.
    """

    op_type: OpType
    target_canonical_id: str | None
    payload_snapshot: ClipboardRecord
    enqueued_at: float
    op_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    attempts: int = 0

    @property
    def dedup_key(self) -> tuple[str, str] | None:
        """Key under which a later operation supersedes this one."""
        if self.target_canonical_id is None:
            return None
        return (self.target_canonical_id, self.op_type.value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "op_type": self.op_type.value,
            "target_canonical_id": self.target_canonical_id,
            "payload_snapshot": self.payload_snapshot.to_dict(),
            "enqueued_at": self.enqueued_at,
            "op_id": self.op_id,
            "attempts": self.attempts,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingOperation:
        return cls(
            op_type=OpType(data["op_type"]),
            target_canonical_id=data.get("target_canonical_id"),
            payload_snapshot=ClipboardRecord.from_dict(data["payload_snapshot"]),
            enqueued_at=float(data["enqueued_at"]),
            op_id=data["op_id"],
            attempts=int(data.get("attempts", 0)),
        )


@dataclass(frozen=True)
class CorrelationCandidate:
    """A freshly observed clipboard event not yet assigned a canonical ID.

    Attributes:
        content: Observed payload.
        content_type: Variant tag for content.
        content_fingerprint: SHA-256 hex digest of content.
        received_at: Observation timestamp (handoff timestamp for handoffs).
        source_hint: Where the event was observed.
        source_device: Sending device for handoffs, if known.
    """

    content: str | bytes
    content_type: ContentType
    content_fingerprint: str
    received_at: float
    source_hint: SourceHint
    source_device: str | None = None

    @classmethod
    def observe(
        cls,
        content: str | bytes,
        content_type: ContentType,
        received_at: float,
        source_hint: SourceHint,
        source_device: str | None = None,
    ) -> CorrelationCandidate:
        return cls(
            content=content,
            content_type=content_type,
            content_fingerprint=compute_fingerprint(content),
            received_at=received_at,
            source_hint=source_hint,
            source_device=source_device,
        )
