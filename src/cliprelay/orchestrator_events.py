#!/usr/bin/env python3
"""Events and states of the sync orchestrator's control loop."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EventKind(str, Enum):
    CONNECTIVITY = "connectivity"
    TIMER = "timer"
    APP_ACTIVATED = "app_activated"
    REMOTE_CHANGE = "remote_change"
    SHUTDOWN = "shutdown"


class OrchestratorState(str, Enum):
    IDLE = "idle"
    PUSHING = "pushing"
    PULLING = "pulling"
    RECONCILING = "reconciling"


@dataclass(frozen=True)
class SyncEvent:
    """Message consumed by the control loop.

    Attributes:
        kind: What happened.
        connected: New connectivity for CONNECTIVITY events.
    """

    kind: EventKind
    connected: bool | None = None
