#!/usr/bin/env python3
"""Per-installation device identity and role.

The device ID is generated once, written to the state directory and read
back on every later start, so it survives restarts. The role (relay or
client) is fixed when the installation is first set up and is never
negotiated at runtime.
"""

from __future__ import annotations

import json
import logging
import platform
import random
import socket
import time
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)

IDENTITY_FILENAME = "device.json"


class DeviceRole(str, Enum):
    """Sync role of an installation."""

    RELAY = "relay"
    CLIENT = "client"


class RoleMismatchError(Exception):
    """Raised when an installation is started with a role it was not set up with."""

    pass


@dataclass(frozen=True)
class DeviceInfo:
    """Descriptive information stored alongside the device ID.

    Attributes:
        device_id: Stable identifier, format ``<platform>-<epoch>-<random4>``.
        role: Fixed sync role of this installation.
        device_name: Host name at registration time.
        platform: Lower-case OS name.
        registered_at: POSIX timestamp of first start.
    """

    device_id: str
    role: DeviceRole
    device_name: str
    platform: str
    registered_at: float

    def __str__(self) -> str:
        return f"{self.device_name} ({self.platform}, {self.role.value}) - ID: {self.device_id}"


def generate_device_id(now: float | None = None) -> str:
    """Generate a new device identifier.

    Args:
        now: Timestamp to embed, defaults to the current time.

    Returns:
        Identifier of the form ``<platform>-<epoch>-<random4>``.
    """
    stamp = int(time.time() if now is None else now)
    return f"{platform.system().lower() or 'unknown'}-{stamp}-{random.randint(1000, 9999)}"


class DeviceIdentity:
    """Stable identity of this installation.

    Use DeviceIdentity.load() to read or create the persisted identity in a
    state directory. The plain constructor is for callers (and tests) that
    already know both values.
    """

    def __init__(self, info: DeviceInfo) -> None:
        self._info = info

    @classmethod
    def create(cls, device_id: str, role: DeviceRole) -> DeviceIdentity:
        return cls(DeviceInfo(
            device_id=device_id,
            role=role,
            device_name=socket.gethostname(),
            platform=platform.system().lower(),
            registered_at=time.time(),
        ))

    @classmethod
    def load(cls, state_dir: Path, role: DeviceRole) -> DeviceIdentity:
        """Load the identity from state_dir, creating it on first start.

        Args:
            state_dir: Directory holding the identity file.
            role: Role requested for this run.

        Returns:
            The persisted identity.

        Raises:
            RoleMismatchError: If the stored role differs from role.
        """
        path = state_dir / IDENTITY_FILENAME
        if path.exists():
            data = json.loads(path.read_text(encoding="utf-8"))
            info = DeviceInfo(
                device_id=data["device_id"],
                role=DeviceRole(data["role"]),
                device_name=data["device_name"],
                platform=data["platform"],
                registered_at=float(data["registered_at"]),
            )
            if info.role != role:
                raise RoleMismatchError(
                    f"Installation was set up as {info.role.value}, cannot run as {role.value}"
                )
            logger.debug("Loaded device identity %s", info)
            return cls(info)

        identity = cls.create(generate_device_id(), role)
        state_dir.mkdir(parents=True, exist_ok=True)
        data = asdict(identity.info())
        data["role"] = role.value
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        logger.info("Registered new device %s", identity.info())
        return identity

    def device_id(self) -> str:
        """Return the identifier stable for the lifetime of the installation."""
        return self._info.device_id

    def role(self) -> DeviceRole:
        """Return the fixed sync role of this installation."""
        return self._info.role

    def is_relay(self) -> bool:
        return self._info.role is DeviceRole.RELAY

    def info(self) -> DeviceInfo:
        return self._info
