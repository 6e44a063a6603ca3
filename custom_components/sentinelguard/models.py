"""
Domain models for the SentinelGuard integration.

This module contains pure data classes representing snapshots reported by
the host agent. These classes have no dependencies on HTTP, API logic, or
Home Assistant internals.

Entities are value snapshots: every poll produces new instances and nothing
here is ever mutated in place.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any

_LOGGER = logging.getLogger(__name__)


def _str(raw: dict, field: str, default: str = "") -> str:
    value = raw.get(field)
    if value is None:
        return default
    return str(value)


def _bool(raw: dict, field: str) -> bool:
    value = raw.get(field)
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _float(raw: dict, field: str) -> float:
    try:
        return float(raw.get(field) or 0.0)
    except (TypeError, ValueError):
        return 0.0


def parse_collection(raw: Any, factory) -> list:
    """
    Map a raw agent response onto a list of model instances.

    The agent returns a JSON array, a single object when exactly one record
    exists, or null/empty when there is nothing to report.
    """
    if raw is None or raw == "" or raw == "null":
        return []
    if isinstance(raw, dict):
        raw = [raw]
    if not isinstance(raw, list):
        _LOGGER.warning("Unexpected response format: %s", type(raw).__name__)
        return []
    parsed = [factory(item) for item in raw if isinstance(item, dict)]
    return [item for item in parsed if item is not None]


@dataclasses.dataclass(frozen=True)
class UsbDevice:
    """Representation of a connected USB device and its trust state."""

    instance_id: str
    friendly_name: str = ""
    device_class: str = ""
    status: str = ""
    is_trusted: bool = False

    @property
    def key(self) -> str:
        return self.instance_id

    @property
    def serial_id(self) -> str:
        """Last path segment of the instance id."""
        return self.instance_id.split("\\")[-1] or self.instance_id

    @classmethod
    def from_json(cls, raw: dict) -> UsbDevice | None:
        if not raw.get("instance_id"):
            _LOGGER.warning("Device without instance_id, skipping: %s", raw)
            return None
        return cls(
            instance_id=str(raw["instance_id"]),
            friendly_name=_str(raw, "friendly_name", "Unknown"),
            device_class=_str(raw, "device_class", "USB"),
            status=_str(raw, "status"),
            is_trusted=_bool(raw, "is_trusted"),
        )

    def to_json(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclasses.dataclass(frozen=True)
class WhitelistEntry:
    """A device on the authoritative allow-list."""

    instance_id: str
    friendly_name: str = ""
    added_at: str = ""

    @property
    def key(self) -> str:
        return self.instance_id

    @classmethod
    def from_json(cls, raw: dict) -> WhitelistEntry | None:
        if not raw.get("instance_id"):
            _LOGGER.warning("Whitelist entry without instance_id, skipping: %s", raw)
            return None
        return cls(
            instance_id=str(raw["instance_id"]),
            friendly_name=_str(raw, "friendly_name"),
            added_at=_str(raw, "added_at"),
        )


@dataclasses.dataclass(frozen=True)
class FirewallStatus:
    """Enabled state of the three firewall profiles."""

    domain_enabled: bool = False
    private_enabled: bool = False
    public_enabled: bool = False

    @classmethod
    def from_json(cls, raw: dict | None) -> FirewallStatus:
        if not raw:
            return cls()
        return cls(
            domain_enabled=_bool(raw, "domain_enabled"),
            private_enabled=_bool(raw, "private_enabled"),
            public_enabled=_bool(raw, "public_enabled"),
        )


@dataclasses.dataclass(frozen=True)
class FirewallRule:
    name: str
    enabled: bool = True
    direction: str = ""
    action: str = ""
    protocol: str = "Any"
    local_port: str = "Any"

    @property
    def key(self) -> str:
        return self.name

    @classmethod
    def from_json(cls, raw: dict) -> FirewallRule | None:
        if not raw.get("name"):
            _LOGGER.warning("Firewall rule without name, skipping: %s", raw)
            return None
        return cls(
            name=str(raw["name"]),
            enabled=_bool(raw, "enabled"),
            direction=_str(raw, "direction"),
            action=_str(raw, "action"),
            protocol=_str(raw, "protocol", "Any"),
            local_port=_str(raw, "local_port", "Any"),
        )


@dataclasses.dataclass(frozen=True)
class ProcessInfo:
    id: int
    name: str = ""
    cpu_percent: float = 0.0
    memory_mb: float = 0.0
    path: str = ""

    @property
    def key(self) -> int:
        return self.id

    @classmethod
    def from_json(cls, raw: dict) -> ProcessInfo | None:
        try:
            process_id = int(raw["id"])
        except (KeyError, TypeError, ValueError):
            _LOGGER.warning("Process without a numeric id, skipping: %s", raw)
            return None
        return cls(
            id=process_id,
            name=_str(raw, "name"),
            cpu_percent=_float(raw, "cpu_percent"),
            memory_mb=_float(raw, "memory_mb"),
            path=_str(raw, "path"),
        )


@dataclasses.dataclass(frozen=True)
class ServiceInfo:
    name: str
    display_name: str = ""
    status: str = ""
    start_type: str = ""

    @property
    def key(self) -> str:
        return self.name

    @classmethod
    def from_json(cls, raw: dict) -> ServiceInfo | None:
        if not raw.get("name"):
            _LOGGER.warning("Service without name, skipping: %s", raw)
            return None
        return cls(
            name=str(raw["name"]),
            display_name=_str(raw, "display_name", str(raw["name"])),
            status=_str(raw, "status"),
            start_type=_str(raw, "start_type"),
        )


@dataclasses.dataclass(frozen=True)
class NetworkAdapter:
    adapter_name: str
    ip_address: str = "N/A"
    subnet_mask: str = "N/A"
    gateway: str = "N/A"
    dns_servers: str = "N/A"
    mac_address: str = "N/A"
    status: str = ""

    @property
    def key(self) -> str:
        return self.adapter_name

    @classmethod
    def from_json(cls, raw: dict) -> NetworkAdapter | None:
        if not raw.get("adapter_name"):
            _LOGGER.warning("Network adapter without name, skipping: %s", raw)
            return None
        return cls(
            adapter_name=str(raw["adapter_name"]),
            ip_address=_str(raw, "ip_address", "N/A"),
            subnet_mask=_str(raw, "subnet_mask", "N/A"),
            gateway=_str(raw, "gateway", "N/A"),
            dns_servers=_str(raw, "dns_servers", "N/A"),
            mac_address=_str(raw, "mac_address", "N/A"),
            status=_str(raw, "status"),
        )


@dataclasses.dataclass(frozen=True)
class EventLog:
    """Single entry of the append-only security event stream."""

    id: str
    timestamp: str = ""
    level: str = "INFO"
    message: str = ""
    device_id: str | None = None

    @property
    def key(self) -> str:
        return self.id

    @classmethod
    def from_json(cls, raw: dict) -> EventLog | None:
        if not raw.get("id"):
            _LOGGER.warning("Event without id, skipping: %s", raw)
            return None
        device_id = raw.get("device_id")
        return cls(
            id=str(raw["id"]),
            timestamp=_str(raw, "timestamp"),
            level=_str(raw, "level", "INFO"),
            message=_str(raw, "message"),
            device_id=str(device_id) if device_id is not None else None,
        )

    def as_attribute(self) -> dict[str, Any]:
        """Compact form exposed in entity state attributes."""
        data = {"timestamp": self.timestamp, "level": self.level, "message": self.message}
        if self.device_id is not None:
            data["device_id"] = self.device_id
        return data
