"""
Platform for SentinelGuard sensors.
This module is responsible for the dashboard counters, the filtered security
log, the process and network overviews and the last-action acknowledgement.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

from homeassistant import config_entries
from homeassistant.components.sensor import SensorEntity, SensorStateClass
from homeassistant.core import HomeAssistant

from .const import MAX_EVENT_ATTRIBUTES
from .coordinator import SentinelGuardCoordinator
from .coordinator_data import ConsoleData
from .entity import SentinelGuardEntity
from .notifications import NotificationKind
from .status import stopped_services, trusted_count

_LOGGER = logging.getLogger(__name__)


class SentinelGuardCountSensor(SentinelGuardEntity, SensorEntity):
    """A numeric projection of the current ConsoleData snapshot."""

    _attr_state_class = SensorStateClass.MEASUREMENT

    def __init__(
        self,
        coordinator: SentinelGuardCoordinator,
        key: str,
        name: str,
        icon: str,
        value_fn: Callable[[ConsoleData], int],
        attributes_fn: Callable[[ConsoleData], dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(coordinator, key, name, icon)
        self._value_fn = value_fn
        self._attributes_fn = attributes_fn

    @property
    def native_value(self) -> int:
        return self._value_fn(self.coordinator.data)

    @property
    def extra_state_attributes(self) -> dict[str, Any] | None:
        if self._attributes_fn is None:
            return None
        return self._attributes_fn(self.coordinator.data)


class VisibleEventsSensor(SentinelGuardEntity, SensorEntity):
    """
    Number of security events that pass the current log filter.
    The most recent visible events, the active filter and per-level counts
    are exposed as attributes.
    """

    _attr_state_class = SensorStateClass.MEASUREMENT

    def __init__(self, coordinator: SentinelGuardCoordinator) -> None:
        super().__init__(coordinator, "visible_events", "Security Events", "mdi:text-box-search")

    @property
    def native_value(self) -> int:
        return len(self.coordinator.data.visible_events)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        data = self.coordinator.data
        visible = data.visible_events
        return {
            "filter_level": data.event_filter.level,
            "filter_search": data.event_filter.search,
            "total_events": len(data.events),
            "stats": data.log_stats,
            "events": [event.as_attribute() for event in visible[:MAX_EVENT_ATTRIBUTES]],
        }


class LastActionSensor(SentinelGuardEntity, SensorEntity):
    """Shows the current notification; empty once it was dismissed."""

    def __init__(self, coordinator: SentinelGuardCoordinator) -> None:
        super().__init__(coordinator, "last_action", "Last Action", "mdi:message-badge")

    @property
    def native_value(self) -> str | None:
        notification = self.coordinator.notifications.current
        return notification.message if notification is not None else None

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        notification = self.coordinator.notifications.current
        return {"kind": str(notification.kind) if notification is not None else None}

    @property
    def icon(self) -> str | None:
        notification = self.coordinator.notifications.current
        if notification is not None and notification.kind == NotificationKind.ERROR:
            return "mdi:message-alert"
        return "mdi:message-badge"


def _device_attributes(data: ConsoleData) -> dict[str, Any]:
    return {
        "devices": [
            {
                "instance_id": d.instance_id,
                "name": d.friendly_name,
                "class": d.device_class,
                "status": d.status,
                "trusted": d.is_trusted,
            }
            for d in data.devices
        ],
    }


def _process_attributes(data: ConsoleData) -> dict[str, Any]:
    return {
        "processes": [
            {"id": p.id, "name": p.name, "memory_mb": p.memory_mb, "cpu_percent": p.cpu_percent}
            for p in data.processes
        ],
        "services": [
            {"name": s.name, "display_name": s.display_name, "status": s.status}
            for s in data.services
        ],
        "stopped_services": [s.name for s in stopped_services(data.services)],
    }


def _adapter_attributes(data: ConsoleData) -> dict[str, Any]:
    return {
        "adapters": [
            {
                "name": a.adapter_name,
                "ip_address": a.ip_address,
                "mac_address": a.mac_address,
                "gateway": a.gateway,
                "status": a.status,
            }
            for a in data.adapters
        ],
    }


def _firewall_rule_attributes(data: ConsoleData) -> dict[str, Any]:
    return {
        "rules": [
            {
                "name": r.name,
                "enabled": r.enabled,
                "direction": r.direction,
                "action": r.action,
                "protocol": r.protocol,
                "local_port": r.local_port,
            }
            for r in data.firewall_rules
        ],
    }


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: config_entries.ConfigEntry,
    async_add_entities,
):
    """Add sensors for passed config_entry in HA."""
    coordinator: SentinelGuardCoordinator = config_entry.runtime_data

    entities = [
        SentinelGuardCountSensor(
            coordinator, "threat_count", "Threat Count", "mdi:shield-bug",
            lambda data: data.threat_count,
        ),
        SentinelGuardCountSensor(
            coordinator, "connected_devices", "Connected Devices", "mdi:usb",
            lambda data: len(data.devices), _device_attributes,
        ),
        SentinelGuardCountSensor(
            coordinator, "trusted_devices", "Trusted Devices", "mdi:usb-flash-drive",
            lambda data: trusted_count(data.devices),
        ),
        SentinelGuardCountSensor(
            coordinator, "blocked_threats", "Blocked Threats", "mdi:shield-remove",
            lambda data: data.dashboard_stats["blocked_threats"],
        ),
        SentinelGuardCountSensor(
            coordinator, "high_memory_processes", "High Memory Processes", "mdi:memory",
            lambda data: len(data.processes), _process_attributes,
        ),
        SentinelGuardCountSensor(
            coordinator, "network_adapters", "Network Adapters", "mdi:ethernet",
            lambda data: len(data.adapters), _adapter_attributes,
        ),
        SentinelGuardCountSensor(
            coordinator, "firewall_rules", "Firewall Rules", "mdi:wall-fire",
            lambda data: len(data.firewall_rules), _firewall_rule_attributes,
        ),
        VisibleEventsSensor(coordinator),
        LastActionSensor(coordinator),
    ]
    async_add_entities(entities)
