"""
Platform for SentinelGuard binary sensors.
This module is responsible for the overall threat indicator and the three
firewall profile sensors of the monitored host.
"""
from __future__ import annotations

import logging

from homeassistant import config_entries
from homeassistant.components.binary_sensor import BinarySensorDeviceClass, BinarySensorEntity
from homeassistant.core import HomeAssistant

from .coordinator import SentinelGuardCoordinator
from .entity import SentinelGuardEntity
from .status import is_threat

_LOGGER = logging.getLogger(__name__)

FIREWALL_PROFILES = ("domain", "private", "public")


class ThreatDetectedBinarySensor(SentinelGuardEntity, BinarySensorEntity):
    """On while at least one untrusted device has a non-OK status."""

    _attr_device_class = BinarySensorDeviceClass.SAFETY

    def __init__(self, coordinator: SentinelGuardCoordinator) -> None:
        super().__init__(coordinator, "threat_detected", "Threat Detected", "mdi:shield-alert")

    @property
    def is_on(self) -> bool:
        return not self.coordinator.data.is_secure

    @property
    def icon(self) -> str | None:
        return "mdi:shield-check" if self.coordinator.data.is_secure else "mdi:shield-alert"

    @property
    def extra_state_attributes(self) -> dict:
        threats = [d for d in self.coordinator.data.devices if is_threat(d)]
        return {
            "threats": [
                {"instance_id": d.instance_id, "name": d.friendly_name, "status": d.status}
                for d in threats
            ],
        }


class FirewallProfileBinarySensor(SentinelGuardEntity, BinarySensorEntity):
    """
    Representation of one Windows firewall profile (domain, private, public).
    Unavailable until the first firewall poll succeeded.
    """

    def __init__(self, coordinator: SentinelGuardCoordinator, profile: str) -> None:
        super().__init__(
            coordinator, f"firewall_{profile}", f"Firewall {profile.capitalize()} Profile", "mdi:wall-fire"
        )
        self._profile = profile

    @property
    def available(self) -> bool:
        return super().available and self.coordinator.data.firewall_status is not None

    @property
    def is_on(self) -> bool | None:
        status = self.coordinator.data.firewall_status
        if status is None:
            return None
        return getattr(status, f"{self._profile}_enabled")


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: config_entries.ConfigEntry,
    async_add_entities,
):
    """Add binary sensors for passed config_entry in HA."""
    coordinator: SentinelGuardCoordinator = config_entry.runtime_data

    entities = [ThreatDetectedBinarySensor(coordinator)]
    entities.extend(FirewallProfileBinarySensor(coordinator, profile) for profile in FIREWALL_PROFILES)
    async_add_entities(entities)
