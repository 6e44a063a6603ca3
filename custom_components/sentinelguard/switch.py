"""
Platform for SentinelGuard switches.
This module is responsible for the per-device trust switches. A switch is
added the first time a USB device shows up in a snapshot and becomes
unavailable while the device is disconnected.
"""
from __future__ import annotations

import logging

from homeassistant import config_entries
from homeassistant.components.switch import SwitchDeviceClass, SwitchEntity
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.entity import DeviceInfo

from .coordinator import SentinelGuardCoordinator
from .entity import SentinelGuardEntity, raise_on_failure

_LOGGER = logging.getLogger(__name__)


class DeviceTrustSwitch(SentinelGuardEntity, SwitchEntity):
    """
    Representation of the allow-list membership of one USB device.
    Toggling shows the new state immediately; a rejected command rolls it back.
    """

    _attr_device_class = SwitchDeviceClass.SWITCH

    def __init__(self, coordinator: SentinelGuardCoordinator, instance_id: str) -> None:
        device = coordinator.data.get_device(instance_id)
        device_name = device.friendly_name if device is not None and device.friendly_name else instance_id
        super().__init__(coordinator, f"{instance_id}_trusted", f"{device_name} Trusted", "mdi:shield-check")
        self._instance_id = instance_id

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @property
    def device_info(self) -> DeviceInfo | None:
        return self.coordinator.get_usb_device_info(self._instance_id)

    @property
    def available(self) -> bool:
        return super().available and self.coordinator.data.get_device(self._instance_id) is not None

    @property
    def is_on(self) -> bool | None:
        device = self.coordinator.data.get_device(self._instance_id)
        if device is None:
            return None
        return device.is_trusted

    @property
    def icon(self) -> str | None:
        return "mdi:shield-check" if self.is_on else "mdi:shield-off"

    async def async_turn_on(self, **kwargs) -> None:
        """Add the device to the whitelist."""
        raise_on_failure(await self.coordinator.async_set_device_trust(self._instance_id, True))

    async def async_turn_off(self, **kwargs) -> None:
        """Remove the device from the whitelist."""
        raise_on_failure(await self.coordinator.async_set_device_trust(self._instance_id, False))


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: config_entries.ConfigEntry,
    async_add_entities,
):
    """Add trust switches for passed config_entry in HA."""
    coordinator: SentinelGuardCoordinator = config_entry.runtime_data
    known: set[str] = set()

    @callback
    def _add_new_devices() -> None:
        new_entities = []
        for device in coordinator.data.devices:
            if device.instance_id in known:
                continue
            known.add(device.instance_id)
            new_entities.append(DeviceTrustSwitch(coordinator, device.instance_id))
        if new_entities:
            _LOGGER.debug("Adding trust switches for %s new devices", len(new_entities))
            async_add_entities(new_entities)

    _add_new_devices()
    config_entry.async_on_unload(coordinator.async_add_listener(_add_new_devices))
