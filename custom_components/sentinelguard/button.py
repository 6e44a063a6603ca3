"""
Platform for SentinelGuard buttons.
This module is responsible for the one-shot host actions (log maintenance,
firewall logging, device rescan) and the start/restart buttons of every
critical service reported by the agent.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable

from homeassistant import config_entries
from homeassistant.components.button import ButtonEntity
from homeassistant.core import HomeAssistant, callback

from .coordinator import SentinelGuardCoordinator
from .entity import SentinelGuardEntity, raise_on_failure
from .mutation import MutationOutcome

_LOGGER = logging.getLogger(__name__)


class SentinelGuardActionButton(SentinelGuardEntity, ButtonEntity):
    """Runs one coordinator intent when pressed."""

    def __init__(
        self,
        coordinator: SentinelGuardCoordinator,
        key: str,
        name: str,
        icon: str,
        action: Callable[[], Awaitable[MutationOutcome | None]],
    ) -> None:
        super().__init__(coordinator, key, name, icon)
        self._action = action

    async def async_press(self) -> None:
        outcome = await self._action()
        if outcome is not None:
            raise_on_failure(outcome)


class ServiceButton(SentinelGuardEntity, ButtonEntity):
    """Start or restart one critical Windows service."""

    def __init__(self, coordinator: SentinelGuardCoordinator, service_name: str, restart: bool) -> None:
        service = coordinator.data.get_service(service_name)
        display_name = service.display_name if service is not None and service.display_name else service_name
        verb = "Restart" if restart else "Start"
        super().__init__(
            coordinator,
            f"service_{service_name}_{verb.lower()}",
            f"{verb} {display_name}",
            "mdi:restart" if restart else "mdi:play",
        )
        self._service_name = service_name
        self._restart = restart

    @property
    def available(self) -> bool:
        return super().available and self.coordinator.data.get_service(self._service_name) is not None

    async def async_press(self) -> None:
        if self._restart:
            outcome = await self.coordinator.async_restart_service(self._service_name)
        else:
            outcome = await self.coordinator.async_start_service(self._service_name)
        raise_on_failure(outcome)


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: config_entries.ConfigEntry,
    async_add_entities,
):
    """Add buttons for passed config_entry in HA."""
    coordinator: SentinelGuardCoordinator = config_entry.runtime_data

    async_add_entities([
        SentinelGuardActionButton(
            coordinator, "clear_logs", "Clear Event Log", "mdi:delete-sweep",
            coordinator.async_clear_logs,
        ),
        SentinelGuardActionButton(
            coordinator, "export_logs", "Export Event Log", "mdi:file-export",
            coordinator.async_export_logs,
        ),
        SentinelGuardActionButton(
            coordinator, "enable_firewall_logging", "Enable Firewall Logging", "mdi:file-document-edit",
            coordinator.async_enable_firewall_logging,
        ),
        SentinelGuardActionButton(
            coordinator, "rescan_devices", "Rescan Devices", "mdi:usb-port",
            coordinator.async_rescan_devices,
        ),
    ])

    known: set[str] = set()

    @callback
    def _add_new_services() -> None:
        new_entities = []
        for service in coordinator.data.services:
            if service.name in known:
                continue
            known.add(service.name)
            new_entities.append(ServiceButton(coordinator, service.name, restart=False))
            new_entities.append(ServiceButton(coordinator, service.name, restart=True))
        if new_entities:
            async_add_entities(new_entities)

    _add_new_services()
    config_entry.async_on_unload(coordinator.async_add_listener(_add_new_services))
