"""Base entity shared by all SentinelGuard platforms."""
from __future__ import annotations

from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .coordinator import SentinelGuardCoordinator
from .mutation import MutationOutcome


class SentinelGuardEntity(CoordinatorEntity[SentinelGuardCoordinator]):
    """
    Entity attached to the monitored host device.

    State is read from coordinator.data on every access; the coordinator
    pushes a fresh ConsoleData whenever a poll or an optimistic patch lands.
    """

    def __init__(self, coordinator: SentinelGuardCoordinator, key: str, name: str, icon: str | None = None) -> None:
        super().__init__(coordinator)
        self._attr_unique_id = f"sentinelguard_{coordinator.guid}_{key}"
        self._attr_name = name
        self._attr_icon = icon

    @property
    def device_info(self) -> DeviceInfo | None:
        return self.coordinator.get_device_info()


def raise_on_failure(outcome: MutationOutcome) -> None:
    """Surface a failed user action in the UI after the rollback happened."""
    if not outcome.success:
        raise HomeAssistantError(outcome.message)
