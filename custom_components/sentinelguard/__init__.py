import logging

from homeassistant import config_entries, core
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryNotReady

from .config_flow import _validate_credentials
from .const import CONF_AGENT_URL, CONF_TOKEN, CONF_VERIFY_SSL, DOMAIN
from .coordinator import SentinelGuardCoordinator
from .services import async_register_services

PLATFORMS: list[Platform] = [Platform.SENSOR, Platform.BINARY_SENSOR, Platform.SWITCH, Platform.BUTTON]
_LOGGER = logging.getLogger(__name__)

async def async_setup(hass: core.HomeAssistant, config: dict) -> bool:
    """Set up the integration."""
    hass.data.setdefault(DOMAIN, {})
    async_register_services(hass)
    return True

async def async_setup_entry(
    hass: core.HomeAssistant, entry: config_entries.ConfigEntry
) -> bool:
    """Set up platform from a ConfigEntry."""
    error = await _validate_credentials(
        entry.data.get(CONF_AGENT_URL, ""),
        entry.data.get(CONF_TOKEN, ""),
        entry.data.get(CONF_VERIFY_SSL, True),
    )
    if error == "invalid_url":
        _LOGGER.error("Invalid SentinelGuard agent URL: %s", entry.data.get(CONF_AGENT_URL))
        return False
    if error == "invalid_auth":
        raise ConfigEntryNotReady("SentinelGuard agent rejected the configured credentials")
    if error:
        raise ConfigEntryNotReady(f"Cannot reach the SentinelGuard agent ({error})")

    coordinator = SentinelGuardCoordinator(hass, dict(entry.data))
    try:
        await coordinator.async_config_entry_first_refresh()
    except ConfigEntryNotReady:
        await coordinator.async_shutdown()
        raise
    entry.runtime_data = coordinator

    entry.async_on_unload(
        entry.add_update_listener(_async_update_listener)
    )

    coordinator.async_start_polling()

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    return True

async def async_remove_config_entry_device(
    hass: core.HomeAssistant, config_entry: config_entries.ConfigEntry, device_entry
) -> bool:
    """Allow removing USB devices that are no longer connected."""
    coordinator = getattr(config_entry, "runtime_data", None)
    if coordinator is None:
        return True
    for domain, identifier in device_entry.identifiers:
        if domain != DOMAIN:
            continue
        if identifier == coordinator.guid:
            # The host device stays while the entry exists
            return False
        instance_id = identifier.removeprefix(f"{coordinator.guid}_")
        if coordinator.data.get_device(instance_id) is not None:
            _LOGGER.warning("Device still connected: %s", instance_id)
            return False
    return True

async def _async_update_listener(hass: HomeAssistant, config_entry):
    """Handle config options update."""
    # Reload the integration when the options change.
    await hass.config_entries.async_reload(config_entry.entry_id)

async def async_unload_entry(
    hass: core.HomeAssistant, entry: config_entries.ConfigEntry
) -> bool:
    """Unload a config entry."""
    unloaded = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unloaded:
        await entry.runtime_data.async_shutdown()
    return unloaded
