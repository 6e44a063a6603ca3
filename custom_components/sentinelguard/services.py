"""
Service actions for the SentinelGuard integration.

Every service targets one config entry (the only entry when omitted) and
forwards to the matching coordinator intent. A failed mutation has already
produced an error notification; it is re-raised here as HomeAssistantError
so scripts and automations see the failure too.
"""
from __future__ import annotations

import logging

import homeassistant.helpers.config_validation as cv
import voluptuous as vol
from homeassistant.core import HomeAssistant, ServiceCall, callback
from homeassistant.exceptions import ServiceValidationError

from .const import DOMAIN, EVENT_LEVELS, LEVEL_ALL, LEVEL_INFO
from .entity import raise_on_failure

_LOGGER = logging.getLogger(__name__)

ATTR_ENTRY_ID = "entry_id"
ATTR_INSTANCE_ID = "instance_id"
ATTR_TRUSTED = "trusted"
ATTR_ENABLED = "enabled"
ATTR_PORT = "port"
ATTR_PROTOCOL = "protocol"
ATTR_RULE_NAME = "rule_name"
ATTR_PROCESS_ID = "process_id"
ATTR_SERVICE_NAME = "service_name"
ATTR_LEVEL = "level"
ATTR_SEARCH = "search"
ATTR_MESSAGE = "message"
ATTR_DEVICE_ID = "device_id"

SERVICE_SET_DEVICE_TRUST = "set_device_trust"
SERVICE_SET_DEVICE_ENABLED = "set_device_enabled"
SERVICE_CLEAR_WHITELIST = "clear_whitelist"
SERVICE_BLOCK_PORT = "block_port"
SERVICE_REMOVE_FIREWALL_RULE = "remove_firewall_rule"
SERVICE_KILL_PROCESS = "kill_process"
SERVICE_START_SERVICE = "start_service"
SERVICE_RESTART_SERVICE = "restart_service"
SERVICE_SET_EVENT_FILTER = "set_event_filter"
SERVICE_ADD_EVENT_LOG = "add_event_log"

_ENTRY = {vol.Optional(ATTR_ENTRY_ID): cv.string}

protocol_validator = vol.All(cv.string, vol.Upper, vol.In(["TCP", "UDP"]))
level_validator = vol.All(cv.string, vol.Upper, vol.In(EVENT_LEVELS))

SCHEMAS: dict[str, vol.Schema] = {
    SERVICE_SET_DEVICE_TRUST: vol.Schema(
        {**_ENTRY, vol.Required(ATTR_INSTANCE_ID): cv.string, vol.Required(ATTR_TRUSTED): cv.boolean}
    ),
    SERVICE_SET_DEVICE_ENABLED: vol.Schema(
        {**_ENTRY, vol.Required(ATTR_INSTANCE_ID): cv.string, vol.Required(ATTR_ENABLED): cv.boolean}
    ),
    SERVICE_CLEAR_WHITELIST: vol.Schema(_ENTRY),
    SERVICE_BLOCK_PORT: vol.Schema(
        {
            **_ENTRY,
            vol.Required(ATTR_PORT): vol.All(vol.Coerce(int), vol.Range(min=1, max=65535)),
            vol.Optional(ATTR_PROTOCOL, default="TCP"): protocol_validator,
            vol.Optional(ATTR_RULE_NAME): cv.string,
        }
    ),
    SERVICE_REMOVE_FIREWALL_RULE: vol.Schema({**_ENTRY, vol.Required(ATTR_RULE_NAME): cv.string}),
    SERVICE_KILL_PROCESS: vol.Schema(
        {**_ENTRY, vol.Required(ATTR_PROCESS_ID): vol.All(vol.Coerce(int), vol.Range(min=0))}
    ),
    SERVICE_START_SERVICE: vol.Schema({**_ENTRY, vol.Required(ATTR_SERVICE_NAME): cv.string}),
    SERVICE_RESTART_SERVICE: vol.Schema({**_ENTRY, vol.Required(ATTR_SERVICE_NAME): cv.string}),
    SERVICE_SET_EVENT_FILTER: vol.Schema(
        {
            **_ENTRY,
            vol.Optional(ATTR_LEVEL): vol.Any(
                vol.All(cv.string, vol.Lower, LEVEL_ALL), level_validator
            ),
            vol.Optional(ATTR_SEARCH): vol.Any(None, str),
        }
    ),
    SERVICE_ADD_EVENT_LOG: vol.Schema(
        {
            **_ENTRY,
            vol.Optional(ATTR_LEVEL, default=LEVEL_INFO): level_validator,
            vol.Required(ATTR_MESSAGE): cv.string,
            vol.Optional(ATTR_DEVICE_ID): cv.string,
        }
    ),
}


def _get_coordinator(hass: HomeAssistant, call: ServiceCall):
    """Resolve the coordinator a service call targets."""
    entries = [
        entry for entry in hass.config_entries.async_entries(DOMAIN)
        if getattr(entry, "runtime_data", None) is not None
    ]
    entry_id = call.data.get(ATTR_ENTRY_ID)
    if entry_id is not None:
        entries = [entry for entry in entries if entry.entry_id == entry_id]
        if not entries:
            raise ServiceValidationError(f"No loaded SentinelGuard entry with id {entry_id}")
    elif len(entries) != 1:
        raise ServiceValidationError(
            f"{len(entries)} SentinelGuard entries loaded, specify {ATTR_ENTRY_ID}"
        )
    return entries[0].runtime_data


async def _handle_set_device_trust(hass: HomeAssistant, call: ServiceCall) -> None:
    coordinator = _get_coordinator(hass, call)
    raise_on_failure(
        await coordinator.async_set_device_trust(call.data[ATTR_INSTANCE_ID], call.data[ATTR_TRUSTED])
    )


async def _handle_set_device_enabled(hass: HomeAssistant, call: ServiceCall) -> None:
    coordinator = _get_coordinator(hass, call)
    raise_on_failure(
        await coordinator.async_set_device_enabled(call.data[ATTR_INSTANCE_ID], call.data[ATTR_ENABLED])
    )


async def _handle_clear_whitelist(hass: HomeAssistant, call: ServiceCall) -> None:
    raise_on_failure(await _get_coordinator(hass, call).async_clear_whitelist())


async def _handle_block_port(hass: HomeAssistant, call: ServiceCall) -> None:
    coordinator = _get_coordinator(hass, call)
    port = call.data[ATTR_PORT]
    protocol = call.data[ATTR_PROTOCOL]
    rule_name = call.data.get(ATTR_RULE_NAME) or f"Block_{protocol}_{port}"
    raise_on_failure(await coordinator.async_block_port(port, protocol, rule_name))


async def _handle_remove_firewall_rule(hass: HomeAssistant, call: ServiceCall) -> None:
    coordinator = _get_coordinator(hass, call)
    raise_on_failure(await coordinator.async_remove_firewall_rule(call.data[ATTR_RULE_NAME]))


async def _handle_kill_process(hass: HomeAssistant, call: ServiceCall) -> None:
    coordinator = _get_coordinator(hass, call)
    raise_on_failure(await coordinator.async_kill_process(call.data[ATTR_PROCESS_ID]))


async def _handle_start_service(hass: HomeAssistant, call: ServiceCall) -> None:
    coordinator = _get_coordinator(hass, call)
    raise_on_failure(await coordinator.async_start_service(call.data[ATTR_SERVICE_NAME]))


async def _handle_restart_service(hass: HomeAssistant, call: ServiceCall) -> None:
    coordinator = _get_coordinator(hass, call)
    raise_on_failure(await coordinator.async_restart_service(call.data[ATTR_SERVICE_NAME]))


async def _handle_set_event_filter(hass: HomeAssistant, call: ServiceCall) -> None:
    coordinator = _get_coordinator(hass, call)
    coordinator.async_set_event_filter(
        level=call.data.get(ATTR_LEVEL),
        search=call.data.get(ATTR_SEARCH),
    )


async def _handle_add_event_log(hass: HomeAssistant, call: ServiceCall) -> None:
    coordinator = _get_coordinator(hass, call)
    raise_on_failure(
        await coordinator.async_add_event_log(
            call.data[ATTR_LEVEL], call.data[ATTR_MESSAGE], call.data.get(ATTR_DEVICE_ID)
        )
    )


HANDLERS = {
    SERVICE_SET_DEVICE_TRUST: _handle_set_device_trust,
    SERVICE_SET_DEVICE_ENABLED: _handle_set_device_enabled,
    SERVICE_CLEAR_WHITELIST: _handle_clear_whitelist,
    SERVICE_BLOCK_PORT: _handle_block_port,
    SERVICE_REMOVE_FIREWALL_RULE: _handle_remove_firewall_rule,
    SERVICE_KILL_PROCESS: _handle_kill_process,
    SERVICE_START_SERVICE: _handle_start_service,
    SERVICE_RESTART_SERVICE: _handle_restart_service,
    SERVICE_SET_EVENT_FILTER: _handle_set_event_filter,
    SERVICE_ADD_EVENT_LOG: _handle_add_event_log,
}


@callback
def async_register_services(hass: HomeAssistant) -> None:
    """Register all SentinelGuard services (once per HA instance)."""
    for service, handler in HANDLERS.items():
        if hass.services.has_service(DOMAIN, service):
            continue

        async def _service(call: ServiceCall, handler=handler) -> None:
            await handler(hass, call)

        hass.services.async_register(DOMAIN, service, _service, schema=SCHEMAS[service])
        _LOGGER.debug("Registered service %s.%s", DOMAIN, service)
