"""
DataUpdateCoordinator for the SentinelGuard integration.

Responsibilities:
- Own the CommandGateway for the lifetime of a config entry.
- Keep one EntityStore per entity domain and poll each domain on its own
  interval through a single SnapshotPoller:
    events                    every EVENTS_INTERVAL seconds
    devices                   every DEVICES_INTERVAL seconds
    processes + services      every PROCESSES_INTERVAL seconds
    whitelist                 every WHITELIST_INTERVAL seconds
    firewall status + rules   every FIREWALL_INTERVAL seconds
    network adapters          every NETWORK_INTERVAL seconds
- Route user intents through the OptimisticMutationManager.
- Push ConsoleData snapshots to entities whenever a store or the overlay changes.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from .api import devices as devices_api
from .api import firewall as firewall_api
from .api import logs as logs_api
from .api import network as network_api
from .api import processes as processes_api
from .const import (
    CONF_AGENT_URL,
    CONF_ENTRY_NAME,
    CONF_TOKEN,
    CONF_VERIFY_SSL,
    DEVICE_STATUS_ERROR,
    DEVICE_STATUS_OK,
    DEVICES_INTERVAL,
    DOMAIN,
    DOMAIN_ADAPTERS,
    DOMAIN_DEVICES,
    DOMAIN_EVENTS,
    DOMAIN_FIREWALL,
    DOMAIN_FIREWALL_RULES,
    DOMAIN_PROCESSES,
    DOMAIN_SERVICES,
    DOMAIN_WHITELIST,
    EVENT_NOTIFICATION,
    EVENTS_INTERVAL,
    FIREWALL_INTERVAL,
    LEVEL_INFO,
    NETWORK_INTERVAL,
    PATCH_STALENESS_FACTOR,
    PROCESSES_INTERVAL,
    SERVICE_STATUS_RUNNING,
    VERSION,
    WHITELIST_INTERVAL,
)
from .coordinator_data import ConsoleData
from .entity_store import EntityStore
from .event_filter import FilterPredicate
from .gateway import CommandGateway
from .models import FirewallRule
from .mutation import MutationOutcome, OptimisticMutationManager
from .notifications import Notification, NotificationChannel, NotificationKind
from .poller import PollHandle, SnapshotPoller
from .requests import BackendError

_LOGGER = logging.getLogger(__name__)

# domain → poll interval; a domain may feed more than one store
POLL_INTERVALS: dict[str, int] = {
    DOMAIN_EVENTS: EVENTS_INTERVAL,
    DOMAIN_DEVICES: DEVICES_INTERVAL,
    DOMAIN_PROCESSES: PROCESSES_INTERVAL,
    DOMAIN_WHITELIST: WHITELIST_INTERVAL,
    DOMAIN_FIREWALL: FIREWALL_INTERVAL,
    DOMAIN_ADAPTERS: NETWORK_INTERVAL,
}

# store → poll domain that refreshes it
STORE_DOMAINS: dict[str, str] = {
    DOMAIN_DEVICES: DOMAIN_DEVICES,
    DOMAIN_WHITELIST: DOMAIN_WHITELIST,
    DOMAIN_FIREWALL_RULES: DOMAIN_FIREWALL,
    DOMAIN_PROCESSES: DOMAIN_PROCESSES,
    DOMAIN_SERVICES: DOMAIN_PROCESSES,
    DOMAIN_ADAPTERS: DOMAIN_ADAPTERS,
    DOMAIN_EVENTS: DOMAIN_EVENTS,
}


class SentinelGuardCoordinator(DataUpdateCoordinator[ConsoleData]):
    """
    Coordinator for one SentinelGuard host.

    Has no update_interval of its own: every entity domain is driven by its
    own poll handle and pushes snapshots via async_set_updated_data().
    """

    def __init__(self, hass: HomeAssistant, entry_data: dict) -> None:
        """Initialize the coordinator from config-entry data."""
        super().__init__(
            hass,
            _LOGGER,
            name=DOMAIN,
            update_interval=None,
        )

        self._entry_data = entry_data
        self.gateway = CommandGateway(
            entry_data.get(CONF_AGENT_URL) or None,
            entry_data.get(CONF_TOKEN) or None,
            entry_data.get(CONF_VERIFY_SSL, True),
        )

        self.stores: dict[str, EntityStore] = {
            name: EntityStore(
                name,
                lambda entity: entity.key,
                POLL_INTERVALS[domain] * PATCH_STALENESS_FACTOR,
            )
            for name, domain in STORE_DOMAINS.items()
        }
        self._firewall_status = None
        self._event_filter = FilterPredicate()

        self.notifications = NotificationChannel()
        self._unsub_notifications = self.notifications.async_add_listener(self._on_notification)
        self.mutations = OptimisticMutationManager(self.notifications, on_change=self._publish)

        self.poller = SnapshotPoller()
        self._handles: dict[str, PollHandle] = {}
        # Domains whose snapshot came from the first refresh
        self._prefetched: set[str] = set()

        self._fetchers: dict[str, Callable[[], Awaitable[Any]]] = {
            DOMAIN_EVENTS: self._fetch_events,
            DOMAIN_DEVICES: self._fetch_devices,
            DOMAIN_PROCESSES: self._fetch_processes,
            DOMAIN_WHITELIST: self._fetch_whitelist,
            DOMAIN_FIREWALL: self._fetch_firewall,
            DOMAIN_ADAPTERS: self._fetch_adapters,
        }

        # Snapshot starts empty; entities must handle missing data until first refresh
        self.data = ConsoleData()

    # ------------------------------------------------------------------
    # HA entry point
    # ------------------------------------------------------------------

    async def _async_update_data(self) -> ConsoleData:
        """
        Fetch every domain once (first refresh).

        A failing domain stays empty and is retried by its poller later;
        only a total failure is reported as UpdateFailed.
        """
        domains = list(self._fetchers)
        results = await asyncio.gather(
            *(self._fetchers[domain]() for domain in domains), return_exceptions=True
        )

        failures = {}
        for domain, result in zip(domains, results):
            if isinstance(result, BaseException):
                _LOGGER.warning("Initial %s fetch failed: %s", domain, result)
                failures[domain] = result
            else:
                self._apply(domain, result)
                self._prefetched.add(domain)

        if len(failures) == len(domains):
            first = next(iter(failures.values()))
            raise UpdateFailed(f"SentinelGuard agent error: {first}")

        return self._build_snapshot()

    @callback
    def async_start_polling(self) -> None:
        """
        Start one poll handle per domain (idempotent).

        Domains the first refresh already fetched wait one interval before
        their first poll; failed ones are polled right away.
        """
        for domain, interval in POLL_INTERVALS.items():
            if domain in self._handles:
                continue
            self._handles[domain] = self.poller.start(
                domain,
                interval,
                self._fetchers[domain],
                lambda result, d=domain: self._deliver(d, result),
                immediate=domain not in self._prefetched,
            )

    # ------------------------------------------------------------------
    # Poll plumbing
    # ------------------------------------------------------------------

    async def _fetch_events(self):
        return await logs_api.fetch_events(self.gateway)

    async def _fetch_devices(self):
        return await devices_api.fetch_devices(self.gateway)

    async def _fetch_whitelist(self):
        return await devices_api.fetch_whitelist(self.gateway)

    async def _fetch_adapters(self):
        return await network_api.fetch_adapters(self.gateway)

    async def _fetch_processes(self):
        processes, services = await asyncio.gather(
            processes_api.fetch_processes(self.gateway),
            processes_api.fetch_services(self.gateway),
        )
        return processes, services

    async def _fetch_firewall(self):
        status, rules = await asyncio.gather(
            firewall_api.fetch_firewall_status(self.gateway),
            firewall_api.fetch_firewall_rules(self.gateway),
        )
        return status, rules

    def _apply(self, domain: str, result: Any) -> None:
        """Install a fetch result into the stores of its domain."""
        if domain == DOMAIN_PROCESSES:
            processes, services = result
            self.stores[DOMAIN_PROCESSES].replace(processes)
            self.stores[DOMAIN_SERVICES].replace(services)
        elif domain == DOMAIN_FIREWALL:
            status, rules = result
            self._firewall_status = status
            self.stores[DOMAIN_FIREWALL_RULES].replace(rules)
        else:
            self.stores[domain].replace(result)

    def _deliver(self, domain: str, result: Any) -> None:
        self._apply(domain, result)
        self._publish()

    def request_refresh(self, *domains: str) -> None:
        """Opportunistic immediate poll; coalesced with any poll in flight."""
        for domain in domains:
            handle = self._handles.get(domain)
            if handle is not None:
                self.poller.request_refresh(handle)

    def _refresh_after(self, *domains: str) -> Callable[[Any], None]:
        return lambda _result: self.request_refresh(*domains)

    @callback
    def _publish(self) -> None:
        self.async_set_updated_data(self._build_snapshot())

    def _build_snapshot(self) -> ConsoleData:
        return ConsoleData(
            devices=self.stores[DOMAIN_DEVICES].values(),
            whitelist=self.stores[DOMAIN_WHITELIST].values(),
            firewall_status=self._firewall_status,
            firewall_rules=self.stores[DOMAIN_FIREWALL_RULES].values(),
            processes=self.stores[DOMAIN_PROCESSES].values(),
            services=self.stores[DOMAIN_SERVICES].values(),
            adapters=self.stores[DOMAIN_ADAPTERS].values(),
            events=self.stores[DOMAIN_EVENTS].values(),
            event_filter=self._event_filter,
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    @callback
    def _on_notification(self, notification: Notification | None) -> None:
        if notification is not None:
            self.hass.bus.async_fire(
                EVENT_NOTIFICATION,
                {"message": notification.message, "kind": str(notification.kind)},
            )
        self.async_update_listeners()

    def _reject(self, key: Any, message: str) -> MutationOutcome:
        """Report an intent that cannot be sent at all."""
        self.notifications.notify(message, NotificationKind.ERROR)
        return MutationOutcome(key, False, message)

    # ------------------------------------------------------------------
    # Write path — devices and whitelist
    # ------------------------------------------------------------------

    async def async_set_device_trust(self, instance_id: str, trusted: bool) -> MutationOutcome:
        """Add a device to, or remove it from, the allow-list."""
        store = self.stores[DOMAIN_DEVICES]
        device = store.effective(instance_id)
        if device is None:
            return self._reject(instance_id, f"Unknown device: {instance_id}")

        if trusted:
            command = lambda: devices_api.add_to_whitelist(self.gateway, device)  # noqa: E731
            message = f"Device trusted: {device.friendly_name}"
        else:
            command = lambda: devices_api.remove_from_whitelist(self.gateway, instance_id)  # noqa: E731
            message = f"Device removed from whitelist: {device.friendly_name}"

        return await self.mutations.async_mutate(
            store,
            instance_id,
            {"is_trusted": trusted},
            command,
            success_message=message,
            on_success=self._refresh_after(DOMAIN_WHITELIST),
        )

    async def async_set_device_enabled(self, instance_id: str, enabled: bool) -> MutationOutcome:
        """Enable a device or disable (block) it at the OS level."""
        store = self.stores[DOMAIN_DEVICES]
        if store.effective(instance_id) is None:
            return self._reject(instance_id, f"Unknown device: {instance_id}")

        if enabled:
            command = lambda: devices_api.enable_device(self.gateway, instance_id)  # noqa: E731
            message = f"Device enabled: {instance_id}"
        else:
            command = lambda: devices_api.disable_device(self.gateway, instance_id)  # noqa: E731
            message = f"Device blocked: {instance_id}"

        return await self.mutations.async_mutate(
            store,
            instance_id,
            {"status": DEVICE_STATUS_OK if enabled else DEVICE_STATUS_ERROR},
            command,
            success_message=message,
        )

    async def async_clear_whitelist(self) -> MutationOutcome:
        return await self.mutations.async_mutate(
            None,
            DOMAIN_WHITELIST,
            None,
            lambda: devices_api.clear_whitelist(self.gateway),
            success_message="Whitelist cleared",
            on_success=self._refresh_after(DOMAIN_WHITELIST, DOMAIN_DEVICES),
        )

    async def async_rescan_devices(self) -> None:
        """Poll devices now and record the manual scan in the event log."""
        self.request_refresh(DOMAIN_DEVICES)
        try:
            await logs_api.add_event(self.gateway, LEVEL_INFO, "Manual device scan initiated")
        except BackendError as exc:
            _LOGGER.warning("Failed to log device scan: %s", exc)
            return
        self.request_refresh(DOMAIN_EVENTS)

    # ------------------------------------------------------------------
    # Write path — firewall
    # ------------------------------------------------------------------

    async def async_block_port(self, port: int, protocol: str, rule_name: str) -> MutationOutcome:
        """Create an inbound block rule, shown immediately as pending."""
        protocol = protocol.upper()
        rule = FirewallRule(
            name=rule_name,
            enabled=True,
            direction="Inbound",
            action="Block",
            protocol=protocol,
            local_port=str(port),
        )
        return await self.mutations.async_mutate(
            self.stores[DOMAIN_FIREWALL_RULES],
            rule_name,
            None,
            lambda: firewall_api.block_port(self.gateway, port, protocol, rule_name),
            success_message=f"Firewall: Blocked port {port} ({protocol})",
            insert=rule,
            on_success=self._refresh_after(DOMAIN_FIREWALL),
        )

    async def async_remove_firewall_rule(self, rule_name: str) -> MutationOutcome:
        return await self.mutations.async_mutate(
            self.stores[DOMAIN_FIREWALL_RULES],
            rule_name,
            None,
            lambda: firewall_api.remove_firewall_rule(self.gateway, rule_name),
            success_message=f"Firewall: Removed rule '{rule_name}'",
            remove=True,
            on_success=self._refresh_after(DOMAIN_FIREWALL),
        )

    async def async_enable_firewall_logging(self) -> MutationOutcome:
        return await self.mutations.async_mutate(
            None,
            DOMAIN_FIREWALL,
            None,
            lambda: firewall_api.enable_firewall_logging(self.gateway),
            success_message="Firewall logging enabled for all profiles",
        )

    # ------------------------------------------------------------------
    # Write path — processes and services
    # ------------------------------------------------------------------

    async def async_kill_process(self, process_id: int) -> MutationOutcome:
        return await self.mutations.async_mutate(
            self.stores[DOMAIN_PROCESSES],
            process_id,
            None,
            lambda: processes_api.kill_process(self.gateway, process_id),
            success_message=f"Process killed: ID {process_id}",
            remove=True,
        )

    async def async_start_service(self, service_name: str) -> MutationOutcome:
        return await self._service_intent(
            service_name, processes_api.start_service, f"Service started: {service_name}"
        )

    async def async_restart_service(self, service_name: str) -> MutationOutcome:
        return await self._service_intent(
            service_name, processes_api.restart_service, f"Service restarted: {service_name}"
        )

    async def _service_intent(self, service_name: str, api_call, message: str) -> MutationOutcome:
        store = self.stores[DOMAIN_SERVICES]
        if store.effective(service_name) is None:
            return self._reject(service_name, f"Unknown service: {service_name}")
        return await self.mutations.async_mutate(
            store,
            service_name,
            {"status": SERVICE_STATUS_RUNNING},
            lambda: api_call(self.gateway, service_name),
            success_message=message,
        )

    # ------------------------------------------------------------------
    # Write path — event log
    # ------------------------------------------------------------------

    async def async_clear_logs(self) -> MutationOutcome:
        return await self.mutations.async_mutate(
            None,
            DOMAIN_EVENTS,
            None,
            lambda: logs_api.clear_logs(self.gateway),
            success_message="Event log cleared",
            on_success=self._refresh_after(DOMAIN_EVENTS),
        )

    async def async_export_logs(self) -> MutationOutcome:
        def message(path: str) -> str:
            return f"Logs exported to: {path}" if path else "Event log export finished"

        return await self.mutations.async_mutate(
            None,
            DOMAIN_EVENTS,
            None,
            lambda: logs_api.export_logs(self.gateway),
            success_message=message,
        )

    async def async_add_event_log(
        self, level: str, message: str, device_id: str | None = None
    ) -> MutationOutcome:
        return await self.mutations.async_mutate(
            None,
            DOMAIN_EVENTS,
            None,
            lambda: logs_api.add_event(self.gateway, level, message, device_id),
            success_message=f"Event logged: {message}",
            on_success=self._refresh_after(DOMAIN_EVENTS),
        )

    @callback
    def async_set_event_filter(self, level: str | None = None, search: str | None = None) -> None:
        """Change the log console filter; None keeps the current value."""
        self._event_filter = FilterPredicate(
            level=self._event_filter.level if level is None else level,
            search=self._event_filter.search if search is None else search,
        )
        self._publish()

    @property
    def event_filter(self) -> FilterPredicate:
        return self._event_filter

    # ------------------------------------------------------------------
    # Entity helpers — device info dicts
    # ------------------------------------------------------------------

    @property
    def guid(self) -> str:
        return self._entry_data.get("guid", "")

    def get_device_info(self) -> dict:
        """Return the HA DeviceInfo dict for the monitored host."""
        return {
            "identifiers": {(DOMAIN, self.guid)},
            "name": self._entry_data.get(CONF_ENTRY_NAME) or "SentinelGuard",
            "manufacturer": "SentinelGuard",
            "model": "Degraded (no agent)" if self.gateway.degraded else "Host agent",
            "sw_version": VERSION,
        }

    def get_usb_device_info(self, instance_id: str) -> dict | None:
        """Return the HA DeviceInfo dict for a connected USB device."""
        device = self.data.get_device(instance_id)
        if device is None:
            return None
        return {
            "identifiers": {(DOMAIN, f"{self.guid}_{instance_id}")},
            "name": device.friendly_name or instance_id,
            "manufacturer": device.device_class or "USB",
            "model": device.serial_id,
            "via_device": (DOMAIN, self.guid),
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def async_shutdown(self) -> None:
        """Clean up all resources owned by this coordinator."""
        await self.poller.async_shutdown()
        self._handles.clear()
        await self.mutations.async_shutdown()
        self._unsub_notifications()
        self.notifications.shutdown()
        await self.gateway.close()
        await super().async_shutdown()

    @property
    def entry_data(self):
        return self._entry_data
