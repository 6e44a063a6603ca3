"""
ConsoleData — immutable snapshot of the effective console state shared with entities.

This is a pure data module with no HA or network dependencies. Derived values
are properties computed from the snapshot on access, never stored.
"""
from __future__ import annotations

import dataclasses

from . import status
from .event_filter import FilterPredicate, apply_filter
from .models import (
    EventLog,
    FirewallRule,
    FirewallStatus,
    NetworkAdapter,
    ProcessInfo,
    ServiceInfo,
    UsbDevice,
    WhitelistEntry,
)


@dataclasses.dataclass(frozen=True)
class ConsoleData:
    """
    Typed, copy-on-write snapshot of effective (patch-overlaid) entity views.

    Always replace via dataclasses.replace(); never mutate in place.
    """

    devices: list[UsbDevice] = dataclasses.field(default_factory=list)
    whitelist: list[WhitelistEntry] = dataclasses.field(default_factory=list)

    # None until the first successful firewall poll
    firewall_status: FirewallStatus | None = None
    firewall_rules: list[FirewallRule] = dataclasses.field(default_factory=list)

    processes: list[ProcessInfo] = dataclasses.field(default_factory=list)
    services: list[ServiceInfo] = dataclasses.field(default_factory=list)
    adapters: list[NetworkAdapter] = dataclasses.field(default_factory=list)

    # Newest first, as returned by the agent
    events: list[EventLog] = dataclasses.field(default_factory=list)

    # Session-local log console filter
    event_filter: FilterPredicate = dataclasses.field(default_factory=FilterPredicate)

    def get_device(self, instance_id: str) -> UsbDevice | None:
        for device in self.devices:
            if device.instance_id == instance_id:
                return device
        return None

    def get_service(self, name: str) -> ServiceInfo | None:
        for service in self.services:
            if service.name == name:
                return service
        return None

    @property
    def is_secure(self) -> bool:
        return status.is_secure(self.devices)

    @property
    def threat_count(self) -> int:
        return status.threat_count(self.devices)

    @property
    def visible_events(self) -> list[EventLog]:
        return apply_filter(self.events, self.event_filter)

    @property
    def log_stats(self) -> dict[str, int]:
        return status.log_stats(self.events)

    @property
    def dashboard_stats(self) -> dict[str, int | bool]:
        return status.dashboard_stats(self.devices, self.events)
