"""
Derived status — pure projections over effective entity views.

Nothing here is stored or cached; callers recompute on every snapshot.
"""
from __future__ import annotations

from typing import Iterable

from .const import (
    DEVICE_STATUS_OK,
    LEVEL_BLOCK,
    LEVEL_ERROR,
    LEVEL_INFO,
    LEVEL_WARN,
    SERVICE_STATUS_RUNNING,
)
from .models import EventLog, FirewallStatus, ServiceInfo, UsbDevice


def is_threat(device: UsbDevice) -> bool:
    """An untrusted device whose status is not clean."""
    return not device.is_trusted and device.status != DEVICE_STATUS_OK


def is_secure(devices: Iterable[UsbDevice]) -> bool:
    return not any(is_threat(d) for d in devices)


def threat_count(devices: Iterable[UsbDevice]) -> int:
    """Number of untrusted devices."""
    return sum(1 for d in devices if not d.is_trusted)


def trusted_count(devices: Iterable[UsbDevice]) -> int:
    return sum(1 for d in devices if d.is_trusted)


def blocked_count(devices: Iterable[UsbDevice]) -> int:
    return threat_count(devices)


def log_stats(events: Iterable[EventLog]) -> dict[str, int]:
    stats = {"total": 0, "info": 0, "warn": 0, "block": 0, "error": 0}
    names = {LEVEL_INFO: "info", LEVEL_WARN: "warn", LEVEL_BLOCK: "block", LEVEL_ERROR: "error"}
    for event in events:
        stats["total"] += 1
        name = names.get(event.level)
        if name is not None:
            stats[name] += 1
    return stats


def dashboard_stats(devices: Iterable[UsbDevice], events: Iterable[EventLog]) -> dict[str, int | bool]:
    """Headline numbers of the dashboard screen."""
    devices = list(devices)
    events = list(events)
    return {
        "total_devices": len(devices),
        "trusted_devices": trusted_count(devices),
        "blocked_devices": blocked_count(devices),
        "total_scans": len(events),
        "blocked_threats": sum(1 for e in events if e.level == LEVEL_BLOCK),
        "is_secure": is_secure(devices),
    }


def firewall_fully_enabled(status: FirewallStatus | None) -> bool:
    if status is None:
        return False
    return status.domain_enabled and status.private_enabled and status.public_enabled


def stopped_services(services: Iterable[ServiceInfo]) -> list[ServiceInfo]:
    return [s for s in services if s.status != SERVICE_STATUS_RUNNING]
