"""
Security event log commands of the SentinelGuard agent.

Responsible for:
- Fetching the event stream (newest first, bounded by the agent)
- Appending, clearing and exporting events
"""
import logging

from custom_components.sentinelguard.gateway import CommandGateway
from custom_components.sentinelguard.models import EventLog, parse_collection

_LOGGER = logging.getLogger(__name__)


async def fetch_events(gateway: CommandGateway) -> list[EventLog]:
    raw = await gateway.invoke("get_event_logs")
    return parse_collection(raw, EventLog.from_json)


async def add_event(
    gateway: CommandGateway, level: str, message: str, device_id: str | None = None
) -> EventLog | None:
    """Append an event; returns the stored record (None in degraded mode)."""
    raw = await gateway.invoke("add_event_log", level=level, message=message, deviceId=device_id)
    if not isinstance(raw, dict):
        return None
    return EventLog.from_json(raw)


async def clear_logs(gateway: CommandGateway) -> None:
    await gateway.invoke("clear_logs")


async def export_logs(gateway: CommandGateway) -> str:
    """Export all events on the agent host; returns the written file path."""
    path = await gateway.invoke("export_logs")
    return str(path) if path else ""
