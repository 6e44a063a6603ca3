"""
Device and whitelist commands of the SentinelGuard agent.

Responsible for:
- Fetching the connected USB devices and the allow-list
- Mapping the JSON response fields onto UsbDevice / WhitelistEntry instances
- Issuing trust and enable/disable intents for a device

Fetch functions raise BackendError so the poller can skip the cycle instead
of installing an empty snapshot.
"""
import logging

from custom_components.sentinelguard.gateway import CommandGateway
from custom_components.sentinelguard.models import UsbDevice, WhitelistEntry, parse_collection

_LOGGER = logging.getLogger(__name__)


async def fetch_devices(gateway: CommandGateway) -> list[UsbDevice]:
    """Fetch all connected devices with their trust status."""
    raw = await gateway.invoke("get_connected_devices")
    return parse_collection(raw, UsbDevice.from_json)


async def enable_device(gateway: CommandGateway, instance_id: str) -> None:
    await gateway.invoke("enable_device", instanceId=instance_id)


async def disable_device(gateway: CommandGateway, instance_id: str) -> None:
    await gateway.invoke("disable_device", instanceId=instance_id)


async def fetch_whitelist(gateway: CommandGateway) -> list[WhitelistEntry]:
    raw = await gateway.invoke("get_whitelist")
    return parse_collection(raw, WhitelistEntry.from_json)


async def add_to_whitelist(gateway: CommandGateway, device: UsbDevice) -> None:
    """Trust a device. The agent ignores devices that are already trusted."""
    await gateway.invoke("add_to_whitelist", device=device.to_json())


async def remove_from_whitelist(gateway: CommandGateway, instance_id: str) -> None:
    await gateway.invoke("remove_from_whitelist", instanceId=instance_id)


async def clear_whitelist(gateway: CommandGateway) -> None:
    await gateway.invoke("clear_whitelist")
