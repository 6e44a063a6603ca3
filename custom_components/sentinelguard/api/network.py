"""Network adapter snapshot from the SentinelGuard agent."""
from custom_components.sentinelguard.gateway import CommandGateway
from custom_components.sentinelguard.models import NetworkAdapter, parse_collection


async def fetch_adapters(gateway: CommandGateway) -> list[NetworkAdapter]:
    """Physical adapters that are up."""
    raw = await gateway.invoke("get_network_info")
    return parse_collection(raw, NetworkAdapter.from_json)
