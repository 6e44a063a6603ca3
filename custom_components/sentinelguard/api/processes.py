"""
Process and service commands of the SentinelGuard agent.

Responsible for:
- Fetching high-memory processes and the critical service list
- Terminating processes and starting/restarting services
"""
import logging

from custom_components.sentinelguard.gateway import CommandGateway
from custom_components.sentinelguard.models import ProcessInfo, ServiceInfo, parse_collection

_LOGGER = logging.getLogger(__name__)


async def fetch_processes(gateway: CommandGateway) -> list[ProcessInfo]:
    """Processes above the agent's memory threshold, largest first."""
    raw = await gateway.invoke("get_high_memory_processes")
    return parse_collection(raw, ProcessInfo.from_json)


async def kill_process(gateway: CommandGateway, process_id: int) -> None:
    await gateway.invoke("kill_process", processId=process_id)


async def fetch_services(gateway: CommandGateway) -> list[ServiceInfo]:
    raw = await gateway.invoke("get_critical_services")
    return parse_collection(raw, ServiceInfo.from_json)


async def start_service(gateway: CommandGateway, service_name: str) -> None:
    await gateway.invoke("start_service", serviceName=service_name)


async def restart_service(gateway: CommandGateway, service_name: str) -> None:
    await gateway.invoke("restart_service", serviceName=service_name)
