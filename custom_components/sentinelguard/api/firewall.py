"""
Firewall commands of the SentinelGuard agent.

Responsible for:
- Fetching the firewall profile status and the rule list
- Creating block rules, removing rules and enabling logging
"""
import logging

from custom_components.sentinelguard.gateway import CommandGateway
from custom_components.sentinelguard.models import FirewallRule, FirewallStatus, parse_collection

_LOGGER = logging.getLogger(__name__)


async def fetch_firewall_status(gateway: CommandGateway) -> FirewallStatus:
    raw = await gateway.invoke("get_firewall_status")
    if raw is not None and not isinstance(raw, dict):
        _LOGGER.warning("Unexpected firewall status format: %s", raw)
        return FirewallStatus()
    return FirewallStatus.from_json(raw)


async def fetch_firewall_rules(gateway: CommandGateway) -> list[FirewallRule]:
    """Managed rules first, then the most recent other rules (agent order)."""
    raw = await gateway.invoke("get_firewall_rules")
    return parse_collection(raw, FirewallRule.from_json)


async def block_port(gateway: CommandGateway, port: int, protocol: str, rule_name: str) -> None:
    """
    Create an inbound block rule.

    Corresponding agent command:
    block_port {"port": 8080, "protocol": "TCP", "ruleName": "Block 8080"}
    """
    await gateway.invoke("block_port", port=port, protocol=protocol, ruleName=rule_name)


async def remove_firewall_rule(gateway: CommandGateway, rule_name: str) -> None:
    await gateway.invoke("remove_firewall_rule", ruleName=rule_name)


async def enable_firewall_logging(gateway: CommandGateway) -> None:
    await gateway.invoke("enable_firewall_logging")
