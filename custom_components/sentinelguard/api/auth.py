"""
Low-level authentication helpers for the SentinelGuard agent.

Responsible for:
- Building the standard headers used by all agent calls
- Validating that the agent is reachable and accepts the configured token
"""
import logging

import aiohttp

from custom_components.sentinelguard.const import API_PATH
from custom_components.sentinelguard.requests import check_agent_availability

_LOGGER = logging.getLogger(__name__)


def get_standard_headers(token: str | None) -> dict:
    """
    Build the standard HTTP headers used by all agent requests.

    :param token: Optional bearer token configured for the agent.
    :return: Dictionary of HTTP headers.
    """
    headers = {"accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


async def validate_agent(agent_url: str | None, token: str | None, verify_ssl: bool = True) -> str | None:
    """
    Check the agent before a config entry is set up.

    Returns None on success (or when no agent is configured, which selects
    degraded mode), otherwise an error key understood by the config flow:
    "cannot_connect" or "invalid_auth".

    Corresponding CURL command:
    curl -X 'GET' '<agent_url>/api/v1/ping' -H 'Authorization: Bearer TOKEN'
    """
    if not agent_url:
        _LOGGER.debug("No agent configured, running in degraded mode")
        return None

    url = agent_url.rstrip("/") + API_PATH + "/ping"
    connector = aiohttp.TCPConnector(ssl=None if verify_ssl else False)
    async with aiohttp.ClientSession(connector=connector) as session:
        return await check_agent_availability(session, url, get_standard_headers(token))
