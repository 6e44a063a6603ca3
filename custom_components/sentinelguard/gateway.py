"""
CommandGateway — uniform call interface to the privileged host agent.

Every operation is a named command with keyword arguments that returns a JSON
result or raises BackendError. The gateway holds no entity state.

When no agent URL is configured the gateway runs in degraded mode: every
command returns a deterministic default without touching the network, so the
rest of the integration keeps working (and stays testable) without a live
backend.
"""
from __future__ import annotations

import logging
from typing import Any

import aiohttp

from .api.auth import get_standard_headers
from .const import API_PATH, REQUEST_TIMEOUT
from .requests import BackendError, make_request

_LOGGER = logging.getLogger(__name__)

# Result returned for each command when running without an agent
DEGRADED_DEFAULTS: dict[str, Any] = {
    "get_connected_devices": [],
    "enable_device": None,
    "disable_device": None,
    "get_whitelist": [],
    "add_to_whitelist": None,
    "remove_from_whitelist": None,
    "clear_whitelist": None,
    "get_event_logs": [],
    "add_event_log": None,
    "clear_logs": None,
    "export_logs": "",
    "get_firewall_status": {"domain_enabled": False, "private_enabled": False, "public_enabled": False},
    "get_firewall_rules": [],
    "block_port": None,
    "remove_firewall_rule": None,
    "enable_firewall_logging": None,
    "get_high_memory_processes": [],
    "kill_process": None,
    "get_critical_services": [],
    "start_service": None,
    "restart_service": None,
    "get_network_info": [],
}


class CommandGateway:
    """Invoke named commands on the host agent over HTTP."""

    def __init__(
        self,
        agent_url: str | None,
        token: str | None = None,
        verify_ssl: bool = True,
        session: aiohttp.ClientSession | None = None,
        timeout: int = REQUEST_TIMEOUT,
    ) -> None:
        self._base_url = agent_url.rstrip("/") + API_PATH if agent_url else None
        self._headers = get_standard_headers(token)
        self._verify_ssl = verify_ssl
        self._session = session
        self._owns_session = session is None
        self._timeout = timeout

    @property
    def degraded(self) -> bool:
        """True when no agent is configured."""
        return self._base_url is None

    async def invoke(self, command: str, **args: Any) -> Any:
        """
        Run a single command on the agent.

        Single attempt: failures are raised as BackendError and never retried.
        """
        if command not in DEGRADED_DEFAULTS:
            raise BackendError(f"Unknown command: {command}")

        if self.degraded:
            _LOGGER.debug("Degraded mode: %s returns default", command)
            default = DEGRADED_DEFAULTS[command]
            # Fresh containers so callers never share the defaults
            return type(default)(default) if isinstance(default, (list, dict)) else default

        url = f"{self._base_url}/invoke/{command}"
        return await make_request(
            self._get_session(), "POST", url, self._headers, payload=args, timeout=self._timeout
        )

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(ssl=None if self._verify_ssl else False)
            self._session = aiohttp.ClientSession(connector=connector)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this gateway created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
