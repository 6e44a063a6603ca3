"""
Low-level HTTP request library for SentinelGuard agent communication.
This module handles single-attempt HTTP requests and maps every failure onto
the BackendError hierarchy. Retrying is left to the user.
"""
import asyncio
import logging

import aiohttp

from .const import REQUEST_TIMEOUT

_LOGGER = logging.getLogger(__name__)


class BackendError(Exception):
    """The agent rejected a command or could not be reached.

    str(error) is the backend-supplied message, shown to the user verbatim.
    """


class AgentUnavailableError(BackendError):
    """Transport-level failure: timeout, refused connection, bad payload."""


class AgentAuthError(BackendError):
    """The agent refused the configured token (HTTP 401/403)."""


async def check_agent_availability(
    session: aiohttp.ClientSession, url: str, headers: dict, timeout: int = REQUEST_TIMEOUT
) -> str | None:
    """
    Check that the agent answers its ping endpoint.

    Args:
        session: Client session to use
        url: Full ping URL
        headers: HTTP headers (including authorization when configured)
        timeout: Timeout in seconds for the request

    Returns:
        None when the agent is reachable and accepts the token,
        "invalid_auth" when the token is refused,
        "cannot_connect" otherwise.
    """
    try:
        async with session.get(
            url, headers=headers, timeout=aiohttp.ClientTimeout(total=timeout)
        ) as response:
            if response.status in (401, 403):
                _LOGGER.warning("Agent refused the configured token (status %s)", response.status)
                return "invalid_auth"
            if response.status != 200:
                _LOGGER.warning("Agent is not reachable (status %s)", response.status)
                return "cannot_connect"
            return None
    except (asyncio.TimeoutError, TimeoutError):
        _LOGGER.warning("Timeout while checking agent availability")
        return "cannot_connect"
    except aiohttp.ClientError as e:
        _LOGGER.warning("Error while checking agent availability: %s", e)
        return "cannot_connect"


async def make_request(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    headers: dict,
    payload: dict | None = None,
    timeout: int = REQUEST_TIMEOUT,
):
    """
    Make a single HTTP request to the agent.

    Args:
        session: Client session to use
        method: HTTP method (GET or POST)
        url: Target URL for the request
        headers: HTTP headers dictionary
        payload: JSON payload for POST requests (optional)
        timeout: Timeout in seconds

    Returns:
        Parsed JSON response (None for an empty body)

    Raises:
        AgentUnavailableError: On timeout, connection or decoding errors
        AgentAuthError: When the agent refuses the token
        BackendError: When the agent reports a command failure
    """
    method = method.upper()
    if method not in ("GET", "POST"):
        raise ValueError(f"Unsupported HTTP method: {method}")

    timeout_config = aiohttp.ClientTimeout(total=timeout)
    try:
        async with session.request(
            method, url, headers=headers, json=payload, timeout=timeout_config
        ) as response:
            return await _process_response(response, url)
    except (asyncio.TimeoutError, TimeoutError) as e:
        _LOGGER.debug("Timeout on %s request to %s", method, url)
        raise AgentUnavailableError(f"Timeout while contacting agent at {url}") from e
    except aiohttp.ClientError as e:
        raise AgentUnavailableError(f"Agent connection error: {e}") from e


async def _process_response(response, url: str):
    """
    Process HTTP response and extract JSON data.

    Args:
        response: aiohttp response object
        url: Request URL (for logging)

    Returns:
        Parsed JSON response

    Raises:
        BackendError: For command failures reported by the agent
        AgentUnavailableError: For responses that are not JSON
    """
    content_type = response.headers.get("Content-Type", "")

    if response.status in (401, 403):
        raise AgentAuthError(f"Agent refused the token (HTTP {response.status})")

    if response.status == 200:
        if response.content_length == 0:
            return None
        if "application/json" in content_type:
            try:
                return await response.json()
            except (aiohttp.ContentTypeError, ValueError) as e:
                _LOGGER.error("Malformed JSON in successful response from %s: %s", url, e)
                raise AgentUnavailableError(f"Malformed JSON from {url}") from e
        text = await response.text()
        _LOGGER.warning(
            "Unexpected content type in successful response: %s from %s",
            content_type, url,
        )
        raise AgentUnavailableError(f"Expected JSON but got {content_type}: {text[:200]}")

    if "application/json" in content_type:
        try:
            error_json = await response.json()
        except (aiohttp.ContentTypeError, ValueError) as e:
            _LOGGER.error(
                "Failed to parse error response as JSON from %s: %s (status %s)",
                url, e, response.status,
            )
            raise AgentUnavailableError(f"HTTP {response.status} from {url}") from e
        if isinstance(error_json, dict) and error_json.get("error"):
            # Passed through verbatim to the user
            raise BackendError(str(error_json["error"]))
        raise BackendError(f"HTTP {response.status}")

    text = await response.text()
    _LOGGER.warning(
        "Received non-JSON error response from %s: status %s, body preview: %s",
        url, response.status, text[:200],
    )
    raise AgentUnavailableError(f"HTTP {response.status} from {url}")
