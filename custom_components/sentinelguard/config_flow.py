"""Config flow for SentinelGuard integration."""
from __future__ import annotations
import logging
import uuid
from typing import Any, Dict, Optional
import homeassistant.helpers.config_validation as cv
import voluptuous as vol

from homeassistant import config_entries
from homeassistant.core import callback

from .api.auth import validate_agent
from .const import CONF_AGENT_URL, CONF_ENTRY_NAME, CONF_TOKEN, CONF_VERIFY_SSL, DOMAIN

_LOGGER = logging.getLogger(__name__)
CONFIG_SCHEMA = vol.Schema(
            {
                vol.Required(CONF_ENTRY_NAME, default='My SentinelGuard Host'): cv.string,
                vol.Optional(CONF_AGENT_URL, default=''): cv.string,
                vol.Optional(CONF_TOKEN, default=''): cv.string,
                vol.Required(CONF_VERIFY_SSL, default=True): cv.boolean,
            }
        )


async def _validate_credentials(agent_url: str, token: str, verify_ssl: bool = True) -> Optional[str]:
    """
    Check the agent with the given settings.

    Returns None on success (an empty agent_url selects degraded mode and is
    always accepted), otherwise an error key: "invalid_url", "cannot_connect"
    or "invalid_auth".
    """
    if agent_url and not agent_url.startswith(("http://", "https://")):
        return "invalid_url"
    try:
        return await validate_agent(agent_url or None, token or None, verify_ssl)
    except Exception as e:  # noqa: BLE001
        _LOGGER.warning("Unexpected error while validating agent: %s", e)
        return "cannot_connect"


def _normalize(user_input: Dict[str, Any]) -> Dict[str, Any]:
    return {
        CONF_ENTRY_NAME: (user_input.get(CONF_ENTRY_NAME) or '').strip(),
        CONF_AGENT_URL: (user_input.get(CONF_AGENT_URL) or '').strip().rstrip('/'),
        CONF_TOKEN: user_input.get(CONF_TOKEN) or '',
        CONF_VERIFY_SSL: user_input.get(CONF_VERIFY_SSL, True),
    }


class CustomFlow(config_entries.ConfigFlow, domain=DOMAIN):
    data: Optional[Dict[str, Any]]

    async def async_step_user(self, user_input: Optional[Dict[str, Any]] = None):
        errors: Dict[str, str] = {}
        if user_input is not None:
            self.data = _normalize(user_input)
            # Create new guid for the entry
            self.data['guid'] = str(uuid.uuid4())
            if not self.data[CONF_ENTRY_NAME]:
                errors['base'] = 'entry_name_required'
            if not errors:
                # One entry per agent; degraded entries are not deduplicated
                if self.data[CONF_AGENT_URL]:
                    self._async_abort_entries_match({CONF_AGENT_URL: self.data[CONF_AGENT_URL]})
                error = await _validate_credentials(
                    self.data[CONF_AGENT_URL], self.data[CONF_TOKEN], self.data[CONF_VERIFY_SSL]
                )
                if error:
                    errors['base'] = error
            if not errors:
                return self.async_create_entry(title=f"{self.data[CONF_ENTRY_NAME]}", data=self.data)

        return self.async_show_form(step_id="user", data_schema=CONFIG_SCHEMA, errors=errors)

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        """Get the options flow for this handler."""
        return OptionsFlowHandler()


class OptionsFlowHandler(config_entries.OptionsFlow):
    """Handles options flow for the component."""

    def _default(self, key: str, fallback: Any) -> Any:
        if key in self.config_entry.options:
            return self.config_entry.options[key]
        return self.config_entry.data.get(key, fallback)

    async def async_step_init(
        self, user_input: Dict[str, Any] = None
    ) -> Dict[str, Any]:
        errors: Dict[str, str] = {}

        if user_input is not None:
            new_data = _normalize(user_input)
            if not new_data[CONF_ENTRY_NAME]:
                errors['base'] = 'entry_name_required'
            if not errors:
                error = await _validate_credentials(
                    new_data[CONF_AGENT_URL], new_data[CONF_TOKEN], new_data[CONF_VERIFY_SSL]
                )
                if error:
                    errors['base'] = error
            if not errors:
                new_data['guid'] = self.config_entry.data['guid']

                # Rename the entry in the UI; the update listener reloads it
                self.hass.config_entries.async_update_entry(
                    self.config_entry,
                    data=new_data,
                    title=new_data[CONF_ENTRY_NAME],
                )

                return self.async_create_entry(title=f"{new_data[CONF_ENTRY_NAME]}", data=new_data)

        OPTIONS_SCHEMA = vol.Schema(
            {
                vol.Required(CONF_ENTRY_NAME, default=self._default(CONF_ENTRY_NAME, '')): cv.string,
                vol.Optional(CONF_AGENT_URL, default=self._default(CONF_AGENT_URL, '')): cv.string,
                vol.Optional(CONF_TOKEN, default=self._default(CONF_TOKEN, '')): cv.string,
                vol.Required(CONF_VERIFY_SSL, default=self._default(CONF_VERIFY_SSL, True)): cv.boolean,
            }
        )
        return self.async_show_form(step_id="init", data_schema=OPTIONS_SCHEMA, errors=errors)
