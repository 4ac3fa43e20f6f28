"""Config flow to configure KEF component.

Manual pairing: the user enters the speaker's address, the connection is
tested and the speaker's model is suggested from its reported info. The
chosen model id is fixed for the lifetime of the entry.
"""

# mypy: ignore-errors

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.config_entries import ConfigFlowResult
from homeassistant.core import callback
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.util import dt as dt_util

from .api import KEFSpeakerClient
from .const import (
    CONF_FIRMWARE_VERSION,
    CONF_HOST,
    CONF_LAST_CONNECTED,
    CONF_MODEL_ID,
    CONF_POLLING_INTERVAL,
    CONF_PORT,
    CONF_SERIAL_NUMBER,
    CONF_SPEAKER_MODEL,
    CONF_SPEAKER_NAME,
    DEFAULT_POLLING_INTERVAL,
    DEFAULT_PORT,
    DOMAIN,
    MAX_POLLING_INTERVAL,
    MIN_POLLING_INTERVAL,
)
from .models import SpeakerInfo
from .speaker_models import MODEL_CONFIGS, detect_model_from_speaker

_LOGGER = logging.getLogger(__name__)

_PORT_VALIDATOR = vol.All(vol.Coerce(int), vol.Range(min=1, max=65535))


def _model_options() -> dict[str, str]:
    return {str(model_id): config.name for model_id, config in MODEL_CONFIGS.items()}


class KEFConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle KEF config flow."""

    VERSION = 1

    def __init__(self) -> None:
        """Initialize."""
        self.data: dict[str, Any] = {}
        self._info: SpeakerInfo | None = None

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> KEFOptionsFlow:
        """Return the options flow."""
        return KEFOptionsFlow(config_entry)

    async def async_step_user(self, user_input: dict[str, Any] | None = None) -> ConfigFlowResult:  # type: ignore[override]
        """Handle manual address entry."""
        errors: dict[str, str] = {}

        if user_input is not None:
            host = user_input[CONF_HOST].strip()
            port = user_input.get(CONF_PORT, DEFAULT_PORT)
            self._async_abort_entries_match({CONF_HOST: host})

            client = KEFSpeakerClient(host, port=port, session=async_get_clientsession(self.hass))
            if not await client.test_connection():
                _LOGGER.warning("Cannot connect to KEF speaker at %s:%s", host, port)
                errors["base"] = "cannot_connect"
            else:
                info = await client.get_speaker_info()
                await self.async_set_unique_id(info.serial_number or host)
                self._abort_if_unique_id_configured()

                self._info = info
                self.data = {CONF_HOST: host, CONF_PORT: port}
                return await self.async_step_model()

        schema = vol.Schema(
            {
                vol.Required(CONF_HOST, default=(user_input or {}).get(CONF_HOST, "")): str,
                vol.Optional(CONF_PORT, default=DEFAULT_PORT): _PORT_VALIDATOR,
            }
        )
        return self.async_show_form(
            step_id="user",
            data_schema=schema,
            errors=errors,
            description_placeholders={"example_ip": "192.168.1.100"},
        )

    async def async_step_model(self, user_input: dict[str, Any] | None = None) -> ConfigFlowResult:
        """Confirm the speaker model; the suggestion comes from the speaker's info."""
        info = self._info or SpeakerInfo(ip=self.data[CONF_HOST])

        if user_input is not None:
            return self.async_create_entry(
                title=info.name,
                data={
                    **self.data,
                    CONF_MODEL_ID: user_input[CONF_MODEL_ID],
                    CONF_SPEAKER_NAME: info.name,
                    CONF_SPEAKER_MODEL: info.model,
                    CONF_SERIAL_NUMBER: info.serial_number or "Unknown",
                    CONF_FIRMWARE_VERSION: info.firmware or "Unknown",
                    CONF_LAST_CONNECTED: dt_util.utcnow().isoformat(),
                },
            )

        suggested = detect_model_from_speaker(info)
        _LOGGER.debug("Suggesting model %s for %s (%s)", suggested, info.name, info.model)
        schema = vol.Schema({vol.Required(CONF_MODEL_ID, default=str(suggested)): vol.In(_model_options())})

        self.context["title_placeholders"] = {"name": info.name}
        return self.async_show_form(
            step_id="model",
            data_schema=schema,
            description_placeholders={"name": info.name, "model": info.model},
        )


class KEFOptionsFlow(config_entries.OptionsFlow):
    """Handle KEF options."""

    def __init__(self, entry: config_entries.ConfigEntry) -> None:
        """Initialize options flow."""
        self.entry = entry

    async def async_step_init(self, user_input: dict[str, Any] | None = None) -> ConfigFlowResult:
        """Handle options flow.

        Address changes are accepted even if the speaker is not reachable at
        the new address yet.
        """
        if user_input is not None:
            return self.async_create_entry(
                title="",
                data={
                    CONF_HOST: user_input[CONF_HOST].strip(),
                    CONF_PORT: user_input[CONF_PORT],
                    CONF_POLLING_INTERVAL: user_input[CONF_POLLING_INTERVAL],
                },
            )

        current = {**self.entry.data, **self.entry.options}
        schema = vol.Schema(
            {
                vol.Required(CONF_HOST, default=current.get(CONF_HOST, "")): str,
                vol.Required(CONF_PORT, default=current.get(CONF_PORT, DEFAULT_PORT)): _PORT_VALIDATOR,
                vol.Required(
                    CONF_POLLING_INTERVAL,
                    default=current.get(CONF_POLLING_INTERVAL, DEFAULT_POLLING_INTERVAL),
                ): vol.All(vol.Coerce(int), vol.Range(min=MIN_POLLING_INTERVAL, max=MAX_POLLING_INTERVAL)),
            }
        )

        return self.async_show_form(step_id="init", data_schema=schema)
