"""Speaker wrapper - holds the coordinator and the HA device registration.

Device identity comes from the last successful connection (coordinator) or,
before the first one, from the metadata persisted in the config entry.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, cast

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers import device_registry as dr
from homeassistant.helpers.device_registry import DeviceInfo as HADeviceInfo

from .const import (
    CONF_FIRMWARE_VERSION,
    CONF_SERIAL_NUMBER,
    CONF_SPEAKER_MODEL,
    CONF_SPEAKER_NAME,
    DEFAULT_SPEAKER_MODEL,
    DEFAULT_SPEAKER_NAME,
    DOMAIN,
    MANUFACTURER,
)

if TYPE_CHECKING:
    from .coordinator import KEFCoordinator

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "Speaker",
    "get_speaker_from_config_entry",
]

_UNKNOWN = "Unknown"


class Speaker:
    """One paired KEF speaker as seen by Home Assistant."""

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: KEFCoordinator,
        config_entry: ConfigEntry,
    ):
        """Initialize speaker."""
        self.hass = hass
        self.coordinator = coordinator
        self.config_entry = config_entry
        self._uuid: str = config_entry.unique_id or coordinator.client.host
        self.device_info: HADeviceInfo | None = None

    async def async_setup(self, entry: ConfigEntry) -> None:
        """Complete async setup."""
        self._register_ha_device(entry)

    def _entry_value(self, key: str) -> str | None:
        value = self.config_entry.data.get(key)
        if not value or value == _UNKNOWN:
            return None
        return str(value)

    @property
    def uuid(self) -> str:
        """Return unique identifier."""
        return self._uuid

    @property
    def name(self) -> str:
        info = self.coordinator.speaker_info
        if info and info.name and info.name != DEFAULT_SPEAKER_NAME:
            return info.name
        return self._entry_value(CONF_SPEAKER_NAME) or self.config_entry.title or DEFAULT_SPEAKER_NAME

    @property
    def model(self) -> str:
        info = self.coordinator.speaker_info
        if info and info.model and info.model != DEFAULT_SPEAKER_MODEL:
            return info.model
        return self._entry_value(CONF_SPEAKER_MODEL) or self.coordinator.model_config.name

    @property
    def firmware(self) -> str | None:
        info = self.coordinator.speaker_info
        if info and info.firmware:
            return info.firmware
        return self._entry_value(CONF_FIRMWARE_VERSION)

    @property
    def serial_number(self) -> str | None:
        info = self.coordinator.speaker_info
        if info and info.serial_number:
            return info.serial_number
        return self._entry_value(CONF_SERIAL_NUMBER)

    @property
    def ip_address(self) -> str:
        return self.coordinator.client.host

    @property
    def available(self) -> bool:
        return self.coordinator.available

    def build_device_info(self) -> HADeviceInfo:
        """Return the registry description of this speaker."""
        return HADeviceInfo(
            identifiers={(DOMAIN, self.uuid)},
            manufacturer=MANUFACTURER,
            name=self.name,
            model=self.model,
            sw_version=self.firmware,
            serial_number=self.serial_number,
            configuration_url=f"http://{self.ip_address}",
        )

    def _register_ha_device(self, entry: ConfigEntry) -> None:
        """Register device in HA registry."""
        self.device_info = self.build_device_info()
        dr.async_get(self.hass).async_get_or_create(config_entry_id=entry.entry_id, **self.device_info)
        _LOGGER.debug("Registered device %s (%s) for entry %s", self.name, self.model, entry.entry_id)


# ===== HELPER FUNCTIONS =====


def get_speaker_from_config_entry(hass: HomeAssistant, config_entry: ConfigEntry) -> Speaker:
    """Get speaker from config entry."""
    try:
        return cast("Speaker", hass.data[DOMAIN][config_entry.entry_id]["speaker"])
    except KeyError as err:
        _LOGGER.error("Speaker not found for config entry %s: %s", config_entry.entry_id, err)
        raise RuntimeError(f"Speaker not found for {config_entry.entry_id}") from err
