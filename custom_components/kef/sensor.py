"""KEF sensor platform.

Estimated power draw from the model's nominal figures, plus the subwoofer
gain as a diagnostic reading.
"""

from __future__ import annotations

import logging

from homeassistant.components.sensor import SensorDeviceClass, SensorEntity, SensorStateClass
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EntityCategory, UnitOfPower
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import CAP_MEASURE_POWER, CAP_ONOFF, KEY_SUBWOOFER_GAIN
from .data import Speaker, get_speaker_from_config_entry
from .entity import KEFEntity

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up KEF sensor entities."""
    speaker = get_speaker_from_config_entry(hass, config_entry)

    entities: list[KEFEntity] = []
    if CAP_MEASURE_POWER in speaker.coordinator.capabilities:
        entities.append(KEFPowerSensor(speaker, config_entry))
    entities.append(KEFSubwooferGainSensor(speaker, config_entry))

    async_add_entities(entities)
    _LOGGER.debug("Created %d sensor entities for %s", len(entities), speaker.name)


class KEFPowerSensor(KEFEntity, SensorEntity):
    """Estimated power draw.

    Uses the model's standby figure whenever the speaker is in standby or
    unreachable, so the sensor itself stays available.
    """

    _attr_device_class = SensorDeviceClass.POWER
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = UnitOfPower.WATT

    def __init__(self, speaker: Speaker, config_entry: ConfigEntry) -> None:
        super().__init__(speaker, config_entry, CAP_MEASURE_POWER)
        self._attr_name = "Estimated Power"

    @property
    def available(self) -> bool:
        return True

    @property
    def native_value(self) -> float:
        energy = self.coordinator.model_config.energy
        if not self.coordinator.available or not self.values.get(CAP_ONOFF):
            return energy.usage_off
        return energy.usage_on


class KEFSubwooferGainSensor(KEFEntity, SensorEntity):
    """Subwoofer gain reported by the speaker (dB)."""

    _attr_entity_category = EntityCategory.DIAGNOSTIC
    _attr_entity_registry_enabled_default = False
    _attr_icon = "mdi:speaker"
    _attr_native_unit_of_measurement = "dB"

    def __init__(self, speaker: Speaker, config_entry: ConfigEntry) -> None:
        super().__init__(speaker, config_entry, KEY_SUBWOOFER_GAIN)
        self._attr_name = "Subwoofer Gain"

    @property
    def native_value(self) -> int | None:
        return self.values.get(KEY_SUBWOOFER_GAIN)
