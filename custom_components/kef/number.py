"""KEF number platform.

Left/right balance of the speaker's DSP profile.
"""

from __future__ import annotations

import logging

from homeassistant.components.number import NumberEntity, NumberMode
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EntityCategory
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import BALANCE_MAX, BALANCE_MIN, CAP_SPEAKER_BALANCE
from .data import Speaker, get_speaker_from_config_entry
from .entity import KEFEntity
from .utils import kef_command

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up KEF number entities from a config entry."""
    speaker = get_speaker_from_config_entry(hass, config_entry)

    entities = []
    if CAP_SPEAKER_BALANCE in speaker.coordinator.capabilities:
        entities.append(KEFBalance(speaker, config_entry))

    async_add_entities(entities)
    _LOGGER.info("Created %d number entities for %s", len(entities), speaker.name)


class KEFBalance(KEFEntity, NumberEntity):
    """Number entity for left/right balance.

    Ranges from -30 (full left) to 30 (full right), 0 is center.
    """

    _attr_mode = NumberMode.SLIDER
    _attr_entity_category = EntityCategory.CONFIG
    _attr_native_min_value = BALANCE_MIN
    _attr_native_max_value = BALANCE_MAX
    _attr_native_step = 1
    _attr_icon = "mdi:scale-balance"

    def __init__(self, speaker: Speaker, config_entry: ConfigEntry) -> None:
        """Initialize the balance entity."""
        super().__init__(speaker, config_entry, CAP_SPEAKER_BALANCE)
        self._attr_name = "Balance"

    @property
    def native_value(self) -> float | None:
        return self.values.get(CAP_SPEAKER_BALANCE)

    async def async_set_native_value(self, value: float) -> None:
        async with kef_command(self.speaker.name, "set balance"):
            _LOGGER.debug("Setting balance to %s for %s", value, self.speaker.name)
            await self.coordinator.async_set_balance(value)
