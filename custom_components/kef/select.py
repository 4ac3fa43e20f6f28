"""Select entities for KEF integration."""

from __future__ import annotations

import logging

from homeassistant.components.select import SelectEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EntityCategory
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import BASS_EXTENSION_OPTIONS, CAP_BASS_EXTENSION
from .data import Speaker, get_speaker_from_config_entry
from .entity import KEFEntity
from .utils import kef_command

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up KEF select entities."""
    speaker = get_speaker_from_config_entry(hass, config_entry)

    entities = []
    if CAP_BASS_EXTENSION in speaker.coordinator.capabilities:
        entities.append(KEFBassExtensionSelect(speaker, config_entry))
    else:
        _LOGGER.debug("Skipping bass extension select - %s has no DSP profile", speaker.coordinator.model_id)

    async_add_entities(entities)
    _LOGGER.info("Created %d select entities for %s", len(entities), speaker.name)


class KEFBassExtensionSelect(KEFEntity, SelectEntity):
    """Bass extension of the speaker's DSP profile."""

    _attr_icon = "mdi:speaker"
    _attr_entity_category = EntityCategory.CONFIG
    _attr_translation_key = "bass_extension"
    _attr_options = list(BASS_EXTENSION_OPTIONS)

    def __init__(self, speaker: Speaker, config_entry: ConfigEntry) -> None:
        super().__init__(speaker, config_entry, CAP_BASS_EXTENSION)
        self._attr_name = "Bass Extension"

    @property
    def current_option(self) -> str | None:
        return self.values.get(CAP_BASS_EXTENSION)

    async def async_select_option(self, option: str) -> None:
        async with kef_command(self.speaker.name, f"set bass extension '{option}'"):
            await self.coordinator.async_set_bass_extension(option)
