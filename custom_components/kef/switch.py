"""KEF switch platform.

Desk and wall mode of the speaker's DSP profile. Only models with an
eqProfile v2 get these switches.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from homeassistant.components.switch import SwitchEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EntityCategory
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import CAP_DESK_MODE, CAP_WALL_MODE
from .data import Speaker, get_speaker_from_config_entry
from .entity import KEFEntity
from .utils import kef_command

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up KEF switches."""
    speaker = get_speaker_from_config_entry(hass, config_entry)
    capabilities = speaker.coordinator.capabilities

    entities: list[KEFEntity] = []
    if CAP_DESK_MODE in capabilities:
        entities.append(KEFDeskModeSwitch(speaker, config_entry))
    if CAP_WALL_MODE in capabilities:
        entities.append(KEFWallModeSwitch(speaker, config_entry))

    async_add_entities(entities)
    _LOGGER.debug("Created %d switch entities for %s", len(entities), speaker.name)


class _KEFModeSwitch(KEFEntity, SwitchEntity):
    """Boolean DSP flag written through a coordinator setter."""

    _attr_entity_category = EntityCategory.CONFIG
    _label = ""

    def __init__(
        self,
        speaker: Speaker,
        config_entry: ConfigEntry,
        capability: str,
        setter: Callable[[bool], Awaitable[None]],
    ) -> None:
        super().__init__(speaker, config_entry, capability)
        self._attr_name = self._label
        self._setter = setter

    @property
    def is_on(self) -> bool | None:
        return self.values.get(self._capability)

    async def async_turn_on(self, **kwargs: Any) -> None:
        async with kef_command(self.speaker.name, f"enable {self._label.lower()}"):
            await self._setter(True)

    async def async_turn_off(self, **kwargs: Any) -> None:
        async with kef_command(self.speaker.name, f"disable {self._label.lower()}"):
            await self._setter(False)


class KEFDeskModeSwitch(_KEFModeSwitch):
    _attr_icon = "mdi:desk"
    _label = "Desk Mode"

    def __init__(self, speaker: Speaker, config_entry: ConfigEntry) -> None:
        super().__init__(speaker, config_entry, CAP_DESK_MODE, speaker.coordinator.async_set_desk_mode)


class KEFWallModeSwitch(_KEFModeSwitch):
    _attr_icon = "mdi:wall"
    _label = "Wall Mode"

    def __init__(self, speaker: Speaker, config_entry: ConfigEntry) -> None:
        super().__init__(speaker, config_entry, CAP_WALL_MODE, speaker.coordinator.async_set_wall_mode)
