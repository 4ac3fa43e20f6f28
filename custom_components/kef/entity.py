"""Base entity class for KEF integration - minimal HA glue only."""

from __future__ import annotations

from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .coordinator import KEFCoordinator
from .data import Speaker


class KEFEntity(CoordinatorEntity[KEFCoordinator]):
    """Base class for all KEF entities - minimal glue to coordinator."""

    _attr_has_entity_name = True

    def __init__(self, speaker: Speaker, config_entry: ConfigEntry, capability: str | None = None) -> None:
        """Initialize with speaker and config entry.

        *capability* becomes the unique id suffix and is what capability
        reconciliation matches against on setup.
        """
        super().__init__(speaker.coordinator)
        self.speaker = speaker
        self._config_entry = config_entry
        self._capability = capability
        if capability:
            self._attr_unique_id = f"{speaker.uuid}_{capability}"
        else:
            self._attr_unique_id = speaker.uuid

    @property
    def values(self) -> dict[str, Any]:
        return self.coordinator.values

    @property
    def device_info(self) -> DeviceInfo:
        return self.speaker.build_device_info()

    @property
    def available(self) -> bool:
        """Return if entity is available."""
        return self.coordinator.available
