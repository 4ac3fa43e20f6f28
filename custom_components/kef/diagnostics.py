"""Provide diagnostics for KEF integration."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.components.diagnostics import async_redact_data
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .const import CONF_HOST, CONF_SERIAL_NUMBER, DOMAIN
from .coordinator import KEFCoordinator
from .coordinator_polling import DATA_PLAYBACK, DATA_SNAPSHOT, DATA_VALUES

_LOGGER = logging.getLogger(__name__)

# Sensitive data to redact from diagnostics
TO_REDACT = [
    CONF_HOST,
    CONF_SERIAL_NUMBER,
    "ip",
    "serialNumber",
]


def _get_coordinator(hass: HomeAssistant, entry: ConfigEntry) -> KEFCoordinator | None:
    entry_data = hass.data.get(DOMAIN, {}).get(entry.entry_id)
    return entry_data.get("coordinator") if entry_data else None


async def async_get_config_entry_diagnostics(hass: HomeAssistant, entry: ConfigEntry) -> dict[str, Any]:
    """Return diagnostics for a config entry."""
    coordinator = _get_coordinator(hass, entry)
    if coordinator is None:
        return {
            "error": "Coordinator not found for config entry",
            "entry_data": async_redact_data(entry.data, TO_REDACT),
            "entry_options": async_redact_data(entry.options, TO_REDACT),
        }

    data = coordinator.data or {}
    snapshot = data.get(DATA_SNAPSHOT)
    playback = data.get(DATA_PLAYBACK)
    model = coordinator.model_config
    info = coordinator.speaker_info

    return {
        "entry_data": async_redact_data(entry.data, TO_REDACT),
        "entry_options": async_redact_data(entry.options, TO_REDACT),
        "coordinator": {
            "state": coordinator.state.value,
            "available": coordinator.available,
            "consecutive_failures": coordinator.backoff.consecutive_failures,
            "update_interval": coordinator.update_interval.total_seconds() if coordinator.update_interval else None,
            "polling_interval": coordinator.polling_interval,
            "generation": coordinator.generation,
            "last_update_success": coordinator.last_update_success,
        },
        "model": {
            "model_id": str(coordinator.model_id),
            "name": model.name,
            "sources": list(model.sources),
            "capabilities": sorted(model.capabilities),
            "energy": {"usage_on": model.energy.usage_on, "usage_off": model.energy.usage_off},
        },
        "speaker_info": async_redact_data(info.model_dump(), TO_REDACT) if info else None,
        "snapshot": snapshot.model_dump() if snapshot is not None else None,
        "playback": playback.model_dump() if playback is not None else None,
        "values": dict(data.get(DATA_VALUES) or {}),
        "album_art_version": coordinator.album_art_version,
    }
