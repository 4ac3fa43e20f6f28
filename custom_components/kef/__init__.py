"""KEF wireless speaker integration for Home Assistant."""

from __future__ import annotations

import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant
from homeassistant.helpers import entity_registry as er

# Import config_flow to make it available as a module attribute for tests
from . import config_flow  # noqa: F401
from .const import DOMAIN, KEY_SUBWOOFER_GAIN, PROTECTED_CAPABILITIES
from .coordinator import KEFCoordinator, resolve_settings
from .data import Speaker

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[Platform] = [
    Platform.MEDIA_PLAYER,
    Platform.SELECT,
    Platform.SWITCH,
    Platform.NUMBER,
    Platform.SENSOR,
]

# Entity keys never removed by capability reconciliation
_ALWAYS_KEPT = PROTECTED_CAPABILITIES | {KEY_SUBWOOFER_GAIN}


def async_reconcile_capabilities(hass: HomeAssistant, entry: ConfigEntry, speaker: Speaker) -> list[str]:
    """Remove registry entities whose capability the paired model lacks.

    Entities for capabilities the model has are (re)created by the
    platforms. Returns the removed entity ids.
    """
    registry = er.async_get(hass)
    prefix = f"{speaker.uuid}_"
    supported = speaker.coordinator.capabilities
    removed: list[str] = []

    for entity in er.async_entries_for_config_entry(registry, entry.entry_id):
        if not entity.unique_id.startswith(prefix):
            continue
        capability = entity.unique_id[len(prefix) :]
        if capability in supported or capability in _ALWAYS_KEPT:
            continue
        _LOGGER.info("Removing %s: %s not supported by %s", entity.entity_id, capability, speaker.coordinator.model_id)
        registry.async_remove(entity.entity_id)
        removed.append(entity.entity_id)
    return removed


async def _update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Apply option changes in place; metadata-only updates are ignored."""
    entry_data = hass.data.get(DOMAIN, {}).get(entry.entry_id)
    if not entry_data:
        return
    coordinator: KEFCoordinator = entry_data["coordinator"]
    host, port, polling_interval = resolve_settings(entry)

    if (host, port, polling_interval) == (coordinator.client.host, coordinator.client.port, coordinator.polling_interval):
        return

    _LOGGER.info("Applying new settings for %s: %s:%s every %ss", entry.title, host, port, polling_interval)
    await coordinator.async_apply_settings(host, port, polling_interval)


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up KEF from a config entry.

    An unreachable speaker is still set up; it starts unavailable and
    polling brings it back.
    """
    hass.data.setdefault(DOMAIN, {})

    coordinator = KEFCoordinator(hass, entry)
    speaker = Speaker(hass, coordinator, entry)

    # Store references before connecting so helper look-ups succeed
    hass.data[DOMAIN][entry.entry_id] = {
        "coordinator": coordinator,
        "speaker": speaker,
        "entry": entry,
    }

    async_reconcile_capabilities(hass, entry, speaker)

    _LOGGER.info("Connecting to %s at %s:%s", entry.title, coordinator.client.host, coordinator.client.port)
    await coordinator.async_connect()
    await speaker.async_setup(entry)

    entry.async_on_unload(entry.add_update_listener(_update_listener))

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    _LOGGER.info(
        "KEF integration setup complete for %s (%s, model %s)",
        speaker.name,
        "available" if coordinator.available else "unavailable",
        coordinator.model_id,
    )
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    if unload_ok := await hass.config_entries.async_unload_platforms(entry, PLATFORMS):
        entry_data = hass.data[DOMAIN].pop(entry.entry_id, {})
        if coordinator := entry_data.get("coordinator"):
            await coordinator.async_shutdown()
        if speaker := entry_data.get("speaker"):
            _LOGGER.info("Unloaded KEF integration for %s", speaker.name)
    return unload_ok
