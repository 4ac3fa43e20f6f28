"""KEF coordinator - device lifecycle and polling state machine.

States: UNINITIALIZED → CONNECTING → AVAILABLE ⇄ UNAVAILABLE → STOPPED.

Polling runs on ``DataUpdateCoordinator``'s scheduler, which only schedules
the next refresh once the previous one has finished, so two polls of the
same speaker never overlap.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed
from homeassistant.util import dt as dt_util

from .api import KEFDeviceOfflineError, KEFSpeakerClient, KEFValidationError
from .const import (
    CAP_BASS_EXTENSION,
    CAP_DESK_MODE,
    CAP_SPEAKER_BALANCE,
    CAP_WALL_MODE,
    CONF_FIRMWARE_VERSION,
    CONF_HOST,
    CONF_LAST_CONNECTED,
    CONF_MODEL_ID,
    CONF_POLLING_INTERVAL,
    CONF_PORT,
    CONF_SERIAL_NUMBER,
    CONF_SPEAKER_MODEL,
    CONF_SPEAKER_NAME,
    CONNECT_FAILED_MESSAGE,
    DEFAULT_POLLING_INTERVAL,
    DEFAULT_PORT,
    PROTECTED_CAPABILITIES,
    UNAVAILABLE_MESSAGE,
)
from .coordinator_backoff import BackoffController
from .coordinator_polling import DATA_ALBUM_ART_URL, DATA_VALUES, async_refresh_state, async_update_data, empty_data
from .models import SpeakerInfo
from .speaker_models import ModelConfig, coerce_model_id, get_model_config, is_source_supported

_LOGGER = logging.getLogger(__name__)

DSP_CAPABILITIES = frozenset({CAP_BASS_EXTENSION, CAP_DESK_MODE, CAP_WALL_MODE, CAP_SPEAKER_BALANCE})


class AvailabilityState(Enum):
    """Lifecycle state of one paired speaker."""

    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    STOPPED = "stopped"


def resolve_settings(entry: ConfigEntry) -> tuple[str, int, int]:
    """Return (host, port, polling_interval); options override entry data."""
    merged = {**entry.data, **entry.options}
    return (
        str(merged[CONF_HOST]).strip(),
        int(merged.get(CONF_PORT, DEFAULT_PORT)),
        int(merged.get(CONF_POLLING_INTERVAL, DEFAULT_POLLING_INTERVAL)),
    )


class KEFCoordinator(DataUpdateCoordinator[dict[str, Any]]):
    """One speaker: owns its client, availability and poll cadence."""

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        """Initialize the coordinator from a config entry."""
        host, port, polling_interval = resolve_settings(entry)
        self.backoff = BackoffController()
        super().__init__(
            hass,
            _LOGGER,
            config_entry=entry,
            name=f"KEF {host}",
            update_interval=self.backoff.next_interval(polling_interval),
        )
        self.entry = entry
        self.polling_interval = polling_interval
        self.model_id = coerce_model_id(entry.data.get(CONF_MODEL_ID))
        self.model_config: ModelConfig = get_model_config(self.model_id)
        self.capabilities: frozenset[str] = self.model_config.capabilities | PROTECTED_CAPABILITIES

        self.state = AvailabilityState.UNINITIALIZED
        self.generation = 0
        self.client = self._create_client(host, port)
        self.speaker_info: SpeakerInfo | None = None

        # Album art bookkeeping: the version only moves when the art changes.
        self.album_art_url: str | None = None
        self.album_art_version = 0

        self.data = empty_data()

    def _create_client(self, host: str, port: int) -> KEFSpeakerClient:
        return KEFSpeakerClient(host, port=port, session=async_get_clientsession(self.hass))

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def available(self) -> bool:
        return self.state is AvailabilityState.AVAILABLE

    @property
    def has_dsp(self) -> bool:
        return bool(self.capabilities & DSP_CAPABILITIES)

    @property
    def values(self) -> dict[str, Any]:
        return (self.data or {}).get(DATA_VALUES, {})

    # ------------------------------------------------------------------
    # Connecting
    # ------------------------------------------------------------------

    async def async_connect(self, skip_metadata: bool = False) -> bool:
        """Probe the speaker and run the CONNECTING transition.

        On success the speaker info is fetched (and persisted unless
        *skip_metadata*) and a full state refresh follows. On failure the
        speaker is marked unavailable and recovery is left to polling.
        """
        self.state = AvailabilityState.CONNECTING
        generation = self.generation
        client = self.client

        connected = await client.test_connection()
        if generation != self.generation:
            return False

        if not connected:
            self.backoff.mark_unavailable()
            self.state = AvailabilityState.UNAVAILABLE
            self.last_update_success = False
            _LOGGER.warning("%s: %s at %s:%s", self.name, CONNECT_FAILED_MESSAGE, client.host, client.port)
            self._apply_interval()
            self.async_update_listeners()
            return False

        self.backoff.record_success()
        self.state = AvailabilityState.AVAILABLE
        _LOGGER.info("%s: connected to speaker at %s:%s", self.name, client.host, client.port)

        info = await client.get_speaker_info()
        if generation != self.generation:
            return False
        self.speaker_info = info
        _LOGGER.info("%s: %s (%s) firmware %s", self.name, info.name, info.model, info.firmware)
        if not skip_metadata:
            self._persist_metadata(info)

        data = await async_refresh_state(self, self.data or empty_data())
        if generation == self.generation:
            self._apply_interval()
            self.async_set_updated_data(data)
        return True

    @callback
    def _persist_metadata(self, info: SpeakerInfo) -> None:
        self.hass.config_entries.async_update_entry(
            self.entry,
            data={
                **self.entry.data,
                CONF_SPEAKER_NAME: info.name,
                CONF_SPEAKER_MODEL: info.model,
                CONF_SERIAL_NUMBER: info.serial_number or "Unknown",
                CONF_FIRMWARE_VERSION: info.firmware or "Unknown",
                CONF_LAST_CONNECTED: dt_util.utcnow().isoformat(),
            },
        )

    # ------------------------------------------------------------------
    # Settings changes
    # ------------------------------------------------------------------

    async def async_apply_settings(self, host: str, port: int, polling_interval: int) -> None:
        """Apply new endpoint/cadence settings in place.

        An endpoint change swaps in a new client and reconnects; a failed
        reconnect is not an error, polling picks it up. An interval-only
        change just reschedules.
        """
        endpoint_changed = host != self.client.host or port != self.client.port
        self.polling_interval = polling_interval

        if endpoint_changed:
            _LOGGER.info("%s: endpoint changed to %s:%s", self.name, host, port)
            self._async_unsub_refresh()
            old_client = self.client
            self.generation += 1
            self.client = self._create_client(host, port)
            await old_client.close()
            await self.async_connect(skip_metadata=True)
        else:
            _LOGGER.debug("%s: polling interval now %ss", self.name, polling_interval)

        self._apply_interval()
        if self._listeners:
            self._schedule_refresh()

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def _async_update_data(self) -> dict[str, Any]:
        """Update coordinator data - one poll cycle."""
        return await async_update_data(self)

    def _apply_interval(self) -> None:
        self.update_interval = self.backoff.next_interval(self.polling_interval)

    def handle_poll_success(self) -> None:
        """Availability bookkeeping for a successful probe."""
        if self.backoff.record_success():
            _LOGGER.info("%s: device is back online", self.name)
        self.state = AvailabilityState.AVAILABLE
        self._apply_interval()

    def handle_poll_failure(self) -> dict[str, Any]:
        """Availability bookkeeping for a failed probe.

        Failures below the threshold are absorbed and the previous data is
        kept; from the threshold on the poll fails.
        """
        if self.backoff.record_failure():
            self.state = AvailabilityState.UNAVAILABLE
            _LOGGER.warning(
                "%s: not responding after %d attempts, retrying every %ss",
                self.name,
                self.backoff.consecutive_failures,
                self.backoff.retry_seconds,
            )
        self._apply_interval()

        if self.backoff.available:
            _LOGGER.debug("%s: poll failed (%d in a row)", self.name, self.backoff.consecutive_failures)
            return self.data
        raise UpdateFailed(UNAVAILABLE_MESSAGE) from KEFDeviceOfflineError(
            f"{self.client.host} failed {self.backoff.consecutive_failures} consecutive polls"
        )

    # ------------------------------------------------------------------
    # Album art
    # ------------------------------------------------------------------

    def set_album_art_url(self, url: str | None) -> None:
        """Record a new album art URL; unchanged URLs are ignored."""
        if url == self.album_art_url:
            return
        _LOGGER.debug("%s: album art changed to %s", self.name, url)
        self.album_art_url = url
        self.album_art_version += 1

    def clear_album_art(self, source: str | None) -> None:
        """Drop album art once after leaving a streaming source."""
        if self.album_art_url is None:
            return
        _LOGGER.debug("%s: non-streaming source (%s), clearing album art", self.name, source)
        self.album_art_url = None
        self.album_art_version += 1

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @callback
    def _apply_values(self, **updates: Any) -> None:
        """Optimistically merge capability values after a command."""
        data = dict(self.data or empty_data())
        data[DATA_VALUES] = {**data.get(DATA_VALUES, {}), **updates}
        data[DATA_ALBUM_ART_URL] = self.album_art_url
        self.data = data
        self.async_update_listeners()

    def validate_source(self, source: str) -> str:
        """Return the lower-cased source or raise if the model lacks it."""
        if not is_source_supported(self.model_id, source):
            raise KEFValidationError(f"Source {source!r} is not supported by {self.model_config.name}")
        return source.lower()

    async def async_select_source(self, source: str) -> None:
        source = self.validate_source(source)
        await self.client.set_source(source)
        self._apply_values(source_input=source, onoff=True)

    async def async_set_power(self, on: bool) -> None:
        await self.client.set_power_state(on)
        self._apply_values(onoff=on)

    async def async_set_volume(self, volume: float) -> None:
        written = await self.client.set_volume(volume)
        self._apply_values(volume_set=written, volume_mute=written == 0 and self.client.shadow.muted)

    async def async_volume_step(self, up: bool) -> None:
        written = await (self.client.volume_up() if up else self.client.volume_down())
        self._apply_values(volume_set=written)

    async def async_set_muted(self, muted: bool) -> None:
        await self.client.set_muted(muted)
        self._apply_values(
            volume_mute=muted,
            volume_set=0 if muted else self.client.shadow.previous_volume,
        )

    async def async_play(self) -> None:
        if await self.client.play():
            self._apply_values(speaker_playing=True)
        else:
            await self.async_request_refresh()

    async def async_pause(self) -> None:
        await self.client.pause()
        self._apply_values(speaker_playing=False)

    async def async_next_track(self) -> None:
        await self.client.next_track()
        await self.async_request_refresh()

    async def async_previous_track(self) -> None:
        await self.client.previous_track()
        await self.async_request_refresh()

    async def async_set_repeat(self, mode: str) -> None:
        self.client.set_repeat_mode(mode)
        self._apply_values(speaker_repeat=mode)

    async def async_set_shuffle(self, mode: str) -> None:
        self.client.set_shuffle_mode(mode)
        self._apply_values(speaker_shuffle=self.client.get_shuffle_mode() == "all")

    async def async_set_bass_extension(self, value: str) -> None:
        await self.client.set_bass_extension(value)
        self._apply_values(bass_extension=value.lower())

    async def async_set_desk_mode(self, enabled: bool) -> None:
        await self.client.set_desk_mode(enabled)
        self._apply_values(desk_mode=enabled)

    async def async_set_wall_mode(self, enabled: bool) -> None:
        await self.client.set_wall_mode(enabled)
        self._apply_values(wall_mode=enabled)

    async def async_set_balance(self, value: float) -> None:
        await self.client.set_balance(value)
        self._apply_values(speaker_balance=int(round(value)))

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def async_shutdown(self) -> None:
        """Stop polling; no further I/O is attempted."""
        self.state = AvailabilityState.STOPPED
        self.generation += 1
        await super().async_shutdown()
        await self.client.close()
