"""KEF media player platform."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.components.media_player import (
    MediaPlayerEntity,
    MediaPlayerEntityFeature,
    MediaPlayerState,
    MediaType,
    RepeatMode,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.util import dt as dt_util

from .const import (
    CAP_ONOFF,
    CAP_SOURCE_INPUT,
    CAP_SPEAKER_ALBUM,
    CAP_SPEAKER_ARTIST,
    CAP_SPEAKER_NEXT,
    CAP_SPEAKER_PLAYING,
    CAP_SPEAKER_PREV,
    CAP_SPEAKER_REPEAT,
    CAP_SPEAKER_SHUFFLE,
    CAP_SPEAKER_TRACK,
    CAP_VOLUME_MUTE,
    CAP_VOLUME_SET,
    DEFAULT_VOLUME_STEP,
    KEY_SUBWOOFER_GAIN,
    REPEAT_NONE,
    REPEAT_PLAYLIST,
    REPEAT_TRACK,
    SHUFFLE_ALL,
    SHUFFLE_NONE,
    STATE_PAUSED,
    STATE_PLAYING,
)
from .coordinator_polling import DATA_PLAYBACK
from .data import Speaker, get_speaker_from_config_entry
from .entity import KEFEntity
from .media_image_cache import MediaImageCache
from .models import PlaybackInfo
from .utils import kef_command, source_from_title, source_title

_LOGGER = logging.getLogger(__name__)

_REPEAT_TO_HA = {
    REPEAT_NONE: RepeatMode.OFF,
    REPEAT_TRACK: RepeatMode.ONE,
    REPEAT_PLAYLIST: RepeatMode.ALL,
}
_REPEAT_FROM_HA = {ha: kef for kef, ha in _REPEAT_TO_HA.items()}

_FEATURES_BY_CAPABILITY = {
    CAP_ONOFF: MediaPlayerEntityFeature.TURN_ON | MediaPlayerEntityFeature.TURN_OFF,
    CAP_VOLUME_SET: MediaPlayerEntityFeature.VOLUME_SET | MediaPlayerEntityFeature.VOLUME_STEP,
    CAP_VOLUME_MUTE: MediaPlayerEntityFeature.VOLUME_MUTE,
    CAP_SOURCE_INPUT: MediaPlayerEntityFeature.SELECT_SOURCE,
    CAP_SPEAKER_PLAYING: MediaPlayerEntityFeature.PLAY | MediaPlayerEntityFeature.PAUSE,
    CAP_SPEAKER_NEXT: MediaPlayerEntityFeature.NEXT_TRACK,
    CAP_SPEAKER_PREV: MediaPlayerEntityFeature.PREVIOUS_TRACK,
    CAP_SPEAKER_REPEAT: MediaPlayerEntityFeature.REPEAT_SET,
    CAP_SPEAKER_SHUFFLE: MediaPlayerEntityFeature.SHUFFLE_SET,
}


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up KEF Media Player platform."""
    speaker = get_speaker_from_config_entry(hass, config_entry)
    async_add_entities([KEFMediaPlayer(speaker, config_entry)])


def supported_features_for(capabilities: frozenset[str]) -> MediaPlayerEntityFeature:
    """Return the media player features a capability set provides."""
    features = MediaPlayerEntityFeature(0)
    for capability, feature in _FEATURES_BY_CAPABILITY.items():
        if capability in capabilities:
            features |= feature
    return features


class KEFMediaPlayer(KEFEntity, MediaPlayerEntity):
    """KEF speaker as a media player."""

    _attr_name = None  # Use device name
    _attr_media_content_type = MediaType.MUSIC
    _attr_media_image_remotely_accessible = False
    _attr_volume_step = DEFAULT_VOLUME_STEP / 100

    def __init__(self, speaker: Speaker, config_entry: ConfigEntry) -> None:
        """Initialize the media player."""
        super().__init__(speaker, config_entry)
        self._attr_supported_features = supported_features_for(self.coordinator.capabilities)
        self._image_cache = MediaImageCache()
        self._attr_media_position_updated_at = None
        self._update_position_from_coordinator()

    # ===== COORDINATOR =====

    def _playback(self) -> PlaybackInfo:
        if self.coordinator.data:
            return self.coordinator.data.get(DATA_PLAYBACK) or PlaybackInfo()
        return PlaybackInfo()

    def _update_position_from_coordinator(self) -> None:
        """Publish duration/position (speaker reports milliseconds)."""
        playback = self._playback()
        self._attr_media_duration = playback.duration // 1000 if playback.duration else None
        if playback.position is None:
            self._attr_media_position = None
            self._attr_media_position_updated_at = None
            return
        position = playback.position // 1000
        if position != self._attr_media_position or playback.is_playing:
            self._attr_media_position = position
            self._attr_media_position_updated_at = dt_util.utcnow()

    @callback
    def _handle_coordinator_update(self) -> None:
        """Handle updated data from the coordinator."""
        self._update_position_from_coordinator()
        super()._handle_coordinator_update()

    # ===== STATE =====

    @property
    def state(self) -> MediaPlayerState | None:
        if not self.available:
            return None
        if self.values.get(CAP_ONOFF) is False:
            return MediaPlayerState.OFF
        playback = self._playback()
        if playback.is_playing or playback.state == STATE_PLAYING:
            return MediaPlayerState.PLAYING
        if playback.state == STATE_PAUSED:
            return MediaPlayerState.PAUSED
        return MediaPlayerState.IDLE

    async def async_turn_on(self) -> None:
        async with kef_command(self.speaker.name, "turn on"):
            await self.coordinator.async_set_power(True)

    async def async_turn_off(self) -> None:
        async with kef_command(self.speaker.name, "turn off"):
            await self.coordinator.async_set_power(False)

    # ===== VOLUME =====

    @property
    def volume_level(self) -> float | None:
        """Return volume level 0..1."""
        volume = self.values.get(CAP_VOLUME_SET)
        return volume / 100 if volume is not None else None

    @property
    def is_volume_muted(self) -> bool | None:
        return self.values.get(CAP_VOLUME_MUTE)

    async def async_set_volume_level(self, volume: float) -> None:
        """Set volume level 0..1."""
        async with kef_command(self.speaker.name, "set volume"):
            await self.coordinator.async_set_volume(volume * 100)

    async def async_volume_up(self) -> None:
        async with kef_command(self.speaker.name, "volume up"):
            await self.coordinator.async_volume_step(up=True)

    async def async_volume_down(self) -> None:
        async with kef_command(self.speaker.name, "volume down"):
            await self.coordinator.async_volume_step(up=False)

    async def async_mute_volume(self, mute: bool) -> None:
        async with kef_command(self.speaker.name, "set mute"):
            await self.coordinator.async_set_muted(mute)

    # ===== PLAYBACK =====

    async def async_media_play(self) -> None:
        async with kef_command(self.speaker.name, "play"):
            await self.coordinator.async_play()

    async def async_media_pause(self) -> None:
        async with kef_command(self.speaker.name, "pause"):
            await self.coordinator.async_pause()

    async def async_media_play_pause(self) -> None:
        if self.state == MediaPlayerState.PLAYING:
            await self.async_media_pause()
        else:
            await self.async_media_play()

    async def async_media_next_track(self) -> None:
        async with kef_command(self.speaker.name, "skip to next track"):
            await self.coordinator.async_next_track()

    async def async_media_previous_track(self) -> None:
        async with kef_command(self.speaker.name, "skip to previous track"):
            await self.coordinator.async_previous_track()

    # ===== SOURCE =====

    @property
    def source(self) -> str | None:
        source = self.values.get(CAP_SOURCE_INPUT)
        return source_title(source) if source else None

    @property
    def source_list(self) -> list[str]:
        return [source_title(source) for source in self.coordinator.model_config.sources]

    async def async_select_source(self, source: str) -> None:
        """Select input source by display title or id."""
        async with kef_command(self.speaker.name, "select source"):
            await self.coordinator.async_select_source(source_from_title(source))

    # ===== METADATA =====

    @property
    def media_title(self) -> str | None:
        return self.values.get(CAP_SPEAKER_TRACK) or None

    @property
    def media_artist(self) -> str | None:
        return self.values.get(CAP_SPEAKER_ARTIST) or None

    @property
    def media_album_name(self) -> str | None:
        return self.values.get(CAP_SPEAKER_ALBUM) or None

    # ===== ALBUM ART =====

    @property
    def media_image_url(self) -> str | None:
        return self.coordinator.album_art_url

    @property
    def media_image_hash(self) -> str | None:
        """Changes only when the album art URL changes."""
        if not self.coordinator.album_art_url:
            return None
        return str(self.coordinator.album_art_version)

    async def async_get_media_image(self) -> tuple[bytes | None, str | None]:
        """Fetch album art from the speaker; other hosts are refused."""
        return await self._image_cache.fetch(
            self.hass,
            self.coordinator.album_art_url,
            allowed_host=self.coordinator.client.host,
        )

    # ===== REPEAT / SHUFFLE (display-only) =====

    @property
    def repeat(self) -> RepeatMode | None:
        mode = self.values.get(CAP_SPEAKER_REPEAT)
        return _REPEAT_TO_HA.get(mode) if mode is not None else None

    async def async_set_repeat(self, repeat: RepeatMode) -> None:
        async with kef_command(self.speaker.name, "set repeat"):
            await self.coordinator.async_set_repeat(_REPEAT_FROM_HA[RepeatMode(repeat)])

    @property
    def shuffle(self) -> bool | None:
        return self.values.get(CAP_SPEAKER_SHUFFLE)

    async def async_set_shuffle(self, shuffle: bool) -> None:
        async with kef_command(self.speaker.name, "set shuffle"):
            await self.coordinator.async_set_shuffle(SHUFFLE_ALL if shuffle else SHUFFLE_NONE)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        attrs: dict[str, Any] = {"model_id": str(self.coordinator.model_id)}
        if (gain := self.values.get(KEY_SUBWOOFER_GAIN)) is not None:
            attrs[KEY_SUBWOOFER_GAIN] = gain
        return attrs
