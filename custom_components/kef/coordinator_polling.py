"""One poll cycle of the KEF coordinator.

A cycle probes liveness, then runs three refresh steps in order:

1. translate the settings snapshot into capability values
2. refresh playback metadata
3. refresh album art (streaming sources only)

Each step is isolated; a failure is logged and the next step still runs,
with earlier results already applied.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .const import (
    ALBUM_ART_SOURCES,
    CAP_BASS_EXTENSION,
    CAP_DESK_MODE,
    CAP_ONOFF,
    CAP_SOURCE_INPUT,
    CAP_SPEAKER_ALBUM,
    CAP_SPEAKER_ARTIST,
    CAP_SPEAKER_BALANCE,
    CAP_SPEAKER_PLAYING,
    CAP_SPEAKER_REPEAT,
    CAP_SPEAKER_SHUFFLE,
    CAP_SPEAKER_TRACK,
    CAP_VOLUME_MUTE,
    CAP_VOLUME_SET,
    CAP_WALL_MODE,
    KEY_SUBWOOFER_GAIN,
    SHUFFLE_ALL,
    SOURCE_STANDBY,
)
from .models import PlaybackInfo, SpeakerSnapshot
from .speaker_models import is_source_supported

if TYPE_CHECKING:
    from .coordinator import KEFCoordinator

_LOGGER = logging.getLogger(__name__)

# Keys of coordinator.data
DATA_VALUES = "values"
DATA_SNAPSHOT = "snapshot"
DATA_PLAYBACK = "playback"
DATA_ALBUM_ART_URL = "album_art_url"


def empty_data() -> dict[str, Any]:
    """Return coordinator data before the first successful poll."""
    return {
        DATA_VALUES: {},
        DATA_SNAPSHOT: None,
        DATA_PLAYBACK: PlaybackInfo(),
        DATA_ALBUM_ART_URL: None,
    }


def snapshot_to_values(
    coordinator: KEFCoordinator, snapshot: SpeakerSnapshot, values: dict[str, Any]
) -> dict[str, Any]:
    """Apply *snapshot* onto *values*, skipping fields the snapshot lacks."""
    updates: dict[str, Any] = {CAP_ONOFF: not snapshot.standby}

    if snapshot.volume is not None:
        updates[CAP_VOLUME_SET] = snapshot.volume
    if snapshot.muted is not None:
        updates[CAP_VOLUME_MUTE] = snapshot.muted

    source = snapshot.source
    if source is not None and source != SOURCE_STANDBY:
        if is_source_supported(coordinator.model_id, source):
            updates[CAP_SOURCE_INPUT] = source
        else:
            _LOGGER.debug("%s: ignoring source %s, not supported by %s", coordinator.name, source, coordinator.model_id)

    if snapshot.subwoofer_gain is not None:
        updates[KEY_SUBWOOFER_GAIN] = snapshot.subwoofer_gain

    if (dsp := snapshot.dsp) is not None:
        if dsp.bass_extension is not None:
            updates[CAP_BASS_EXTENSION] = dsp.bass_extension
        if dsp.desk_mode is not None:
            updates[CAP_DESK_MODE] = dsp.desk_mode
        if dsp.wall_mode is not None:
            updates[CAP_WALL_MODE] = dsp.wall_mode
        if dsp.balance is not None:
            updates[CAP_SPEAKER_BALANCE] = dsp.balance

    supported = coordinator.capabilities
    values.update({key: value for key, value in updates.items() if key in supported or key == KEY_SUBWOOFER_GAIN})
    return values


def playback_to_values(coordinator: KEFCoordinator, playback: PlaybackInfo, values: dict[str, Any]) -> dict[str, Any]:
    """Apply now-playing fields and the display-only repeat/shuffle state."""
    client = coordinator.client
    updates = {
        CAP_SPEAKER_PLAYING: playback.is_playing,
        CAP_SPEAKER_TRACK: playback.title or "",
        CAP_SPEAKER_ARTIST: playback.artist or "",
        CAP_SPEAKER_ALBUM: playback.album or "",
        CAP_SPEAKER_REPEAT: client.get_repeat_mode(),
        CAP_SPEAKER_SHUFFLE: client.get_shuffle_mode() == SHUFFLE_ALL,
    }
    supported = coordinator.capabilities
    values.update({key: value for key, value in updates.items() if key in supported})
    return values


async def async_refresh_state(coordinator: KEFCoordinator, data: dict[str, Any]) -> dict[str, Any]:
    """Run the three refresh steps against *data* and return it."""
    client = coordinator.client
    values = dict(data.get(DATA_VALUES) or {})
    data = {**data, DATA_VALUES: values}

    snapshot: SpeakerSnapshot | None = None
    try:
        snapshot = await client.get_all_settings(include_dsp=coordinator.has_dsp)
        data[DATA_SNAPSHOT] = snapshot
        snapshot_to_values(coordinator, snapshot, values)
    except Exception as err:  # noqa: BLE001
        _LOGGER.warning("%s: settings refresh failed: %s", coordinator.name, err)

    try:
        playback = await client.get_playback_info()
        data[DATA_PLAYBACK] = playback
        playback_to_values(coordinator, playback, values)
    except Exception as err:  # noqa: BLE001
        _LOGGER.warning("%s: playback refresh failed: %s", coordinator.name, err)

    try:
        source = snapshot.source if snapshot is not None else None
        if snapshot is not None and snapshot.standby:
            source = SOURCE_STANDBY
        if source in ALBUM_ART_SOURCES:
            coordinator.set_album_art_url(await client.get_album_art_url())
        else:
            coordinator.clear_album_art(source)
        data[DATA_ALBUM_ART_URL] = coordinator.album_art_url
    except Exception as err:  # noqa: BLE001
        _LOGGER.warning("%s: album art refresh failed: %s", coordinator.name, err)

    return data


async def async_update_data(coordinator: KEFCoordinator) -> dict[str, Any]:
    """Poll once: liveness probe, availability bookkeeping, then refresh.

    Results computed against a client that was replaced while the cycle
    was in flight are discarded.
    """
    generation = coordinator.generation
    client = coordinator.client

    connected = await client.test_connection()
    if generation != coordinator.generation:
        _LOGGER.debug("%s: discarding probe result from replaced client %s", coordinator.name, client.host)
        return coordinator.data

    if not connected:
        return coordinator.handle_poll_failure()

    coordinator.handle_poll_success()
    data = await async_refresh_state(coordinator, coordinator.data or empty_data())

    if generation != coordinator.generation:
        _LOGGER.debug("%s: discarding stale poll from replaced client %s", coordinator.name, client.host)
        return coordinator.data
    return data
