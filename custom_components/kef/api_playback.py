"""Playback helpers for the KEF HTTP client.

All networking (``_get_data``/``_activate_control``) is supplied by
``api_base.KEFClient``. This mix-in must therefore be inherited **before**
the base client in the final MRO.

The speaker's ``pause`` control toggles for externally driven players
(Spotify Connect, Roon, …), so ``play`` inspects the player state first.
"""

from __future__ import annotations

import logging
from typing import Any

from .api_base import KEFError, KEFRequestError, KEFValidationError
from .api_parser import parse_album_art_url, parse_playback_info, unwrap_player_data
from .const import (
    CONTROL_NEXT,
    CONTROL_PAUSE,
    CONTROL_PREVIOUS,
    PATH_PLAYER_DATA,
    REPEAT_NONE,
    REPEAT_PLAYLIST,
    REPEAT_TRACK,
    SHUFFLE_ALL,
    SHUFFLE_NONE,
    STATE_PAUSED,
    STATE_PLAYING,
    STATE_STOPPED,
)
from .models import PlaybackInfo

_LOGGER = logging.getLogger(__name__)

REPEAT_MODES = (REPEAT_NONE, REPEAT_TRACK, REPEAT_PLAYLIST)
SHUFFLE_MODES = (SHUFFLE_NONE, SHUFFLE_ALL)


class PlaybackAPI:  # mix-in – must be left of base client in MRO
    """Transport controls and now-playing information."""

    # pylint: disable=no-member

    # ------------------------------------------------------------------
    # Player data
    # ------------------------------------------------------------------

    async def get_player_data(self) -> dict[str, Any] | None:
        response = await self._get_data(PATH_PLAYER_DATA)  # type: ignore[attr-defined]
        return unwrap_player_data(response)

    async def is_playing(self) -> bool:
        try:
            data = await self.get_player_data()
        except KEFError:
            return False
        return bool(data) and data.get("state") == STATE_PLAYING

    async def get_playback_info(self) -> PlaybackInfo:
        """Return now-playing info; read failures give an empty result."""
        try:
            response = await self._get_data(PATH_PLAYER_DATA)  # type: ignore[attr-defined]
        except KEFError as err:
            _LOGGER.debug("Playback info unavailable on %s: %s", self.host, err)  # type: ignore[attr-defined]
            return PlaybackInfo()
        return parse_playback_info(response)

    async def get_album_art_url(self) -> str | None:
        """Return the current album art URL, never raising."""
        try:
            response = await self._get_data(PATH_PLAYER_DATA)  # type: ignore[attr-defined]
        except KEFError as err:
            _LOGGER.debug("Album art unavailable on %s: %s", self.host, err)  # type: ignore[attr-defined]
            return None
        return parse_album_art_url(response)

    # ------------------------------------------------------------------
    # Transport controls
    # ------------------------------------------------------------------

    async def play(self) -> bool:
        """Resume playback; return whether a control was sent.

        ``paused``/``stopped`` send the pause toggle, ``playing`` sends
        nothing. When the state cannot be read the toggle is sent anyway.
        """
        try:
            data = await self.get_player_data()
        except KEFRequestError as err:
            _LOGGER.debug("Could not read player state on %s, sending toggle: %s", self.host, err)  # type: ignore[attr-defined]
            await self._activate_control(CONTROL_PAUSE)  # type: ignore[attr-defined]
            return True

        state = data.get("state") if data else None
        if state in (STATE_PAUSED, STATE_STOPPED):
            await self._activate_control(CONTROL_PAUSE)  # type: ignore[attr-defined]
            return True
        if state == STATE_PLAYING:
            _LOGGER.debug("%s already playing", self.host)  # type: ignore[attr-defined]
        else:
            _LOGGER.debug("Play ignored on %s, unknown player state %r", self.host, state)  # type: ignore[attr-defined]
        return False

    async def pause(self) -> None:
        await self._activate_control(CONTROL_PAUSE)  # type: ignore[attr-defined]

    async def toggle_play_pause(self) -> None:
        if await self.is_playing():
            await self.pause()
        else:
            await self.play()

    async def next_track(self) -> None:
        await self._activate_control(CONTROL_NEXT)  # type: ignore[attr-defined]

    async def previous_track(self) -> None:
        await self._activate_control(CONTROL_PREVIOUS)  # type: ignore[attr-defined]

    # ------------------------------------------------------------------
    # Repeat / shuffle (display-only, never sent to the speaker)
    # ------------------------------------------------------------------

    def get_repeat_mode(self) -> str:
        return self.shadow.repeat_mode  # type: ignore[attr-defined]

    def set_repeat_mode(self, mode: str) -> None:
        if mode not in REPEAT_MODES:
            raise KEFValidationError(f"Invalid repeat mode: {mode}. Expected one of: {', '.join(REPEAT_MODES)}")
        self.shadow.repeat_mode = mode  # type: ignore[attr-defined]

    def get_shuffle_mode(self) -> str:
        return self.shadow.shuffle_mode  # type: ignore[attr-defined]

    def set_shuffle_mode(self, mode: str) -> None:
        if mode not in SHUFFLE_MODES:
            raise KEFValidationError(f"Invalid shuffle mode: {mode}")
        self.shadow.shuffle_mode = mode  # type: ignore[attr-defined]
