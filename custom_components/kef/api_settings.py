"""Power, source, volume and DSP helpers for the KEF HTTP client.

All networking (``_get_data``/``_set_data``) is supplied by
``api_base.KEFClient`` and the shadow state by ``api.KEFSpeakerClient``.
This mix-in must therefore be inherited **before** the base client in the
final MRO.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from pydantic import ValidationError

from .api_base import (
    KEFError,
    KEFRequestError,
    KEFResponseError,
    KEFValidationError,
    KEFVolumeReadError,
    raise_for_api_error,
)
from .api_parser import parse_eq_profile, parse_i32, parse_physical_source
from .const import (
    BALANCE_MAX,
    BALANCE_MIN,
    BASS_EXTENSION_OPTIONS,
    DEFAULT_SOURCE,
    DEFAULT_VOLUME_STEP,
    PATH_EQ_PROFILE,
    PATH_PHYSICAL_SOURCE,
    PATH_SUBWOOFER_GAIN,
    PATH_VOLUME,
    SOURCE_STANDBY,
    TYPE_EQ_PROFILE,
    TYPE_I32,
    TYPE_PHYSICAL_SOURCE,
)
from .models import DspSettings, SpeakerSnapshot

_LOGGER = logging.getLogger(__name__)


def clamp_volume(volume: float) -> int:
    """Round half up and clamp to 0..100."""
    return max(0, min(100, math.floor(volume + 0.5)))


class SettingsAPI:  # mix-in – must be left of base client in MRO
    """Power, source, volume, mute and DSP operations."""

    # pylint: disable=no-member

    # ------------------------------------------------------------------
    # Power
    # ------------------------------------------------------------------

    async def get_power_state(self) -> bool:
        """Return False only in standby or when the speaker does not answer."""
        try:
            response = await self._get_data(PATH_PHYSICAL_SOURCE)  # type: ignore[attr-defined]
        except KEFError as err:
            _LOGGER.debug("Power state read failed for %s, treating as off: %s", self.host, err)  # type: ignore[attr-defined]
            return False
        return parse_physical_source(response) != SOURCE_STANDBY

    async def set_power_state(self, on: bool) -> None:
        """Power on by re-selecting the last active source, off by selecting standby."""
        if on:
            await self.set_source(self.shadow.last_active_source)  # type: ignore[attr-defined]
            return
        response = await self._set_data(PATH_PHYSICAL_SOURCE, TYPE_PHYSICAL_SOURCE, SOURCE_STANDBY)  # type: ignore[attr-defined]
        raise_for_api_error(response)

    # ------------------------------------------------------------------
    # Source
    # ------------------------------------------------------------------

    async def get_source(self) -> str:
        """Return the lower-cased physical source.

        Transport failures propagate. A response without the source field
        yields ``wifi``.
        """
        response = await self._get_data(PATH_PHYSICAL_SOURCE)  # type: ignore[attr-defined]
        source = parse_physical_source(response)
        if source is None:
            return DEFAULT_SOURCE
        if source != SOURCE_STANDBY:
            self.shadow.last_active_source = source  # type: ignore[attr-defined]
        return source

    async def set_source(self, source: str) -> None:
        """Write the physical source. Model validation is the caller's job."""
        source = source.lower()
        response = await self._set_data(PATH_PHYSICAL_SOURCE, TYPE_PHYSICAL_SOURCE, source)  # type: ignore[attr-defined]
        raise_for_api_error(response)
        if source != SOURCE_STANDBY:
            self.shadow.last_active_source = source  # type: ignore[attr-defined]

    # ------------------------------------------------------------------
    # Volume & mute
    # ------------------------------------------------------------------

    async def get_volume(self) -> int:
        """Return the current volume (0..100).

        Raises:
            KEFVolumeReadError: the volume could not be read.
        """
        try:
            response = await self._get_data(PATH_VOLUME)  # type: ignore[attr-defined]
        except KEFRequestError as err:
            raise KEFVolumeReadError(f"Failed to get volume: {err}") from err
        volume = parse_i32(response)
        if volume is None:
            raise KEFVolumeReadError(f"No volume in response: {response!r}")
        return volume

    async def set_volume(self, volume: float) -> int:
        """Write *volume* clamped to 0..100 and return the value written."""
        value = clamp_volume(volume)
        response = await self._set_data(PATH_VOLUME, TYPE_I32, value)  # type: ignore[attr-defined]
        raise_for_api_error(response)
        return value

    async def volume_up(self, step: int = DEFAULT_VOLUME_STEP) -> int:
        return await self.set_volume(await self.get_volume() + step)

    async def volume_down(self, step: int = DEFAULT_VOLUME_STEP) -> int:
        return await self.set_volume(await self.get_volume() - step)

    async def get_muted(self) -> bool:
        """Muted means volume is 0 *and* this client muted it."""
        volume = await self.get_volume()
        return volume == 0 and self.shadow.muted  # type: ignore[attr-defined]

    async def set_muted(self, muted: bool) -> None:
        """Emulate mute by zeroing volume and restoring it on unmute."""
        shadow = self.shadow  # type: ignore[attr-defined]
        if muted:
            current = await self.get_volume()
            if current > 0:
                shadow.previous_volume = current
            await self.set_volume(0)
            shadow.muted = True
        else:
            await self.set_volume(shadow.previous_volume)
            shadow.muted = False

    async def toggle_mute(self) -> None:
        await self.set_muted(not await self.get_muted())

    # ------------------------------------------------------------------
    # DSP
    # ------------------------------------------------------------------

    async def get_subwoofer_gain(self) -> int | None:
        """Return the subwoofer gain, or None when unavailable."""
        try:
            response = await self._get_data(PATH_SUBWOOFER_GAIN)  # type: ignore[attr-defined]
        except KEFError as err:
            _LOGGER.debug("Subwoofer gain unavailable on %s: %s", self.host, err)  # type: ignore[attr-defined]
            return None
        return parse_i32(response, "subwooferGain")

    async def _read_eq_profile(self) -> dict[str, Any]:
        response = await self._get_data(PATH_EQ_PROFILE)  # type: ignore[attr-defined]
        profile = parse_eq_profile(response)
        if profile is None:
            raise KEFResponseError(f"EQ profile not available: {response!r}")
        return profile

    async def get_dsp_settings(self) -> DspSettings | None:
        """Return the DSP extras, or None when the profile cannot be read."""
        try:
            profile = await self._read_eq_profile()
        except KEFError as err:
            _LOGGER.debug("DSP settings unavailable on %s: %s", self.host, err)  # type: ignore[attr-defined]
            return None
        try:
            return DspSettings.model_validate(profile)
        except ValidationError as err:
            _LOGGER.debug("Unusable DSP profile on %s: %s", self.host, err)  # type: ignore[attr-defined]
            return None

    async def _update_eq_profile(self, **changes: Any) -> None:
        """Read-modify-write the whole eq profile."""
        profile = await self._read_eq_profile()
        profile.update(changes)
        response = await self._set_value(  # type: ignore[attr-defined]
            PATH_EQ_PROFILE, {"type": TYPE_EQ_PROFILE, TYPE_EQ_PROFILE: profile}
        )
        raise_for_api_error(response)

    async def set_bass_extension(self, value: str) -> None:
        value = value.lower()
        if value not in BASS_EXTENSION_OPTIONS:
            raise KEFValidationError(f"Invalid bass extension: {value}")
        await self._update_eq_profile(bassExtension=value)

    async def set_desk_mode(self, enabled: bool) -> None:
        await self._update_eq_profile(deskMode=bool(enabled))

    async def set_wall_mode(self, enabled: bool) -> None:
        await self._update_eq_profile(wallMode=bool(enabled))

    async def set_balance(self, value: float) -> None:
        balance = int(round(value))
        if not BALANCE_MIN <= balance <= BALANCE_MAX:
            raise KEFValidationError(f"Balance {balance} outside {BALANCE_MIN}..{BALANCE_MAX}")
        await self._update_eq_profile(balance=balance)

    # ------------------------------------------------------------------
    # Composite reads
    # ------------------------------------------------------------------

    async def get_all_settings(self, include_dsp: bool = False) -> SpeakerSnapshot:
        """Read a fresh :class:`SpeakerSnapshot`.

        In standby the volume/mute/DSP reads are not attempted at all, the
        API errors on them while the speaker sleeps. An unreachable speaker
        is reported as standby.
        """
        try:
            source = await self.get_source()
        except KEFError as err:
            _LOGGER.debug("Settings read failed for %s: %s", self.host, err)  # type: ignore[attr-defined]
            return SpeakerSnapshot(standby=True)

        snapshot = SpeakerSnapshot(standby=source == SOURCE_STANDBY, source=source)
        if snapshot.standby:
            return snapshot

        try:
            snapshot.volume = await self.get_volume()
            snapshot.muted = snapshot.volume == 0 and self.shadow.muted  # type: ignore[attr-defined]
        except KEFError as err:
            _LOGGER.debug("Volume read failed for %s: %s", self.host, err)  # type: ignore[attr-defined]

        snapshot.subwoofer_gain = await self.get_subwoofer_gain()
        if include_dsp:
            snapshot.dsp = await self.get_dsp_settings()
        return snapshot

    async def test_connection(self) -> bool:
        """Liveness probe: True iff the source can be read."""
        try:
            await self.get_source()
        except KEFError as err:
            _LOGGER.debug("Connection test failed for %s: %s", self.host, err)  # type: ignore[attr-defined]
            return False
        return True
