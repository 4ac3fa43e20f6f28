"""Client-held state for a KEF speaker.

The speaker exposes no mute primitive, no "power on" verb and no readable
repeat/shuffle state. The values below fill those gaps. None of them is
authoritative against the hardware.
"""

from __future__ import annotations

from dataclasses import dataclass

from .const import DEFAULT_PREVIOUS_VOLUME, DEFAULT_SOURCE, REPEAT_NONE, SHUFFLE_NONE


@dataclass
class SpeakerShadowState:
    """Derived state kept by one speaker client instance."""

    # Most recently observed non-standby source, re-selected on power on.
    last_active_source: str = DEFAULT_SOURCE

    # Mute emulation: when ``muted`` is True the last volume written by the
    # client was 0; unmute restores ``previous_volume``.
    muted: bool = False
    previous_volume: int = DEFAULT_PREVIOUS_VOLUME

    # Display-only. Never read from nor written to the device.
    repeat_mode: str = REPEAT_NONE
    shuffle_mode: str = SHUFFLE_NONE
