"""Typed Pydantic models for KEF API payloads.

- Only fields used by the coordinator/entities are included.
- Field aliases match the speaker's JSON keys where the payload is parsed directly.
- Unknown keys are kept (``extra="allow"``) so captured payloads can be inspected.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .const import (
    BALANCE_MAX,
    BALANCE_MIN,
    BASS_EXTENSION_OPTIONS,
    DEFAULT_SPEAKER_MODEL,
    DEFAULT_SPEAKER_NAME,
)

__all__ = [
    "SpeakerInfo",
    "WebPageInfo",
    "PlaybackInfo",
    "DspSettings",
    "SpeakerSnapshot",
]


class _KefBase(BaseModel):
    """Base class with permissive extra handling for future-proofing."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class WebPageInfo(_KefBase):
    """Model and firmware recovered from the speaker's web page."""

    model: str | None = None
    version: str | None = None


class SpeakerInfo(_KefBase):
    """Merged identity of a speaker (web scrape + key-value reads)."""

    ip: str
    name: str = DEFAULT_SPEAKER_NAME
    model: str = DEFAULT_SPEAKER_MODEL
    firmware: str | None = None
    serial_number: str | None = Field(None, alias="serialNumber")


class PlaybackInfo(_KefBase):
    """Now-playing information extracted from ``player:player/data``."""

    is_playing: bool = False
    state: str | None = None
    title: str | None = None
    artist: str | None = None
    album: str | None = None
    duration: int | None = None  # milliseconds
    position: int | None = None  # milliseconds
    album_art_url: str | None = None


class DspSettings(_KefBase):
    """Subset of the ``kefEqProfileV2`` payload exposed as entities."""

    bass_extension: str | None = Field(None, alias="bassExtension")
    desk_mode: bool | None = Field(None, alias="deskMode")
    wall_mode: bool | None = Field(None, alias="wallMode")
    balance: int | None = None

    @field_validator("bass_extension", mode="before")
    @classmethod
    def _known_bass_extension(cls, v: Any) -> str | None:
        if not isinstance(v, str):
            return None
        v = v.lower()
        return v if v in BASS_EXTENSION_OPTIONS else None

    @field_validator("balance", mode="before")
    @classmethod
    def _clamp_balance(cls, v: Any) -> int | None:
        if v is None or isinstance(v, bool):
            return None
        try:
            balance = int(round(float(v)))
        except (TypeError, ValueError, OverflowError):
            return None
        return max(BALANCE_MIN, min(BALANCE_MAX, balance))


class SpeakerSnapshot(_KefBase):
    """Point-in-time read of device state, produced fresh on every poll.

    Fields other than ``standby``/``source`` stay ``None`` when they were
    not read (standby) or could not be read.
    """

    standby: bool = True
    source: str | None = None
    volume: int | None = None
    muted: bool | None = None
    subwoofer_gain: int | None = None
    dsp: DspSettings | None = None
