"""Static KEF model registry.

Every supported model is a member of :class:`ModelId`; ``MODEL_CONFIGS``
maps each member to its sources, capabilities and energy figures. The table
is checked at import time to cover every member, and is never mutated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Final

from .const import (
    CAP_BASS_EXTENSION,
    CAP_DESK_MODE,
    CAP_MEASURE_POWER,
    CAP_ONOFF,
    CAP_SOURCE_INPUT,
    CAP_SPEAKER_ALBUM,
    CAP_SPEAKER_ARTIST,
    CAP_SPEAKER_BALANCE,
    CAP_SPEAKER_NEXT,
    CAP_SPEAKER_PLAYING,
    CAP_SPEAKER_PREV,
    CAP_SPEAKER_REPEAT,
    CAP_SPEAKER_SHUFFLE,
    CAP_SPEAKER_TRACK,
    CAP_VOLUME_MUTE,
    CAP_VOLUME_SET,
    CAP_WALL_MODE,
    SOURCE_ANALOG,
    SOURCE_BLUETOOTH,
    SOURCE_COAXIAL,
    SOURCE_OPTICAL,
    SOURCE_TV,
    SOURCE_USB,
    SOURCE_WIFI,
)
from .models import SpeakerInfo

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "ModelId",
    "EnergyUsage",
    "ModelConfig",
    "MODEL_CONFIGS",
    "coerce_model_id",
    "get_model_config",
    "is_source_supported",
    "detect_model_from_speaker",
]


class ModelId(StrEnum):
    """Closed set of model identifiers."""

    LSX2 = "kef-lsx2"
    LSX2LT = "kef-lsx2lt"
    LS50W2 = "kef-ls50w2"
    LS60 = "kef-ls60"
    LSX = "kef-lsx"
    XIO = "kef-xio"
    AUTO_DETECT = "auto-detect"


@dataclass(frozen=True)
class EnergyUsage:
    """Estimated power draw in watts."""

    usage_on: int
    usage_off: int


@dataclass(frozen=True)
class ModelConfig:
    """Static description of one speaker model."""

    name: str
    sources: tuple[str, ...]
    capabilities: frozenset[str]
    energy: EnergyUsage | None = None


_BASE_CAPABILITIES: Final = frozenset(
    {
        CAP_ONOFF,
        CAP_VOLUME_SET,
        CAP_VOLUME_MUTE,
        CAP_SOURCE_INPUT,
        CAP_SPEAKER_PLAYING,
        CAP_SPEAKER_NEXT,
        CAP_SPEAKER_PREV,
        CAP_SPEAKER_TRACK,
        CAP_SPEAKER_ARTIST,
        CAP_SPEAKER_ALBUM,
        CAP_SPEAKER_SHUFFLE,
        CAP_SPEAKER_REPEAT,
        CAP_MEASURE_POWER,
    }
)

# eqProfile v2 controls (second generation W2 platform)
_DSP_CAPABILITIES: Final = frozenset({CAP_BASS_EXTENSION, CAP_DESK_MODE, CAP_WALL_MODE, CAP_SPEAKER_BALANCE})

ALL_SOURCES: Final = (
    SOURCE_WIFI,
    SOURCE_BLUETOOTH,
    SOURCE_TV,
    SOURCE_OPTICAL,
    SOURCE_COAXIAL,
    SOURCE_ANALOG,
    SOURCE_USB,
)

MODEL_CONFIGS: Final[MappingProxyType[ModelId, ModelConfig]] = MappingProxyType(
    {
        ModelId.LSX2: ModelConfig(
            name="KEF LSX II",
            sources=(SOURCE_WIFI, SOURCE_BLUETOOTH, SOURCE_TV, SOURCE_OPTICAL, SOURCE_ANALOG, SOURCE_USB),
            capabilities=_BASE_CAPABILITIES | _DSP_CAPABILITIES,
            energy=EnergyUsage(usage_on=100, usage_off=5),
        ),
        ModelId.LSX2LT: ModelConfig(
            name="KEF LSX II LT",
            sources=(SOURCE_WIFI, SOURCE_BLUETOOTH, SOURCE_TV, SOURCE_OPTICAL, SOURCE_USB),
            capabilities=_BASE_CAPABILITIES | _DSP_CAPABILITIES,
            energy=EnergyUsage(usage_on=100, usage_off=5),
        ),
        ModelId.LS50W2: ModelConfig(
            name="KEF LS50 Wireless II",
            sources=(SOURCE_WIFI, SOURCE_BLUETOOTH, SOURCE_TV, SOURCE_OPTICAL, SOURCE_COAXIAL, SOURCE_ANALOG),
            capabilities=_BASE_CAPABILITIES | _DSP_CAPABILITIES,
            energy=EnergyUsage(usage_on=190, usage_off=5),
        ),
        ModelId.LS60: ModelConfig(
            name="KEF LS60 Wireless",
            sources=(SOURCE_WIFI, SOURCE_BLUETOOTH, SOURCE_TV, SOURCE_OPTICAL, SOURCE_COAXIAL, SOURCE_ANALOG),
            capabilities=_BASE_CAPABILITIES | _DSP_CAPABILITIES,
            energy=EnergyUsage(usage_on=450, usage_off=2),
        ),
        ModelId.LSX: ModelConfig(
            name="KEF LSX",
            sources=(SOURCE_WIFI, SOURCE_BLUETOOTH, SOURCE_TV, SOURCE_OPTICAL, SOURCE_ANALOG),
            capabilities=_BASE_CAPABILITIES,
            energy=EnergyUsage(usage_on=100, usage_off=5),
        ),
        ModelId.XIO: ModelConfig(
            name="KEF XIO Soundbar",
            sources=(SOURCE_WIFI, SOURCE_BLUETOOTH, SOURCE_TV, SOURCE_OPTICAL),
            capabilities=_BASE_CAPABILITIES,
            energy=EnergyUsage(usage_on=200, usage_off=5),
        ),
        ModelId.AUTO_DETECT: ModelConfig(
            name="Auto-detected KEF Speaker",
            sources=ALL_SOURCES,
            capabilities=_BASE_CAPABILITIES,
            energy=EnergyUsage(usage_on=150, usage_off=5),
        ),
    }
)

_missing = set(ModelId) - set(MODEL_CONFIGS)
if _missing:  # pragma: no cover - guarded at import time
    raise RuntimeError(f"Model registry incomplete, missing: {sorted(_missing)}")

# Ordered: longer / more specific tokens first so "lsx" never shadows "lsx ii lt".
_DETECTION_RULES: Final[tuple[tuple[tuple[str, ...], ModelId], ...]] = (
    (("lsx ii lt", "lsx2lt", "lsxiilt"), ModelId.LSX2LT),
    (("lsx ii", "lsx2", "lsxii"), ModelId.LSX2),
    (("ls50 wireless ii", "ls50wii", "ls50w2"), ModelId.LS50W2),
    (("ls60",), ModelId.LS60),
    (("xio",), ModelId.XIO),
    (("lsx",), ModelId.LSX),
)


def coerce_model_id(model_id: ModelId | str | None) -> ModelId:
    try:
        return ModelId(model_id)
    except ValueError:
        _LOGGER.debug("Unknown model id %r, using auto-detect", model_id)
        return ModelId.AUTO_DETECT


def get_model_config(model_id: ModelId | str | None) -> ModelConfig:
    """Return the configuration for *model_id*, or the auto-detect entry."""
    return MODEL_CONFIGS[coerce_model_id(model_id)]


def is_source_supported(model_id: ModelId | str | None, source: str) -> bool:
    """Return True when *source* is in the model's source list (case-insensitive)."""
    if not source:
        return False
    return source.lower() in get_model_config(model_id).sources


def detect_model_from_speaker(info: SpeakerInfo) -> ModelId:
    """Best-guess model id from the free-text model string and serial number.

    Advisory only: used to pre-fill the pairing form.
    """
    haystack = " ".join(part for part in (info.model, info.serial_number) if part).lower()
    for tokens, model_id in _DETECTION_RULES:
        if any(token in haystack for token in tokens):
            _LOGGER.debug("Detected %s from %r", model_id, haystack)
            return model_id
    return ModelId.AUTO_DETECT
