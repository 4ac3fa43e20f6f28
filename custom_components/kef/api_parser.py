"""KEF API response parser.

The speaker's JSON has been observed in several historical shapes. Each
field is read through an ordered tuple of extractor functions over the
loosely-typed payload; the first extractor returning a non-empty value wins.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from typing import Any

from .const import STATE_PLAYING, STATE_STOPPED, TYPE_EQ_PROFILE, TYPE_I32, TYPE_PHYSICAL_SOURCE, TYPE_STRING
from .models import PlaybackInfo, WebPageInfo

_LOGGER = logging.getLogger(__name__)

Extractor = Callable[[dict[str, Any]], Any]

__all__ = [
    "first_record",
    "first_match",
    "unwrap_player_data",
    "parse_physical_source",
    "parse_i32",
    "parse_string",
    "parse_playback_info",
    "parse_album_art_url",
    "parse_eq_profile",
    "parse_web_page",
    "normalize_model_name",
    "model_from_serial",
]


# ---------------------------------------------------------------------------
# Generic helpers
# ---------------------------------------------------------------------------


def _dig(obj: Any, *keys: str | int) -> Any:
    """Walk nested dicts/lists, returning ``None`` on the first miss."""
    for key in keys:
        if isinstance(key, int):
            if not isinstance(obj, list) or len(obj) <= key:
                return None
            obj = obj[key]
        else:
            if not isinstance(obj, dict):
                return None
            obj = obj.get(key)
        if obj is None:
            return None
    return obj


def first_record(response: Any) -> dict[str, Any] | None:
    """Return the first object of a ``getData`` array response."""
    if isinstance(response, list) and response and isinstance(response[0], dict):
        return response[0]
    return None


def first_match(payload: dict[str, Any], extractors: Iterable[Extractor]) -> Any:
    """Apply *extractors* left to right and return the first non-empty value."""
    for extractor in extractors:
        value = extractor(payload)
        if value not in (None, "", [], {}):
            return value
    return None


def unwrap_player_data(response: Any) -> dict[str, Any] | None:
    """Locate the player-data object in any of the known envelopes.

    Accepts a bare array, an object with ``data`` (array or object), or the
    object itself. Error payloads and unrecognised shapes give ``None``.
    """
    if isinstance(response, list):
        return first_record(response)
    if not isinstance(response, dict) or response.get("error"):
        return None
    if "data" in response:
        data = response["data"]
        if isinstance(data, list):
            return first_record(data)
        return data if isinstance(data, dict) else None
    return response


# ---------------------------------------------------------------------------
# Scalar values
# ---------------------------------------------------------------------------


def parse_physical_source(response: Any) -> str | None:
    """Return the lower-cased physical source, or ``None`` if absent."""
    record = first_record(response)
    value = record.get(TYPE_PHYSICAL_SOURCE) if record else None
    if isinstance(value, str) and value:
        return value.lower()
    return None


def parse_i32(response: Any, *fields: str) -> int | None:
    """Return an integer value from ``i32_`` or any of *fields*."""
    record = first_record(response)
    if record is None:
        return None
    for field in (*fields, TYPE_I32):
        value = record.get(field)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            return int(value)
    return None


def parse_string(response: Any, *fields: str) -> str | None:
    """Return the first non-empty string among *fields* then ``string_``."""
    record = first_record(response)
    if record is None:
        return None
    for field in (*fields, TYPE_STRING):
        value = record.get(field)
        if isinstance(value, str) and value:
            return value
    return None


# ---------------------------------------------------------------------------
# Player data
# ---------------------------------------------------------------------------

TITLE_EXTRACTORS: tuple[Extractor, ...] = (
    lambda d: _dig(d, "trackRoles", "title"),
    lambda d: d.get("title"),
    lambda d: _dig(d, "metadata", "title"),
    lambda d: _dig(d, "metaData", "title"),
)

ARTIST_EXTRACTORS: tuple[Extractor, ...] = (
    lambda d: _dig(d, "trackRoles", "mediaData", "metaData", "artist"),
    lambda d: d.get("artist"),
    lambda d: _dig(d, "metadata", "artist"),
    lambda d: _dig(d, "metaData", "artist"),
)

ALBUM_EXTRACTORS: tuple[Extractor, ...] = (
    lambda d: _dig(d, "trackRoles", "mediaData", "metaData", "album"),
    lambda d: d.get("album"),
    lambda d: _dig(d, "metadata", "album"),
    lambda d: _dig(d, "metaData", "album"),
)

DURATION_EXTRACTORS: tuple[Extractor, ...] = (
    lambda d: _dig(d, "trackRoles", "mediaData", "resources", 0, "duration"),
    lambda d: _dig(d, "status", "duration"),
)

POSITION_EXTRACTORS: tuple[Extractor, ...] = (
    lambda d: d.get("position"),
    lambda d: _dig(d, "status", "position"),
)

ALBUM_ART_EXTRACTORS: tuple[Extractor, ...] = (
    lambda d: _dig(d, "trackRoles", "icon"),
    lambda d: d.get("icon"),
    lambda d: _dig(d, "player", "trackRoles", "icon"),
)


def _as_text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def parse_playback_info(response: Any) -> PlaybackInfo:
    """Normalise a ``player:player/data`` response into :class:`PlaybackInfo`.

    A ``stopped`` player short-circuits to "nothing playing" without
    attempting metadata extraction.
    """
    data = unwrap_player_data(response)
    if data is None:
        return PlaybackInfo()

    state = data.get("state") if isinstance(data.get("state"), str) else None
    info = PlaybackInfo(state=state, is_playing=state == STATE_PLAYING)
    if state == STATE_STOPPED:
        return info

    info.title = _as_text(first_match(data, TITLE_EXTRACTORS))
    info.artist = _as_text(first_match(data, ARTIST_EXTRACTORS))
    info.album = _as_text(first_match(data, ALBUM_EXTRACTORS))
    info.duration = _as_int(first_match(data, DURATION_EXTRACTORS))
    info.position = _as_int(first_match(data, POSITION_EXTRACTORS))
    info.album_art_url = _as_text(first_match(data, ALBUM_ART_EXTRACTORS))
    return info


def parse_album_art_url(response: Any) -> str | None:
    """Return the album art URL of a player-data response, or ``None``."""
    data = unwrap_player_data(response)
    if data is None or data.get("state") == STATE_STOPPED:
        return None
    return _as_text(first_match(data, ALBUM_ART_EXTRACTORS))


# ---------------------------------------------------------------------------
# DSP profile
# ---------------------------------------------------------------------------


def parse_eq_profile(response: Any) -> dict[str, Any] | None:
    """Return the raw ``kefEqProfileV2`` object of an eq-profile read."""
    record = first_record(response)
    if record is None and isinstance(response, dict):
        record = response
    if record is None:
        return None
    profile = record.get(TYPE_EQ_PROFILE)
    return dict(profile) if isinstance(profile, dict) else None


# ---------------------------------------------------------------------------
# Web page / model names
# ---------------------------------------------------------------------------

_TITLE_RE = re.compile(r"<title>([^<]+)</title>", re.IGNORECASE)
_RELEASE_RE = re.compile(r"Release status:\s*([^<\s]+)")
_VERSION_RE = re.compile(r"Device version:\s*([^<\s]+)")

# Names/codes as they appear on the page → display model name
_MODEL_ALIASES: dict[str, str] = {
    "LS50 Wireless II": "LS50 Wireless II",
    "LS50WII": "LS50 Wireless II",
    "LS50W2": "LS50 Wireless II",
    "LS50 Wireless": "LS50 Wireless",
    "LS50W": "LS50 Wireless",
    "LSX II": "LSX II",
    "LSX2": "LSX II",
    "LSXII": "LSX II",
    "LSX II LT": "LSX II LT",
    "LSX2LT": "LSX II LT",
    "LSX": "LSX",
    "LS60 Wireless": "LS60 Wireless",
    "LS60": "LS60 Wireless",
    "XIO": "XIO",
}

# Checked in order; first prefix match wins
_SERIAL_PREFIXES: tuple[tuple[str, str], ...] = (
    ("LSW", "LS50 Wireless"),
    ("LS50W2", "LS50 Wireless II"),
    ("LSX2", "LSX II"),
    ("LSX", "LSX"),
    ("LS60", "LS60 Wireless"),
)


def normalize_model_name(name: str) -> str | None:
    """Map a page title model or release code to its display name."""
    return _MODEL_ALIASES.get(name.strip())


def parse_web_page(html: str) -> WebPageInfo:
    """Extract model and firmware version from the speaker's home page.

    The ``<title>`` (``"KEF | MODEL | Homepage"``) is preferred; a
    ``Release status: MODEL_VERSION`` fragment is the fallback.
    """
    info = WebPageInfo()
    if not html:
        return info

    if match := _TITLE_RE.search(html):
        parts = [part.strip() for part in match.group(1).split("|")]
        if len(parts) >= 2 and parts[1]:
            # Unknown titles are kept verbatim
            info.model = normalize_model_name(parts[1]) or parts[1]
            _LOGGER.debug("Model from page title: %s", info.model)

    if not info.model and (match := _RELEASE_RE.search(html)):
        code = match.group(1).split("_")[0]
        info.model = normalize_model_name(code)
        _LOGGER.debug("Release status %s -> model %s", match.group(1), info.model)

    if match := _VERSION_RE.search(html):
        info.version = match.group(1)

    return info


def model_from_serial(serial: str | None) -> str | None:
    """Guess the display model from the serial-number prefix."""
    if not serial:
        return None
    serial = serial.upper()
    for prefix, model in _SERIAL_PREFIXES:
        if serial.startswith(prefix):
            return model
    return None
