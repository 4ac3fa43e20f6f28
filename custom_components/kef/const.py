"""Constants for the KEF integration.

This module defines all constants used throughout the KEF integration,
including configuration keys, default values, API paths and capability ids.

Configuration:
    - Host/port of the speaker's local control endpoint
    - Polling cadence
    - Read-only metadata persisted after each successful connection

API:
    - Key paths of the speaker's getData/setData key-value tree
    - Player control tokens
"""

from __future__ import annotations

from typing import Final

DOMAIN = "kef"

# Integration metadata
MANUFACTURER = "KEF"

# Config keys
CONF_HOST = "host"
CONF_PORT = "port"
CONF_POLLING_INTERVAL = "polling_interval"
CONF_MODEL_ID = "model_id"

# Read-only metadata stored in entry data
CONF_SPEAKER_NAME = "speaker_name"
CONF_SPEAKER_MODEL = "speaker_model"
CONF_FIRMWARE_VERSION = "firmware_version"
CONF_SERIAL_NUMBER = "serial_number"
CONF_LAST_CONNECTED = "last_connected"

# Defaults
DEFAULT_PORT = 80
DEFAULT_TIMEOUT = 5  # seconds, every API call
WEB_SCRAPE_TIMEOUT = 3  # seconds, HTML model scrape
DEFAULT_POLLING_INTERVAL = 5  # seconds
MIN_POLLING_INTERVAL = 1
MAX_POLLING_INTERVAL = 300
RETRY_INTERVAL = 30  # seconds, while unavailable
FAILURE_THRESHOLD = 3  # consecutive poll failures before unavailable
DEFAULT_VOLUME_STEP = 5
DEFAULT_PREVIOUS_VOLUME = 50

DEFAULT_SPEAKER_NAME = "KEF Speaker"
DEFAULT_SPEAKER_MODEL = "Unknown"

UNAVAILABLE_MESSAGE = "Device is not responding. Check if it's powered on and connected to the network."
CONNECT_FAILED_MESSAGE = "Cannot connect to speaker"

# API endpoints
API_ENDPOINT_GET_DATA = "/api/getData"
API_ENDPOINT_SET_DATA = "/api/setData"
API_ENDPOINT_WEB_ROOT = "/"
API_ENDPOINT_WEB_FALLBACK = "/index.fcgi"

# Key paths
PATH_PHYSICAL_SOURCE = "settings:/kef/play/physicalSource"
PATH_VOLUME = "player:volume"
PATH_PLAYER_DATA = "player:player/data"
PATH_PLAYER_CONTROL = "player:player/control"
PATH_SERIAL_NUMBER = "settings:/kef/host/serialNumber"
PATH_FIRMWARE_VERSION = "settings:/kef/host/firmwareVersion"
PATH_SPEAKER_NAME = "settings:/kef/host/speakerName"
PATH_DEVICE_NAME = "settings:/deviceName"
PATH_SYSTEM_DEVICE_NAME = "settings:/system/deviceName"
PATH_SUBWOOFER_GAIN = "settings:/kef/dsp/subwooferGain"
PATH_EQ_PROFILE = "kef:eqProfile/v2"

# Name paths in priority order
NAME_PATHS: Final = (PATH_SPEAKER_NAME, PATH_DEVICE_NAME, PATH_SYSTEM_DEVICE_NAME)

# Value type tags
TYPE_PHYSICAL_SOURCE = "kefPhysicalSource"
TYPE_I32 = "i32_"
TYPE_STRING = "string_"
TYPE_EQ_PROFILE = "kefEqProfileV2"

ROLE_VALUE = "value"
ROLE_ACTIVATE = "activate"

# Player control tokens
CONTROL_PAUSE = "pause"
CONTROL_NEXT = "next"
CONTROL_PREVIOUS = "previous"

# Player states
STATE_PLAYING = "playing"
STATE_PAUSED = "paused"
STATE_STOPPED = "stopped"

# Sources
SOURCE_STANDBY = "standby"
SOURCE_WIFI = "wifi"
SOURCE_BLUETOOTH = "bluetooth"
SOURCE_OPTICAL = "optical"
SOURCE_COAXIAL = "coaxial"
SOURCE_ANALOG = "analog"
SOURCE_TV = "tv"
SOURCE_USB = "usb"

DEFAULT_SOURCE = SOURCE_WIFI

# Album art is only meaningful for streaming sources
ALBUM_ART_SOURCES: Final = frozenset({SOURCE_WIFI, SOURCE_BLUETOOTH})

SOURCE_TITLES: Final[dict[str, str]] = {
    SOURCE_WIFI: "WiFi",
    SOURCE_BLUETOOTH: "Bluetooth",
    SOURCE_OPTICAL: "Optical",
    SOURCE_COAXIAL: "Coaxial",
    SOURCE_ANALOG: "Analog",
    SOURCE_TV: "TV",
    SOURCE_USB: "USB",
}

# Repeat / shuffle modes (display-only)
REPEAT_NONE = "none"
REPEAT_TRACK = "track"
REPEAT_PLAYLIST = "playlist"
SHUFFLE_NONE = "none"
SHUFFLE_ALL = "all"

# Bass extension
BASS_EXTENSION_OPTIONS: Final = ("less", "standard", "extra")

BALANCE_MIN = -30
BALANCE_MAX = 30

# Capability ids
CAP_ONOFF = "onoff"
CAP_VOLUME_SET = "volume_set"
CAP_VOLUME_MUTE = "volume_mute"
CAP_SOURCE_INPUT = "source_input"
CAP_SPEAKER_PLAYING = "speaker_playing"
CAP_SPEAKER_NEXT = "speaker_next"
CAP_SPEAKER_PREV = "speaker_prev"
CAP_SPEAKER_TRACK = "speaker_track"
CAP_SPEAKER_ARTIST = "speaker_artist"
CAP_SPEAKER_ALBUM = "speaker_album"
CAP_SPEAKER_SHUFFLE = "speaker_shuffle"
CAP_SPEAKER_REPEAT = "speaker_repeat"
CAP_BASS_EXTENSION = "bass_extension"
CAP_DESK_MODE = "desk_mode"
CAP_WALL_MODE = "wall_mode"
CAP_SPEAKER_BALANCE = "speaker_balance"
CAP_MEASURE_POWER = "measure_power"

# Value key without a capability of its own
KEY_SUBWOOFER_GAIN = "subwoofer_gain"

# Never removed during capability reconciliation
PROTECTED_CAPABILITIES: Final = frozenset({CAP_VOLUME_SET, CAP_SOURCE_INPUT})

# Album art download limits
ALBUM_ART_MAX_BYTES = 5 * 1024 * 1024
ALBUM_ART_TIMEOUT = 5
