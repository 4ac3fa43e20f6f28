"""KEF API modular façade.

Composes the ``api_*`` mixins with the transport-only client in
``api_base.py`` so callers import a single class from
``custom_components.kef.api``.
"""

from __future__ import annotations

from aiohttp import ClientSession

from .api_base import (
    KEFClient as _TransportClient,
)
from .api_base import (
    KEFConnectionError,
    KEFDeviceOfflineError,
    KEFError,
    KEFRequestError,
    KEFResponseError,
    KEFTimeoutError,
    KEFUnsupportedOperationError,
    KEFValidationError,
    KEFVolumeReadError,
)
from .api_device import DeviceAPI
from .api_playback import PlaybackAPI
from .api_settings import SettingsAPI
from .const import DEFAULT_PORT, DEFAULT_TIMEOUT
from .state import SpeakerShadowState

# Order is important: mixins first, transport client last so its `__init__`
# is reached exactly once via Python's MRO.


class KEFSpeakerClient(
    PlaybackAPI,
    SettingsAPI,
    DeviceAPI,
    _TransportClient,
):
    """Aggregated KEF HTTP API client.

    Owns the client-held shadow state (last active source, mute emulation,
    display-only repeat/shuffle). A new instance starts with fresh defaults.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_TIMEOUT,
        session: ClientSession | None = None,
    ) -> None:
        super().__init__(host, port=port, timeout=timeout, session=session)
        self.shadow = SpeakerShadowState()


__all__ = [
    "KEFSpeakerClient",
    "KEFError",
    "KEFRequestError",
    "KEFTimeoutError",
    "KEFConnectionError",
    "KEFResponseError",
    "KEFUnsupportedOperationError",
    "KEFVolumeReadError",
    "KEFValidationError",
    "KEFDeviceOfflineError",
]
