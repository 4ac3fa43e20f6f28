"""Album art download & caching helper.

The helper keeps a per-instance in-memory cache (URL → bytes, content-type)
and only downloads images served by the speaker itself.
It contains no Home-Assistant specific code except for requiring the
shared aiohttp client session via `hass`.
"""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import urlsplit

import aiohttp
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from .const import ALBUM_ART_MAX_BYTES, ALBUM_ART_TIMEOUT

_LOGGER = logging.getLogger(__name__)

__all__ = ["MediaImageCache", "is_allowed_image_url"]

_CHUNK_SIZE = 64 * 1024


def is_allowed_image_url(url: str | None, allowed_host: str | None) -> bool:
    """Return True for http(s) URLs whose host is *allowed_host* (when given)."""
    if not url:
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return False
    return allowed_host is None or parts.hostname == allowed_host


class MediaImageCache:
    """Lightweight cache for album-art images served by KEF speakers."""

    _MAX_BYTES = ALBUM_ART_MAX_BYTES

    def __init__(self) -> None:
        self._cached_url: str | None = None
        self._cached_bytes: bytes | None = None
        self._cached_content_type: str | None = None

    async def fetch(self, hass, url: str | None, *, allowed_host: str | None = None) -> tuple[bytes | None, str | None]:
        """Return (bytes, content_type) for *url* or (None, None) on failure.

        The last successful image is remembered so repeated UI refreshes
        don't hammer the device.
        """
        if not url:
            self._clear()
            return None, None

        if not is_allowed_image_url(url, allowed_host):
            _LOGGER.warning("Refusing album art URL %s: must be served by the speaker at %s", url, allowed_host)
            self._clear()
            return None, None

        if url == self._cached_url and self._cached_bytes:
            return self._cached_bytes, self._cached_content_type

        session = async_get_clientsession(hass)
        timeout = aiohttp.ClientTimeout(total=ALBUM_ART_TIMEOUT)

        try:
            async with session.get(url, timeout=timeout) as resp:
                if resp.status != 200:
                    _LOGGER.debug("Image fetch failed: HTTP %s for %s", resp.status, url)
                    self._clear()
                    return None, None

                if (clen := resp.headers.get("Content-Length")) and clen.isdigit() and int(clen) > self._MAX_BYTES:
                    _LOGGER.debug("Image too large (%s bytes) – skipping %s", clen, url)
                    self._clear()
                    return None, None

                data = bytearray()
                async for chunk in resp.content.iter_chunked(_CHUNK_SIZE):
                    data.extend(chunk)
                    if len(data) > self._MAX_BYTES:
                        _LOGGER.debug("Image stream exceeded %s bytes – skipping %s", self._MAX_BYTES, url)
                        self._clear()
                        return None, None

                if not data:
                    _LOGGER.debug("Empty image from %s", url)
                    self._clear()
                    return None, None

                ctype = resp.headers.get("Content-Type", "image/jpeg").split(";", 1)[0]

                self._cached_url = url
                self._cached_bytes = bytes(data)
                self._cached_content_type = ctype
                return self._cached_bytes, ctype
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            _LOGGER.debug("Network error fetching image %s: %s", url, err)

        self._clear()
        return None, None

    # ---------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------

    def _clear(self) -> None:
        self._cached_url = None
        self._cached_bytes = None
        self._cached_content_type = None
