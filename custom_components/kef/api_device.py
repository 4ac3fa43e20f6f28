"""Device information helpers for the KEF HTTP client."""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import urlsplit

from .api_base import KEFError
from .api_parser import model_from_serial, parse_string, parse_web_page
from .const import (
    API_ENDPOINT_WEB_FALLBACK,
    API_ENDPOINT_WEB_ROOT,
    DEFAULT_SPEAKER_MODEL,
    DEFAULT_SPEAKER_NAME,
    NAME_PATHS,
    PATH_FIRMWARE_VERSION,
    PATH_SERIAL_NUMBER,
    WEB_SCRAPE_TIMEOUT,
)
from .models import SpeakerInfo, WebPageInfo

_LOGGER = logging.getLogger(__name__)

_WEB_HEADERS = {"Accept": "text/html"}


def _redirect_path(location: str | None) -> str:
    """Return the request path of a redirect target on the same speaker."""
    if not location:
        return API_ENDPOINT_WEB_FALLBACK
    parts = urlsplit(location)
    path = parts.path or API_ENDPOINT_WEB_FALLBACK
    if not path.startswith("/"):
        path = f"/{path}"
    return f"{path}?{parts.query}" if parts.query else path


class DeviceAPI:  # mix-in – must be left of base client in MRO
    """Speaker identity: name, model, firmware and serial number."""

    # pylint: disable=no-member

    async def get_web_page_info(self) -> WebPageInfo:
        """Scrape model and firmware from the speaker's home page.

        One 301/302 redirect is followed (``/index.fcgi`` when the Location
        header is missing). Failures give an empty result.
        """
        try:
            resp = await self._fetch(  # type: ignore[attr-defined]
                API_ENDPOINT_WEB_ROOT,
                timeout=WEB_SCRAPE_TIMEOUT,
                headers=_WEB_HEADERS,
                allow_redirects=False,
            )
            if resp.status in (301, 302):
                path = _redirect_path(resp.headers.get("location"))
                _LOGGER.debug("Following web redirect on %s to %s", self.host, path)  # type: ignore[attr-defined]
                resp = await self._fetch(  # type: ignore[attr-defined]
                    path,
                    timeout=WEB_SCRAPE_TIMEOUT,
                    headers=_WEB_HEADERS,
                    allow_redirects=False,
                )
        except KEFError as err:
            _LOGGER.debug("Web interface unavailable on %s: %s", self.host, err)  # type: ignore[attr-defined]
            return WebPageInfo()
        return parse_web_page(resp.text)

    async def get_speaker_info(self) -> SpeakerInfo:
        """Fetch name, model, firmware and serial number concurrently.

        The web scrape and the five key-value reads run in parallel; any of
        them failing only leaves its field at the default.
        """
        info = SpeakerInfo(ip=self.host)  # type: ignore[attr-defined]

        results = await asyncio.gather(
            self.get_web_page_info(),
            self._get_data(PATH_SERIAL_NUMBER),  # type: ignore[attr-defined]
            self._get_data(PATH_FIRMWARE_VERSION),  # type: ignore[attr-defined]
            *(self._get_data(path) for path in NAME_PATHS),  # type: ignore[attr-defined]
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
        self._log_failed(results)

        web, serial_resp, firmware_resp, *name_resps = (
            None if isinstance(result, Exception) else result for result in results
        )

        if isinstance(web, WebPageInfo):
            if web.model:
                info.model = web.model
            if web.version:
                info.firmware = web.version

        if serial := parse_string(serial_resp, "serialNumber"):
            info.serial_number = serial
            if info.model == DEFAULT_SPEAKER_MODEL and (model := model_from_serial(serial)):
                info.model = model

        if not info.firmware:
            info.firmware = parse_string(firmware_resp, "firmwareVersion")

        for path, response in zip(NAME_PATHS, name_resps):
            name = parse_string(response, "speakerName", "deviceName")
            if name and name != DEFAULT_SPEAKER_NAME:
                _LOGGER.debug("Name from %s: %s", path, name)
                info.name = name
                break

        _LOGGER.debug(
            "Speaker info for %s: name=%s model=%s firmware=%s serial=%s",
            info.ip,
            info.name,
            info.model,
            info.firmware,
            info.serial_number,
        )
        return info

    def _log_failed(self, results: list[Any]) -> None:
        for result in results:
            if isinstance(result, Exception):
                _LOGGER.debug("Speaker info sub-request failed on %s: %s", self.host, result)  # type: ignore[attr-defined]
