"""KEF HTTP API core client.

Contains the networking/transport layer only: the JSON-over-HTTP request
primitive, the getData/setData/activate accessors over the speaker's
key-value tree, and the exception hierarchy shared by every ``api_*`` mixin.
High-level operations live in the mixins combined by ``api.KEFSpeakerClient``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, NamedTuple
from urllib.parse import quote

import aiohttp
import async_timeout
from aiohttp import ClientSession

from .const import (
    API_ENDPOINT_GET_DATA,
    API_ENDPOINT_SET_DATA,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    PATH_PLAYER_CONTROL,
    ROLE_ACTIVATE,
    ROLE_VALUE,
)

_LOGGER = logging.getLogger(__name__)

HEADERS: dict[str, str] = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}

UNSUPPORTED_OPERATION_TEXT = "operation not supported"

__all__ = [
    "KEFClient",
    "KEFError",
    "KEFRequestError",
    "KEFTimeoutError",
    "KEFConnectionError",
    "KEFResponseError",
    "KEFUnsupportedOperationError",
    "KEFVolumeReadError",
    "KEFValidationError",
    "KEFDeviceOfflineError",
    "raise_for_api_error",
]

# -----------------------------------------------------------------------------
# Exceptions
# -----------------------------------------------------------------------------


class KEFError(Exception):
    """Base exception for all KEF API errors."""


class KEFRequestError(KEFError):
    """Raised when there is an error communicating with the KEF speaker."""

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        last_error: Exception | None = None,
    ) -> None:
        """Initialize request error with the failing endpoint and cause."""
        self.endpoint = endpoint
        self.last_error = last_error
        super().__init__(message)

    def __str__(self) -> str:
        if self.endpoint:
            return f"{super().__str__()} (endpoint={self.endpoint})"
        return super().__str__()


class KEFTimeoutError(KEFRequestError):
    """Raised when a request to the KEF speaker times out."""


class KEFConnectionError(KEFRequestError):
    """Raised on network-level connectivity problems (refused, unreachable, …)."""


class KEFResponseError(KEFError):
    """Raised when the speaker answers with an ``error`` payload."""


class KEFUnsupportedOperationError(KEFResponseError):
    """The speaker rejected an operation for its current source.

    Typically transport controls while on a physical input that has no
    player behind it.
    """


class KEFVolumeReadError(KEFError):
    """Volume could not be read; there is no safe default to fall back to."""


class KEFValidationError(KEFError):
    """A command referenced a source or value the speaker model does not support."""


class KEFDeviceOfflineError(KEFError):
    """The speaker failed the liveness probe too many times in a row."""


def raise_for_api_error(response: Any) -> None:
    """Promote an ``error`` field in an otherwise successful response to an exception."""
    if not isinstance(response, dict):
        return
    error = response.get("error")
    if not error:
        return

    message = None
    if isinstance(error, dict):
        message = error.get("message")
    elif isinstance(error, str):
        message = error
    message = message or "Operation failed"

    # Matched on free text returned by the firmware.
    if UNSUPPORTED_OPERATION_TEXT in message.lower():
        raise KEFUnsupportedOperationError(message)
    raise KEFResponseError(message)


class RawResponse(NamedTuple):
    """Undecoded HTTP response (header names lower-cased)."""

    status: int
    headers: dict[str, str]
    text: str


# -----------------------------------------------------------------------------
# KEF HTTP client – transport only
# -----------------------------------------------------------------------------


class KEFClient:
    """Minimal KEF HTTP API client – transport & key-value accessors only.

    A client is bound to one endpoint for its whole life. When the host or
    port changes, a new client is created rather than mutating this one.
    """

    # ------------------------------------------------------------------
    # Lifecycle ---------------------------------------------------------
    # ------------------------------------------------------------------

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_TIMEOUT,
        session: ClientSession | None = None,
    ) -> None:
        """Instantiate the client.

        Args:
            host: Speaker hostname or IP address.
            port: HTTP port of the control API.
            timeout: Per-request timeout (seconds).
            session: Optional shared *aiohttp* session.
        """
        self._host = host.strip()
        self._port = int(port)
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._closed = False

        # Normalise host for URL contexts (IPv6 needs brackets).
        self._host_url = f"[{self._host}]" if ":" in self._host and not self._host.startswith("[") else self._host

    @property
    def host(self) -> str:
        """Return the speaker host."""
        return self._host

    @property
    def port(self) -> int:
        """Return the speaker port."""
        return self._port

    @property
    def timeout(self) -> float:
        """Return the request timeout in seconds."""
        return self._timeout

    @property
    def base_url(self) -> str:
        """Return the ``http://host:port`` prefix used for every request."""
        return f"http://{self._host_url}:{self._port}"

    async def close(self) -> None:
        """Retire the client; a shared session is left to its owner."""
        self._closed = True
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
            self._session = None

    # ------------------------------------------------------------------
    # Low-level request helpers -----------------------------------------
    # ------------------------------------------------------------------

    async def _fetch(
        self,
        endpoint: str,
        method: str = "GET",
        *,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> RawResponse:
        """Perform one HTTP request and return the undecoded response.

        Raises:
            KEFTimeoutError: The request did not complete within *timeout*.
            KEFConnectionError: Socket-level or protocol failure.
        """
        if self._closed:
            raise KEFConnectionError(f"Client for {self._host} is closed", endpoint=endpoint)
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

        kwargs.setdefault("headers", HEADERS)
        url = f"{self.base_url}{endpoint}"
        request_timeout = timeout if timeout is not None else self._timeout

        try:
            async with async_timeout.timeout(request_timeout):
                resp = await self._session.request(method, url, **kwargs)
                async with resp:
                    raw = await resp.read()
                    text = raw.decode("utf-8", errors="replace")
                    return RawResponse(resp.status, {k.lower(): v for k, v in resp.headers.items()}, text)
        except asyncio.TimeoutError as err:
            raise KEFTimeoutError(
                f"Request to {self._host} timed out after {request_timeout}s",
                endpoint=endpoint,
                last_error=err,
            ) from err
        except aiohttp.ClientError as err:
            raise KEFConnectionError(
                f"Request to {self._host} failed: {err}",
                endpoint=endpoint,
                last_error=err,
            ) from err

    async def _request(self, endpoint: str, method: str = "GET", **kwargs: Any) -> Any:
        """Perform a request and decode the body.

        Returns the parsed JSON document, the raw string when the body is
        not JSON (some endpoints return bare scalars or HTML), or ``None``
        for an empty body. No retries are attempted here.
        """
        response = await self._fetch(endpoint, method, **kwargs)
        _LOGGER.debug("%s %s -> %s", method, endpoint, response.status)

        if not response.text or not response.text.strip():
            if response.status >= 400:
                raise KEFResponseError(f"HTTP {response.status} from {self._host}{endpoint}")
            return None

        try:
            return json.loads(response.text)
        except json.JSONDecodeError:
            if response.status >= 400:
                raise KEFResponseError(f"HTTP {response.status} from {self._host}{endpoint}") from None
            return response.text

    # ------------------------------------------------------------------
    # Key-value tree accessors -----------------------------------------
    # ------------------------------------------------------------------

    async def _get_data(self, path: str) -> Any:
        """Read the value stored at *path*."""
        endpoint = f"{API_ENDPOINT_GET_DATA}?path={quote(path, safe='')}&roles={ROLE_VALUE}"
        return await self._request(endpoint)

    async def _set_value(self, path: str, value: dict[str, Any], roles: str = ROLE_VALUE) -> Any:
        """Write an already-shaped JSON *value* at *path*."""
        encoded = quote(json.dumps(value, separators=(",", ":")), safe="")
        endpoint = f"{API_ENDPOINT_SET_DATA}?path={quote(path, safe='')}&roles={roles}&value={encoded}"
        return await self._request(endpoint)

    async def _set_data(self, path: str, value_type: str, value: Any) -> Any:
        """Write *value* at *path* using the ``{"type": T, T: value}`` envelope."""
        return await self._set_value(path, {"type": value_type, value_type: value})

    async def _activate_control(self, control: str) -> Any:
        """Activate a player control token (play/pause/next/previous)."""
        response = await self._set_value(PATH_PLAYER_CONTROL, {"control": control}, roles=ROLE_ACTIVATE)
        _LOGGER.debug("Control %s on %s returned %s", control, self._host, response)
        raise_for_api_error(response)
        return response
