"""Shared utility functions for KEF integration."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from homeassistant.exceptions import HomeAssistantError, ServiceValidationError

from .api import (
    KEFConnectionError,
    KEFDeviceOfflineError,
    KEFError,
    KEFTimeoutError,
    KEFUnsupportedOperationError,
    KEFValidationError,
)
from .const import SOURCE_TITLES

_LOGGER = logging.getLogger(__name__)

_CONNECTION_ERRORS = (KEFConnectionError, KEFTimeoutError, KEFDeviceOfflineError, TimeoutError)


def is_connection_error(err: Exception) -> bool:
    """Check if error is a connection or timeout error (including in exception chain)."""
    if isinstance(err, _CONNECTION_ERRORS):
        return True
    cause = getattr(err, "__cause__", None)
    return bool(cause and isinstance(cause, _CONNECTION_ERRORS))


def source_title(source: str) -> str:
    """Return the display title of a source id (wifi -> WiFi)."""
    return SOURCE_TITLES.get(source.lower(), source.title())


def source_from_title(title: str) -> str:
    """Map a display title (or a raw id) back to the source id."""
    lowered = title.lower()
    for source, source_title_ in SOURCE_TITLES.items():
        if source_title_.lower() == lowered:
            return source
    return lowered


@asynccontextmanager
async def kef_command(entity_name: str, operation: str):
    """Context manager for consistent KEF command error handling.

    Args:
        entity_name: Name of the entity performing the operation
        operation: Description of the operation (e.g., "set volume", "play")

    Raises:
        ServiceValidationError: the request was rejected before reaching the speaker
        HomeAssistantError: wrapped KEF error with appropriate message
    """
    try:
        yield
    except KEFValidationError as err:
        raise ServiceValidationError(str(err)) from err
    except KEFUnsupportedOperationError as err:
        _LOGGER.info("%s: %s not supported by current source: %s", entity_name, operation, err)
        raise HomeAssistantError(f"{operation} is not supported by the current source") from err
    except KEFError as err:
        if is_connection_error(err):
            _LOGGER.warning("%s: %s failed (connection issue): %s", entity_name, operation, err)
            raise HomeAssistantError(f"{operation} on {entity_name}: device unreachable") from err
        _LOGGER.error("%s: %s failed: %s", entity_name, operation, err, exc_info=True)
        raise HomeAssistantError(f"Failed to {operation}: {err}") from err
