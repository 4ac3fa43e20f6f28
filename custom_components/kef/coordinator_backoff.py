"""Availability and poll-cadence rules.

Keeps the ruleset separate from the main coordinator so the class remains
small and testable. Going offline takes ``threshold`` consecutive failures,
coming back takes a single success. While offline the coordinator polls
at the slower retry cadence.
"""

from __future__ import annotations

from datetime import timedelta

from .const import FAILURE_THRESHOLD, RETRY_INTERVAL


class BackoffController:
    """Tracks consecutive failures and recommends next interval."""

    def __init__(self, threshold: int = FAILURE_THRESHOLD, retry_seconds: int = RETRY_INTERVAL) -> None:
        self._threshold = threshold
        self._retry_seconds = retry_seconds
        self._failures = 0
        self._available = False

    # ---------------------------------------------------------------------
    # Recording helpers
    # ---------------------------------------------------------------------

    def record_success(self) -> bool:
        """Reset the failure counter; return True if this restored availability."""
        restored = not self._available
        self._failures = 0
        self._available = True
        return restored

    def record_failure(self) -> bool:
        """Count a failed poll; return True if this one crossed the threshold."""
        self._failures += 1
        if self._available and self._failures >= self._threshold:
            self._available = False
            return True
        return False

    def mark_unavailable(self) -> None:
        """Go offline immediately (failed initial connect)."""
        self._available = False

    # ---------------------------------------------------------------------
    # Query helpers
    # ---------------------------------------------------------------------

    @property
    def available(self) -> bool:
        return self._available

    @property
    def consecutive_failures(self) -> int:  # noqa: D401
        return self._failures

    @property
    def retry_seconds(self) -> int:
        return self._retry_seconds

    def next_interval(self, default_seconds: int) -> timedelta:
        """Return the normal interval while available, the retry interval otherwise."""
        return timedelta(seconds=default_seconds if self._available else self._retry_seconds)
