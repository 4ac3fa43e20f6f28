"""Global fixtures for KEF integration tests."""

import asyncio
import copy
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import parse_qs, urlsplit

import pytest
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.kef.api import KEFSpeakerClient
from custom_components.kef.api_base import RawResponse
from custom_components.kef.const import (
    DOMAIN,
    PATH_DEVICE_NAME,
    PATH_EQ_PROFILE,
    PATH_FIRMWARE_VERSION,
    PATH_PHYSICAL_SOURCE,
    PATH_PLAYER_CONTROL,
    PATH_PLAYER_DATA,
    PATH_SERIAL_NUMBER,
    PATH_SPEAKER_NAME,
    PATH_SUBWOOFER_GAIN,
    PATH_SYSTEM_DEVICE_NAME,
    PATH_VOLUME,
)

from tests.const import (
    EQ_PROFILE,
    MOCK_CONFIG_DATA_WITH_METADATA,
    MOCK_FIRMWARE,
    MOCK_HOST,
    MOCK_NAME,
    MOCK_SERIAL,
    PLAYER_DATA_TRACK_ROLES,
    WEB_PAGE_TITLE,
)

pytest_plugins = "pytest_homeassistant_custom_component"


@pytest.fixture
def event_loop() -> asyncio.AbstractEventLoop:
    """Provide legacy `event_loop` fixture for HA pytest plugin compatibility.

    Newer pytest-asyncio versions no longer provide the `event_loop` fixture by
    default, but pytest-homeassistant-custom-component still depends on it (via
    its autouse `enable_event_loop_debug` fixture).
    """
    loop = asyncio.new_event_loop()
    try:
        yield loop
    finally:
        loop.close()


# ============================================================================
# Autouse Fixtures (applied to all tests automatically)
# ============================================================================


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(enable_custom_integrations):
    """Enable custom integrations for all tests."""
    yield


@pytest.fixture(name="skip_notifications", autouse=True)
def skip_notifications_fixture():
    """Skip notification calls to prevent test failures."""
    with (
        patch("homeassistant.components.persistent_notification.async_create"),
        patch("homeassistant.components.persistent_notification.async_dismiss"),
    ):
        yield


@pytest.fixture(autouse=True)
def allow_unwatched_threads() -> bool:  # noqa: D401 – simple fixture
    """Tell pytest-homeassistant that background threads are expected."""
    return True


@pytest.fixture
def expected_lingering_timers() -> bool:
    """Polling timers of set-up entries may outlive a test."""
    return True


# ============================================================================
# Fake speaker
# ============================================================================


class FakeKEFDevice:
    """In-memory KEF speaker answering the getData/setData/web API.

    Wired in at ``KEFClient._fetch`` so decoding, envelopes and error
    promotion in the client run for real. Every request is recorded in
    ``calls`` as ``(endpoint_path, key_path, decoded_value)``.
    """

    def __init__(self, host: str = MOCK_HOST) -> None:
        self.host = host
        self.values: dict[str, Any] = {
            PATH_PHYSICAL_SOURCE: [{"type": "kefPhysicalSource", "kefPhysicalSource": "wifi"}],
            PATH_VOLUME: [{"type": "i32_", "i32_": 30}],
            PATH_SUBWOOFER_GAIN: [{"type": "i32_", "i32_": -2}],
            PATH_EQ_PROFILE: [{"type": "kefEqProfileV2", "kefEqProfileV2": dict(EQ_PROFILE)}],
            PATH_PLAYER_DATA: copy.deepcopy(PLAYER_DATA_TRACK_ROLES),
            PATH_SERIAL_NUMBER: [{"type": "string_", "string_": MOCK_SERIAL}],
            PATH_FIRMWARE_VERSION: [{"type": "string_", "string_": MOCK_FIRMWARE}],
            PATH_SPEAKER_NAME: [{"type": "string_", "string_": MOCK_NAME}],
            PATH_DEVICE_NAME: [{"type": "string_", "string_": "KEF Speaker"}],
            PATH_SYSTEM_DEVICE_NAME: [{"type": "string_", "string_": "kef-lsx2"}],
        }
        self.web_pages: dict[str, RawResponse] = {"/": RawResponse(200, {}, WEB_PAGE_TITLE)}
        self.errors: dict[str, Exception] = {}
        self.offline_error: Exception | None = None
        self.control_response: Any = None
        self.controls: list[str] = []
        self.calls: list[tuple[str, str, Any]] = []

    # -- helpers --------------------------------------------------------

    def set_source(self, source: str) -> None:
        self.values[PATH_PHYSICAL_SOURCE] = [{"type": "kefPhysicalSource", "kefPhysicalSource": source}]

    def set_volume(self, volume: int) -> None:
        self.values[PATH_VOLUME] = [{"type": "i32_", "i32_": volume}]

    def set_player_data(self, payload: Any) -> None:
        self.values[PATH_PLAYER_DATA] = copy.deepcopy(payload)

    def go_offline(self, error: Exception) -> None:
        self.offline_error = error

    def go_online(self) -> None:
        self.offline_error = None

    def set_calls(self) -> list[tuple[str, str, Any]]:
        return [call for call in self.calls if call[0] == "/api/setData"]

    def get_calls(self, path: str | None = None) -> list[tuple[str, str, Any]]:
        return [call for call in self.calls if call[0] == "/api/getData" and (path is None or call[1] == path)]

    # -- transport ------------------------------------------------------

    async def fetch(self, endpoint: str, method: str = "GET", **kwargs: Any) -> RawResponse:
        parts = urlsplit(endpoint)
        if parts.path not in ("/api/getData", "/api/setData"):
            self.calls.append((parts.path, "", None))
            if self.offline_error is not None:
                raise self.offline_error
            if parts.path in self.errors:
                raise self.errors[parts.path]
            return self.web_pages.get(parts.path, RawResponse(404, {}, ""))

        query = parse_qs(parts.query)
        path = query["path"][0]
        value = json.loads(query["value"][0]) if "value" in query else None
        self.calls.append((parts.path, path, value))

        if self.offline_error is not None:
            raise self.offline_error
        if path in self.errors:
            raise self.errors[path]

        if parts.path == "/api/getData":
            result = copy.deepcopy(self.values.get(path))
        elif path == PATH_PLAYER_CONTROL:
            self.controls.append(value["control"])
            result = self.control_response
        else:
            value_type = value["type"]
            self.values[path] = [{"type": value_type, value_type: value[value_type]}]
            result = None
        return RawResponse(200, {"content-type": "application/json"}, "" if result is None else json.dumps(result))


def wire_client(client: KEFSpeakerClient, device: FakeKEFDevice) -> KEFSpeakerClient:
    """Route *client*'s transport to *device*."""
    client._fetch = device.fetch  # type: ignore[method-assign]
    return client


# ============================================================================
# Core Mock Fixtures
# ============================================================================


@pytest.fixture(name="fake_device")
def fake_device_fixture() -> FakeKEFDevice:
    """A reachable LSX II playing over WiFi."""
    return FakeKEFDevice()


@pytest.fixture(name="kef_client")
def kef_client_fixture(fake_device) -> KEFSpeakerClient:
    """Real speaker client talking to the fake device."""
    return wire_client(KEFSpeakerClient(MOCK_HOST, session=MagicMock()), fake_device)


@pytest.fixture(name="mock_kef_client")
def mock_kef_client_fixture():
    """Fully mocked speaker client for config flow tests."""
    from custom_components.kef.models import SpeakerInfo

    client = MagicMock()
    client.host = MOCK_HOST
    client.port = 80
    client.test_connection = AsyncMock(return_value=True)
    client.get_speaker_info = AsyncMock(
        return_value=SpeakerInfo(
            ip=MOCK_HOST,
            name=MOCK_NAME,
            model="LSX II",
            firmware=MOCK_FIRMWARE,
            serial_number=MOCK_SERIAL,
        )
    )
    client.close = AsyncMock()
    return client


@pytest.fixture(name="mock_config_entry")
def mock_config_entry_fixture(hass) -> MockConfigEntry:
    """Config entry for an LSX II, already added to hass."""
    entry = MockConfigEntry(
        domain=DOMAIN,
        title=MOCK_NAME,
        data=dict(MOCK_CONFIG_DATA_WITH_METADATA),
        unique_id=MOCK_SERIAL,
    )
    entry.add_to_hass(hass)
    return entry


@pytest.fixture(name="patch_client_factory")
def patch_client_factory_fixture(fake_device):
    """Make every coordinator-created client talk to the fake device."""
    created: list[KEFSpeakerClient] = []

    def _create_client(self, host: str, port: int) -> KEFSpeakerClient:
        client = wire_client(KEFSpeakerClient(host, port=port, session=MagicMock()), fake_device)
        created.append(client)
        return client

    with patch("custom_components.kef.coordinator.KEFCoordinator._create_client", _create_client):
        yield created


@pytest.fixture(name="setup_integration")
async def setup_integration_fixture(hass, mock_config_entry, patch_client_factory):
    """Set up the KEF integration against the fake device."""
    assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()
    yield mock_config_entry
    await hass.config_entries.async_unload(mock_config_entry.entry_id)
    await hass.async_block_till_done()
