"""Unit tests for KEFCoordinator - connection lifecycle, polling and commands."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from homeassistant.helpers.update_coordinator import UpdateFailed
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.kef.api_base import (
    KEFConnectionError,
    KEFDeviceOfflineError,
    KEFTimeoutError,
    KEFValidationError,
)
from custom_components.kef.const import (
    CONF_LAST_CONNECTED,
    CONF_MODEL_ID,
    CONF_POLLING_INTERVAL,
    CONF_SERIAL_NUMBER,
    CONF_SPEAKER_NAME,
    DOMAIN,
    PATH_PHYSICAL_SOURCE,
)
from custom_components.kef.coordinator import AvailabilityState, KEFCoordinator, resolve_settings
from custom_components.kef.coordinator_polling import DATA_PLAYBACK, DATA_SNAPSHOT
from custom_components.kef.speaker_models import ModelId
from tests.const import MOCK_ALBUM_ART, MOCK_CONFIG_DATA, MOCK_HOST, MOCK_SERIAL, PLAYER_DATA_PAUSED


@pytest.fixture
def coordinator(hass, mock_config_entry, patch_client_factory) -> KEFCoordinator:
    """Coordinator for an LSX II wired to the fake speaker."""
    return KEFCoordinator(hass, mock_config_entry)


def _coordinator_for(hass, model_id: str) -> KEFCoordinator:
    entry = MockConfigEntry(domain=DOMAIN, data={**MOCK_CONFIG_DATA, CONF_MODEL_ID: model_id})
    entry.add_to_hass(hass)
    return KEFCoordinator(hass, entry)


class TestSettings:
    async def test_options_override_data(self, hass):
        entry = MockConfigEntry(
            domain=DOMAIN,
            data=dict(MOCK_CONFIG_DATA),
            options={"host": " 10.0.0.9 ", CONF_POLLING_INTERVAL: 12},
        )
        assert resolve_settings(entry) == ("10.0.0.9", 80, 12)

    async def test_defaults(self, hass):
        entry = MockConfigEntry(domain=DOMAIN, data={"host": MOCK_HOST})
        assert resolve_settings(entry) == (MOCK_HOST, 80, 5)

    async def test_initial_state(self, coordinator):
        assert coordinator.state is AvailabilityState.UNINITIALIZED
        assert coordinator.model_id is ModelId.LSX2
        assert coordinator.has_dsp is True
        assert coordinator.available is False
        assert coordinator.values == {}

    async def test_unknown_model_id_uses_auto_detect(self, hass, patch_client_factory):
        coordinator = _coordinator_for(hass, "kef-muo")
        assert coordinator.model_id is ModelId.AUTO_DETECT
        assert coordinator.has_dsp is False


class TestConnect:
    """CONNECTING transition."""

    @pytest.mark.asyncio
    async def test_connect_success(self, coordinator, mock_config_entry):
        assert await coordinator.async_connect() is True

        assert coordinator.state is AvailabilityState.AVAILABLE
        assert coordinator.update_interval == timedelta(seconds=5)
        assert coordinator.speaker_info.name == "Living Room"

        values = coordinator.values
        assert values["onoff"] is True
        assert values["source_input"] == "wifi"
        assert values["volume_set"] == 30
        assert values["volume_mute"] is False
        assert values["speaker_playing"] is True
        assert values["speaker_track"] == "Teardrop"
        assert values["bass_extension"] == "standard"
        assert values["subwoofer_gain"] == -2
        assert coordinator.album_art_url == MOCK_ALBUM_ART

        assert mock_config_entry.data[CONF_SERIAL_NUMBER] == MOCK_SERIAL
        assert mock_config_entry.data[CONF_SPEAKER_NAME] == "Living Room"
        assert mock_config_entry.data[CONF_LAST_CONNECTED] != "2026-01-01T00:00:00+00:00"

    @pytest.mark.asyncio
    async def test_connect_failure(self, coordinator, fake_device, caplog):
        fake_device.go_offline(KEFConnectionError("refused"))

        assert await coordinator.async_connect() is False

        assert coordinator.state is AvailabilityState.UNAVAILABLE
        assert coordinator.available is False
        assert coordinator.last_update_success is False
        assert coordinator.update_interval == timedelta(seconds=30)
        assert coordinator.speaker_info is None
        assert "Cannot connect to speaker" in caplog.text

    @pytest.mark.asyncio
    async def test_connect_skip_metadata(self, coordinator, mock_config_entry):
        before = dict(mock_config_entry.data)
        assert await coordinator.async_connect(skip_metadata=True) is True
        assert dict(mock_config_entry.data) == before


class TestPolling:
    """Availability rules across poll cycles."""

    @pytest.mark.asyncio
    async def test_failures_below_threshold_keep_data(self, coordinator, fake_device):
        await coordinator.async_connect()
        previous = coordinator.data
        fake_device.go_offline(KEFTimeoutError("timeout"))

        for _ in range(2):
            assert await coordinator._async_update_data() is previous
            assert coordinator.available is True
            assert coordinator.update_interval == timedelta(seconds=5)

    @pytest.mark.asyncio
    async def test_third_failure_goes_unavailable_then_recovers(self, coordinator, fake_device):
        await coordinator.async_connect()
        fake_device.go_offline(KEFTimeoutError("timeout"))

        await coordinator._async_update_data()
        await coordinator._async_update_data()
        with pytest.raises(UpdateFailed, match="not responding") as exc_info:
            await coordinator._async_update_data()

        assert isinstance(exc_info.value.__cause__, KEFDeviceOfflineError)
        assert coordinator.state is AvailabilityState.UNAVAILABLE
        assert coordinator.update_interval == timedelta(seconds=30)

        # Still failing: stays unavailable
        with pytest.raises(UpdateFailed):
            await coordinator._async_update_data()

        fake_device.go_online()
        data = await coordinator._async_update_data()

        assert coordinator.state is AvailabilityState.AVAILABLE
        assert coordinator.update_interval == timedelta(seconds=5)
        assert data["values"]["volume_set"] == 30

    @pytest.mark.asyncio
    async def test_poll_without_connection_fails(self, coordinator, fake_device):
        fake_device.go_offline(KEFConnectionError("refused"))
        await coordinator.async_connect()
        with pytest.raises(UpdateFailed):
            await coordinator._async_update_data()

    @pytest.mark.asyncio
    async def test_recovery_after_failed_connect(self, coordinator, fake_device):
        fake_device.go_offline(KEFConnectionError("refused"))
        await coordinator.async_connect()
        fake_device.go_online()

        data = await coordinator._async_update_data()

        assert coordinator.available is True
        assert data["values"]["onoff"] is True

    @pytest.mark.asyncio
    async def test_poll_refreshes_snapshot_and_playback(self, coordinator, fake_device):
        await coordinator.async_connect()
        fake_device.set_volume(55)
        fake_device.set_source("bluetooth")

        data = await coordinator._async_update_data()

        assert data[DATA_SNAPSHOT].volume == 55
        assert data[DATA_PLAYBACK].title == "Teardrop"
        assert data["values"]["source_input"] == "bluetooth"

    @pytest.mark.asyncio
    async def test_standby(self, coordinator, fake_device):
        await coordinator.async_connect()
        fake_device.set_source("standby")

        data = await coordinator._async_update_data()

        assert data["values"]["onoff"] is False
        # Last known source and volume are kept
        assert data["values"]["source_input"] == "wifi"
        assert data["values"]["volume_set"] == 30

    @pytest.mark.asyncio
    async def test_unsupported_reported_source_ignored(self, hass, fake_device, patch_client_factory):
        coordinator = _coordinator_for(hass, "kef-xio")
        fake_device.set_source("usb")

        await coordinator.async_connect(skip_metadata=True)

        assert "source_input" not in coordinator.values
        assert "bass_extension" not in coordinator.values

    @pytest.mark.asyncio
    async def test_stale_probe_is_discarded(self, coordinator, fake_device):
        await coordinator.async_connect()
        previous = coordinator.data
        fake_device.set_volume(80)

        async def _probe_then_swap():
            coordinator.generation += 1
            return True

        coordinator.client.test_connection = _probe_then_swap
        assert await coordinator._async_update_data() is previous
        assert coordinator.values["volume_set"] == 30

    @pytest.mark.asyncio
    async def test_stale_refresh_is_discarded(self, coordinator, fake_device):
        await coordinator.async_connect()
        previous = coordinator.data
        client = coordinator.client
        original = client.get_all_settings

        async def _read_then_swap(include_dsp=False):
            snapshot = await original(include_dsp=include_dsp)
            coordinator.generation += 1
            return snapshot

        client.get_all_settings = _read_then_swap
        fake_device.set_volume(80)

        assert await coordinator._async_update_data() is previous


class TestAlbumArt:
    @pytest.mark.asyncio
    async def test_cleared_once_when_leaving_streaming_source(self, coordinator, fake_device):
        await coordinator.async_connect()
        assert coordinator.album_art_version == 1

        # Same URL does not bump the version
        await coordinator._async_update_data()
        assert coordinator.album_art_version == 1

        fake_device.set_source("optical")
        data = await coordinator._async_update_data()
        assert coordinator.album_art_url is None
        assert data["album_art_url"] is None
        assert coordinator.album_art_version == 2

        await coordinator._async_update_data()
        assert coordinator.album_art_version == 2

    @pytest.mark.asyncio
    async def test_new_track_bumps_version(self, coordinator, fake_device):
        await coordinator.async_connect()
        fake_device.values["player:player/data"][0]["trackRoles"]["icon"] = f"http://{MOCK_HOST}/albumart/cover-2.jpg"

        await coordinator._async_update_data()

        assert coordinator.album_art_url.endswith("cover-2.jpg")
        assert coordinator.album_art_version == 2


class TestCommands:
    """Command methods and optimistic value updates."""

    @pytest.mark.asyncio
    async def test_select_unsupported_source_sends_nothing(self, hass, fake_device, patch_client_factory):
        coordinator = _coordinator_for(hass, "kef-xio")

        with pytest.raises(KEFValidationError):
            await coordinator.async_select_source("usb")

        assert fake_device.calls == []

    @pytest.mark.asyncio
    async def test_select_tv_end_to_end(self, coordinator, fake_device):
        await coordinator.async_select_source("TV")

        assert fake_device.set_calls() == [
            ("/api/setData", PATH_PHYSICAL_SOURCE, {"type": "kefPhysicalSource", "kefPhysicalSource": "tv"})
        ]
        assert coordinator.values["source_input"] == "tv"
        assert coordinator.values["onoff"] is True
        assert await coordinator.client.get_source() == "tv"

    @pytest.mark.asyncio
    async def test_power_off(self, coordinator, fake_device):
        await coordinator.async_set_power(False)
        assert coordinator.values["onoff"] is False
        assert await coordinator.client.get_source() == "standby"

    @pytest.mark.asyncio
    async def test_volume(self, coordinator):
        await coordinator.async_set_volume(120)
        assert coordinator.values["volume_set"] == 100
        assert coordinator.values["volume_mute"] is False

        await coordinator.async_volume_step(up=False)
        assert coordinator.values["volume_set"] == 95

    @pytest.mark.asyncio
    async def test_mute(self, coordinator, fake_device):
        fake_device.set_volume(40)

        await coordinator.async_set_muted(True)
        assert coordinator.values["volume_mute"] is True
        assert coordinator.values["volume_set"] == 0

        await coordinator.async_set_muted(False)
        assert coordinator.values["volume_mute"] is False
        assert coordinator.values["volume_set"] == 40

    @pytest.mark.asyncio
    async def test_play_pause(self, coordinator, fake_device):
        await coordinator.async_pause()
        assert coordinator.values["speaker_playing"] is False
        assert fake_device.controls == ["pause"]

    @pytest.mark.asyncio
    async def test_play_without_control_reads_state_back(self, coordinator, fake_device):
        fake_device.set_player_data([{"state": "buffering"}])

        await coordinator.async_play()

        assert fake_device.controls == []
        assert coordinator.values["speaker_playing"] is False

    @pytest.mark.asyncio
    async def test_play_from_paused_is_applied(self, coordinator, fake_device):
        fake_device.set_player_data(PLAYER_DATA_PAUSED)

        await coordinator.async_play()

        assert fake_device.controls == ["pause"]
        assert coordinator.values["speaker_playing"] is True

    @pytest.mark.asyncio
    async def test_repeat_shuffle(self, coordinator, fake_device):
        await coordinator.async_set_repeat("track")
        await coordinator.async_set_shuffle("all")
        assert coordinator.values["speaker_repeat"] == "track"
        assert coordinator.values["speaker_shuffle"] is True
        assert fake_device.calls == []

    @pytest.mark.asyncio
    async def test_dsp_commands(self, coordinator):
        await coordinator.async_set_bass_extension("Less")
        await coordinator.async_set_desk_mode(True)
        await coordinator.async_set_wall_mode(True)
        await coordinator.async_set_balance(7.2)

        values = coordinator.values
        assert values["bass_extension"] == "less"
        assert values["desk_mode"] is True
        assert values["wall_mode"] is True
        assert values["speaker_balance"] == 7

        dsp = await coordinator.client.get_dsp_settings()
        assert (dsp.bass_extension, dsp.desk_mode, dsp.wall_mode, dsp.balance) == ("less", True, True, 7)


class TestApplySettings:
    """In-place endpoint / cadence changes."""

    @pytest.mark.asyncio
    async def test_endpoint_change_swaps_client(self, coordinator, patch_client_factory, mock_config_entry):
        await coordinator.async_connect()
        old_client = coordinator.client
        old_client.shadow.muted = True
        before = dict(mock_config_entry.data)

        await coordinator.async_apply_settings("10.0.0.6", 8080, 5)

        assert coordinator.client is not old_client
        assert coordinator.client.host == "10.0.0.6"
        assert coordinator.client.port == 8080
        assert coordinator.client.shadow.muted is False
        assert coordinator.generation == 1
        assert len(patch_client_factory) == 2
        assert coordinator.available is True
        # Reconnects do not rewrite entry metadata
        assert dict(mock_config_entry.data) == before

    @pytest.mark.asyncio
    async def test_endpoint_change_to_unreachable_host(self, coordinator, fake_device):
        await coordinator.async_connect()
        fake_device.go_offline(KEFConnectionError("no route"))

        await coordinator.async_apply_settings("10.0.0.99", 80, 5)

        assert coordinator.state is AvailabilityState.UNAVAILABLE
        assert coordinator.update_interval == timedelta(seconds=30)

    @pytest.mark.asyncio
    async def test_interval_only_change(self, coordinator, patch_client_factory):
        await coordinator.async_connect()
        client = coordinator.client

        await coordinator.async_apply_settings(MOCK_HOST, 80, 20)

        assert coordinator.client is client
        assert coordinator.generation == 0
        assert coordinator.polling_interval == 20
        assert coordinator.update_interval == timedelta(seconds=20)


@pytest.mark.asyncio
async def test_shutdown(coordinator):
    coordinator.client.close = AsyncMock()

    await coordinator.async_shutdown()

    assert coordinator.state is AvailabilityState.STOPPED
    assert coordinator.generation == 1
    coordinator.client.close.assert_awaited_once()
