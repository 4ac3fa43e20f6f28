"""Unit tests for KEF Config Flow - pairing, duplicate handling and options."""

from unittest.mock import MagicMock, patch

import pytest
from homeassistant import config_entries
from homeassistant.config_entries import ConfigEntry
from homeassistant.data_entry_flow import FlowResultType
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.kef.config_flow import KEFOptionsFlow
from custom_components.kef.const import (
    CONF_FIRMWARE_VERSION,
    CONF_HOST,
    CONF_MODEL_ID,
    CONF_POLLING_INTERVAL,
    CONF_PORT,
    CONF_SERIAL_NUMBER,
    CONF_SPEAKER_MODEL,
    CONF_SPEAKER_NAME,
    DOMAIN,
)
from custom_components.kef.models import SpeakerInfo
from tests.const import MOCK_CONFIG_DATA, MOCK_FIRMWARE, MOCK_HOST, MOCK_NAME, MOCK_SERIAL


@pytest.fixture
def patch_flow_client(mock_kef_client):
    with (
        patch("custom_components.kef.config_flow.KEFSpeakerClient", return_value=mock_kef_client),
        patch("custom_components.kef.async_setup_entry", return_value=True),
    ):
        yield mock_kef_client


class TestUserFlow:
    """Manual pairing."""

    @pytest.mark.asyncio
    async def test_full_flow(self, hass, patch_flow_client):
        result = await hass.config_entries.flow.async_init(DOMAIN, context={"source": config_entries.SOURCE_USER})
        assert result["type"] == FlowResultType.FORM
        assert result["step_id"] == "user"

        result = await hass.config_entries.flow.async_configure(result["flow_id"], {CONF_HOST: f" {MOCK_HOST} "})
        assert result["type"] == FlowResultType.FORM
        assert result["step_id"] == "model"
        # Model suggested from the reported model name
        assert result["data_schema"]({})[CONF_MODEL_ID] == "kef-lsx2"

        result = await hass.config_entries.flow.async_configure(result["flow_id"], {CONF_MODEL_ID: "kef-lsx2"})
        await hass.async_block_till_done()

        assert result["type"] == FlowResultType.CREATE_ENTRY
        assert result["title"] == MOCK_NAME
        data = result["data"]
        assert data[CONF_HOST] == MOCK_HOST
        assert data[CONF_PORT] == 80
        assert data[CONF_MODEL_ID] == "kef-lsx2"
        assert data[CONF_SPEAKER_NAME] == MOCK_NAME
        assert data[CONF_SPEAKER_MODEL] == "LSX II"
        assert data[CONF_SERIAL_NUMBER] == MOCK_SERIAL
        assert data[CONF_FIRMWARE_VERSION] == MOCK_FIRMWARE
        assert result["result"].unique_id == MOCK_SERIAL

    @pytest.mark.asyncio
    async def test_user_may_override_suggestion(self, hass, patch_flow_client):
        result = await hass.config_entries.flow.async_init(DOMAIN, context={"source": config_entries.SOURCE_USER})
        result = await hass.config_entries.flow.async_configure(result["flow_id"], {CONF_HOST: MOCK_HOST})
        result = await hass.config_entries.flow.async_configure(result["flow_id"], {CONF_MODEL_ID: "kef-lsx"})
        await hass.async_block_till_done()

        assert result["data"][CONF_MODEL_ID] == "kef-lsx"

    @pytest.mark.asyncio
    async def test_cannot_connect(self, hass, patch_flow_client):
        patch_flow_client.test_connection.return_value = False

        result = await hass.config_entries.flow.async_init(DOMAIN, context={"source": config_entries.SOURCE_USER})
        result = await hass.config_entries.flow.async_configure(result["flow_id"], {CONF_HOST: MOCK_HOST})

        assert result["type"] == FlowResultType.FORM
        assert result["step_id"] == "user"
        assert result["errors"] == {"base": "cannot_connect"}
        patch_flow_client.get_speaker_info.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_model_suggests_auto_detect(self, hass, patch_flow_client):
        patch_flow_client.get_speaker_info.return_value = SpeakerInfo(ip=MOCK_HOST, model="Unknown")

        result = await hass.config_entries.flow.async_init(DOMAIN, context={"source": config_entries.SOURCE_USER})
        result = await hass.config_entries.flow.async_configure(result["flow_id"], {CONF_HOST: MOCK_HOST})

        assert result["data_schema"]({})[CONF_MODEL_ID] == "auto-detect"

    @pytest.mark.asyncio
    async def test_without_serial_host_is_unique_id(self, hass, patch_flow_client):
        patch_flow_client.get_speaker_info.return_value = SpeakerInfo(ip=MOCK_HOST, model="XIO")

        result = await hass.config_entries.flow.async_init(DOMAIN, context={"source": config_entries.SOURCE_USER})
        result = await hass.config_entries.flow.async_configure(result["flow_id"], {CONF_HOST: MOCK_HOST})
        result = await hass.config_entries.flow.async_configure(result["flow_id"], {CONF_MODEL_ID: "kef-xio"})
        await hass.async_block_till_done()

        assert result["result"].unique_id == MOCK_HOST
        assert result["data"][CONF_SERIAL_NUMBER] == "Unknown"


class TestDuplicates:
    @pytest.mark.asyncio
    async def test_same_host_aborts(self, hass, patch_flow_client):
        MockConfigEntry(domain=DOMAIN, data=dict(MOCK_CONFIG_DATA), unique_id="other").add_to_hass(hass)

        result = await hass.config_entries.flow.async_init(DOMAIN, context={"source": config_entries.SOURCE_USER})
        result = await hass.config_entries.flow.async_configure(result["flow_id"], {CONF_HOST: MOCK_HOST})

        assert result["type"] == FlowResultType.ABORT
        assert result["reason"] == "already_configured"
        patch_flow_client.test_connection.assert_not_called()

    @pytest.mark.asyncio
    async def test_same_serial_aborts(self, hass, patch_flow_client):
        MockConfigEntry(
            domain=DOMAIN,
            data={**MOCK_CONFIG_DATA, CONF_HOST: "10.0.0.77"},
            unique_id=MOCK_SERIAL,
        ).add_to_hass(hass)

        result = await hass.config_entries.flow.async_init(DOMAIN, context={"source": config_entries.SOURCE_USER})
        result = await hass.config_entries.flow.async_configure(result["flow_id"], {CONF_HOST: MOCK_HOST})

        assert result["type"] == FlowResultType.ABORT
        assert result["reason"] == "already_configured"


@pytest.fixture
def mock_options_entry():
    """Create a mock config entry."""
    entry = MagicMock(spec=ConfigEntry)
    entry.entry_id = "test_entry_id"
    entry.unique_id = MOCK_SERIAL
    entry.data = dict(MOCK_CONFIG_DATA)
    entry.options = {}
    return entry


@pytest.fixture
def options_flow(mock_options_entry):
    """Create a KEFOptionsFlow instance."""
    return KEFOptionsFlow(mock_options_entry)


class TestKEFOptionsFlow:
    """Test options flow functionality."""

    @pytest.mark.asyncio
    async def test_form_defaults(self, options_flow):
        result = await options_flow.async_step_init()

        assert result["type"] == FlowResultType.FORM
        assert result["step_id"] == "init"
        assert result["data_schema"]({}) == {CONF_HOST: MOCK_HOST, CONF_PORT: 80, CONF_POLLING_INTERVAL: 5}

    @pytest.mark.asyncio
    async def test_form_prefers_current_options(self, options_flow, mock_options_entry):
        mock_options_entry.options = {CONF_HOST: "10.0.0.9", CONF_POLLING_INTERVAL: 30}

        result = await options_flow.async_step_init()

        assert result["data_schema"]({})[CONF_HOST] == "10.0.0.9"
        assert result["data_schema"]({})[CONF_POLLING_INTERVAL] == 30

    @pytest.mark.asyncio
    async def test_saves_settings(self, options_flow):
        result = await options_flow.async_step_init({CONF_HOST: " 10.0.0.9 ", CONF_PORT: 8080, CONF_POLLING_INTERVAL: 10})

        assert result["type"] == FlowResultType.CREATE_ENTRY
        assert result["data"] == {CONF_HOST: "10.0.0.9", CONF_PORT: 8080, CONF_POLLING_INTERVAL: 10}

    @pytest.mark.asyncio
    async def test_polling_interval_bounds(self, options_flow):
        import voluptuous as vol

        result = await options_flow.async_step_init()
        schema = result["data_schema"]
        with pytest.raises(vol.Invalid):
            schema({CONF_HOST: MOCK_HOST, CONF_PORT: 80, CONF_POLLING_INTERVAL: 0})
        with pytest.raises(vol.Invalid):
            schema({CONF_HOST: MOCK_HOST, CONF_PORT: 80, CONF_POLLING_INTERVAL: 301})


@pytest.mark.asyncio
async def test_flow_client_uses_port(hass, patch_flow_client):
    with patch("custom_components.kef.config_flow.KEFSpeakerClient", return_value=patch_flow_client) as factory:
        result = await hass.config_entries.flow.async_init(DOMAIN, context={"source": config_entries.SOURCE_USER})
        await hass.config_entries.flow.async_configure(result["flow_id"], {CONF_HOST: MOCK_HOST, CONF_PORT: 8080})

    assert factory.call_args.args == (MOCK_HOST,)
    assert factory.call_args.kwargs["port"] == 8080
    patch_flow_client.test_connection.assert_awaited_once()
