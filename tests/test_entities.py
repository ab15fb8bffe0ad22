"""Tests for entity defaults, restoration and user input validation.

Tests cover:
- Number entities default to the loadpoint defaults and sync with the coordinator
- Number entities restore their last value after a restart
- Switch defaults to on and restores "off" after a restart
- Inverted windows entered by the user are rejected
- Charge status sensor exposes the A/B/C options
"""

import pytest

from homeassistant.core import HomeAssistant, State
from homeassistant.exceptions import ServiceValidationError
from homeassistant.helpers import entity_registry as er

from pytest_homeassistant_custom_component.common import (
    MockConfigEntry,
    mock_restore_cache,
    mock_restore_cache_with_extra_data,
)

from custom_components.eebus_lp.const import DOMAIN
from conftest import get_coordinator, get_entity_id, setup_integration

MIN_NUMBER = "number.garage_lp_min"
MAX_NUMBER = "number.garage_lp_max"
ENABLE_SWITCH = "switch.garage_lp_enabled"


def _preregister(hass: HomeAssistant, entry: MockConfigEntry) -> None:
    """Pin entity ids so restore-cache entries line up with the entities."""
    ent_reg = er.async_get(hass)
    for platform, suffix, object_id in (
        ("number", "loadpoint_min_current", "garage_lp_min"),
        ("number", "loadpoint_max_current", "garage_lp_max"),
        ("switch", "enabled", "garage_lp_enabled"),
    ):
        ent_reg.async_get_or_create(
            platform,
            DOMAIN,
            f"{entry.entry_id}_{suffix}",
            suggested_object_id=object_id,
        )


def _number_extra(value: float) -> dict:
    return {
        "native_value": value,
        "native_min_value": 0.0,
        "native_max_value": 80.0,
        "native_step": 0.1,
        "native_unit_of_measurement": "A",
    }


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    """Entities start from the loadpoint defaults on a fresh install."""

    async def test_number_defaults_sync_to_coordinator(
        self, hass: HomeAssistant, mock_config_entry: MockConfigEntry
    ) -> None:
        await setup_integration(hass, mock_config_entry)
        coordinator = get_coordinator(hass, mock_config_entry)

        min_id = get_entity_id(hass, mock_config_entry, "number", "loadpoint_min_current")
        max_id = get_entity_id(hass, mock_config_entry, "number", "loadpoint_max_current")
        assert float(hass.states.get(min_id).state) == 6.0
        assert float(hass.states.get(max_id).state) == 16.0
        assert coordinator.loadpoint_min_current == 6.0
        assert coordinator.loadpoint_max_current == 16.0

    async def test_switch_defaults_to_on(
        self, hass: HomeAssistant, mock_config_entry: MockConfigEntry
    ) -> None:
        await setup_integration(hass, mock_config_entry)

        switch_id = get_entity_id(hass, mock_config_entry, "switch", "enabled")
        assert hass.states.get(switch_id).state == "on"
        assert get_coordinator(hass, mock_config_entry).enabled is True

    async def test_charge_status_options(
        self, hass: HomeAssistant, mock_config_entry: MockConfigEntry
    ) -> None:
        await setup_integration(hass, mock_config_entry)

        status_id = get_entity_id(hass, mock_config_entry, "sensor", "charge_status")
        assert hass.states.get(status_id).attributes["options"] == ["A", "B", "C"]


# ---------------------------------------------------------------------------
# Restoration
# ---------------------------------------------------------------------------


class TestRestore:
    """Entities resume their last known values after a Home Assistant restart."""

    async def test_numbers_restore_window(
        self, hass: HomeAssistant, mock_config_entry: MockConfigEntry
    ) -> None:
        _preregister(hass, mock_config_entry)
        mock_restore_cache_with_extra_data(
            hass,
            [
                (State(MIN_NUMBER, "8.0"), _number_extra(8.0)),
                (State(MAX_NUMBER, "10.0"), _number_extra(10.0)),
            ],
        )

        await setup_integration(hass, mock_config_entry)

        coordinator = get_coordinator(hass, mock_config_entry)
        assert coordinator.loadpoint_min_current == 8.0
        assert coordinator.loadpoint_max_current == 10.0
        assert float(hass.states.get(MIN_NUMBER).state) == 8.0

    async def test_switch_restores_off(
        self, hass: HomeAssistant, mock_config_entry: MockConfigEntry
    ) -> None:
        _preregister(hass, mock_config_entry)
        mock_restore_cache(hass, [State(ENABLE_SWITCH, "off")])

        await setup_integration(hass, mock_config_entry)

        assert hass.states.get(ENABLE_SWITCH).state == "off"
        assert get_coordinator(hass, mock_config_entry).enabled is False


# ---------------------------------------------------------------------------
# User input validation
# ---------------------------------------------------------------------------


class TestNumberValidation:
    """The user cannot enter a window whose minimum exceeds its maximum."""

    async def test_min_above_max_rejected(
        self, hass: HomeAssistant, mock_config_entry: MockConfigEntry
    ) -> None:
        await setup_integration(hass, mock_config_entry)
        min_id = get_entity_id(hass, mock_config_entry, "number", "loadpoint_min_current")

        with pytest.raises(ServiceValidationError):
            await hass.services.async_call(
                "number", "set_value", {"entity_id": min_id, "value": 20}, blocking=True
            )
        assert get_coordinator(hass, mock_config_entry).loadpoint_min_current == 6.0

    async def test_max_below_min_rejected(
        self, hass: HomeAssistant, mock_config_entry: MockConfigEntry
    ) -> None:
        await setup_integration(hass, mock_config_entry)
        max_id = get_entity_id(hass, mock_config_entry, "number", "loadpoint_max_current")

        with pytest.raises(ServiceValidationError):
            await hass.services.async_call(
                "number", "set_value", {"entity_id": max_id, "value": 4}, blocking=True
            )
        assert get_coordinator(hass, mock_config_entry).loadpoint_max_current == 16.0
