"""pytest configuration and shared fixtures for the EEBus LP test suite.

Shared constants, helpers, and fixtures live here so test modules
that need the same integration setup can reuse them without
duplicating boilerplate.
"""

import sys
import os

import pytest
from homeassistant.config_entries import ConfigEntryState
from homeassistant.core import HomeAssistant
from homeassistant.helpers import entity_registry as er

from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.eebus_lp.const import (
    CONF_ACTION_APPLY_LIMITS,
    CONF_ACTION_WRITE_CURRENT,
    CONF_MAX_LIMIT_ENTITIES,
    CONF_MIN_LIMIT_ENTITIES,
    CONF_PHASE_CURRENT_ENTITIES,
    CONF_POLL_INTERVAL,
    CONF_VEHICLE_ENTITY,
    CONF_VOLTAGE,
    DOMAIN,
)

sys.path.insert(0, os.path.dirname(__file__))

# Patch paths for persistent-notification helpers used across multiple test modules
PN_CREATE = "custom_components.eebus_lp.coordinator.pn_async_create"
PN_DISMISS = "custom_components.eebus_lp.coordinator.pn_async_dismiss"

# -----------------------------------------------------------------------
# Shared constants
# -----------------------------------------------------------------------

PHASE_CURRENTS = ["sensor.ev_l1_current", "sensor.ev_l2_current", "sensor.ev_l3_current"]
MIN_LIMITS = ["sensor.ev_l1_min_limit", "sensor.ev_l2_min_limit", "sensor.ev_l3_min_limit"]
MAX_LIMITS = ["sensor.ev_l1_max_limit", "sensor.ev_l2_max_limit", "sensor.ev_l3_max_limit"]
VEHICLE = "sensor.ev_identified_vehicle"
APPLY_LIMITS_SCRIPT = "script.eebus_lp_apply_limits"
WRITE_CURRENT_SCRIPT = "script.eebus_lp_write_current"

_BASE_CONFIG = {
    CONF_PHASE_CURRENT_ENTITIES: PHASE_CURRENTS,
    CONF_MIN_LIMIT_ENTITIES: MIN_LIMITS,
    CONF_MAX_LIMIT_ENTITIES: MAX_LIMITS,
    CONF_VEHICLE_ENTITY: VEHICLE,
    CONF_VOLTAGE: 230.0,
    CONF_POLL_INTERVAL: 10,
}


# -----------------------------------------------------------------------
# Shared fixtures
# -----------------------------------------------------------------------


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(enable_custom_integrations):
    """Enable custom integrations in all tests."""
    yield


@pytest.fixture
def mock_config_entry() -> MockConfigEntry:
    """Create a three-phase config entry with no action scripts configured."""
    return MockConfigEntry(
        domain=DOMAIN,
        data={**_BASE_CONFIG},
        title="Garage Loadpoint",
    )


@pytest.fixture
def mock_config_entry_with_actions() -> MockConfigEntry:
    """Create a three-phase config entry with both action scripts configured."""
    return MockConfigEntry(
        domain=DOMAIN,
        data={
            **_BASE_CONFIG,
            CONF_ACTION_APPLY_LIMITS: APPLY_LIMITS_SCRIPT,
            CONF_ACTION_WRITE_CURRENT: WRITE_CURRENT_SCRIPT,
        },
        title="Garage Loadpoint",
    )


@pytest.fixture
def mock_config_entry_single_phase() -> MockConfigEntry:
    """Create a single-phase config entry without a vehicle entity."""
    return MockConfigEntry(
        domain=DOMAIN,
        data={
            CONF_PHASE_CURRENT_ENTITIES: PHASE_CURRENTS[:1],
            CONF_MIN_LIMIT_ENTITIES: MIN_LIMITS[:1],
            CONF_MAX_LIMIT_ENTITIES: MAX_LIMITS[:1],
            CONF_VOLTAGE: 230.0,
        },
        title="Carport Loadpoint",
    )


# -----------------------------------------------------------------------
# Shared helpers
# -----------------------------------------------------------------------


def set_vehicle_limits(
    hass: HomeAssistant, min_a: float | str, max_a: float | str, phases: int = 3
) -> None:
    """Publish the same min/max limit on the first *phases* limit sensors."""
    for entity_id in MIN_LIMITS[:phases]:
        hass.states.async_set(entity_id, str(min_a))
    for entity_id in MAX_LIMITS[:phases]:
        hass.states.async_set(entity_id, str(max_a))


def set_phase_currents(hass: HomeAssistant, *currents: float | str) -> None:
    """Publish measured currents, one value per phase sensor."""
    for entity_id, value in zip(PHASE_CURRENTS, currents):
        hass.states.async_set(entity_id, str(value))


async def setup_integration(
    hass: HomeAssistant,
    entry: MockConfigEntry,
    min_a: float = 6.0,
    max_a: float = 16.0,
) -> None:
    """Set up the integration with a connected, idle vehicle.

    The source sensors are pre-set before setup so the first evaluation
    reads a healthy vehicle limited to *min_a*–*max_a* on every phase.
    The default window equals the loadpoint defaults, so nothing is
    adjusted unless a test passes other limits.
    """
    phases = len(entry.data[CONF_PHASE_CURRENT_ENTITIES])
    set_vehicle_limits(hass, min_a, max_a, phases)
    set_phase_currents(hass, *([0] * phases))
    hass.states.async_set(VEHICLE, "none")
    entry.add_to_hass(hass)
    await hass.config_entries.async_setup(entry.entry_id)
    await hass.async_block_till_done()
    assert entry.state is ConfigEntryState.LOADED


def get_entity_id(
    hass: HomeAssistant, entry: MockConfigEntry, platform: str, suffix: str
) -> str:
    """Look up entity_id from the entity registry."""
    ent_reg = er.async_get(hass)
    entity_id = ent_reg.async_get_entity_id(
        platform, DOMAIN, f"{entry.entry_id}_{suffix}"
    )
    assert entity_id is not None
    return entity_id


def get_coordinator(hass: HomeAssistant, entry: MockConfigEntry):
    """Return the coordinator stored for *entry*."""
    return hass.data[DOMAIN][entry.entry_id]["coordinator"]


def collect_events(hass: HomeAssistant, event_type: str) -> list[dict]:
    """Subscribe to an HA event type and return a list of captured event data dicts.

    The returned list is populated in-place as events fire, so tests can
    assert on it after triggering the relevant state changes.
    """
    captured: list[dict] = []

    def _listener(event):
        captured.append(dict(event.data))

    hass.bus.async_listen(event_type, _listener)
    return captured
