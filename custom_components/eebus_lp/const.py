"""Constants for the EEBus Loadpoint Limits integration."""

from __future__ import annotations

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import Platform
from homeassistant.helpers.device_registry import DeviceInfo

DOMAIN = "eebus_lp"

# Platforms to set up
PLATFORMS: list[Platform] = [
    Platform.BINARY_SENSOR,
    Platform.NUMBER,
    Platform.SENSOR,
    Platform.SWITCH,
]

# Config keys (used in config_flow and config entry data)
CONF_NAME = "name"
CONF_PHASE_CURRENT_ENTITIES = "phase_current_entities"
CONF_MIN_LIMIT_ENTITIES = "min_limit_entities"
CONF_MAX_LIMIT_ENTITIES = "max_limit_entities"
CONF_PAUSE_LIMIT_ENTITIES = "pause_limit_entities"
CONF_VEHICLE_ENTITY = "vehicle_entity"
CONF_VOLTAGE = "voltage"
CONF_POLL_INTERVAL = "poll_interval"

# Action config keys (script entity IDs for loadpoint / vehicle writes)
CONF_ACTION_APPLY_LIMITS = "action_apply_limits"
CONF_ACTION_WRITE_CURRENT = "action_write_current"

# Attributes of the identified-vehicle entity carrying its charge profile
ATTR_VEHICLE_MIN_CURRENT = "min_current"
ATTR_VEHICLE_MAX_CURRENT = "max_current"

# Vehicle entity states that mean "no vehicle identified"
NO_VEHICLE_STATES = ("", "none", "unavailable", "unknown")

# Services
SERVICE_RECONCILE = "reconcile"
SERVICE_SET_CURRENT = "set_current"
ATTR_ENTRY_ID = "entry_id"
ATTR_CURRENT = "current"

# Events fired on the HA event bus
EVENT_LIMIT_ADJUSTED = f"{DOMAIN}_limit_adjusted"
EVENT_SOURCE_UNAVAILABLE = f"{DOMAIN}_source_unavailable"
EVENT_ACTION_FAILED = f"{DOMAIN}_action_failed"

# Persistent notification IDs, format with entry_id
NOTIFICATION_SOURCE_UNAVAILABLE_FMT = f"{DOMAIN}_source_unavailable_{{entry_id}}"
NOTIFICATION_ACTION_FAILED_FMT = f"{DOMAIN}_action_failed_{{entry_id}}"

# Reasons recorded in last_action_reason
REASON_POLL = "poll"
REASON_SOURCE_UPDATE = "source_update"
REASON_PARAMETER_CHANGE = "parameter_change"
REASON_SERVICE_CALL = "service_call"
REASON_STARTUP = "startup"

# Loadpoint bounds
BOUND_MIN = "min"
BOUND_MAX = "max"

# Default values
DEFAULT_NAME = "EEBus Loadpoint"
DEFAULT_VOLTAGE = 230.0
DEFAULT_POLL_INTERVAL = 10  # Seconds
DEFAULT_LOADPOINT_MIN_CURRENT = 6.0
DEFAULT_LOADPOINT_MAX_CURRENT = 16.0

# Dispatcher signal template, format with entry_id
SIGNAL_UPDATE_FMT = f"{DOMAIN}_update_{{entry_id}}"

# Validation limits
VALID_PHASE_COUNTS = (1, 3)
MIN_VOLTAGE = 100.0
MAX_VOLTAGE = 480.0
MIN_POLL_INTERVAL = 1
MAX_POLL_INTERVAL = 300
MIN_LOADPOINT_CURRENT = 0.0
MAX_LOADPOINT_CURRENT = 80.0


def get_device_info(entry: ConfigEntry) -> DeviceInfo:
    """Return shared DeviceInfo for all entities in a config entry."""
    return DeviceInfo(
        identifiers={(DOMAIN, entry.entry_id)},
        name=entry.title,
        manufacturer="eebus_lp",
        model="EEBus Loadpoint Adapter",
        entry_type=None,
    )
