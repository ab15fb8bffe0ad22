"""Config flow for EEBus Loadpoint Limits."""

from __future__ import annotations

from typing import Any

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.core import HomeAssistant, callback
from homeassistant.data_entry_flow import FlowResult
from homeassistant.helpers import selector

from .const import (
    CONF_ACTION_APPLY_LIMITS,
    CONF_ACTION_WRITE_CURRENT,
    CONF_MAX_LIMIT_ENTITIES,
    CONF_MIN_LIMIT_ENTITIES,
    CONF_NAME,
    CONF_PAUSE_LIMIT_ENTITIES,
    CONF_PHASE_CURRENT_ENTITIES,
    CONF_POLL_INTERVAL,
    CONF_VEHICLE_ENTITY,
    CONF_VOLTAGE,
    DEFAULT_NAME,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_VOLTAGE,
    DOMAIN,
    MAX_POLL_INTERVAL,
    MAX_VOLTAGE,
    MIN_POLL_INTERVAL,
    MIN_VOLTAGE,
    VALID_PHASE_COUNTS,
)

_PHASE_SENSORS = selector.EntitySelector(
    selector.EntitySelectorConfig(domain="sensor", multiple=True)
)
_SCRIPT = selector.EntitySelector(selector.EntitySelectorConfig(domain="script"))

_PHASE_LIST_KEYS = (
    CONF_MIN_LIMIT_ENTITIES,
    CONF_MAX_LIMIT_ENTITIES,
    CONF_PAUSE_LIMIT_ENTITIES,
)
_OPTIONAL_KEYS = (
    CONF_PAUSE_LIMIT_ENTITIES,
    CONF_VEHICLE_ENTITY,
    CONF_ACTION_APPLY_LIMITS,
    CONF_ACTION_WRITE_CURRENT,
)


def _suggested(defaults: dict[str, Any], key: str) -> dict[str, Any]:
    if defaults.get(key) is None:
        return {}
    return {"suggested_value": defaults[key]}


def _source_schema(defaults: dict[str, Any]) -> dict:
    """Return the schema fields shared by the user and options steps."""
    return {
        vol.Required(
            CONF_PHASE_CURRENT_ENTITIES,
            default=defaults.get(CONF_PHASE_CURRENT_ENTITIES, []),
        ): _PHASE_SENSORS,
        vol.Required(
            CONF_MIN_LIMIT_ENTITIES,
            default=defaults.get(CONF_MIN_LIMIT_ENTITIES, []),
        ): _PHASE_SENSORS,
        vol.Required(
            CONF_MAX_LIMIT_ENTITIES,
            default=defaults.get(CONF_MAX_LIMIT_ENTITIES, []),
        ): _PHASE_SENSORS,
        vol.Optional(
            CONF_PAUSE_LIMIT_ENTITIES,
            description=_suggested(defaults, CONF_PAUSE_LIMIT_ENTITIES),
        ): _PHASE_SENSORS,
        vol.Optional(
            CONF_VEHICLE_ENTITY,
            description=_suggested(defaults, CONF_VEHICLE_ENTITY),
        ): selector.EntitySelector(),
        vol.Required(
            CONF_VOLTAGE,
            default=defaults.get(CONF_VOLTAGE, DEFAULT_VOLTAGE),
        ): selector.NumberSelector(
            selector.NumberSelectorConfig(
                min=MIN_VOLTAGE,
                max=MAX_VOLTAGE,
                step=1,
                unit_of_measurement="V",
                mode=selector.NumberSelectorMode.BOX,
            )
        ),
        vol.Required(
            CONF_POLL_INTERVAL,
            default=defaults.get(CONF_POLL_INTERVAL, DEFAULT_POLL_INTERVAL),
        ): selector.NumberSelector(
            selector.NumberSelectorConfig(
                min=MIN_POLL_INTERVAL,
                max=MAX_POLL_INTERVAL,
                step=1,
                unit_of_measurement="s",
                mode=selector.NumberSelectorMode.BOX,
            )
        ),
        vol.Optional(
            CONF_ACTION_APPLY_LIMITS,
            description=_suggested(defaults, CONF_ACTION_APPLY_LIMITS),
        ): _SCRIPT,
        vol.Optional(
            CONF_ACTION_WRITE_CURRENT,
            description=_suggested(defaults, CONF_ACTION_WRITE_CURRENT),
        ): _SCRIPT,
    }


def validate_sources(hass: HomeAssistant, user_input: dict[str, Any]) -> dict[str, str]:
    """Return form errors keyed by field; empty when the input is usable."""
    errors: dict[str, str] = {}

    phases = user_input.get(CONF_PHASE_CURRENT_ENTITIES, [])
    if len(phases) not in VALID_PHASE_COUNTS:
        errors[CONF_PHASE_CURRENT_ENTITIES] = "invalid_phase_count"

    for key in _PHASE_LIST_KEYS:
        entities = user_input.get(key)
        if key == CONF_PAUSE_LIMIT_ENTITIES and not entities:
            continue
        if len(entities or []) != len(phases):
            errors[key] = "phase_count_mismatch"

    single_keys = (CONF_VEHICLE_ENTITY, CONF_ACTION_APPLY_LIMITS, CONF_ACTION_WRITE_CURRENT)
    for key in (CONF_PHASE_CURRENT_ENTITIES, *_PHASE_LIST_KEYS, *single_keys):
        value = user_input.get(key)
        entity_ids = value if isinstance(value, list) else [value] if value else []
        if key not in errors and any(hass.states.get(e) is None for e in entity_ids):
            errors[key] = "entity_not_found"

    return errors


class EEBusLoadpointConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for EEBus Loadpoint Limits."""

    VERSION = 1

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> EEBusLoadpointOptionsFlow:
        """Return the options flow handler."""
        return EEBusLoadpointOptionsFlow()

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Handle the initial step."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = validate_sources(self.hass, user_input)
            if not errors:
                await self.async_set_unique_id(user_input[CONF_PHASE_CURRENT_ENTITIES][0])
                self._abort_if_unique_id_configured()
                name = user_input.pop(CONF_NAME, DEFAULT_NAME)
                return self.async_create_entry(title=name, data=user_input)

        defaults = user_input or {}
        schema = vol.Schema(
            {
                vol.Required(
                    CONF_NAME, default=defaults.get(CONF_NAME, DEFAULT_NAME)
                ): str,
                **_source_schema(defaults),
            }
        )
        return self.async_show_form(
            step_id="user", data_schema=schema, errors=errors
        )


class EEBusLoadpointOptionsFlow(config_entries.OptionsFlow):
    """Edit source entities, voltage, poll interval and action scripts."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Manage the options."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = validate_sources(self.hass, user_input)
            if not errors:
                # A cleared optional field must override the value in entry.data
                for key in _OPTIONAL_KEYS:
                    user_input.setdefault(key, None)
                return self.async_create_entry(title="", data=user_input)

        defaults = user_input or {**self.config_entry.data, **self.config_entry.options}
        return self.async_show_form(
            step_id="init",
            data_schema=vol.Schema(_source_schema(defaults)),
            errors=errors,
        )
