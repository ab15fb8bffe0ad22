"""The EEBus Loadpoint Limits integration.

Keeps a loadpoint's current window within the limits an EEBus vehicle
reports and exposes whether the vehicle is actively charging.
"""

from __future__ import annotations

import voluptuous as vol

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, ServiceCall, callback
from homeassistant.exceptions import HomeAssistantError
import homeassistant.helpers.config_validation as cv

from .const import (
    ATTR_CURRENT,
    ATTR_ENTRY_ID,
    DOMAIN,
    MAX_LOADPOINT_CURRENT,
    PLATFORMS,
    REASON_SERVICE_CALL,
    SERVICE_RECONCILE,
    SERVICE_SET_CURRENT,
)
from .coordinator import EEBusLoadpointCoordinator
from ._log import get_logger

_LOGGER = get_logger(__name__)

RECONCILE_SCHEMA = vol.Schema({vol.Optional(ATTR_ENTRY_ID): cv.string})

SET_CURRENT_SCHEMA = vol.Schema(
    {
        vol.Optional(ATTR_ENTRY_ID): cv.string,
        vol.Required(ATTR_CURRENT): vol.All(
            vol.Coerce(float), vol.Range(min=0.0, max=MAX_LOADPOINT_CURRENT)
        ),
    }
)


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up EEBus Loadpoint Limits from a config entry."""
    coordinator = EEBusLoadpointCoordinator(hass, entry)

    hass.data.setdefault(DOMAIN, {})
    hass.data[DOMAIN][entry.entry_id] = {"coordinator": coordinator}

    _register_services(hass)

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    coordinator.async_start()

    entry.async_on_unload(entry.add_update_listener(_async_update_listener))
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    coordinator: EEBusLoadpointCoordinator = hass.data[DOMAIN][entry.entry_id][
        "coordinator"
    ]
    coordinator.async_stop()

    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        hass.data[DOMAIN].pop(entry.entry_id)
    return unload_ok


async def _async_update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload the entry so option changes take effect."""
    await hass.config_entries.async_reload(entry.entry_id)


def _resolve_coordinators(
    hass: HomeAssistant, entry_id: str | None
) -> list[EEBusLoadpointCoordinator]:
    """Return the coordinators a service call targets.

    Without an entry_id every loaded loadpoint is targeted.
    """
    entries = hass.data.get(DOMAIN, {})
    if entry_id is None:
        return [data["coordinator"] for data in entries.values()]
    if entry_id not in entries:
        raise HomeAssistantError(f"No loaded {DOMAIN} entry with id {entry_id}")
    return [entries[entry_id]["coordinator"]]


@callback
def _register_services(hass: HomeAssistant) -> None:
    """Register domain services once, regardless of how many entries load."""
    if hass.services.has_service(DOMAIN, SERVICE_RECONCILE):
        return

    @callback
    def _handle_reconcile(call: ServiceCall) -> None:
        for coordinator in _resolve_coordinators(hass, call.data.get(ATTR_ENTRY_ID)):
            coordinator.async_evaluate(REASON_SERVICE_CALL)

    async def _handle_set_current(call: ServiceCall) -> None:
        coordinators = _resolve_coordinators(hass, call.data.get(ATTR_ENTRY_ID))
        if len(coordinators) != 1:
            raise HomeAssistantError(
                f"{DOMAIN}.{SERVICE_SET_CURRENT} needs an entry_id when "
                f"{len(coordinators)} loadpoints are loaded"
            )
        await coordinators[0].async_write_current(call.data[ATTR_CURRENT])

    hass.services.async_register(
        DOMAIN, SERVICE_RECONCILE, _handle_reconcile, schema=RECONCILE_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_SET_CURRENT, _handle_set_current, schema=SET_CURRENT_SCHEMA
    )
    _LOGGER.debug("Registered %s services", DOMAIN)
