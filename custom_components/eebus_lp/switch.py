"""Switch platform for EEBus Loadpoint Limits."""

from __future__ import annotations

from typing import Any

from homeassistant.components.switch import SwitchEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.restore_state import RestoreEntity

from .const import DOMAIN, REASON_PARAMETER_CHANGE, get_device_info
from .coordinator import EEBusLoadpointCoordinator


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up EEBus LP switch entities from a config entry."""
    coordinator: EEBusLoadpointCoordinator = hass.data[DOMAIN][entry.entry_id][
        "coordinator"
    ]
    async_add_entities([EEBusLimitControlSwitch(entry, coordinator)])


class EEBusLimitControlSwitch(SwitchEntity, RestoreEntity):
    """Enable or disable automatic loadpoint limit reconciliation.

    While off, the charging state is still evaluated but the loadpoint
    current window is never written.
    """

    _attr_has_entity_name = True
    _attr_translation_key = "enabled"

    def __init__(
        self, entry: ConfigEntry, coordinator: EEBusLoadpointCoordinator
    ) -> None:
        """Initialise the switch entity."""
        self._attr_unique_id = f"{entry.entry_id}_enabled"
        self._attr_is_on = True
        self._attr_device_info = get_device_info(entry)
        self._coordinator = coordinator

    async def async_added_to_hass(self) -> None:
        """Restore last known state on startup and sync with coordinator."""
        await super().async_added_to_hass()
        last = await self.async_get_last_state()
        if last is not None and last.state in ("on", "off"):
            self._attr_is_on = last.state == "on"
        self._coordinator.enabled = bool(self._attr_is_on)

    async def async_turn_on(self, **kwargs: Any) -> None:
        """Enable limit reconciliation and re-evaluate immediately."""
        self._set(True)

    async def async_turn_off(self, **kwargs: Any) -> None:
        """Disable limit reconciliation."""
        self._set(False)

    def _set(self, enabled: bool) -> None:
        self._attr_is_on = enabled
        self._coordinator.enabled = enabled
        self.async_write_ha_state()
        self._coordinator.async_evaluate(REASON_PARAMETER_CHANGE)
