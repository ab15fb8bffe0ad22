"""Number platform for EEBus Loadpoint Limits."""

from __future__ import annotations

from homeassistant.components.number import NumberMode, RestoreNumber
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import UnitOfElectricCurrent
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import ServiceValidationError
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import (
    DEFAULT_LOADPOINT_MAX_CURRENT,
    DEFAULT_LOADPOINT_MIN_CURRENT,
    DOMAIN,
    MAX_LOADPOINT_CURRENT,
    MIN_LOADPOINT_CURRENT,
    get_device_info,
)
from .coordinator import EEBusLoadpointCoordinator


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up EEBus LP number entities from a config entry."""
    coordinator: EEBusLoadpointCoordinator = hass.data[DOMAIN][entry.entry_id][
        "coordinator"
    ]
    async_add_entities(
        [
            EEBusLoadpointMinCurrentNumber(entry, coordinator),
            EEBusLoadpointMaxCurrentNumber(entry, coordinator),
        ]
    )


class _LoadpointCurrentNumber(RestoreNumber):
    """One bound of the loadpoint current window (A).

    The value is owned by the coordinator: user changes are pushed into it
    and reconciler adjustments come back through the dispatcher signal.
    """

    _attr_has_entity_name = True
    _attr_native_unit_of_measurement = UnitOfElectricCurrent.AMPERE
    _attr_native_min_value = MIN_LOADPOINT_CURRENT
    _attr_native_max_value = MAX_LOADPOINT_CURRENT
    _attr_native_step = 0.1
    _attr_mode = NumberMode.BOX

    _default: float

    def __init__(
        self, entry: ConfigEntry, coordinator: EEBusLoadpointCoordinator
    ) -> None:
        """Initialise the number entity."""
        self._attr_unique_id = f"{entry.entry_id}_{self._attr_translation_key}"
        self._attr_native_value = self._default
        self._attr_device_info = get_device_info(entry)
        self._coordinator = coordinator

    def _read_coordinator(self) -> float:
        raise NotImplementedError

    def _write_coordinator(self, value: float) -> None:
        raise NotImplementedError

    def _validate(self, value: float) -> None:
        raise NotImplementedError

    async def async_added_to_hass(self) -> None:
        """Restore last known value on startup and sync with coordinator."""
        await super().async_added_to_hass()
        last = await self.async_get_last_number_data()
        if last and last.native_value is not None:
            self._attr_native_value = last.native_value
        self._write_coordinator(float(self._attr_native_value))
        self.async_on_remove(
            async_dispatcher_connect(
                self.hass, self._coordinator.signal_update, self._handle_update
            )
        )

    @callback
    def _handle_update(self) -> None:
        """Follow adjustments made by the limit reconciler."""
        value = self._read_coordinator()
        if value != self._attr_native_value:
            self._attr_native_value = value
            self.async_write_ha_state()

    async def async_set_native_value(self, value: float) -> None:
        """Update the bound, notify the coordinator, and trigger re-evaluation."""
        self._validate(value)
        self._attr_native_value = value
        self._write_coordinator(value)
        self.async_write_ha_state()
        self._coordinator.async_evaluate()


class EEBusLoadpointMinCurrentNumber(_LoadpointCurrentNumber):
    """Number entity for the loadpoint minimum current (A)."""

    _attr_translation_key = "loadpoint_min_current"
    _default = DEFAULT_LOADPOINT_MIN_CURRENT

    def _read_coordinator(self) -> float:
        return self._coordinator.loadpoint_min_current

    def _write_coordinator(self, value: float) -> None:
        self._coordinator.loadpoint_min_current = value

    def _validate(self, value: float) -> None:
        if value > self._coordinator.loadpoint_max_current:
            raise ServiceValidationError(
                f"Minimum current {value} A exceeds the loadpoint maximum "
                f"{self._coordinator.loadpoint_max_current} A"
            )


class EEBusLoadpointMaxCurrentNumber(_LoadpointCurrentNumber):
    """Number entity for the loadpoint maximum current (A)."""

    _attr_translation_key = "loadpoint_max_current"
    _default = DEFAULT_LOADPOINT_MAX_CURRENT

    def _read_coordinator(self) -> float:
        return self._coordinator.loadpoint_max_current

    def _write_coordinator(self, value: float) -> None:
        self._coordinator.loadpoint_max_current = value

    def _validate(self, value: float) -> None:
        if value < self._coordinator.loadpoint_min_current:
            raise ServiceValidationError(
                f"Maximum current {value} A is below the loadpoint minimum "
                f"{self._coordinator.loadpoint_min_current} A"
            )
