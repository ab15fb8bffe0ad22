"""Sensor platform for EEBus Loadpoint Limits."""

from __future__ import annotations

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EntityCategory, UnitOfElectricCurrent, UnitOfPower
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DOMAIN, get_device_info
from .coordinator import EEBusLoadpointCoordinator
from .limits import STATUS_CHARGING, STATUS_CONNECTED, STATUS_DISCONNECTED


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up EEBus LP sensor entities from a config entry."""
    coordinator: EEBusLoadpointCoordinator = hass.data[DOMAIN][entry.entry_id][
        "coordinator"
    ]
    async_add_entities(
        [
            EEBusChargeStatusSensor(entry, coordinator),
            EEBusChargePowerSensor(entry, coordinator),
            EEBusVehicleMinCurrentSensor(entry, coordinator),
            EEBusVehicleMaxCurrentSensor(entry, coordinator),
            EEBusIdentifiedVehicleSensor(entry, coordinator),
            EEBusLastActionReasonSensor(entry, coordinator),
        ]
    )


class _EEBusSensor(SensorEntity):
    """Sensor refreshed from the coordinator's dispatcher signal."""

    _attr_has_entity_name = True
    _attr_should_poll = False

    def __init__(
        self, entry: ConfigEntry, coordinator: EEBusLoadpointCoordinator
    ) -> None:
        self._attr_unique_id = f"{entry.entry_id}_{self._attr_translation_key}"
        self._attr_device_info = get_device_info(entry)
        self._coordinator = coordinator

    async def async_added_to_hass(self) -> None:
        self.async_on_remove(
            async_dispatcher_connect(
                self.hass, self._coordinator.signal_update, self._handle_update
            )
        )

    @callback
    def _handle_update(self) -> None:
        self.async_write_ha_state()


class EEBusChargeStatusSensor(_EEBusSensor):
    """IEC 61851 charge status: A (no vehicle), B (connected), C (charging)."""

    _attr_translation_key = "charge_status"
    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = [STATUS_DISCONNECTED, STATUS_CONNECTED, STATUS_CHARGING]

    @property
    def native_value(self) -> str | None:
        return self._coordinator.charge_status


class EEBusChargePowerSensor(_EEBusSensor):
    """Charging power drawn across all phases (W)."""

    _attr_translation_key = "charge_power"
    _attr_device_class = SensorDeviceClass.POWER
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = UnitOfPower.WATT

    @property
    def native_value(self) -> float | None:
        return self._coordinator.charge_power_w


class EEBusVehicleMinCurrentSensor(_EEBusSensor):
    """Effective vehicle minimum current across active phases (A)."""

    _attr_translation_key = "vehicle_min_current"
    _attr_device_class = SensorDeviceClass.CURRENT
    _attr_native_unit_of_measurement = UnitOfElectricCurrent.AMPERE

    @property
    def native_value(self) -> float | None:
        return self._coordinator.vehicle_min_current


class EEBusVehicleMaxCurrentSensor(_EEBusSensor):
    """Effective vehicle maximum current across active phases (A)."""

    _attr_translation_key = "vehicle_max_current"
    _attr_device_class = SensorDeviceClass.CURRENT
    _attr_native_unit_of_measurement = UnitOfElectricCurrent.AMPERE

    @property
    def native_value(self) -> float | None:
        return self._coordinator.vehicle_max_current


class EEBusIdentifiedVehicleSensor(_EEBusSensor):
    """Identity of the vehicle whose own profile governs the loadpoint."""

    _attr_translation_key = "identified_vehicle"

    @property
    def native_value(self) -> str | None:
        return self._coordinator.identified_vehicle


class EEBusLastActionReasonSensor(_EEBusSensor):
    """Trigger of the last loadpoint bound adjustment."""

    _attr_translation_key = "last_action_reason"
    _attr_entity_category = EntityCategory.DIAGNOSTIC

    @property
    def native_value(self) -> str:
        return self._coordinator.last_action_reason
