"""Binary sensor platform for EEBus Loadpoint Limits."""

from __future__ import annotations

from homeassistant.components.binary_sensor import (
    BinarySensorDeviceClass,
    BinarySensorEntity,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EntityCategory
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DOMAIN, get_device_info
from .coordinator import EEBusLoadpointCoordinator


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up EEBus LP binary sensor entities from a config entry."""
    coordinator: EEBusLoadpointCoordinator = hass.data[DOMAIN][entry.entry_id][
        "coordinator"
    ]
    async_add_entities(
        [
            EEBusChargingBinarySensor(entry, coordinator),
            EEBusSourceStatusBinarySensor(entry, coordinator),
            EEBusVehicleIdentifiedBinarySensor(entry, coordinator),
        ]
    )


class _EEBusBinarySensor(BinarySensorEntity):
    """Binary sensor refreshed from the coordinator's dispatcher signal."""

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


class EEBusChargingBinarySensor(_EEBusBinarySensor):
    """On while any phase draws at least its minimum current.

    Unknown while the EEBus sources cannot be read.
    """

    _attr_translation_key = "ev_charging"
    _attr_device_class = BinarySensorDeviceClass.BATTERY_CHARGING

    @property
    def is_on(self) -> bool | None:
        return self._coordinator.charging


class EEBusSourceStatusBinarySensor(_EEBusBinarySensor):
    """Problem sensor: on while the EEBus source entities cannot be read."""

    _attr_translation_key = "source_status"
    _attr_device_class = BinarySensorDeviceClass.PROBLEM
    _attr_entity_category = EntityCategory.DIAGNOSTIC

    @property
    def is_on(self) -> bool:
        return not self._coordinator.sources_healthy

    @property
    def extra_state_attributes(self) -> dict[str, str | None]:
        return {"last_error": self._coordinator.last_source_error}


class EEBusVehicleIdentifiedBinarySensor(_EEBusBinarySensor):
    """On while a vehicle with its own charge profile is identified."""

    _attr_translation_key = "vehicle_identified"

    @property
    def is_on(self) -> bool:
        return self._coordinator.identified_vehicle is not None
