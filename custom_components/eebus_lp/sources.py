"""Home Assistant backed collaborators for :class:`limits.EEBusLimitAdapter`.

The EEBus stack itself runs outside this integration; whatever bridge
talks to the vehicle publishes the per-phase limits and measured currents
as sensor entities.  The classes here read those entities fresh on every
call and turn missing or malformed data into :class:`SourceReadError`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.core import HomeAssistant

from .const import (
    ATTR_VEHICLE_MAX_CURRENT,
    ATTR_VEHICLE_MIN_CURRENT,
    BOUND_MAX,
    BOUND_MIN,
    NO_VEHICLE_STATES,
)
from .limits import ActionConfig, PhaseLimit, SourceReadError

if TYPE_CHECKING:
    from .coordinator import EEBusLoadpointCoordinator

_UNAVAILABLE_STATES = ("unavailable", "unknown")


def _is_unavailable(hass: HomeAssistant, entity_id: str) -> bool:
    state = hass.states.get(entity_id)
    return state is None or state.state in _UNAVAILABLE_STATES


def read_current(hass: HomeAssistant, entity_id: str) -> float:
    """Return the non-negative current reported by *entity_id* in Amps.

    Raises:
        SourceReadError: the entity is missing, unavailable, unknown,
            non-numeric or negative.
    """
    state = hass.states.get(entity_id)
    if state is None:
        raise SourceReadError(f"{entity_id} does not exist")
    if state.state in _UNAVAILABLE_STATES:
        raise SourceReadError(f"{entity_id} is {state.state}")
    try:
        value = float(state.state)
    except (ValueError, TypeError) as exc:
        raise SourceReadError(
            f"{entity_id} reports a non-numeric value: {state.state}"
        ) from exc
    if value < 0:
        raise SourceReadError(f"{entity_id} reports a negative current: {value}")
    return value


def optional_current(value: Any) -> float | None:
    """Normalise a vehicle profile value; negative or missing means no preference."""
    if value is None:
        return None
    try:
        current = float(value)
    except (ValueError, TypeError):
        return None
    return current if current >= 0 else None


class HassPhaseMeasurementSource:
    """Measured current per phase, one sensor entity per phase."""

    def __init__(self, hass: HomeAssistant, entity_ids: list[str]) -> None:
        self._hass = hass
        self._entity_ids = list(entity_ids)

    @property
    def entity_ids(self) -> list[str]:
        return list(self._entity_ids)

    def currents(self) -> list[float]:
        return [read_current(self._hass, entity_id) for entity_id in self._entity_ids]


class HassVehicleLimitSource:
    """Per-phase minimum, maximum and pause limits reported by the vehicle.

    The entity lists are aligned by position: element ``i`` describes phase
    ``i + 1``.  When every limit entity is unavailable the vehicle is taken
    to be disconnected and an empty limit set is returned; a partial outage
    is an error because the remaining phases alone would understate the
    constraint.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        min_entity_ids: list[str],
        max_entity_ids: list[str],
        pause_entity_ids: list[str] | None = None,
    ) -> None:
        if len(min_entity_ids) != len(max_entity_ids):
            raise ValueError("min and max limit entities must cover the same phases")
        if pause_entity_ids and len(pause_entity_ids) != len(min_entity_ids):
            raise ValueError("pause limit entities must cover the same phases")
        self._hass = hass
        self._min_entity_ids = list(min_entity_ids)
        self._max_entity_ids = list(max_entity_ids)
        self._pause_entity_ids = list(pause_entity_ids or [])

    @property
    def entity_ids(self) -> list[str]:
        return self._min_entity_ids + self._max_entity_ids + self._pause_entity_ids

    def limits(self) -> list[PhaseLimit]:
        if all(_is_unavailable(self._hass, entity_id) for entity_id in self.entity_ids):
            return []

        limits: list[PhaseLimit] = []
        for index, (min_id, max_id) in enumerate(
            zip(self._min_entity_ids, self._max_entity_ids)
        ):
            min_a = read_current(self._hass, min_id)
            max_a = read_current(self._hass, max_id)
            pause_a = (
                read_current(self._hass, self._pause_entity_ids[index])
                if self._pause_entity_ids
                else 0.0
            )
            if max_a < min_a:
                raise SourceReadError(
                    f"phase {index + 1}: maximum {max_a} A is below minimum {min_a} A"
                )
            limits.append(PhaseLimit(index + 1, min_a, max_a, pause_a))
        return limits


class HassVehicle:
    """A vehicle identified on the loadpoint and its stored charge profile."""

    def __init__(self, identity: str, action: ActionConfig) -> None:
        self.identity = identity
        self._action = action

    def on_identified(self) -> ActionConfig:
        return self._action

    def __repr__(self) -> str:
        return f"HassVehicle({self.identity!r}, {self._action!r})"


class HassLoadpointGateway:
    """Loadpoint current window owned by the coordinator.

    Reads and writes go through the coordinator so the number entities and
    the configured apply-limits script follow every change.  The identified
    vehicle comes from the optional vehicle entity: its state is the vehicle
    identity and its ``min_current`` / ``max_current`` attributes are the
    vehicle's own profile.
    """

    def __init__(
        self,
        coordinator: EEBusLoadpointCoordinator,
        vehicle_entity: str | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._vehicle_entity = vehicle_entity

    def get_min_current(self) -> float:
        return self._coordinator.loadpoint_min_current

    def get_max_current(self) -> float:
        return self._coordinator.loadpoint_max_current

    def set_min_current(self, current: float) -> None:
        self._coordinator.apply_loadpoint_bound(BOUND_MIN, current)

    def set_max_current(self, current: float) -> None:
        self._coordinator.apply_loadpoint_bound(BOUND_MAX, current)

    def get_vehicle(self) -> HassVehicle | None:
        if self._vehicle_entity is None:
            return None
        state = self._coordinator.hass.states.get(self._vehicle_entity)
        if state is None or state.state.strip().lower() in NO_VEHICLE_STATES:
            return None
        return HassVehicle(
            state.state,
            ActionConfig(
                min_current=optional_current(
                    state.attributes.get(ATTR_VEHICLE_MIN_CURRENT)
                ),
                max_current=optional_current(
                    state.attributes.get(ATTR_VEHICLE_MAX_CURRENT)
                ),
            ),
        )
