"""Pure current-limit logic for the EEBus loadpoint adapter.

This module decides whether the connected EV is drawing charging current
and which current window the loadpoint must enforce.  It has no dependency
on Home Assistant — the collaborators are plain protocols, so it can be
tested with plain pytest and hand-written test doubles.

Functions:
    phase_current             — measured current of one phase (0 A when missing)
    is_charging               — OR across phases of measured >= phase minimum
    effective_vehicle_bounds  — reduce per-phase limits to one scalar window
    compute_bound_updates     — which loadpoint bounds must be tightened
    resolve_charge_status     — IEC 61851 status letter (A/B/C)
    compute_phase_command     — per-phase current to write for a requested current
    compute_charge_power      — charging power from phase currents

Classes:
    EEBusLimitAdapter         — binds a limit source and a measurement source
                                to one loadpoint
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional, Protocol

from ._log import get_logger

_LOGGER = get_logger(__name__)

VOLTAGE_DEFAULT: float = 230.0  # Volts

STATUS_DISCONNECTED = "A"
STATUS_CONNECTED = "B"
STATUS_CHARGING = "C"


class SourceReadError(Exception):
    """A limit or measurement source could not produce data."""


@dataclass(frozen=True)
class PhaseLimit:
    """Current limits the vehicle reports for one phase (Amps)."""

    phase: int
    min_a: float
    max_a: float
    pause_a: float = 0.0


@dataclass(frozen=True)
class ActionConfig:
    """Charge-current profile a vehicle applies when it is identified.

    ``None`` means the vehicle expresses no preference for that bound.
    """

    min_current: Optional[float] = None
    max_current: Optional[float] = None


class VehicleLimitSource(Protocol):
    def limits(self) -> list[PhaseLimit]:
        """Return one PhaseLimit per active phase or raise SourceReadError."""


class PhaseMeasurementSource(Protocol):
    def currents(self) -> list[float]:
        """Return measured currents ordered by phase or raise SourceReadError."""


class Vehicle(Protocol):
    def on_identified(self) -> ActionConfig:
        """Return the vehicle's own charge-current profile."""


class LoadpointGateway(Protocol):
    def get_min_current(self) -> float: ...

    def get_max_current(self) -> float: ...

    def set_min_current(self, current: float) -> None: ...

    def set_max_current(self, current: float) -> None: ...

    def get_vehicle(self) -> Optional[Vehicle]: ...


def phase_current(currents: Sequence[float], phase: int) -> float:
    """Return the measured current for a 1-based *phase* index.

    A phase without a measurement is treated as drawing 0 A.
    """
    if 1 <= phase <= len(currents):
        return currents[phase - 1]
    return 0.0


def is_charging(limits: Sequence[PhaseLimit], currents: Sequence[float]) -> bool:
    """Return True if any phase draws at least its minimum current.

    Multi-phase vehicles may draw asymmetric currents, so a single phase
    reaching its minimum is enough.  A current exactly equal to the minimum
    counts as charging.

    Args:
        limits:   Per-phase vehicle limits; only these phases are inspected.
        currents: Measured currents ordered by phase (index 0 = phase 1).

    Returns:
        ``True`` when at least one phase clears its minimum, ``False``
        otherwise (including for an empty limit set).
    """
    return any(
        phase_current(currents, limit.phase) >= limit.min_a for limit in limits
    )


def effective_vehicle_bounds(limits: Sequence[PhaseLimit]) -> tuple[float, float]:
    """Reduce per-phase limits to the single window valid for every phase.

    The most demanding phase sets the floor (largest minimum) and the most
    restrictive phase sets the cap (smallest maximum).  For a single phase
    this is the identity.

    Args:
        limits: Non-empty per-phase vehicle limits.

    Returns:
        ``(min_a, max_a)`` tuple.

    Raises:
        ValueError: *limits* is empty.
    """
    if not limits:
        raise ValueError("cannot reduce an empty limit set")
    return (
        max(limit.min_a for limit in limits),
        min(limit.max_a for limit in limits),
    )


def compute_bound_updates(
    loadpoint_min_a: float,
    loadpoint_max_a: float,
    vehicle_min_a: float,
    vehicle_max_a: float,
) -> tuple[Optional[float], Optional[float]]:
    """Return the loadpoint bounds that must change to respect the vehicle window.

    Bounds are only ever tightened: the minimum is raised when it is below
    the vehicle minimum and the maximum is lowered when it is above the
    vehicle maximum.  Equality leaves a bound untouched.

    Args:
        loadpoint_min_a: Minimum current currently configured on the loadpoint.
        loadpoint_max_a: Maximum current currently configured on the loadpoint.
        vehicle_min_a:   Effective vehicle minimum.
        vehicle_max_a:   Effective vehicle maximum.

    Returns:
        ``(new_min_a, new_max_a)`` where each element is ``None`` when that
        bound must not be written.
    """
    new_min = vehicle_min_a if loadpoint_min_a < vehicle_min_a else None
    new_max = vehicle_max_a if loadpoint_max_a > vehicle_max_a else None
    return new_min, new_max


def resolve_charge_status(connected: bool, charging: bool) -> str:
    """Return the IEC 61851 status letter for the vehicle.

    - ``"A"`` — no vehicle connected
    - ``"B"`` — vehicle connected, not charging
    - ``"C"`` — vehicle charging
    """
    if not connected:
        return STATUS_DISCONNECTED
    if charging:
        return STATUS_CHARGING
    return STATUS_CONNECTED


def compute_phase_command(
    limits: Sequence[PhaseLimit], current_a: float
) -> list[float]:
    """Translate a requested scalar current into per-phase vehicle limits.

    A request below a phase's minimum cannot be honoured by the vehicle, so
    that phase is sent its pause current instead.  Otherwise the request is
    capped at the phase maximum.

    Args:
        limits:    Per-phase vehicle limits.
        current_a: Requested charging current in Amps.

    Returns:
        Currents aligned with *limits*.
    """
    command: list[float] = []
    for limit in limits:
        if current_a < limit.min_a:
            command.append(limit.pause_a)
        else:
            command.append(min(current_a, limit.max_a))
    return command


def compute_charge_power(
    currents: Sequence[float], voltage_v: float = VOLTAGE_DEFAULT
) -> float:
    """Return the charging power in Watts drawn across all phases."""
    return round(sum(currents) * voltage_v, 1)


class EEBusLimitAdapter:
    """Charging detection and limit reconciliation for one loadpoint binding.

    Holds references to its collaborators only; every call reads fresh
    data, so the adapter keeps no state between control-loop ticks.
    """

    def __init__(
        self,
        limit_source: VehicleLimitSource,
        measurement_source: PhaseMeasurementSource,
    ) -> None:
        self._limit_source = limit_source
        self._measurement_source = measurement_source

    def is_charging(self) -> bool:
        """Return True if the vehicle is drawing charging current.

        Raises:
            SourceReadError: limits or measurements could not be read.
        """
        limits = self._limit_source.limits()
        if not limits:
            return False
        return is_charging(limits, self._measurement_source.currents())

    def phase_command(self, current_a: float) -> list[float]:
        """Return the per-phase currents to write for *current_a*.

        Raises:
            SourceReadError: the vehicle limits could not be read.
        """
        return compute_phase_command(self._limit_source.limits(), current_a)

    def loadpoint_control(self, loadpoint: LoadpointGateway) -> None:
        """Tighten the loadpoint current window to what the vehicle accepts.

        An identified vehicle carries its own charge-current profile, which
        takes precedence: no bound is written in that case.

        Raises:
            SourceReadError: the vehicle limits could not be read.  No bound
                has been written when this is raised.
        """
        vehicle = loadpoint.get_vehicle()
        if vehicle is not None:
            _LOGGER.debug(
                "Vehicle identified (profile %s) — leaving loadpoint limits untouched",
                vehicle.on_identified(),
            )
            return

        limits = self._limit_source.limits()
        if not limits:
            return

        vehicle_min, vehicle_max = effective_vehicle_bounds(limits)
        new_min, new_max = compute_bound_updates(
            loadpoint.get_min_current(),
            loadpoint.get_max_current(),
            vehicle_min,
            vehicle_max,
        )
        if new_min is not None:
            loadpoint.set_min_current(new_min)
        if new_max is not None:
            loadpoint.set_max_current(new_max)
