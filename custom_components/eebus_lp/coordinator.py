"""Loadpoint coordinator for EEBus Loadpoint Limits.

Subscribes to the EEBus source entities (per-phase limits, per-phase
currents, identified vehicle) and, on every state change and on a fixed
poll interval, re-evaluates the charging state and reconciles the loadpoint
current window using :class:`limits.EEBusLimitAdapter`.  Entity state is
updated via the HA dispatcher so the entity platforms can refresh without
tight coupling.

When action scripts are configured, the coordinator calls them whenever the
loadpoint window is tightened (``apply_limits``) and when a current is
written to the vehicle through the ``set_current`` service
(``write_current``).
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EVENT_HOMEASSISTANT_STARTED
from homeassistant.core import Event, HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.dispatcher import async_dispatcher_send
from homeassistant.helpers.event import async_track_state_change_event, async_track_time_interval

from homeassistant.components.persistent_notification import (
    async_create as pn_async_create,
    async_dismiss as pn_async_dismiss,
)

from .const import (
    BOUND_MIN,
    CONF_ACTION_APPLY_LIMITS,
    CONF_ACTION_WRITE_CURRENT,
    CONF_MAX_LIMIT_ENTITIES,
    CONF_MIN_LIMIT_ENTITIES,
    CONF_PAUSE_LIMIT_ENTITIES,
    CONF_PHASE_CURRENT_ENTITIES,
    CONF_POLL_INTERVAL,
    CONF_VEHICLE_ENTITY,
    CONF_VOLTAGE,
    DEFAULT_LOADPOINT_MAX_CURRENT,
    DEFAULT_LOADPOINT_MIN_CURRENT,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_VOLTAGE,
    EVENT_ACTION_FAILED,
    EVENT_LIMIT_ADJUSTED,
    EVENT_SOURCE_UNAVAILABLE,
    NOTIFICATION_ACTION_FAILED_FMT,
    NOTIFICATION_SOURCE_UNAVAILABLE_FMT,
    REASON_PARAMETER_CHANGE,
    REASON_POLL,
    REASON_SOURCE_UPDATE,
    REASON_STARTUP,
    SIGNAL_UPDATE_FMT,
)
from .limits import (
    EEBusLimitAdapter,
    SourceReadError,
    compute_charge_power,
    effective_vehicle_bounds,
    is_charging,
    resolve_charge_status,
)
from .sources import HassLoadpointGateway, HassPhaseMeasurementSource, HassVehicleLimitSource
from ._log import get_logger

_LOGGER = get_logger(__name__)


class EEBusLoadpointCoordinator:
    """Coordinate EEBus source events and the loadpoint current window.

    Listens for source entity changes, evaluates whether the vehicle is
    charging, tightens the loadpoint window to the vehicle limits, and
    publishes the result via the HA dispatcher so entity platforms can
    update.
    """

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        """Initialise the coordinator from config entry data."""
        self.hass = hass
        self.entry = entry

        # Options take priority over data so changes made via the Configure
        # dialog take effect after the entry reloads.
        _cfg = {**entry.data, **entry.options}
        self._voltage: float = _cfg.get(CONF_VOLTAGE, DEFAULT_VOLTAGE)
        self._poll_interval_s: float = _cfg.get(CONF_POLL_INTERVAL, DEFAULT_POLL_INTERVAL)
        self._vehicle_entity: str | None = _cfg.get(CONF_VEHICLE_ENTITY) or None
        self._action_apply_limits: str | None = _cfg.get(CONF_ACTION_APPLY_LIMITS) or None
        self._action_write_current: str | None = _cfg.get(CONF_ACTION_WRITE_CURRENT) or None

        self.measurement_source = HassPhaseMeasurementSource(
            hass, _cfg[CONF_PHASE_CURRENT_ENTITIES]
        )
        self.limit_source = HassVehicleLimitSource(
            hass,
            _cfg[CONF_MIN_LIMIT_ENTITIES],
            _cfg[CONF_MAX_LIMIT_ENTITIES],
            _cfg.get(CONF_PAUSE_LIMIT_ENTITIES) or None,
        )
        self.gateway = HassLoadpointGateway(self, self._vehicle_entity)
        self.adapter = EEBusLimitAdapter(self.limit_source, self.measurement_source)

        # Runtime parameters (updated by number/switch entities)
        self.loadpoint_min_current: float = DEFAULT_LOADPOINT_MIN_CURRENT
        self.loadpoint_max_current: float = DEFAULT_LOADPOINT_MAX_CURRENT
        self.enabled: bool = True

        # Computed state (read by sensor/binary-sensor entities); None while
        # the sources cannot be read.
        self.charging: bool | None = None
        self.charge_status: str | None = None
        self.charge_power_w: float | None = None
        self.vehicle_min_current: float | None = None
        self.vehicle_max_current: float | None = None
        self.identified_vehicle: str | None = None
        self.sources_healthy: bool = True
        self.last_source_error: str | None = None
        self.last_action_reason: str = ""

        self._reason: str = ""
        self._limits_changed: bool = False
        self._running: bool = False

        # Dispatcher signal name
        self.signal_update: str = SIGNAL_UPDATE_FMT.format(
            entry_id=entry.entry_id,
        )

        # Listener removal callbacks
        self._unsub_listeners: list[Callable[[], None]] = []

    @property
    def source_entities(self) -> list[str]:
        """Return every entity whose state change triggers an evaluation."""
        entities = self.measurement_source.entity_ids + self.limit_source.entity_ids
        if self._vehicle_entity:
            entities.append(self._vehicle_entity)
        return entities

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @callback
    def async_start(self) -> None:
        """Start listening to source state changes and the poll timer."""
        self._running = True
        self._unsub_listeners = [
            async_track_state_change_event(
                self.hass,
                self.source_entities,
                self._handle_source_change,
            ),
            async_track_time_interval(
                self.hass,
                self._handle_poll,
                timedelta(seconds=self._poll_interval_s),
            ),
        ]
        _LOGGER.debug(
            "Coordinator started — listening to %d source entities "
            "(poll=%.0f s, vehicle=%s, voltage=%.0f V)",
            len(self.source_entities),
            self._poll_interval_s,
            self._vehicle_entity,
            self._voltage,
        )

        if self.hass.is_running:
            # Entity platforms are already set up; defer the first evaluation
            # so number/switch entities restore their values first.
            self.hass.async_create_task(
                self._async_initial_evaluate(),
                eager_start=False,
            )
        else:
            # The EEBus bridge may not have registered its entities yet.
            self.hass.bus.async_listen_once(
                EVENT_HOMEASSISTANT_STARTED,
                self._handle_ha_started,
            )

    @callback
    def async_stop(self) -> None:
        """Stop listening and clean up."""
        self._running = False
        for unsub in self._unsub_listeners:
            unsub()
        self._unsub_listeners = []
        _LOGGER.debug("Coordinator stopped")

    @callback
    def _handle_ha_started(self, _event: Event) -> None:
        """Run the first evaluation once every integration has loaded."""
        if not self._running:
            return
        self._evaluate(REASON_STARTUP)

    async def _async_initial_evaluate(self) -> None:
        """Run the first evaluation after the integration loads at runtime."""
        if self._running:
            self._evaluate(REASON_STARTUP)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    @callback
    def _handle_source_change(self, _event: Event) -> None:
        """React to a change of any source entity."""
        self._evaluate(REASON_SOURCE_UPDATE)

    @callback
    def _handle_poll(self, _now) -> None:
        """Re-evaluate on the poll interval even without state changes."""
        self._evaluate(REASON_POLL)

    @callback
    def async_evaluate(self, reason: str = REASON_PARAMETER_CHANGE) -> None:
        """Re-evaluate immediately (runtime parameter change or service call)."""
        if not self._running:
            return
        self._evaluate(reason)

    # ------------------------------------------------------------------
    # Core evaluation
    # ------------------------------------------------------------------

    def _evaluate(self, reason: str) -> None:
        """Refresh the charging state, reconcile the loadpoint and notify entities."""
        try:
            limits = self.limit_source.limits()
        except SourceReadError as exc:
            self._clear_measurement_state()
            self._clear_limit_state()
            self._handle_source_error(exc, limits_readable=False)
            async_dispatcher_send(self.hass, self.signal_update)
            return

        connected = bool(limits)
        if connected:
            self.vehicle_min_current, self.vehicle_max_current = effective_vehicle_bounds(limits)
        else:
            self.vehicle_min_current = self.vehicle_max_current = None

        vehicle = self.gateway.get_vehicle()
        self.identified_vehicle = vehicle.identity if vehicle is not None else None

        # Measurement failures do not block reconciliation
        try:
            currents = self.measurement_source.currents() if connected else []
        except SourceReadError as exc:
            self._clear_measurement_state()
            self._handle_source_error(exc, limits_readable=True)
        else:
            self._handle_source_recovered()
            charging = is_charging(limits, currents)
            self.charging = charging
            self.charge_status = resolve_charge_status(connected, charging)
            self.charge_power_w = compute_charge_power(currents, self._voltage)

        _LOGGER.debug(
            "Evaluate (%s): status=%s, charging=%s, vehicle window=%s–%s A, "
            "loadpoint window=%.1f–%.1f A, identified=%s",
            reason,
            self.charge_status,
            self.charging,
            self.vehicle_min_current,
            self.vehicle_max_current,
            self.loadpoint_min_current,
            self.loadpoint_max_current,
            self.identified_vehicle,
        )

        if self.enabled:
            self._reconcile(reason)

        async_dispatcher_send(self.hass, self.signal_update)

    def _reconcile(self, reason: str) -> None:
        """Run the limit reconciler against the loadpoint gateway."""
        self._reason = reason
        self._limits_changed = False
        try:
            self.adapter.loadpoint_control(self.gateway)
        except SourceReadError as exc:
            self._clear_limit_state()
            self._handle_source_error(exc, limits_readable=False)
            return

        if self._limits_changed and self._action_apply_limits:
            self.hass.async_create_task(
                self._call_action(
                    self._action_apply_limits,
                    "apply_limits",
                    loadpoint_id=self.entry.entry_id,
                    min_current_a=self.loadpoint_min_current,
                    max_current_a=self.loadpoint_max_current,
                ),
                eager_start=False,
            )

    @callback
    def apply_loadpoint_bound(self, bound: str, current_a: float) -> None:
        """Write one loadpoint bound on behalf of the reconciler."""
        if bound == BOUND_MIN:
            previous = self.loadpoint_min_current
            self.loadpoint_min_current = current_a
        else:
            previous = self.loadpoint_max_current
            self.loadpoint_max_current = current_a

        self._limits_changed = True
        self.last_action_reason = self._reason
        _LOGGER.info(
            "Loadpoint %s current adjusted to vehicle limits: %.1f A → %.1f A",
            bound,
            previous,
            current_a,
        )
        self.hass.bus.async_fire(
            EVENT_LIMIT_ADJUSTED,
            {
                "entry_id": self.entry.entry_id,
                "bound": bound,
                "previous_a": previous,
                "current_a": current_a,
            },
        )

    # ------------------------------------------------------------------
    # Source health
    # ------------------------------------------------------------------

    def _clear_measurement_state(self) -> None:
        """Forget the state derived from the measured phase currents."""
        self.charging = None
        self.charge_status = None
        self.charge_power_w = None

    def _clear_limit_state(self) -> None:
        """Forget the state derived from the vehicle limits and identity."""
        self.vehicle_min_current = None
        self.vehicle_max_current = None
        self.identified_vehicle = None

    def _handle_source_error(self, exc: SourceReadError, limits_readable: bool) -> None:
        """Record the read failure and report the outage once.

        *limits_readable* is True when only the phase measurements failed, in
        which case the loadpoint window is still reconciled.
        """
        self.last_source_error = str(exc)

        if not self.sources_healthy:
            _LOGGER.debug("EEBus source data still unavailable: %s", exc)
            return

        self.sources_healthy = False
        if limits_readable:
            impact = "Charging state is unknown; loadpoint limits are still enforced."
        else:
            impact = "Loadpoint current limits are left unchanged until it recovers."
        _LOGGER.warning("EEBus source data unavailable: %s. %s", exc, impact)
        entry_id = self.entry.entry_id
        self.hass.bus.async_fire(
            EVENT_SOURCE_UNAVAILABLE,
            {"entry_id": entry_id, "error": str(exc)},
        )
        pn_async_create(
            self.hass,
            f"EEBus data for `{self.entry.title}` could not be read: {exc}. {impact}",
            title="EEBus Loadpoint — Source Unavailable",
            notification_id=NOTIFICATION_SOURCE_UNAVAILABLE_FMT.format(entry_id=entry_id),
        )

    def _handle_source_recovered(self) -> None:
        """Dismiss the outage notification when the sources read cleanly again."""
        self.last_source_error = None
        if self.sources_healthy:
            return
        self.sources_healthy = True
        _LOGGER.info("EEBus source data available again")
        pn_async_dismiss(
            self.hass,
            NOTIFICATION_SOURCE_UNAVAILABLE_FMT.format(entry_id=self.entry.entry_id),
        )

    # ------------------------------------------------------------------
    # Vehicle current command via eebus_lp.set_current
    # ------------------------------------------------------------------

    async def async_write_current(self, current_a: float) -> list[float]:
        """Send a per-phase current command for *current_a* to the write script.

        Raises:
            HomeAssistantError: no write script is configured, the vehicle
                limits cannot be read, or no vehicle is connected.
        """
        if not self._action_write_current:
            raise HomeAssistantError(
                f"No write-current action script configured for {self.entry.title}"
            )
        try:
            command = self.adapter.phase_command(current_a)
        except SourceReadError as exc:
            raise HomeAssistantError(f"Cannot read vehicle limits: {exc}") from exc
        if not command:
            raise HomeAssistantError(f"No vehicle connected to {self.entry.title}")

        variables = {
            f"phase_{phase}_a": value for phase, value in enumerate(command, start=1)
        }
        _LOGGER.debug(
            "Writing current %.1f A as per-phase command %s", current_a, command
        )
        await self._call_action(
            self._action_write_current,
            "write_current",
            loadpoint_id=self.entry.entry_id,
            current_a=current_a,
            **variables,
        )
        return command

    # ------------------------------------------------------------------
    # Action execution
    # ------------------------------------------------------------------

    async def _call_action(
        self,
        entity_id: str,
        action_name: str,
        **variables: float | str,
    ) -> None:
        """Call a configured action script with the given variables.

        When the script call fails for any reason, logs a warning, fires an
        ``eebus_lp_action_failed`` event, creates a persistent dashboard
        notification, and continues so that a broken script never stops the
        control loop.
        """
        service_data: dict = {"entity_id": entity_id}
        if variables:
            service_data["variables"] = variables

        try:
            await self.hass.services.async_call(
                "script",
                "turn_on",
                service_data,
                blocking=True,
            )
            _LOGGER.debug(
                "Action %s executed via %s (variables=%s)",
                action_name,
                entity_id,
                variables or {},
            )
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning(
                "Action %s failed via %s: %s",
                action_name,
                entity_id,
                exc,
            )
            entry_id = self.entry.entry_id
            self.hass.bus.async_fire(
                EVENT_ACTION_FAILED,
                {
                    "entry_id": entry_id,
                    "action_name": action_name,
                    "entity_id": entity_id,
                    "error": str(exc),
                },
            )
            pn_async_create(
                self.hass,
                (
                    f"Action script `{entity_id}` failed for action `{action_name}`: "
                    f"{exc}. "
                    "Check your action script configuration."
                ),
                title="EEBus Loadpoint — Action Failed",
                notification_id=NOTIFICATION_ACTION_FAILED_FMT.format(
                    entry_id=entry_id
                ),
            )
