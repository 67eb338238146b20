"""Main simulator orchestrating the ops board engine.

Runs the periodic triggers behind the dashboard:

- **Clock tick** (1s): refreshes the wall clock shown in the header
- **Drift tick** (2s): advances the fleet snapshot with bounded metric drift
- **Selection**: re-synthesizes the selected machine's two-day timeline after
  a short delay, discarding superseded requests

Derived views (reason pie, KPI cards, strip and clock-face coordinates) are
published over MQTT for the dashboard and are also available in-process.
"""

import logging
import random
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .analytics import (
    downtime_summary,
    filter_by_reason,
    long_stops,
    reason_buckets,
    signal_history,
    status_breakdown,
    toggle_reason,
    utilization_percent,
)
from .config import Config
from .downtime import DowntimeStore
from .fleet import Fleet
from .generators import TimelineEvent, create_machine_profile
from .layout import arc_coordinates, strip_coordinates
from .mqtt_client import MQTTClient
from .selection import SelectionController, TimelineView

logger = logging.getLogger(__name__)


def timeline_day_payload(events: List[TimelineEvent]) -> Dict[str, Any]:
    """Everything the strip, clock face and signal table need for one day."""
    return {
        "events": [e.to_dict() for e in events],
        "strip": strip_coordinates(events),
        "arcs": arc_coordinates(events),
        "breakdown": status_breakdown(events),
        "utilization_pct": utilization_percent(events),
        "long_stops": [e.to_dict() for e in long_stops(events)],
        "signal_history": signal_history(events),
    }


class Simulator:
    """Owns the fleet, downtime store and selection, and drives their ticks."""

    def __init__(self, config: Config, mqtt_client: Optional[MQTTClient] = None):
        self.config = config
        self._running = False
        self._threads: List[threading.Thread] = []

        sim = config.simulation
        self._rng = random.Random(sim.random_seed)

        if mqtt_client:
            self._mqtt = mqtt_client
        else:
            self._mqtt = MQTTClient(
                config.mqtt,
                config.topics,
                on_select=self.select_machine,
                on_reason_change=self.set_reason,
                on_remark_change=self.set_remark,
            )

        self.fleet = Fleet(
            machine_count=sim.machine_count,
            background_update_probability=sim.background_update_probability,
            rng=self._rng,
        )
        self.downtime = DowntimeStore()
        self.selection = SelectionController(
            delay_ms=sim.selection_delay_ms, on_ready=self._on_timeline_ready
        )

        self.clock = datetime.now()
        self.reason_filter: Optional[str] = None
        self._tick_count = 0

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self, dry_run: bool = False) -> bool:
        """Start the simulator."""
        if not self._mqtt.connect(dry_run=dry_run):
            logger.error("Failed to connect to MQTT broker")
            return False

        self._publish_status()
        self._publish_fleet()
        self._publish_downtime()

        machines = self.fleet.machines
        if machines:
            self.select_machine(machines[0].machine_id)

        self._running = True
        self._threads = [
            threading.Thread(
                target=self._tick_loop,
                args=(self.config.simulation.clock_interval_ms, self._clock_tick),
                daemon=True,
            ),
            threading.Thread(
                target=self._tick_loop,
                args=(self.config.simulation.drift_interval_ms, self._drift_tick),
                daemon=True,
            ),
        ]
        for thread in self._threads:
            thread.start()

        logger.info(f"Simulator started with {len(machines)} machines")
        return True

    def stop(self) -> None:
        """Stop the simulator."""
        self._running = False
        self.selection.cancel()
        for thread in self._threads:
            thread.join(timeout=5)
        self._threads = []
        self._mqtt.disconnect()
        logger.info("Simulator stopped")

    def _tick_loop(self, interval_ms: int, tick: Callable[[], None]) -> None:
        """Call ``tick`` every ``interval_ms`` until stopped."""
        interval = interval_ms / 1000.0

        while self._running:
            try:
                tick()
                time.sleep(interval)
            except Exception as e:
                logger.error(f"Error in tick loop: {e}")
                time.sleep(1)

    def _clock_tick(self) -> None:
        """Refresh the displayed wall clock."""
        self.clock = datetime.now()
        self._mqtt.publish("clock", {"now": self.clock.isoformat()})

    def _drift_tick(self) -> None:
        """Advance the fleet one drift step."""
        self._tick_count += 1
        snapshot = self.fleet.advance(self.selection.selected_id)
        self._publish_fleet()

        if self._tick_count % 30 == 0:
            self._publish_status()
        logger.debug(f"Drift tick {self._tick_count} -> fleet version {snapshot.version}")

    # =========================================================================
    # Operator actions
    # =========================================================================

    def select_machine(self, machine_id: str) -> Optional[int]:
        """Switch the timeline view to ``machine_id``; unknown ids are ignored."""
        if self.fleet.get(machine_id) is None:
            logger.warning(f"Received selection for unknown machine: {machine_id}")
            return None
        return self.selection.request(machine_id)

    def set_reason(self, record_id: str, reason: str) -> None:
        self.downtime.set_reason(record_id, reason)
        self._publish_downtime()

    def set_remark(self, record_id: str, remark: str) -> None:
        self.downtime.set_remark(record_id, remark)
        self._publish_downtime()

    def toggle_reason_filter(self, reason: Optional[str]) -> Optional[str]:
        """Apply or clear the reason filter of the downtime table."""
        self.reason_filter = toggle_reason(self.reason_filter, reason)
        self._publish_downtime()
        return self.reason_filter

    def clear_reason_filter(self) -> None:
        self.reason_filter = None
        self._publish_downtime()

    # =========================================================================
    # Derived views
    # =========================================================================

    def downtime_view(self) -> Dict[str, Any]:
        """Downtime table, pie slices and KPI cards."""
        records = self.downtime.records
        visible = filter_by_reason(records, self.reason_filter)
        return {
            "filter": self.reason_filter,
            "records": [r.to_dict() for r in visible],
            "visible_count": len(visible),
            "pie": reason_buckets(records),
            "summary": downtime_summary(records),
        }

    def timeline_view(self, view: Optional[TimelineView] = None) -> Optional[Dict[str, Any]]:
        """Payload of the selected machine's timelines, flagged while stale."""
        view = view or self.selection.view
        if view is None:
            return None

        payload: Dict[str, Any] = {
            "machine_id": view.machine_id,
            "day": view.day.isoformat(),
            "generation": view.generation,
            "stale": view.stale,
            "yesterday": timeline_day_payload(view.yesterday),
            "today": timeline_day_payload(view.today),
        }

        machine = self.fleet.get(view.machine_id)
        if machine is not None:
            payload["profile"] = create_machine_profile(machine, view.today).to_meta_dict()
        return payload

    def status(self) -> Dict[str, Any]:
        snapshot = self.fleet.snapshot
        return {
            "running": self._running,
            "clock": self.clock.isoformat(),
            "fleet_version": snapshot.version,
            "machines": len(snapshot.machines),
            "selected": self.selection.selected_id,
            "timeline_pending": self.selection.pending,
        }

    # =========================================================================
    # Publishing methods
    # =========================================================================

    def _on_timeline_ready(self, view: TimelineView) -> None:
        payload = self.timeline_view(view)
        self._mqtt.publish(f"machines/{view.machine_id}/timeline", payload, retain=True)

    def _publish_status(self) -> None:
        self._mqtt.publish_status(self.status())

    def _publish_fleet(self) -> None:
        snapshot = self.fleet.snapshot
        self._mqtt.publish("fleet/snapshot", snapshot.to_state_dict(), retain=True)

    def _publish_downtime(self) -> None:
        view = self.downtime_view()
        self._mqtt.publish("downtime/records", view["records"], retain=True)
        self._mqtt.publish(
            "downtime/summary",
            {"filter": view["filter"], "pie": view["pie"], "summary": view["summary"]},
            retain=True,
        )
