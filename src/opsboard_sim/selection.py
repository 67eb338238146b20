"""Machine selection with delayed, cancellable timeline synthesis.

Selecting a machine shows its yesterday/today timelines after a short
simulated fetch delay. Every request gets a generation token; only the
completion carrying the latest token may replace the current view, so a
slow synthesis for a machine the user already left never lands.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from .generators import TimelineEvent, generate_timeline_events, seed_for_machine

logger = logging.getLogger(__name__)


TODAY_SEED_OFFSET = 100


@dataclass(frozen=True)
class TimelineView:
    """Two-day timeline of the selected machine."""

    machine_id: str
    day: date
    yesterday: List[TimelineEvent] = field(default_factory=list)
    today: List[TimelineEvent] = field(default_factory=list)
    generation: int = 0
    stale: bool = False

    def to_state_dict(self) -> Dict[str, Any]:
        return {
            "machine_id": self.machine_id,
            "day": self.day.isoformat(),
            "generation": self.generation,
            "stale": self.stale,
            "yesterday": [e.to_dict() for e in self.yesterday],
            "today": [e.to_dict() for e in self.today],
        }


def build_timeline_view(machine_id: str, day: date, generation: int = 0) -> TimelineView:
    """Synthesize both days for ``machine_id``; same machine, same events."""
    seed = seed_for_machine(machine_id)
    return TimelineView(
        machine_id=machine_id,
        day=day,
        yesterday=generate_timeline_events(day - timedelta(days=1), seed),
        today=generate_timeline_events(day, seed + TODAY_SEED_OFFSET),
        generation=generation,
    )


class SelectionController:
    """Tracks the selected machine and its (possibly stale) timeline view."""

    def __init__(
        self,
        delay_ms: int = 400,
        on_ready: Optional[Callable[[TimelineView], None]] = None,
        today: Callable[[], date] = lambda: datetime.now().date(),
    ):
        self.delay_ms = delay_ms
        self.on_ready = on_ready
        self._today = today

        self._lock = threading.Lock()
        self._generation = 0
        self._selected_id: Optional[str] = None
        self._view: Optional[TimelineView] = None
        self._timer: Optional[threading.Timer] = None

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def view(self) -> Optional[TimelineView]:
        return self._view

    @property
    def pending(self) -> bool:
        view = self._view
        return view is None or view.stale

    def request(self, machine_id: str) -> int:
        """Select ``machine_id`` and schedule its synthesis; returns the token."""
        with self._lock:
            self._generation += 1
            token = self._generation
            self._selected_id = machine_id

            if self._timer:
                self._timer.cancel()
                self._timer = None

            if self._view is not None and not self._view.stale:
                self._view = replace(self._view, stale=True)

            if self.delay_ms > 0:
                self._timer = threading.Timer(self.delay_ms / 1000.0, self.complete, args=(token,))
                self._timer.daemon = True
                self._timer.start()

        logger.debug(f"Selected {machine_id} (generation {token})")

        if self.delay_ms <= 0:
            self.complete(token)
        return token

    def complete(self, token: int) -> bool:
        """Finish the synthesis for ``token``; superseded tokens are discarded."""
        with self._lock:
            if token != self._generation or self._selected_id is None:
                logger.debug(f"Discarding superseded selection (generation {token})")
                return False
            machine_id = self._selected_id

        view = build_timeline_view(machine_id, self._today(), generation=token)

        with self._lock:
            # A newer request may have arrived while synthesizing
            if token != self._generation:
                logger.debug(f"Discarding superseded selection (generation {token})")
                return False
            self._view = view
            self._timer = None

        logger.info(
            f"Timeline ready for {machine_id}: "
            f"{len(view.yesterday)} events yesterday, {len(view.today)} today"
        )
        if self.on_ready:
            self.on_ready(view)
        return True

    def cancel(self) -> None:
        """Drop any pending synthesis without changing the selection."""
        with self._lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None
            self._generation += 1
