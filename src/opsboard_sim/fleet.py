"""Machine roster held as a versioned, atomically replaced snapshot."""

import logging
import random
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .generators import MachineCard, generate_machine_list, simulate_machine_update

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FleetSnapshot:
    """Immutable view of the roster after a given tick."""

    version: int
    machines: Tuple[MachineCard, ...]
    taken_at: datetime = field(default_factory=datetime.now)

    def get(self, machine_id: str) -> Optional[MachineCard]:
        for machine in self.machines:
            if machine.machine_id == machine_id:
                return machine
        return None

    def to_state_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "taken_at": self.taken_at.isoformat(),
            "machines": [m.to_state_dict() for m in self.machines],
        }


class Fleet:
    """Owns the roster and advances it one drift tick at a time.

    Each tick builds a complete new snapshot and swaps it in with a single
    assignment, so readers holding ``fleet.snapshot`` see either the pre-tick
    or the post-tick roster.
    """

    def __init__(
        self,
        machine_count: int = 25,
        background_update_probability: float = 0.1,
        rng: Optional[random.Random] = None,
        machines: Optional[List[MachineCard]] = None,
    ):
        self._rng = rng or random.Random()
        self.background_update_probability = background_update_probability

        if machines is None:
            machines = generate_machine_list(machine_count, rng=self._rng)
        self._snapshot = FleetSnapshot(version=0, machines=tuple(machines))
        self._lock = threading.Lock()

        logger.info(f"Initialized fleet with {len(self._snapshot.machines)} machines")

    @property
    def snapshot(self) -> FleetSnapshot:
        return self._snapshot

    @property
    def machines(self) -> Tuple[MachineCard, ...]:
        return self._snapshot.machines

    def get(self, machine_id: str) -> Optional[MachineCard]:
        return self._snapshot.get(machine_id)

    def _should_update(self, machine: MachineCard, selected_id: Optional[str]) -> bool:
        if machine.machine_id == selected_id:
            return True
        return self._rng.random() < self.background_update_probability

    def advance(
        self, selected_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> FleetSnapshot:
        """Drift the selected machine and a random sample of the others."""
        now = now or datetime.now()

        with self._lock:
            current = self._snapshot
            updated = tuple(
                simulate_machine_update(m, rng=self._rng, now=now)
                if self._should_update(m, selected_id)
                else m
                for m in current.machines
            )
            self._snapshot = FleetSnapshot(
                version=current.version + 1, machines=updated, taken_at=now
            )

            changed = [
                new.machine_id
                for old, new in zip(current.machines, updated)
                if old.status != new.status
            ]
            if changed:
                logger.info(f"Status changed on tick {self._snapshot.version}: {changed}")

            return self._snapshot

    def search(self, term: str) -> List[MachineCard]:
        """Machines whose name or id contains ``term`` (case-insensitive)."""
        needle = (term or "").lower()
        return [
            m
            for m in self._snapshot.machines
            if needle in m.name.lower() or needle in m.machine_id.lower()
        ]
