"""Data generators for machine timelines and live machine cards.

This module provides the synthetic telemetry behind the ops board:

- **Timeline events**: a seeded, reproducible day of status intervals per machine
- **Machine roster**: a fleet of machine cards with baseline metrics
- **Drift**: small bounded random changes applied to a card on every tick

Two random sources are kept apart on purpose. Timeline synthesis uses the pure
``seeded_random`` function so the same machine always shows the same day.
Drift uses an ordinary ``random.Random`` stream that is free to differ run to run.
"""

import math
import random
import re
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from faker import Faker

fake = Faker()
_fake_lock = threading.Lock()


# =============================================================================
# Machine status
# =============================================================================


class MachineStatus(Enum):
    """Status of a machine over an interval or on its live card."""

    RUNNING_GOOD = "Running (Good)"
    RUNNING_ABNORMAL = "Running (Abnormal)"
    STOPPED = "Stopped"
    OFFLINE = "Offline"


NO_METAL_DETECTED = "No Metal Detected"

DAY_SECONDS = 24 * 60 * 60
MIN_EVENT_MINUTES = 5
EVENT_MINUTE_SPAN = 60
ABNORMAL_THRESHOLD = 0.40

_EPOCH = datetime(1970, 1, 1)

# Integer seeds are reduced below 2**53 so they convert to float exactly
SEED_MODULUS = 2 ** 53


# =============================================================================
# Seeded pseudo-random sequence
# =============================================================================


def seeded_random(seed: float) -> float:
    """Return a deterministic pseudo-random number in [0, 1) for ``seed``.

    Pure function of its input: the fractional part of ``sin(seed) * 10000``.
    Integer seeds too large for a float are reduced modulo ``SEED_MODULUS``
    and non-finite seeds are treated as 0.
    """
    if isinstance(seed, int) and abs(seed) >= SEED_MODULUS:
        seed %= SEED_MODULUS
    if not math.isfinite(seed):
        seed = 0
    x = math.sin(seed) * 10000
    value = x - math.floor(x)
    # Rounding of tiny negative products can land exactly on 1.0
    return value if value < 1.0 else 0.0


def seed_for_machine(machine_id: str) -> int:
    """Derive the timeline seed from the digits of a machine id (MCH-105 -> 105)."""
    digits = re.sub(r"\D", "", machine_id or "")
    seed = 0
    # Chunked so very long ids stay under the int parsing limit
    for i in range(0, len(digits), 15):
        chunk = digits[i : i + 15]
        seed = (seed * 10 ** len(chunk) + int(chunk)) % SEED_MODULUS
    return seed


def _start_of_day(day: Union[date, datetime]) -> datetime:
    if isinstance(day, datetime):
        day = day.date()
    return datetime.combine(day, time.min)


def _wall_clock_ms(moment: datetime) -> int:
    """Milliseconds since 1970-01-01 of a naive local timestamp (no tz/DST shift)."""
    return (moment - _EPOCH) // timedelta(milliseconds=1)


# =============================================================================
# Timeline events
# =============================================================================


@dataclass(frozen=True)
class TimelineEvent:
    """A contiguous time span with a single machine status."""

    event_id: str
    start_time: str  # ISO 8601, local
    end_time: str  # ISO 8601, local
    status: MachineStatus
    duration_seconds: float
    reason: Optional[str] = None
    remarks: Optional[str] = None

    @property
    def start(self) -> datetime:
        return datetime.fromisoformat(self.start_time)

    @property
    def end(self) -> datetime:
        return datetime.fromisoformat(self.end_time)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the payload consumed by the timeline views."""
        return {
            "id": self.event_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "status": self.status.value,
            "duration_seconds": self.duration_seconds,
            "reason": self.reason,
            "remarks": self.remarks,
        }


def _new_event_id() -> str:
    return uuid.uuid4().hex[:9]


class TimelineGenerator:
    """Synthesizes a full day of status intervals for one seed.

    The seed offset shapes the machine's behaviour: its last digit raises the
    share of stopped intervals from 15% up to 24%.
    """

    def __init__(self, seed_offset: int = 0):
        self.seed_offset = seed_offset

    @property
    def stopped_threshold(self) -> float:
        return 0.15 + (self.seed_offset % 10) / 100

    def classify(self, roll: float) -> MachineStatus:
        """Map a roll in [0, 1) to an interval status."""
        if roll < self.stopped_threshold:
            return MachineStatus.STOPPED
        if roll < ABNORMAL_THRESHOLD:
            return MachineStatus.RUNNING_ABNORMAL
        return MachineStatus.RUNNING_GOOD

    def generate(self, day: Union[date, datetime]) -> List[TimelineEvent]:
        """Generate the ordered, gap-free events covering ``day``."""
        events: List[TimelineEvent] = []
        current = _start_of_day(day)
        end_of_day = current + timedelta(days=1)

        iteration = 0
        while current < end_of_day:
            roll = seeded_random(_wall_clock_ms(current) + self.seed_offset + iteration)
            duration_mins = math.floor(roll * EVENT_MINUTE_SPAN) + MIN_EVENT_MINUTES

            end = min(current + timedelta(minutes=duration_mins), end_of_day)

            status_roll = seeded_random(_wall_clock_ms(end) + self.seed_offset + iteration)
            status = self.classify(status_roll)
            reason = NO_METAL_DETECTED if status == MachineStatus.STOPPED else None

            events.append(
                TimelineEvent(
                    event_id=_new_event_id(),
                    start_time=current.isoformat(),
                    end_time=end.isoformat(),
                    status=status,
                    duration_seconds=(end - current).total_seconds(),
                    reason=reason,
                )
            )

            current = end
            iteration += 1

        return events


def generate_timeline_events(
    day: Union[date, datetime], seed_offset: int = 0
) -> List[TimelineEvent]:
    """Generate one day of timeline events for ``seed_offset``."""
    return TimelineGenerator(seed_offset).generate(day)


# =============================================================================
# Machine roster and drift
# =============================================================================


TEMPERATURE_RANGE = (20.0, 100.0)  # Celsius
VIBRATION_RANGE = (0.0, 10.0)  # mm/s
LOAD_RANGE = (0.0, 100.0)  # %

TEMPERATURE_DRIFT = 0.75
VIBRATION_DRIFT = 0.1
LOAD_DRIFT = 1.0

STATUS_CHANGE_PROBABILITY = 0.05

LOCATIONS = ["Zone A", "Zone B", "Zone C"]

# Running (Good) appears twice for a 2x weight
ROSTER_STATUSES = [
    MachineStatus.RUNNING_GOOD,
    MachineStatus.RUNNING_GOOD,
    MachineStatus.RUNNING_ABNORMAL,
    MachineStatus.STOPPED,
    MachineStatus.OFFLINE,
]


def _clamp(value: float, bounds: tuple) -> float:
    low, high = bounds
    return max(low, min(high, value))


@dataclass(frozen=True)
class MachineCard:
    """Live card for one machine in the roster."""

    machine_id: str
    name: str
    status: MachineStatus
    location: str
    temperature: float  # Celsius
    vibration: float  # mm/s
    load: float  # %
    last_update: datetime

    @property
    def seed(self) -> int:
        return seed_for_machine(self.machine_id)

    def to_state_dict(self) -> Dict[str, Any]:
        """Convert to the machine card payload."""
        return {
            "id": self.machine_id,
            "name": self.name,
            "status": self.status.value,
            "location": self.location,
            "temperature": round(self.temperature, 2),
            "vibration": round(self.vibration, 2),
            "load": round(self.load, 2),
            "last_update": self.last_update.isoformat(),
        }


def generate_machine_list(
    count: int, rng: Optional[random.Random] = None
) -> List[MachineCard]:
    """Create ``count`` machine cards with baseline metrics."""
    rng = rng or random.Random()
    now = datetime.now()
    machines = []

    for i in range(max(0, count)):
        machines.append(
            MachineCard(
                machine_id=f"MCH-{100 + i}",
                name=f"Machine {i + 1:02d}",
                status=rng.choice(ROSTER_STATUSES),
                location=rng.choice(LOCATIONS),
                temperature=rng.uniform(40, 70),
                vibration=rng.uniform(0, 5),
                load=rng.uniform(50, 90),
                last_update=now,
            )
        )

    return machines


def next_status(status: MachineStatus, rng: random.Random) -> MachineStatus:
    """Apply the low-probability status transition rules once.

    The checks are independent rolls, not a normalized transition matrix:
    an abnormal machine that fails the recovery roll gets a second roll for
    stopping. Offline machines never leave Offline on their own.
    """
    if rng.random() >= STATUS_CHANGE_PROBABILITY:
        return status

    if status == MachineStatus.RUNNING_GOOD:
        if rng.random() < 0.2:
            return MachineStatus.RUNNING_ABNORMAL
    elif status == MachineStatus.RUNNING_ABNORMAL:
        if rng.random() < 0.3:
            return MachineStatus.RUNNING_GOOD
        if rng.random() < 0.1:
            return MachineStatus.STOPPED
    elif status == MachineStatus.STOPPED:
        if rng.random() < 0.2:
            return MachineStatus.RUNNING_GOOD

    return status


def simulate_machine_update(
    machine: MachineCard,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> MachineCard:
    """Return a drifted copy of ``machine`` for one simulation tick."""
    rng = rng or random.Random()

    temperature = _clamp(
        machine.temperature + rng.uniform(-TEMPERATURE_DRIFT, TEMPERATURE_DRIFT),
        TEMPERATURE_RANGE,
    )
    vibration = _clamp(
        machine.vibration + rng.uniform(-VIBRATION_DRIFT, VIBRATION_DRIFT),
        VIBRATION_RANGE,
    )
    load = _clamp(machine.load + rng.uniform(-LOAD_DRIFT, LOAD_DRIFT), LOAD_RANGE)

    return replace(
        machine,
        temperature=temperature,
        vibration=vibration,
        load=load,
        last_update=now or datetime.now(),
        status=next_status(machine.status, rng),
    )


# =============================================================================
# Machine profile (detail header of the selected machine)
# =============================================================================


@dataclass(frozen=True)
class MachineProfile:
    """Descriptive data shown above the selected machine's timelines."""

    machine_id: str
    serial: str
    name: str
    machine_type: str
    ip: str
    mac: str
    current_status: MachineStatus
    last_log: str
    runtime_today_minutes: int
    total_logs_today: int

    def to_meta_dict(self) -> Dict[str, Any]:
        return {
            "id": self.machine_id,
            "serial": self.serial,
            "name": self.name,
            "type": self.machine_type,
            "ip": self.ip,
            "mac": self.mac,
            "current_status": self.current_status.value,
            "last_log": self.last_log,
            "runtime_today_minutes": self.runtime_today_minutes,
            "total_logs_today": self.total_logs_today,
        }


def create_machine_profile(
    machine: MachineCard, today: List[TimelineEvent]
) -> MachineProfile:
    """Build the profile of ``machine`` from its card and today's events.

    Network identity is synthetic but stable per machine: Faker is seeded with
    the machine's timeline seed.
    """
    with _fake_lock:
        fake.seed_instance(machine.seed)
        mac = fake.mac_address()
        ip = fake.ipv4_private()

    running = {MachineStatus.RUNNING_GOOD, MachineStatus.RUNNING_ABNORMAL}
    runtime_seconds = sum(e.duration_seconds for e in today if e.status in running)
    last_log = today[-1].start.strftime("%H:%M") if today else "--:--"

    return MachineProfile(
        machine_id=machine.machine_id,
        serial=mac.replace(":", "").upper(),
        name=machine.name,
        machine_type="Auto",
        ip=ip,
        mac=mac,
        current_status=machine.status,
        last_log=last_log,
        runtime_today_minutes=int(runtime_seconds // 60),
        total_logs_today=len(today),
    )
